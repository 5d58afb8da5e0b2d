# empires/routes/game.py
from __future__ import annotations

import secrets

from fastapi import APIRouter, Depends, HTTPException, status, Header
from sqlalchemy.orm import Session

from empires import config
from empires.database import get_db, utcnow
from empires.game.tick import tick_all_villages

router = APIRouter(prefix="/game", tags=["game"])

def _is_admin(x_admin_key: str | None) -> bool:
    return bool(config.ADMIN_KEY) and bool(x_admin_key) and secrets.compare_digest(x_admin_key, config.ADMIN_KEY)

@router.post("/tick")
def run_tick(
    db: Session = Depends(get_db),
    x_admin_key: str | None = Header(default=None, alias="X-Admin-Key"),
) -> dict:
    """
    Scheduler hook: reconcile every village and finish due constructions.
    Requires X-Admin-Key header to match ADMIN_KEY.
    """
    if not _is_admin(x_admin_key):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    return tick_all_villages(db, utcnow())
