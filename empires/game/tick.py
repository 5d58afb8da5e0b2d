# empires/game/tick.py
from __future__ import annotations

import threading
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from empires.errors import StorageError
from empires.game.locks import village_lock
from empires.game.village import VillageState, advance
from empires.logging import get_logger
from empires.models.village import Village

log = get_logger(__name__)

# Last world sweep started by a read; shared by every request thread
_world_tick_lock = threading.Lock()
_last_world_tick_at: Optional[datetime] = None


def tick_village(state: VillageState, now: datetime) -> Dict[str, object]:
    """
    Reconcile one village up to `now`, finishing due constructions at their own
    completion time. Idempotent: re-running with the same `now` does nothing.
    """
    before = state.village.last_update
    completed = advance(state, now)
    return {
        "village_id": state.id,
        "ticked": before is None or now > before,
        "constructions_completed": len(completed),
    }


def tick_all_villages(db: Session, now: datetime) -> Dict[str, object]:
    try:
        village_ids = [vid for (vid,) in db.query(Village.id).order_by(Village.id.asc()).all()]

        ticked = 0
        completed = 0
        for vid in village_ids:
            with village_lock(vid):
                village = db.query(Village).filter(Village.id == vid).with_for_update().first()
                if village is None:
                    continue
                result = tick_village(VillageState(village), now)
                if result["ticked"]:
                    ticked += 1
                completed += int(result["constructions_completed"])
                db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        log.exception("storage_failure", action="tick_all_villages")
        raise StorageError("tick failed") from exc

    summary = {
        "villages_total": len(village_ids),
        "villages_ticked": ticked,
        "constructions_completed": completed,
        "at": now.isoformat(),
    }
    log.debug("tick_completed", **summary)
    return summary


def tick_world_if_due(db: Session, now: datetime, *, throttle_seconds: float) -> Optional[Dict[str, object]]:
    """
    Sweep every village unless the previous read-triggered sweep is younger than
    `throttle_seconds`. Returns the sweep summary, or None when throttled.
    A clock that moved backwards counts as too soon.
    """
    global _last_world_tick_at

    with _world_tick_lock:
        last = _last_world_tick_at
        if last is not None and (now - last).total_seconds() < throttle_seconds:
            return None
        _last_world_tick_at = now

    try:
        return tick_all_villages(db, now)
    except StorageError:
        with _world_tick_lock:
            if _last_world_tick_at == now:
                _last_world_tick_at = last
        raise
