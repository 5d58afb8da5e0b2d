# empires/routes/villages.py
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from empires import config
from empires.database import get_db, utcnow
from empires.game import ledger
from empires.game import village as villages
from empires.game.catalog import VILLAGE_SLOTS, RESOURCE_FIELD_SLOTS, get_definition
from empires.game.tick import tick_world_if_due

router = APIRouter(prefix="/villages", tags=["villages"])


def _tick_on_read(db: Session) -> datetime:
    """Catch the world up (throttled) before serving; returns the request's `now`."""
    now = utcnow()
    if config.TICK_ON_READ:
        tick_world_if_due(db, now, throttle_seconds=config.TICK_THROTTLE_SECONDS)
    return now


class FoundVillageRequest(BaseModel):
    owner_id: int = Field(ge=1)
    name: str = Field(default="Capital City", min_length=1, max_length=40)
    x: int | None = Field(default=None, ge=-200, le=200)
    y: int | None = Field(default=None, ge=-200, le=200)


class UpgradeRequest(BaseModel):
    slot: int = Field(ge=RESOURCE_FIELD_SLOTS[0], le=VILLAGE_SLOTS[-1])
    building_type: int = Field(ge=1)


class CancelRequest(BaseModel):
    slot: int = Field(ge=RESOURCE_FIELD_SLOTS[0], le=VILLAGE_SLOTS[-1])


@router.post("", status_code=status.HTTP_201_CREATED)
def found_village(payload: FoundVillageRequest, db: Session = Depends(get_db)) -> dict:
    now = _tick_on_read(db)
    state = villages.found_village(
        db,
        owner_id=payload.owner_id,
        name=payload.name,
        x=payload.x,
        y=payload.y,
        now=now,
    )
    return state.snapshot(now)


@router.get("/{village_id}")
def get_village(village_id: int, db: Session = Depends(get_db)) -> dict:
    # The sweep may be throttled; refresh still brings this village up to now
    now = _tick_on_read(db)
    state = villages.refresh(db, village_id, now)
    return state.snapshot(now)


@router.get("/{village_id}/buildings")
def list_buildings(village_id: int, db: Session = Depends(get_db)) -> dict:
    now = _tick_on_read(db)
    state = villages.refresh(db, village_id, now)
    snap = state.snapshot(now)

    occupied = {b.slot_position for b in state.buildings}
    return {
        "village_id": state.id,
        "buildings": snap["buildings"],
        "active_construction": snap["active_construction"],
        "free_resource_fields": [s for s in RESOURCE_FIELD_SLOTS if s not in occupied],
        "free_village_slots": [s for s in VILLAGE_SLOTS if s not in occupied],
    }


@router.get("/{village_id}/upgrade/preview")
def preview_upgrade(
    village_id: int,
    slot: int = Query(...),
    building_type: int = Query(...),
    db: Session = Depends(get_db),
) -> dict:
    now = _tick_on_read(db)
    state = villages.refresh(db, village_id, now)
    return {"village_id": state.id, **villages.preview_upgrade(state, slot, building_type)}


@router.post("/{village_id}/upgrade")
def start_upgrade(village_id: int, payload: UpgradeRequest, db: Session = Depends(get_db)) -> dict:
    now = _tick_on_read(db)
    building = villages.upgrade(db, village_id, payload.slot, payload.building_type, now)

    defn = get_definition(building.type)
    return {
        "status": "started",
        "village_id": village_id,
        "slot": building.slot_position,
        "building_type": building.type,
        "name": defn.name if defn else str(building.type),
        "from_level": int(building.level),
        "to_level": int(building.level) + 1,
        "cost": {
            "wood": building.cost_wood,
            "clay": building.cost_clay,
            "iron": building.cost_iron,
            "crop": building.cost_crop,
        },
        "duration_seconds": building.build_seconds,
        "completes_at": building.completes_at.isoformat(),
    }


@router.post("/{village_id}/cancel")
def cancel_upgrade(village_id: int, payload: CancelRequest, db: Session = Depends(get_db)) -> dict:
    now = _tick_on_read(db)
    refunded = villages.cancel(db, village_id, payload.slot, now)
    state = villages.load_village(db, village_id)
    return {
        "status": "cancelled",
        "village_id": village_id,
        "slot": payload.slot,
        "refunded": refunded,
        **ledger.snapshot(state.village),
    }
