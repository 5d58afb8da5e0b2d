# empires/game/village.py
from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from empires.errors import AlreadyBuildingError, GameRuleError, StorageError, VillageNotFoundError
from empires.game import construction, ledger
from empires.game.catalog import field_kind_for_slot, get_definition
from empires.game.formulas import calculate_construction_time, get_cost
from empires.game.locks import village_lock
from empires.game.prerequisites import missing_prerequisites
from empires.logging import get_logger
from empires.models.building import Building
from empires.models.village import Village

log = get_logger(__name__)

STARTING_STOCK = 750
STARTING_CAP = 800


@dataclass
class VillageState:
    """A village's ledger row plus its buildings."""

    village: Village

    @property
    def id(self) -> int:
        return self.village.id

    @property
    def buildings(self) -> list[Building]:
        return list(self.village.buildings)

    @property
    def population(self) -> int:
        return int(self.village.population or 0)

    def building_at(self, slot: int) -> Building | None:
        return construction.building_at(self.village, slot)

    def levels_by_type(self) -> dict[int, int]:
        levels: dict[int, int] = {}
        for b in self.village.buildings:
            levels[b.type] = max(levels.get(b.type, 0), int(b.level or 0))
        return levels

    def main_building_level(self) -> int:
        return construction.main_building_level(self.village.buildings)

    def active_construction(self) -> Building | None:
        return construction.active_construction(self.village.buildings)

    def snapshot(self, now: datetime) -> dict:
        v = self.village
        active = self.active_construction()
        return {
            "village_id": v.id,
            "owner_id": v.owner_id,
            "name": v.name,
            "x": v.x,
            "y": v.y,
            **ledger.snapshot(v),
            "buildings": [building_snapshot(b, now) for b in self.buildings],
            "active_construction": building_snapshot(active, now) if active else None,
        }


def building_snapshot(b: Building, now: datetime) -> dict:
    defn = get_definition(b.type)
    item = {
        "slot": b.slot_position,
        "type": b.type,
        "name": defn.name if defn else str(b.type),
        "level": int(b.level or 0),
        "is_under_construction": bool(b.is_under_construction),
        "completes_at": b.completes_at.isoformat() if b.completes_at else None,
    }
    if b.is_under_construction:
        item["to_level"] = int(b.level or 0) + 1
        item["time_remaining_seconds"] = construction.get_time_remaining(b.completes_at, now)
    return item


# ----------------------------
# Creation / loading
# ----------------------------

def new_village(*, owner_id: int, name: str, x: int, y: int, now: datetime) -> Village:
    return Village(
        owner_id=owner_id,
        name=name,
        x=x,
        y=y,
        wood=STARTING_STOCK,
        clay=STARTING_STOCK,
        iron=STARTING_STOCK,
        crop=STARTING_STOCK,
        wood_rate=0,
        clay_rate=0,
        iron_rate=0,
        crop_rate=0,
        wood_carry=0.0,
        clay_carry=0.0,
        iron_carry=0.0,
        crop_carry=0.0,
        warehouse=STARTING_CAP,
        granary=STARTING_CAP,
        population=0,
        last_update=now,
        created_at=now,
    )


BUILDER_INDEX = "uq_buildings_one_active_per_village"


def _violates_builder_index(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    if BUILDER_INDEX in message:
        return True
    # SQLite names the indexed columns, not the index
    return message.rstrip().endswith("buildings.village_id")


def _flush(db: Session, action: str, village_id: int) -> None:
    try:
        db.flush()
    except SQLAlchemyError as exc:
        db.rollback()
        log.exception("storage_failure", action=action, village_id=village_id)
        raise StorageError(f"{action} failed") from exc


def _commit(db: Session, action: str, village_id: int | None) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if _violates_builder_index(exc):
            # Lost the race for the village's single builder slot
            raise AlreadyBuildingError("Another building is already under construction (db constraint)") from exc
        log.exception("storage_failure", action=action, village_id=village_id)
        raise StorageError(f"{action} failed") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        log.exception("storage_failure", action=action, village_id=village_id)
        raise StorageError(f"{action} failed") from exc


def found_village(
    db: Session,
    *,
    owner_id: int,
    name: str = "Capital City",
    x: int | None = None,
    y: int | None = None,
    now: datetime,
) -> VillageState:
    village = new_village(
        owner_id=owner_id,
        name=name,
        x=x if x is not None else random.randint(-100, 99),
        y=y if y is not None else random.randint(-100, 99),
        now=now,
    )
    db.add(village)
    _commit(db, "found_village", None)
    db.refresh(village)

    log.info("village_founded", village_id=village.id, owner_id=owner_id, x=village.x, y=village.y)
    return VillageState(village)


def load_village(db: Session, village_id: int, *, for_update: bool = False) -> VillageState:
    try:
        q = db.query(Village).filter(Village.id == int(village_id))
        if for_update:
            q = q.with_for_update()
        village = q.first()
    except SQLAlchemyError as exc:
        log.exception("storage_failure", action="load_village", village_id=village_id)
        raise StorageError("load_village failed") from exc

    if village is None:
        raise VillageNotFoundError(village_id=village_id)
    return VillageState(village)


def advance(state: VillageState, now: datetime) -> list[Building]:
    """Bring the village up to `now`: finish due constructions, then accrue the remainder."""
    completed = construction.complete_due(state.village, now)
    ledger.reconcile(state.village, now)
    return completed


# ----------------------------
# Operations (serialized per village)
# ----------------------------

def refresh(db: Session, village_id: int, now: datetime) -> VillageState:
    with village_lock(village_id):
        state = load_village(db, village_id, for_update=True)
        advance(state, now)
        _commit(db, "refresh", village_id)
    return state


def upgrade(db: Session, village_id: int, slot: int, building_type: int, now: datetime) -> Building:
    with village_lock(village_id):
        state = load_village(db, village_id, for_update=True)
        advance(state, now)
        # Completed rows must release the builder index before another row claims it
        _flush(db, "upgrade", village_id)
        try:
            building = construction.start_construction(state.village, building_type, slot, now)
        except GameRuleError as exc:
            # Persist the accrual we just did; the rejected action itself changed nothing
            _commit(db, "upgrade", village_id)
            log.info("construction_rejected", village_id=village_id, slot=slot, code=exc.code)
            raise
        db.add(building)
        _commit(db, "upgrade", village_id)
        return building


def cancel(db: Session, village_id: int, slot: int, now: datetime) -> dict[str, int]:
    with village_lock(village_id):
        state = load_village(db, village_id, for_update=True)
        advance(state, now)
        _flush(db, "cancel", village_id)
        try:
            refunded = construction.cancel_construction(state.village, slot, now)
        except GameRuleError as exc:
            _commit(db, "cancel", village_id)
            log.info("cancel_rejected", village_id=village_id, slot=slot, code=exc.code)
            raise
        _commit(db, "cancel", village_id)
        return refunded


def preview_upgrade(state: VillageState, slot: int, building_type: int) -> dict:
    """What an upgrade would cost and whether it's allowed right now. Mutates nothing."""
    defn = get_definition(building_type)
    if defn is None:
        return {"allowed": False, "error": "Invalid building type", "building_type": building_type}

    try:
        kind = field_kind_for_slot(slot)
    except GameRuleError as exc:
        return {"allowed": False, **exc.to_dict()}

    existing = state.building_at(slot)
    current_level = int(existing.level or 0) if existing is not None else 0
    to_level = current_level + 1

    base = {
        "building_type": defn.id,
        "name": defn.name,
        "slot": slot,
        "from_level": current_level,
        "to_level": to_level,
    }

    if kind not in defn.field_kinds:
        return {**base, "allowed": False, "error": f"{defn.name} cannot be built here"}
    if existing is not None and existing.type != defn.id:
        return {**base, "allowed": False, "error": "Slot is occupied by another building"}

    missing = missing_prerequisites(defn.id, state.buildings)
    if missing:
        return {**base, "allowed": False, "error": "Prerequisites not met", "missing": missing}

    if to_level > defn.max_level:
        return {**base, "allowed": False, "error": "Maximum level reached", "max_level": defn.max_level}

    active = state.active_construction()
    if active is not None:
        return {
            **base,
            "allowed": False,
            "error": "Another building is already under construction",
            "active": {"slot": active.slot_position, "type": active.type},
        }

    cost = get_cost(defn.id, to_level)
    seconds = calculate_construction_time(cost.build_seconds, state.main_building_level())
    insufficient = ledger.shortfall(state.village, cost)

    return {
        **base,
        "allowed": not insufficient,
        "cost": cost.as_dict(),
        "duration_seconds": seconds,
        "have_resources": not insufficient,
        "insufficient": insufficient,
    }
