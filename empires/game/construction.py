# empires/game/construction.py
from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Iterable

from empires.errors import (
    AlreadyBuildingError,
    CancellationWindowExpiredError,
    InsufficientResourcesError,
    InvalidSlotError,
    MaxLevelError,
    NotUnderConstructionError,
    PrerequisiteError,
    SlotOccupiedError,
    UnknownBuildingError,
)
from empires.game import ledger
from empires.game.catalog import MAIN_BUILDING, ResourceCost, field_kind_for_slot, get_definition
from empires.game.formulas import calculate_construction_time, get_cost
from empires.game.prerequisites import missing_prerequisites
from empires.logging import get_logger
from empires.models.building import Building
from empires.models.village import Village

log = get_logger(__name__)

# Cancelling is only allowed shortly after starting, and refunds part of the cost
CANCEL_WINDOW_SECONDS = 300
CANCEL_REFUND_FRACTION = 0.8


# ----------------------------
# Queries
# ----------------------------

def active_construction(buildings: Iterable[Building]) -> Building | None:
    return next((b for b in buildings if b.is_under_construction), None)


def building_at(village: Village, slot: int) -> Building | None:
    return next((b for b in village.buildings if b.slot_position == slot), None)


def main_building_level(buildings: Iterable[Building]) -> int:
    return max((int(b.level or 0) for b in buildings if b.type == MAIN_BUILDING), default=0)


def get_time_remaining(completes_at: datetime | None, now: datetime) -> int:
    if completes_at is None:
        return 0
    return max(0, int(math.floor((completes_at - now).total_seconds())))


def recorded_cost(building: Building) -> ResourceCost:
    return ResourceCost(
        wood=int(building.cost_wood or 0),
        clay=int(building.cost_clay or 0),
        iron=int(building.cost_iron or 0),
        crop=int(building.cost_crop or 0),
        build_seconds=int(building.build_seconds or 0),
    )


def _clear_construction(building: Building, now: datetime) -> None:
    building.is_under_construction = False
    building.started_at = None
    building.completes_at = None
    building.build_seconds = 0
    building.cost_wood = 0
    building.cost_clay = 0
    building.cost_iron = 0
    building.cost_crop = 0
    building.updated_at = now


# ----------------------------
# Idle -> Building
# ----------------------------

def start_construction(village: Village, building_type: int, slot: int, now: datetime) -> Building:
    """
    Start raising the building in `slot` by one level (creating it at level 0 if
    the slot is empty). The cost is debited immediately; nothing changes if any
    check fails.
    """
    kind = field_kind_for_slot(slot)

    defn = get_definition(building_type)
    if defn is None:
        raise UnknownBuildingError(building_type=building_type)
    if kind not in defn.field_kinds:
        raise InvalidSlotError(
            f"{defn.name} cannot be built on a {kind.value.replace('_', ' ')}",
            slot=slot,
            building_type=defn.id,
        )

    existing = building_at(village, slot)
    if existing is not None and existing.type != defn.id:
        raise SlotOccupiedError(slot=slot, occupied_by=existing.type)

    buildings = list(village.buildings)
    current_level = int(existing.level or 0) if existing is not None else 0
    target_level = current_level + 1

    missing = missing_prerequisites(defn.id, buildings)
    if missing:
        raise PrerequisiteError(building_type=defn.id, missing=missing)

    if target_level > defn.max_level:
        raise MaxLevelError(
            f"Maximum level {defn.max_level} reached",
            building_type=defn.id,
            max_level=defn.max_level,
        )

    active = active_construction(buildings)
    if active is not None:
        raise AlreadyBuildingError(
            active={
                "slot": active.slot_position,
                "type": active.type,
                "to_level": int(active.level or 0) + 1,
                "completes_at": active.completes_at.isoformat() if active.completes_at else None,
            }
        )

    cost = get_cost(defn.id, target_level)
    seconds = calculate_construction_time(cost.build_seconds, main_building_level(buildings))

    if not ledger.try_spend(village, cost):
        raise InsufficientResourcesError(cost=cost.as_dict(), missing=ledger.shortfall(village, cost))

    building = existing
    if building is None:
        # Level 0 until the first construction completes
        building = Building(
            village=village,
            type=defn.id,
            level=0,
            slot_position=slot,
            is_under_construction=False,
            build_seconds=0,
            cost_wood=0,
            cost_clay=0,
            cost_iron=0,
            cost_crop=0,
            updated_at=now,
        )

    building.is_under_construction = True
    building.started_at = now
    building.completes_at = now + timedelta(seconds=seconds)
    building.build_seconds = seconds
    building.cost_wood = cost.wood
    building.cost_clay = cost.clay
    building.cost_iron = cost.iron
    building.cost_crop = cost.crop
    building.updated_at = now

    log.info(
        "construction_started",
        village_id=village.id,
        slot=slot,
        building=defn.name,
        to_level=target_level,
        seconds=seconds,
        cost=cost.as_dict(),
    )
    return building


# ----------------------------
# Building -> Idle
# ----------------------------

def complete_construction(village: Village, building: Building, now: datetime) -> Building:
    """
    Apply the level-up. Production up to `now` is credited at the old rates
    before rates/caps are recomputed from the new building set.
    """
    if not building.is_under_construction:
        raise NotUnderConstructionError(slot=building.slot_position)

    ledger.reconcile(village, now)

    building.level = int(building.level or 0) + 1
    _clear_construction(building, now)

    ledger.recompute_rates(village, village.buildings)

    log.info(
        "construction_completed",
        village_id=village.id,
        slot=building.slot_position,
        building_type=building.type,
        level=building.level,
    )
    return building


def complete_due(village: Village, now: datetime) -> list[Building]:
    """Finish every construction whose completes_at has passed, at its own completion time."""
    completed = []
    due = sorted(
        (b for b in village.buildings if b.is_under_construction and b.completes_at and b.completes_at <= now),
        key=lambda b: b.completes_at,
    )
    for b in due:
        completed.append(complete_construction(village, b, b.completes_at))
    return completed


def cancel_construction(village: Village, slot: int, now: datetime) -> dict[str, int]:
    """
    Abort the construction in `slot` within CANCEL_WINDOW_SECONDS of its start
    and refund 80% of what was paid (capped at storage). Returns the credited amounts.
    """
    building = building_at(village, slot)
    if building is None or not building.is_under_construction:
        raise NotUnderConstructionError(slot=slot)

    start_time = building.completes_at - timedelta(seconds=int(building.build_seconds or 0))
    elapsed = (now - start_time).total_seconds()
    if elapsed >= CANCEL_WINDOW_SECONDS:
        raise CancellationWindowExpiredError(
            f"Construction cannot be cancelled after {CANCEL_WINDOW_SECONDS // 60} minutes",
            slot=slot,
            elapsed_seconds=int(elapsed),
        )

    cost = recorded_cost(building)
    _clear_construction(building, now)
    refunded = ledger.refund(village, cost, CANCEL_REFUND_FRACTION)

    log.info(
        "construction_cancelled",
        village_id=village.id,
        slot=slot,
        building_type=building.type,
        refunded=refunded,
    )
    return refunded
