# empires/routes/catalog.py
from __future__ import annotations

from fastapi import APIRouter, Query

from empires.game.catalog import (
    BUILDINGS,
    RESOURCE_FIELD_SLOTS,
    VILLAGE_SLOTS,
    FieldKind,
    buildings_for_field_kind,
    require_definition,
)
from empires.game.formulas import calculate_construction_time, get_building_stats, get_cost

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("")
def list_catalog() -> dict:
    return {
        "buildings": [
            {**defn.to_dict(), "base_cost": defn.base_cost.to_dict()}
            for defn in sorted(BUILDINGS.values(), key=lambda d: d.id)
        ],
        "slots": {
            "resource_fields": [RESOURCE_FIELD_SLOTS[0], RESOURCE_FIELD_SLOTS[-1]],
            "village_slots": [VILLAGE_SLOTS[0], VILLAGE_SLOTS[-1]],
        },
        "buildable": {kind.value: [d.id for d in buildings_for_field_kind(kind)] for kind in FieldKind},
    }


@router.get("/{building_type}")
def building_level_info(
    building_type: int,
    level: int = Query(1, ge=1, le=20),
    main_building_level: int = Query(0, ge=0, le=20),
) -> dict:
    """Cost and output of a building at `level` (the numbers the build modal shows)."""
    defn = require_definition(building_type)
    level = min(level, defn.max_level)

    cost = get_cost(defn.id, level)
    return {
        **defn.to_dict(),
        "level": level,
        "cost": cost.as_dict(),
        "base_duration_seconds": cost.build_seconds,
        "duration_seconds": calculate_construction_time(cost.build_seconds, main_building_level),
        "stats": get_building_stats(defn.id, level).to_dict(),
    }
