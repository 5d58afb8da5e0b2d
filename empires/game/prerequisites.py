# empires/game/prerequisites.py
from __future__ import annotations

from typing import Any, Iterable

from empires.game.catalog import get_definition


def _owned_levels(owned: Iterable[Any]) -> dict[int, int]:
    """
    owned: buildings with .type/.level, or (type, level) pairs.
    Returns type -> highest level owned.
    """
    levels: dict[int, int] = {}
    for item in owned:
        if isinstance(item, tuple):
            t, lvl = item
        else:
            t, lvl = item.type, item.level
        t, lvl = int(t), int(lvl or 0)
        levels[t] = max(levels.get(t, 0), lvl)
    return levels


def missing_prerequisites(building_type: int, owned: Iterable[Any]) -> list[dict]:
    defn = get_definition(building_type)
    if defn is None or not defn.prerequisites:
        return []

    levels = _owned_levels(owned)
    missing = []
    for req in defn.prerequisites:
        have = levels.get(req.building_type, 0)
        if have < req.level:
            req_def = get_definition(req.building_type)
            missing.append(
                {
                    "type": req.building_type,
                    "name": req_def.name if req_def else str(req.building_type),
                    "need": req.level,
                    "have": have,
                }
            )
    return missing


def check_prerequisites(building_type: int, owned: Iterable[Any]) -> bool:
    return not missing_prerequisites(building_type, owned)
