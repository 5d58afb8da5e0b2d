# empires/game/formulas.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Protocol

from empires import config
from empires.game.catalog import (
    RESOURCES,
    PopulationProvider,
    ResourceCost,
    ResourceProducer,
    Special,
    Storage,
    base_cost_for,
    get_definition,
)

# ----------------------------
# Balance constants
# ----------------------------

COST_MULTIPLIER = 1.28

# Linear production curve (canonical): 30 + 25 per level
PRODUCTION_BASE = 30
PRODUCTION_PER_LEVEL = 25

# Exponential production curve: base * level * 1.5^(level-1)
EXPONENTIAL_PRODUCTION_BASE = 2
EXPONENTIAL_PRODUCTION_GROWTH = 1.5

BASE_STORAGE_CAPACITY = 800
STORAGE_PER_LEVEL = 1200

MAIN_BUILDING_DISCOUNT_PER_LEVEL = 0.025
MAX_CONSTRUCTION_DISCOUNT = 0.5


class LeveledBuilding(Protocol):
    type: int
    level: int


@dataclass(frozen=True)
class BuildingStats:
    production: int = 0
    capacity: int = 0
    population: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"production": self.production, "capacity": self.capacity, "population": self.population}


def floor_int(x: float) -> int:
    # Round away float noise first so 60 * 0.8 style products floor to the intended integer
    return int(math.floor(round(x, 9)))


# ----------------------------
# Cost / time
# ----------------------------

def get_cost(building_type: int, target_level: int) -> ResourceCost:
    """
    Cost of raising a building to target_level: base * 1.28^(target_level - 1),
    floored. Unknown building types are priced with the default base cost.
    """
    if target_level < 1:
        raise ValueError(f"target_level must be >= 1, got {target_level}")

    base = base_cost_for(building_type)
    mult = COST_MULTIPLIER ** (target_level - 1)

    return ResourceCost(
        wood=floor_int(base.wood * mult),
        clay=floor_int(base.clay * mult),
        iron=floor_int(base.iron * mult),
        crop=floor_int(base.crop * mult),
        build_seconds=max(1, floor_int(base.build_seconds * mult)),
    )


def calculate_construction_time(base_seconds: int, main_building_level: int) -> int:
    # 2.5% per Main Building level, never more than 50%
    reduction = min(max(0, main_building_level) * MAIN_BUILDING_DISCOUNT_PER_LEVEL, MAX_CONSTRUCTION_DISCOUNT)
    return max(1, floor_int(base_seconds * (1 - reduction)))


# ----------------------------
# Per-building output
# ----------------------------

def _linear_production(level: int) -> int:
    return PRODUCTION_BASE + level * PRODUCTION_PER_LEVEL


def _exponential_production(level: int) -> int:
    return floor_int(EXPONENTIAL_PRODUCTION_BASE * level * EXPONENTIAL_PRODUCTION_GROWTH ** (level - 1))


def storage_capacity(level: int) -> int:
    return BASE_STORAGE_CAPACITY + level * STORAGE_PER_LEVEL


def get_production(building_type: int, level: int) -> int:
    """
    Hourly output of a resource producer, or capacity of a storage building.
    Everything else produces nothing (see get_population).
    """
    defn = get_definition(building_type)
    if defn is None:
        return 0

    effect = defn.effect
    if isinstance(effect, ResourceProducer):
        if config.PRODUCTION_FORMULA == "exponential":
            return _exponential_production(level)
        return _linear_production(level)
    if isinstance(effect, Storage):
        return storage_capacity(level)
    return 0


def get_population(building_type: int, level: int) -> int:
    defn = get_definition(building_type)
    if defn is None or level <= 0:
        return 0
    effect = defn.effect
    if isinstance(effect, PopulationProvider):
        return effect.flat + effect.per_level * level
    return 0


def get_building_stats(building_type: int, level: int) -> BuildingStats:
    defn = get_definition(building_type)
    if defn is None:
        return BuildingStats()

    effect = defn.effect
    if isinstance(effect, ResourceProducer):
        return BuildingStats(production=get_production(building_type, level))
    if isinstance(effect, Storage):
        return BuildingStats(capacity=get_production(building_type, level))
    if isinstance(effect, Special):
        return BuildingStats()
    return BuildingStats(population=get_population(building_type, level))


# ----------------------------
# Village-wide aggregates
# ----------------------------

def _built(buildings: Iterable[LeveledBuilding]) -> list[LeveledBuilding]:
    # level 0 = slot reserved but nothing standing yet
    return [b for b in buildings if int(b.level or 0) > 0]


def calculate_resource_production(buildings: Iterable[LeveledBuilding]) -> dict[str, int]:
    production = {r: 0 for r in RESOURCES}

    for b in _built(buildings):
        defn = get_definition(b.type)
        if defn is not None and isinstance(defn.effect, ResourceProducer):
            production[defn.effect.resource] += get_production(b.type, b.level)

    return production


def calculate_storage_capacity(buildings: Iterable[LeveledBuilding]) -> dict[str, int]:
    capacity = {"warehouse": BASE_STORAGE_CAPACITY, "granary": BASE_STORAGE_CAPACITY}
    summed = {"warehouse": 0, "granary": 0}

    for b in _built(buildings):
        defn = get_definition(b.type)
        if defn is None or not isinstance(defn.effect, Storage):
            continue
        cap = get_production(b.type, b.level)
        store = defn.effect.store
        capacity[store] = max(capacity[store], cap)
        summed[store] += cap

    if config.STORAGE_AGGREGATION == "sum":
        return {store: max(BASE_STORAGE_CAPACITY, total) for store, total in summed.items()}
    return capacity


def calculate_population(buildings: Iterable[LeveledBuilding]) -> int:
    return sum(get_population(b.type, b.level) for b in _built(buildings))
