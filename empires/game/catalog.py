# empires/game/catalog.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from empires.errors import InvalidSlotError, UnknownBuildingError

RESOURCES: tuple[str, ...] = ("wood", "clay", "iron", "crop")


# ----------------------------
# Value types
# ----------------------------

class Category(str, Enum):
    RESOURCE = "resource"
    MILITARY = "military"
    INFRASTRUCTURE = "infrastructure"
    SPECIAL = "special"


class FieldKind(str, Enum):
    RESOURCE_FIELD = "resource_field"
    VILLAGE_SLOT = "village_slot"


@dataclass(frozen=True)
class ResourceCost:
    wood: int
    clay: int
    iron: int
    crop: int
    build_seconds: int

    def as_dict(self) -> dict[str, int]:
        return {"wood": self.wood, "clay": self.clay, "iron": self.iron, "crop": self.crop}

    def to_dict(self) -> dict[str, int]:
        return {**self.as_dict(), "build_seconds": self.build_seconds}


@dataclass(frozen=True)
class Requirement:
    building_type: int
    level: int


# What a building does when leveled. Formulas match on these tags.

@dataclass(frozen=True)
class ResourceProducer:
    resource: str  # one of RESOURCES


@dataclass(frozen=True)
class Storage:
    store: str  # "warehouse" (wood/clay/iron) or "granary" (crop)


@dataclass(frozen=True)
class PopulationProvider:
    per_level: int = 0
    flat: int = 0


@dataclass(frozen=True)
class Special:
    """Leveling changes nothing the economy tracks (artifacts, chiefs, settlers)."""


Effect = ResourceProducer | Storage | PopulationProvider | Special


@dataclass(frozen=True)
class BuildingDef:
    id: int
    name: str
    description: str
    category: Category
    max_level: int
    effect: Effect
    base_cost: ResourceCost
    prerequisites: tuple[Requirement, ...] = ()
    field_kinds: frozenset[FieldKind] = frozenset({FieldKind.VILLAGE_SLOT})

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "max_level": self.max_level,
            "prerequisites": [
                {"type": r.building_type, "level": r.level} for r in self.prerequisites
            ],
            "field_kinds": sorted(k.value for k in self.field_kinds),
        }


# ----------------------------
# Building ids
# ----------------------------

WOODCUTTER = 1
CLAY_PIT = 2
IRON_MINE = 3
CROPLAND = 4
WAREHOUSE = 10
GRANARY = 11
MAIN_BUILDING = 15
RALLY_POINT = 16
MARKETPLACE = 17
EMBASSY = 18
BARRACKS = 19
STABLE = 20
SMITHY = 21
RESIDENCE = 25
PALACE = 26
TREASURY = 27

# Unknown building types are priced like this instead of being rejected
DEFAULT_BASE_COST = ResourceCost(wood=100, clay=100, iron=100, crop=100, build_seconds=600)

# Slot layout: 1..18 resource fields, 19..40 village centre
RESOURCE_FIELD_SLOTS = range(1, 19)
VILLAGE_SLOTS = range(19, 41)

_RESOURCE_ONLY = frozenset({FieldKind.RESOURCE_FIELD})


def _cost(wood: int, clay: int, iron: int, crop: int, seconds: int) -> ResourceCost:
    return ResourceCost(wood=wood, clay=clay, iron=iron, crop=crop, build_seconds=seconds)


def _req(*pairs: tuple[int, int]) -> tuple[Requirement, ...]:
    return tuple(Requirement(building_type=t, level=lvl) for t, lvl in pairs)


_DEFS: tuple[BuildingDef, ...] = (
    # Resource fields - relatively cheap, 5 minutes at level 1
    BuildingDef(WOODCUTTER, "Woodcutter", "Produces wood", Category.RESOURCE, 20,
                ResourceProducer("wood"), _cost(40, 100, 50, 60, 300), field_kinds=_RESOURCE_ONLY),
    BuildingDef(CLAY_PIT, "Clay Pit", "Produces clay", Category.RESOURCE, 20,
                ResourceProducer("clay"), _cost(80, 40, 80, 50, 300), field_kinds=_RESOURCE_ONLY),
    BuildingDef(IRON_MINE, "Iron Mine", "Produces iron", Category.RESOURCE, 20,
                ResourceProducer("iron"), _cost(100, 80, 30, 60, 300), field_kinds=_RESOURCE_ONLY),
    BuildingDef(CROPLAND, "Cropland", "Produces crop", Category.RESOURCE, 20,
                ResourceProducer("crop"), _cost(70, 90, 70, 20, 300), field_kinds=_RESOURCE_ONLY),

    # Infrastructure
    BuildingDef(WAREHOUSE, "Warehouse", "Stores wood, clay and iron", Category.INFRASTRUCTURE, 20,
                Storage("warehouse"), _cost(130, 160, 90, 40, 450)),
    BuildingDef(GRANARY, "Granary", "Stores crop", Category.INFRASTRUCTURE, 20,
                Storage("granary"), _cost(80, 100, 70, 20, 450)),
    BuildingDef(MAIN_BUILDING, "Main Building", "Village center, speeds up construction",
                Category.INFRASTRUCTURE, 20,
                PopulationProvider(per_level=2), _cost(70, 40, 60, 20, 400)),
    BuildingDef(RALLY_POINT, "Rally Point", "Meeting place for troops", Category.MILITARY, 1,
                PopulationProvider(flat=1), _cost(110, 160, 90, 70, 500)),
    BuildingDef(MARKETPLACE, "Marketplace", "Trade resources with other players",
                Category.INFRASTRUCTURE, 20,
                PopulationProvider(per_level=4), _cost(80, 70, 120, 70, 600),
                prerequisites=_req((MAIN_BUILDING, 3), (WAREHOUSE, 1), (GRANARY, 1))),
    BuildingDef(EMBASSY, "Embassy", "Join alliances", Category.INFRASTRUCTURE, 20,
                PopulationProvider(per_level=1), _cost(180, 130, 150, 80, 900),
                prerequisites=_req((MAIN_BUILDING, 1))),

    # Military
    BuildingDef(BARRACKS, "Barracks", "Train infantry troops", Category.MILITARY, 20,
                PopulationProvider(per_level=4), _cost(210, 140, 260, 120, 900),
                prerequisites=_req((RALLY_POINT, 1), (MAIN_BUILDING, 3))),
    BuildingDef(STABLE, "Stable", "Train cavalry troops", Category.MILITARY, 20,
                PopulationProvider(per_level=5), _cost(260, 140, 220, 100, 1200),
                prerequisites=_req((BARRACKS, 5), (SMITHY, 3))),
    BuildingDef(SMITHY, "Smithy", "Improve weapons and armor", Category.MILITARY, 20,
                PopulationProvider(per_level=4), _cost(170, 200, 380, 130, 900),
                prerequisites=_req((MAIN_BUILDING, 3), (BARRACKS, 1))),

    # Special - expensive and slow
    BuildingDef(RESIDENCE, "Residence", "Train settlers and expand", Category.SPECIAL, 20,
                PopulationProvider(per_level=1), _cost(580, 460, 350, 180, 2100),
                prerequisites=_req((MAIN_BUILDING, 5))),
    BuildingDef(PALACE, "Palace", "Government center, train chiefs", Category.SPECIAL, 20,
                PopulationProvider(per_level=1), _cost(550, 800, 750, 250, 3000),
                prerequisites=_req((EMBASSY, 1), (MAIN_BUILDING, 5))),
    BuildingDef(TREASURY, "Treasury", "Store artifacts and treasures", Category.SPECIAL, 10,
                Special(), _cost(2880, 2740, 2580, 990, 5400),
                prerequisites=_req((MAIN_BUILDING, 10))),
)

BUILDINGS: Mapping[int, BuildingDef] = MappingProxyType({d.id: d for d in _DEFS})


# ----------------------------
# Lookups
# ----------------------------

def get_definition(building_type: int) -> BuildingDef | None:
    return BUILDINGS.get(int(building_type))


def require_definition(building_type: int) -> BuildingDef:
    defn = get_definition(building_type)
    if defn is None:
        raise UnknownBuildingError(building_type=building_type)
    return defn


def base_cost_for(building_type: int) -> ResourceCost:
    defn = get_definition(building_type)
    return defn.base_cost if defn else DEFAULT_BASE_COST


def field_kind_for_slot(slot: int) -> FieldKind:
    if slot in RESOURCE_FIELD_SLOTS:
        return FieldKind.RESOURCE_FIELD
    if slot in VILLAGE_SLOTS:
        return FieldKind.VILLAGE_SLOT
    raise InvalidSlotError(slot=slot, valid=[RESOURCE_FIELD_SLOTS[0], VILLAGE_SLOTS[-1]])


def buildings_for_field_kind(kind: FieldKind) -> list[BuildingDef]:
    return sorted((d for d in BUILDINGS.values() if kind in d.field_kinds), key=lambda d: d.id)


def resource_building_types() -> frozenset[int]:
    return frozenset(d.id for d in BUILDINGS.values() if isinstance(d.effect, ResourceProducer))


def storage_building_types() -> frozenset[int]:
    return frozenset(d.id for d in BUILDINGS.values() if isinstance(d.effect, Storage))
