# empires/game/ledger.py
from __future__ import annotations

from datetime import datetime
from typing import Iterable, Mapping

from empires.game.catalog import RESOURCES, ResourceCost
from empires.game.formulas import (
    LeveledBuilding,
    calculate_population,
    calculate_resource_production,
    calculate_storage_capacity,
    floor_int,
)
from empires.models.village import Village

# Which cap governs which resource
CAP_FOR: dict[str, str] = {
    "wood": "warehouse",
    "clay": "warehouse",
    "iron": "warehouse",
    "crop": "granary",
}


def _amounts(cost: ResourceCost | Mapping[str, int]) -> dict[str, int]:
    if isinstance(cost, ResourceCost):
        return cost.as_dict()
    return {r: int(cost.get(r, 0) or 0) for r in RESOURCES}


def cap_of(village: Village, resource: str) -> int:
    return int(getattr(village, CAP_FOR[resource]))


# ----------------------------
# Accrual
# ----------------------------

def reconcile(village: Village, now: datetime) -> float:
    """
    Credit production for the time since last_update, respecting storage caps.

    - Zero (or negative) elapsed time changes nothing, so calling twice with the
      same `now` is a no-op and the clock never runs backwards.
    - Fractions of a unit are carried to the next reconciliation instead of
      being dropped, otherwise frequent sweeps would starve slow producers.

    Returns the hours credited.
    """
    last = village.last_update or now
    hours = (now - last).total_seconds() / 3600.0
    if hours <= 0:
        if village.last_update is None:
            village.last_update = now
        return 0.0

    for r in RESOURCES:
        rate = int(getattr(village, f"{r}_rate") or 0)
        carry = float(getattr(village, f"{r}_carry") or 0.0)
        current = int(getattr(village, r) or 0)
        cap = cap_of(village, r)

        exact = rate * hours + carry
        gain = floor_int(exact)

        if current + gain >= cap:
            setattr(village, r, max(current, cap))
            setattr(village, f"{r}_carry", 0.0)
        else:
            setattr(village, r, current + gain)
            setattr(village, f"{r}_carry", max(0.0, exact - gain))

    village.last_update = now
    return hours


# ----------------------------
# Spending / refunds
# ----------------------------

def shortfall(village: Village, cost: ResourceCost | Mapping[str, int]) -> dict[str, dict[str, int]]:
    missing = {}
    for r, need in _amounts(cost).items():
        have = int(getattr(village, r) or 0)
        if have < need:
            missing[r] = {"need": need, "have": have}
    return missing


def can_afford(village: Village, cost: ResourceCost | Mapping[str, int]) -> bool:
    return not shortfall(village, cost)


def try_spend(village: Village, cost: ResourceCost | Mapping[str, int]) -> bool:
    """All-or-nothing debit. Returns False without touching anything if any resource is short."""
    amounts = _amounts(cost)
    if any(int(getattr(village, r) or 0) < need for r, need in amounts.items()):
        return False

    for r, need in amounts.items():
        setattr(village, r, int(getattr(village, r)) - need)
    return True


def refund(village: Village, cost: ResourceCost | Mapping[str, int], fraction: float) -> dict[str, int]:
    """
    Credit floor(cost * fraction) per resource, capped at storage.
    Overflow above the cap is discarded. Returns what was actually credited.
    """
    if not 0.0 <= fraction <= 1.0:
        raise ValueError(f"fraction must be within [0, 1], got {fraction}")

    credited = {}
    for r, amount in _amounts(cost).items():
        current = int(getattr(village, r) or 0)
        target = min(cap_of(village, r), current + floor_int(amount * fraction))
        new_value = max(current, target)
        setattr(village, r, new_value)
        credited[r] = new_value - current
    return credited


# ----------------------------
# Derived rates / caps
# ----------------------------

def recompute_rates(village: Village, buildings: Iterable[LeveledBuilding]) -> dict[str, int]:
    buildings = list(buildings)

    production = calculate_resource_production(buildings)
    for r in RESOURCES:
        setattr(village, f"{r}_rate", production[r])

    storage = calculate_storage_capacity(buildings)
    village.warehouse = storage["warehouse"]
    village.granary = storage["granary"]

    village.population = calculate_population(buildings)

    # Clamp (caps shouldn't shrink, but keep the invariant regardless)
    for r in RESOURCES:
        setattr(village, r, min(int(getattr(village, r)), cap_of(village, r)))

    return {
        **{f"{r}_rate": production[r] for r in RESOURCES},
        "warehouse": village.warehouse,
        "granary": village.granary,
        "population": village.population,
    }


def snapshot(village: Village) -> dict:
    return {
        "resources": {r: int(getattr(village, r)) for r in RESOURCES},
        "rates_per_hour": {r: int(getattr(village, f"{r}_rate")) for r in RESOURCES},
        "caps": {"warehouse": int(village.warehouse), "granary": int(village.granary)},
        "population": int(village.population or 0),
        "last_update": village.last_update.isoformat() if village.last_update else None,
    }
