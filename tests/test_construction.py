"""Tests for the per-village construction queue."""

from __future__ import annotations

from datetime import timedelta

import pytest

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
from empires.game import construction
from empires.game.catalog import (
    BARRACKS,
    CLAY_PIT,
    GRANARY,
    MAIN_BUILDING,
    RALLY_POINT,
    WAREHOUSE,
    WOODCUTTER,
)


def _stock(v) -> dict:
    return {"wood": v.wood, "clay": v.clay, "iron": v.iron, "crop": v.crop}


def _under_construction(v) -> list:
    return [b for b in v.buildings if b.is_under_construction]


def _seconds(n: int) -> timedelta:
    return timedelta(seconds=n)


class TestStartConstruction:
    def test_woodcutter_scenario(self, make_village, t0):
        v = make_village(wood=100, clay=150, iron=100, crop=100)

        b = construction.start_construction(v, WOODCUTTER, 1, t0)

        assert _stock(v) == {"wood": 60, "clay": 50, "iron": 50, "crop": 40}
        assert b.level == 0
        assert b.is_under_construction is True
        assert b.completes_at == t0 + _seconds(300)
        assert b.build_seconds == 300
        assert (b.cost_wood, b.cost_clay, b.cost_iron, b.cost_crop) == (40, 100, 50, 60)
        assert b in v.buildings

    def test_upgrade_existing_uses_next_level_cost(self, make_village, add_building, t0):
        v = make_village()
        existing = add_building(v, WOODCUTTER, 1, 1)

        b = construction.start_construction(v, WOODCUTTER, 1, t0)

        assert b is existing
        assert b.cost_wood == 51
        assert v.wood == 750 - 51
        assert len(v.buildings) == 1

    def test_main_building_discounts_time(self, make_village, add_building, t0):
        v = make_village()
        add_building(v, MAIN_BUILDING, 4, 19)

        b = construction.start_construction(v, WOODCUTTER, 1, t0)

        assert b.build_seconds == 270
        assert b.completes_at == t0 + _seconds(270)

    def test_insufficient_resources_changes_nothing(self, make_village, t0):
        v = make_village(wood=10, clay=150, iron=100, crop=100)

        with pytest.raises(InsufficientResourcesError) as excinfo:
            construction.start_construction(v, WOODCUTTER, 1, t0)

        assert _stock(v) == {"wood": 10, "clay": 150, "iron": 100, "crop": 100}
        assert v.buildings == []
        assert excinfo.value.detail["missing"] == {"wood": {"need": 40, "have": 10}}

    def test_prerequisites_not_met(self, make_village, add_building, t0):
        v = make_village()
        add_building(v, MAIN_BUILDING, 2, 19)

        with pytest.raises(PrerequisiteError):
            construction.start_construction(v, BARRACKS, 20, t0)
        assert v.wood == 750

    def test_max_level(self, make_village, add_building, t0):
        v = make_village()
        add_building(v, RALLY_POINT, 1, 39)

        with pytest.raises(MaxLevelError):
            construction.start_construction(v, RALLY_POINT, 39, t0)

    def test_only_one_construction_per_village(self, make_village, t0):
        v = make_village()
        construction.start_construction(v, WOODCUTTER, 1, t0)

        with pytest.raises(AlreadyBuildingError):
            construction.start_construction(v, CLAY_PIT, 2, t0 + _seconds(10))

        assert len(_under_construction(v)) == 1
        assert v.clay == 750 - 100

    @pytest.mark.parametrize("slot", [0, 41, -3])
    def test_slot_out_of_range(self, make_village, t0, slot):
        with pytest.raises(InvalidSlotError):
            construction.start_construction(make_village(), WOODCUTTER, slot, t0)

    def test_resource_field_only_takes_resource_buildings(self, make_village, t0):
        v = make_village()
        with pytest.raises(InvalidSlotError):
            construction.start_construction(v, WAREHOUSE, 1, t0)
        with pytest.raises(InvalidSlotError):
            construction.start_construction(v, WOODCUTTER, 19, t0)

    def test_slot_occupied_by_other_type(self, make_village, add_building, t0):
        v = make_village()
        add_building(v, WAREHOUSE, 1, 19)
        with pytest.raises(SlotOccupiedError):
            construction.start_construction(v, GRANARY, 19, t0)

    def test_unknown_building_type(self, make_village, t0):
        with pytest.raises(UnknownBuildingError):
            construction.start_construction(make_village(), 99, 19, t0)


class TestCompleteConstruction:
    def test_levels_up_and_recomputes_rates(self, make_village, t0):
        v = make_village()
        b = construction.start_construction(v, WOODCUTTER, 1, t0)

        construction.complete_construction(v, b, t0 + _seconds(300))

        assert b.level == 1
        assert b.is_under_construction is False
        assert b.completes_at is None
        assert b.cost_wood == 0
        assert v.wood_rate == 55

    def test_storage_completion_raises_cap(self, make_village, t0):
        v = make_village()
        b = construction.start_construction(v, WAREHOUSE, 19, t0)
        construction.complete_construction(v, b, b.completes_at)
        assert v.warehouse == 2000
        assert v.granary == 800

    def test_not_under_construction(self, make_village, add_building, t0):
        v = make_village()
        b = add_building(v, WOODCUTTER, 1, 1)
        with pytest.raises(NotUnderConstructionError):
            construction.complete_construction(v, b, t0)

    def test_complete_due_waits_for_completion_time(self, make_village, t0):
        v = make_village()
        b = construction.start_construction(v, WOODCUTTER, 1, t0)

        assert construction.complete_due(v, t0 + _seconds(299)) == []
        assert b.is_under_construction is True

        assert construction.complete_due(v, t0 + _seconds(300)) == [b]
        assert b.level == 1

    def test_complete_due_credits_new_rate_only_after_completion(self, make_village, t0):
        v = make_village()
        b = construction.start_construction(v, CLAY_PIT, 2, t0)
        clay_before = v.clay

        done = construction.complete_due(v, t0 + _seconds(300) + timedelta(hours=1))

        assert done == [b]
        # Rate was 0 up to completion; the ledger is reconciled only to that instant
        assert v.clay == clay_before
        assert v.clay_rate == 55
        assert v.last_update == t0 + _seconds(300)


class TestCancelConstruction:
    def test_cancel_within_window_refunds_80_percent(self, make_village, t0):
        v = make_village(wood=100, clay=150, iron=100, crop=100)
        b = construction.start_construction(v, WOODCUTTER, 1, t0)

        refunded = construction.cancel_construction(v, 1, t0 + _seconds(60))

        assert refunded == {"wood": 32, "clay": 80, "iron": 40, "crop": 48}
        assert _stock(v) == {"wood": 92, "clay": 130, "iron": 90, "crop": 88}
        assert b.is_under_construction is False
        assert b.completes_at is None
        assert b.level == 0

    def test_cancel_after_window_fails(self, make_village, t0):
        v = make_village()
        b = construction.start_construction(v, WAREHOUSE, 19, t0)  # 450s build
        stock = _stock(v)

        with pytest.raises(CancellationWindowExpiredError):
            construction.cancel_construction(v, 19, t0 + _seconds(400))

        assert b.is_under_construction is True
        assert _stock(v) == stock

    def test_window_boundary_is_exclusive(self, make_village, t0):
        v = make_village()
        construction.start_construction(v, WAREHOUSE, 19, t0)
        with pytest.raises(CancellationWindowExpiredError):
            construction.cancel_construction(v, 19, t0 + _seconds(300))

    def test_window_measured_from_start_with_discount(self, make_village, add_building, t0):
        v = make_village()
        add_building(v, MAIN_BUILDING, 20, 20)
        b = construction.start_construction(v, WAREHOUSE, 19, t0)  # 225s after 50% discount
        assert b.build_seconds == 225
        construction.cancel_construction(v, 19, t0 + _seconds(200))
        assert b.is_under_construction is False

    def test_refund_never_exceeds_cap(self, make_village, t0):
        v = make_village(wood=100, clay=150, iron=100, crop=100)
        construction.start_construction(v, WOODCUTTER, 1, t0)
        v.wood = 790

        refunded = construction.cancel_construction(v, 1, t0 + _seconds(30))

        assert v.wood == 800
        assert refunded["wood"] == 10

    def test_nothing_to_cancel(self, make_village, add_building, t0):
        v = make_village()
        add_building(v, WOODCUTTER, 3, 1)
        with pytest.raises(NotUnderConstructionError):
            construction.cancel_construction(v, 1, t0)
        with pytest.raises(NotUnderConstructionError):
            construction.cancel_construction(v, 2, t0)

    def test_cancel_frees_the_builder(self, make_village, t0):
        v = make_village()
        construction.start_construction(v, WOODCUTTER, 1, t0)
        construction.cancel_construction(v, 1, t0 + _seconds(5))
        construction.start_construction(v, CLAY_PIT, 2, t0 + _seconds(6))
        assert len(_under_construction(v)) == 1


class TestTimeRemaining:
    def test_counts_down_and_clamps(self, t0):
        done = t0 + _seconds(300)
        assert construction.get_time_remaining(done, t0) == 300
        assert construction.get_time_remaining(done, t0 + timedelta(milliseconds=500)) == 299
        assert construction.get_time_remaining(done, t0 + _seconds(900)) == 0

    def test_none_is_zero(self, t0):
        assert construction.get_time_remaining(None, t0) == 0


class TestAtMostOneConstruction:
    def test_invariant_holds_over_mixed_sequence(self, make_village, t0):
        v = make_village(wood=5000, clay=5000, iron=5000, crop=5000, warehouse=6000, granary=6000)
        now = t0
        attempts = [(WOODCUTTER, 1), (CLAY_PIT, 2), (WOODCUTTER, 3), (MAIN_BUILDING, 19)]

        for step in range(12):
            building_type, slot = attempts[step % len(attempts)]
            try:
                construction.start_construction(v, building_type, slot, now)
            except AlreadyBuildingError:
                pass
            assert len(_under_construction(v)) <= 1

            now += _seconds(120)
            if step % 3 == 0:
                active = construction.active_construction(v.buildings)
                if active is not None:
                    try:
                        construction.cancel_construction(v, active.slot_position, now)
                    except CancellationWindowExpiredError:
                        pass
            construction.complete_due(v, now)
            assert len(_under_construction(v)) <= 1
