"""Tests for the load planner session."""

from __future__ import annotations

import pytest

from cargoplan.catalog import build_vehicle, make_unit
from cargoplan.model import (
    CargoUnit,
    DuplicateUnitError,
    LoadPlanner,
    LoadSpace,
    UnknownUnitError,
    Vec3,
)


def new_box(unit_id, length=1.2, width=0.8, height=1.0, weight=100.0, **kwargs):
    return CargoUnit(id=unit_id, length=length, width=width, height=height, weight=weight, **kwargs)


@pytest.fixture
def stacked(planner):
    """Base on the deck at the origin with one unit stacked on it."""
    planner.add_unit(new_box("base", max_stack=2), Vec3(0.0, 0.0, 0.0))
    planner.add_unit(new_box("top", height=0.5), Vec3(0.0, 0.0, 0.0))
    return planner


class TestAddRemove:
    """Adding and removing units."""

    def test_add_at_target(self, planner):
        pos = planner.add_unit(new_box("a"), Vec3(-2.0, 0.0, 0.3))
        assert pos == Vec3(-2.0, 1.6, 0.3)
        assert not planner.get("a").is_outside
        assert planner.axle_report is not None
        assert planner.axle_report.cargo_weight == pytest.approx(100)

    def test_add_without_target_goes_to_staging(self, planner):
        planner.add_unit(new_box("a"))
        unit = planner.get("a")
        assert unit.is_outside
        assert unit.position.y == pytest.approx(0.5)

    def test_add_stacks_on_target(self, stacked):
        assert stacked.get("top").position.y == pytest.approx(2.35)
        assert [u.id for u in stacked.stack_above("base")] == ["top"]

    def test_duplicate_id_rejected(self, planner):
        planner.add_unit(new_box("a"))
        with pytest.raises(DuplicateUnitError):
            planner.add_unit(new_box("a"))

    def test_unknown_id(self, planner):
        with pytest.raises(UnknownUnitError):
            planner.get("nope")
        with pytest.raises(KeyError):
            planner.remove_unit("nope")

    def test_removing_base_lets_stack_fall(self, stacked):
        stacked.remove_unit("base")
        assert stacked.get("top").position.y == pytest.approx(1.35)
        assert "base" not in stacked.units

    def test_remove_group(self, planner):
        planner.add_unit(new_box("a", group_id="g", max_stack=1), Vec3(-3.0, 0.0, 0.0))
        planner.add_unit(new_box("b", group_id="g"), Vec3(3.0, 0.0, 0.0))
        planner.add_unit(new_box("c", height=0.5), Vec3(-3.0, 0.0, 0.0))
        removed = planner.remove_group("g")
        assert {u.id for u in removed} == {"a", "b"}
        assert planner.get("c").position.y == pytest.approx(1.35)


class TestPlacement:
    def test_place_valid(self, planner):
        planner.add_unit(new_box("a"), Vec3(0.0, 0.0, 0.0))
        verdict = planner.place(["a"], Vec3(2.0, 1.6, 0.0))
        assert verdict
        assert planner.get("a").position == Vec3(2.0, 1.6, 0.0)

    def test_place_invalid_changes_nothing(self, planner):
        planner.add_unit(new_box("a"), Vec3(0.0, 0.0, 0.0))
        planner.add_unit(new_box("b"), Vec3(3.0, 0.0, 0.0))
        verdict = planner.place(["a"], Vec3(3.5, 1.6, 0.0))
        assert verdict.reason == "collision"
        assert planner.get("a").position == Vec3(0.0, 1.6, 0.0)


class TestDrag:
    """Interactive drags through the planner."""

    def test_drag_carries_the_stack(self, stacked):
        ids = stacked.begin_drag("base")
        assert ids == ["base", "top"]
        outcome = stacked.drag_to(Vec3(-3.0, 0.0, 0.0))
        assert outcome.valid
        final = stacked.end_drag()
        assert final == Vec3(-3.0, 1.6, 0.0)
        assert stacked.get("top").position.x == pytest.approx(-3.0)
        assert stacked.get("top").position.y == pytest.approx(2.35)

    def test_blocked_drag_stops_at_neighbour(self, planner):
        planner.add_unit(new_box("a"), Vec3(0.0, 0.0, 0.0))
        planner.add_unit(new_box("block", length=1.0, width=1.0), Vec3(3.5, 0.0, 0.0))
        planner.begin_drag("a")
        planner.drag_to(Vec3(2.7, 0.0, 0.0))
        final = planner.end_drag()
        assert abs(final.x - 2.4) <= 0.001
        assert planner.validator.is_valid([planner.get("a")], final, planner.snapshot())

    def test_cancel_restores_start(self, planner):
        planner.add_unit(new_box("a"), Vec3(0.0, 0.0, 0.0))
        planner.begin_drag("a")
        planner.drag_to(Vec3(-4.0, 0.0, 0.0))
        planner.cancel_drag()
        assert planner.get("a").position == Vec3(0.0, 1.6, 0.0)

    def test_drag_to_without_begin(self, planner):
        with pytest.raises(RuntimeError):
            planner.drag_to(Vec3(0.0, 0.0, 0.0))

    def test_axle_report_follows_final_position(self, planner):
        planner.add_unit(new_box("a", weight=2000), Vec3(-6.0, 0.0, 0.0))
        planner.begin_drag("a")
        for x in (-4.0, -2.0, 0.0, 2.0, 4.7):
            planner.drag_to(Vec3(x, 0.0, 0.0))
        planner.end_drag()
        rear = planner.axle_report.by_name()["rear"]
        assert rear.cargo_load == pytest.approx(2000)

    def test_axle_report_updates_during_drag(self, space, two_axles, settings, clock):
        planner = LoadPlanner(space, two_axles, settings, clock=clock)
        planner.add_unit(new_box("a", weight=2000), Vec3(-4.0, 0.0, 0.0))
        planner.begin_drag("a")
        planner.drag_to(Vec3(-3.9, 0.0, 0.0))
        clock.now = 0.005
        planner.drag_to(Vec3(-3.5, 0.0, 0.0))
        assert planner.throttle.pending
        for step, x in enumerate((0.0, 2.0, 4.0, 6.0), start=1):
            clock.now = 0.1 * step
            planner.drag_to(Vec3(x, 0.0, 0.0))
            assert planner.axle_report.center_of_gravity.x == pytest.approx(x)
            assert not planner.throttle.pending


class TestRotation:
    """Rotating a column and re-orienting rolls."""

    def test_rotate_in_place(self, planner):
        planner.add_unit(new_box("a"), Vec3(0.0, 0.0, 0.0))
        assert planner.rotate("a", 90)
        unit = planner.get("a")
        assert unit.rotation_y == 90
        assert unit.dims() == (0.8, 1.2, 1.0)
        assert unit.position == Vec3(0.0, 1.6, 0.0)

    def test_rotate_moves_to_nearest_fit(self, planner):
        planner.add_unit(new_box("a", length=2.0), Vec3(0.0, 0.0, 0.5))
        assert planner.rotate("a", 90)
        unit = planner.get("a")
        assert unit.position.distance_xz(Vec3(0.0, 0.0, 0.5)) == pytest.approx(0.3)
        assert not unit.is_outside

    def test_rotate_column_keeps_stack_together(self, stacked):
        assert stacked.rotate("top", 90)
        base, top = stacked.get("base"), stacked.get("top")
        assert base.rotation_y == top.rotation_y == 90
        assert top.position.x == pytest.approx(base.position.x)
        assert top.position.z == pytest.approx(base.position.z)

    def test_rotation_without_room_goes_to_staging(self, two_axles, settings):
        small = LoadSpace(length=2.0, width=1.0, height=1.0)
        planner = LoadPlanner(small, two_axles, settings)
        planner.add_unit(new_box("long", length=1.8, height=0.5), Vec3(0.0, 0.0, 0.0))
        assert planner.rotate("long", 90)
        assert planner.get("long").is_outside

    def test_coil_rotation_refused(self, planner):
        planner.add_unit(make_unit("steel-coil", "coil"), Vec3(0.0, 0.0, 0.0))
        before = planner.get("coil").position
        assert not planner.rotate("coil", 90)
        assert planner.get("coil").position == before

    def test_toggle_roll_orientation(self, planner):
        planner.add_unit(make_unit("roll", "r"), Vec3(0.0, 0.0, 0.0))
        toggled = planner.toggle_roll_orientation("r")
        assert toggled.is_horizontal_roll
        assert toggled.dims() == (1.2, 0.8, 0.8)
        assert toggled.position.y == pytest.approx(1.5)
        assert planner.toggle_roll_orientation("r").is_vertical_roll


class TestStaging:
    def test_move_to_staging_takes_stack_above(self, stacked):
        stacked.move_to_staging("base")
        base, top = stacked.get("base"), stacked.get("top")
        assert base.is_outside and top.is_outside
        assert base.position.y == pytest.approx(0.5)
        assert top.position.y == pytest.approx(1.25)

    def test_move_top_only(self, stacked):
        stacked.move_to_staging("top")
        assert stacked.get("top").is_outside
        assert not stacked.get("base").is_outside
        assert stacked.get("base").position.y == pytest.approx(1.6)

    def test_vehicle_change_restages_everything(self, stacked):
        space, axles = build_vehicle("mega")
        stacked.set_vehicle(space, axles)
        assert all(u.is_outside for u in stacked.units.values())
        assert stacked.load_space is space
        assert stacked.statistics().placed_units == 0


class TestStatistics:
    def test_counts_and_usage(self, planner):
        planner.add_unit(new_box("a", weight=1000, group_id="g"), Vec3(0.0, 0.0, 0.0))
        planner.add_unit(new_box("b", weight=500, group_id="g"))
        stats = planner.statistics()
        assert stats.total_units == 2
        assert stats.placed_units == 1
        assert stats.outside_units == 1
        assert stats.placed_weight == pytest.approx(1000)
        assert stats.outside_weight == pytest.approx(500)
        assert stats.groups == {"g": 2}
        assert stats.weight_usage_pct == pytest.approx(1000 / 24000 * 100)
        assert stats.volume_usage_pct == pytest.approx(0.96 / (13.6 * 2.48 * 2.7) * 100)

    def test_loading_order_for_unplaced(self, planner):
        planner.add_unit(new_box("a", weight=1000), Vec3(0.0, 0.0, 0.0))
        planner.add_unit(new_box("b", weight=700))
        planner.add_unit(new_box("c", weight=50))
        plan = planner.suggest_loading_order()
        assert [s.unit_id for s in plan] == ["b", "c"]
