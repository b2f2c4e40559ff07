"""Tests for the drop resolver."""

from __future__ import annotations

import pytest

from cargoplan.model import CargoUnit, DropResolver, PlacementValidator, Vec3


class TestFloorDrop:
    def test_empty_space_lands_on_deck(self, resolver, make_box):
        unit = make_box("a", x=-3.0)
        result = resolver.resolve([unit], Vec3(1.0, 0.0, 0.2), [unit])
        assert result.can_stack
        assert result.position == Vec3(1.0, 1.6, 0.2)
        assert result.stacked_on is None

    def test_target_clamped_inside_walls(self, resolver, make_box):
        unit = make_box("a")
        result = resolver.resolve([unit], Vec3(10.0, 0.0, -3.0), [])
        assert result.can_stack
        assert result.position.x == pytest.approx(6.2)
        assert result.position.z == pytest.approx(-0.84)

    def test_target_outside_lands_on_ground(self, resolver, make_box):
        unit = make_box("a")
        result = resolver.resolve([unit], Vec3(2.0, 0.0, 4.0), [])
        assert result.outside
        assert result.position == Vec3(2.0, 0.5, 4.0)
        assert result.can_stack


class TestStackDrop:
    """Cursor well inside another unit's footprint."""

    def test_stack_on_centre(self, resolver, make_box):
        base = make_box("base", height=0.15, max_stack=3)
        pallet = make_box("p", height=0.15, x=-3.0)
        result = resolver.resolve([pallet], Vec3(0.1, 0.0, 0.05), [base, pallet])
        assert result.can_stack
        assert result.stacked_on == "base"
        assert result.position.x == pytest.approx(0.0)
        assert result.position.y == pytest.approx(1.325)
        assert result.position.z == pytest.approx(0.0)

    def test_smaller_unit_clamped_inside_base(self, resolver, make_box):
        base = make_box("base", max_stack=3)
        half = make_box("half", length=0.6, height=0.15, x=-3.0)
        result = resolver.resolve([half], Vec3(0.4, 0.0, 0.0), [base, half])
        assert result.stacked_on == "base"
        assert result.position.x == pytest.approx(0.3)

    def test_highest_surface_wins(self, resolver, make_box):
        base = make_box("base", max_stack=3)
        mid = make_box("mid", height=0.5, bottom=2.1, max_stack=3)
        pallet = make_box("p", height=0.15, x=-3.0)
        result = resolver.resolve([pallet], Vec3(0.0, 0.0, 0.0), [base, mid, pallet])
        assert result.stacked_on == "mid"
        assert result.position.y == pytest.approx(2.675)

    def test_rejected_stack_reports_cannot_stack(self, resolver, make_box):
        ibc = make_box("ibc", height=1.18, weight=1000, max_stack=0)
        pallet = make_box("p", height=0.15, x=-3.0)
        result = resolver.resolve([pallet], Vec3(0.0, 0.0, 0.0), [ibc, pallet])
        assert not result.can_stack
        assert result.stacked_on == "ibc"

    def test_larger_unit_is_not_stacked_on_small_one(self, resolver, make_box):
        half = make_box("half", length=0.6, height=0.15, max_stack=3)
        big = make_box("big", width=1.0, x=-3.0)
        result = resolver.resolve([big], Vec3(0.0, 0.0, 0.0), [half, big])
        assert result.stacked_on is None
        assert result.position.y == pytest.approx(1.6)
        assert result.can_stack


class TestSnap:
    """Flush placement next to a neighbour on the same floor."""

    def test_snap_closes_small_gap(self, resolver, make_box):
        other = make_box("other")
        unit = make_box("a", x=-3.0)
        result = resolver.resolve([unit], Vec3(1.5, 0.0, 0.1), [other, unit])
        assert result.snapped
        assert result.position.x == pytest.approx(1.2)
        assert result.position.z == pytest.approx(0.0)

    def test_snap_pushes_out_of_overlap(self, resolver, make_box):
        other = make_box("other")
        unit = make_box("a", x=-3.0)
        result = resolver.resolve([unit], Vec3(0.5, 0.0, 0.0), [other, unit])
        assert result.snapped
        assert result.position == Vec3(1.2, 1.6, 0.0)

    def test_far_target_not_snapped(self, resolver, make_box):
        other = make_box("other")
        unit = make_box("a", x=-3.0)
        result = resolver.resolve([unit], Vec3(3.0, 0.0, 0.0), [other, unit])
        assert not result.snapped
        assert result.position.x == pytest.approx(3.0)

    def test_snap_along_width(self, resolver, make_box):
        other = make_box("other", x=2.0, z=-0.6)
        unit = make_box("a", x=-3.0)
        result = resolver.resolve([unit], Vec3(2.1, 0.0, 0.4), [other, unit])
        assert result.snapped
        assert result.position.x == pytest.approx(2.0)
        assert result.position.z == pytest.approx(0.2)


class TestRollSnap:
    """Vertical rolls snap tangent only when nearly touching."""

    def test_nearly_touching_rolls_snap_tangent(self, resolver, make_roll):
        placed = make_roll("a")
        moving = make_roll("b", x=-3.0)
        result = resolver.resolve([moving], Vec3(0.83, 0.0, 0.0), [placed, moving])
        assert result.snapped
        assert result.position.x == pytest.approx(0.8)

    def test_roll_gap_beyond_tangency_kept(self, resolver, make_roll):
        placed = make_roll("a")
        moving = make_roll("b", x=-3.0)
        result = resolver.resolve([moving], Vec3(0.9, 0.0, 0.0), [placed, moving])
        assert not result.snapped
        assert result.can_stack
        assert result.position.x == pytest.approx(0.9)


class TestGrooveDrop:
    def test_coil_drops_into_groove(self, groove_space, settings):
        validator = PlacementValidator(groove_space, settings)
        resolver = DropResolver(groove_space, validator, settings)
        coil = CargoUnit(id="coil", length=1.8, width=1.8, height=1.8, weight=5000,
                         is_roll=True, fixed_diameter=True)
        result = resolver.resolve([coil], Vec3(1.0, 0.0, 0.7), [])
        assert result.can_stack
        assert result.position.x == pytest.approx(1.0)
        assert result.position.y == pytest.approx(1.85)
        assert result.position.z == 0.0
