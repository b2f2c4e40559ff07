"""Tests for the stack analyzer: support graph and stack limits."""

from __future__ import annotations

import pytest

from cargoplan.model import CargoUnit, Vec3, roll_compatible


@pytest.fixture
def column(make_box):
    """2000 kg base carrying one floor at most, with a 500 kg unit on it."""
    base = make_box("base", height=1.0, weight=2000, max_stack=1)
    top = make_box("top", height=0.5, weight=500, bottom=2.1, max_stack=3)
    return base, top


class TestSupportGraph:
    """Traversals over the implicit support graph."""

    def test_supporters_and_supported(self, analyzer, column):
        base, top = column
        snapshot = [base, top]
        assert analyzer.supporters_of(top, snapshot) == [base]
        assert analyzer.supported_by(base, snapshot) == [top]

    def test_floors_count_longest_path(self, analyzer, make_box):
        a = make_box("a", max_stack=5)
        b = make_box("b", bottom=2.1, height=0.5)
        c = make_box("c", bottom=2.6, height=0.5)
        summary = analyzer.supported_floors(a, [a, b, c])
        assert summary.floors == {"b": 1, "c": 2}
        assert summary.floors_above == 2
        assert summary.weight_above == pytest.approx(200)

    def test_support_chain_runs_down_to_the_floor(self, analyzer, make_box):
        a = make_box("a")
        b = make_box("b", bottom=2.1, height=0.5)
        c = make_box("c", bottom=2.6, height=0.5)
        assert [u.id for u in analyzer.support_chain(c, [a, b, c])] == ["b", "a"]

    def test_stack_above_sorted_bottom_up(self, analyzer, make_box):
        a = make_box("a")
        c = make_box("c", bottom=2.6, height=0.5)
        b = make_box("b", bottom=2.1, height=0.5)
        assert [u.id for u in analyzer.stack_above(a, [c, a, b])] == ["b", "c"]

    def test_cyclic_data_terminates(self, analyzer, make_box):
        """Two wafer-thin units at the same spot each 'rest' on the other."""
        a = make_box("a", height=0.05)
        b = make_box("b", height=0.05)
        chain = analyzer.support_chain(a, [a, b])
        summary = analyzer.supported_floors(a, [a, b])
        assert [u.id for u in chain] == ["b"]
        assert summary.floors == {"b": 1}


class TestStackLimits:
    """Floor and weight limits evaluated on the resulting configuration."""

    def test_second_floor_rejected_by_base(self, validator, column, make_box):
        base, top = column
        candidate = make_box("new", height=0.3, weight=100)
        verdict = validator.check([candidate], Vec3(0.0, 2.75, 0.0), [base, top])
        assert not verdict
        assert verdict.reason == "too many floors"
        assert verdict.blocker_id == "base"

    def test_second_floor_accepted_with_higher_limit(self, validator, column, make_box):
        base, top = column
        base.max_stack = 2
        candidate = make_box("new", height=0.3, weight=100)
        assert validator.is_valid([candidate], Vec3(0.0, 2.75, 0.0), [base, top])

    def test_weight_limit(self, validator, column, make_box):
        base, top = column
        base.max_stack = 5
        base.max_stack_weight = 550
        candidate = make_box("new", height=0.3, weight=100)
        verdict = validator.check([candidate], Vec3(0.0, 2.75, 0.0), [base, top])
        assert verdict.reason == "too much weight"
        assert verdict.blocker_id == "base"

    def test_non_stackable_base(self, validator, make_box):
        ibc = make_box("ibc", height=1.18, weight=1000, max_stack=0)
        candidate = make_box("p", height=0.15, weight=25)
        verdict = validator.check([candidate], Vec3(0.0, 1.1 + 1.18 + 0.075, 0.0), [ibc])
        assert verdict.reason == "too many floors"

    def test_overhang_rejected(self, validator, make_box):
        base = make_box("base", max_stack=3)
        wide = make_box("wide", length=1.6, height=0.3)
        verdict = validator.check([wide], Vec3(0.0, 2.25, 0.0), [base])
        assert verdict.reason == "does not fit on top"

    def test_column_may_not_pierce_ceiling(self, validator, make_box):
        """Resting at the ceiling is allowed, sticking through it is not."""
        base = make_box("base", height=2.0, max_stack=3)
        fits = make_box("fits", height=0.7)
        too_tall = make_box("tall", height=0.8)
        assert validator.is_valid([fits], Vec3(0.0, 3.1 + 0.35, 0.0), [base])
        assert not validator.is_valid([too_tall], Vec3(0.0, 3.1 + 0.4, 0.0), [base])

    def test_evaluate_ignores_unrelated_units(self, analyzer, column, make_box):
        base, top = column
        other = make_box("other", x=3.0, max_stack=0)
        on_other = make_box("up", height=0.3, x=3.0)
        verdict = analyzer.evaluate([on_other], {"up": Vec3(3.0, 2.25, 0.0)}, [base, top, other])
        assert verdict.unit_id == "other"
        verdict = analyzer.evaluate([on_other], {"up": Vec3(-3.0, 1.25, 0.0)}, [base, top, other])
        assert verdict


class TestShapeRules:
    """Roll compatibility for resting one unit on another."""

    def test_vertical_roll_on_vertical_roll(self):
        a = CargoUnit(id="a", length=0.8, width=0.8, height=1.2, weight=1, is_roll=True, is_vertical_roll=True)
        b = CargoUnit(id="b", length=0.8, width=0.8, height=1.2, weight=1, is_roll=True, is_vertical_roll=True)
        assert roll_compatible(a, b)

    def test_horizontal_rolls_need_identical_dims(self):
        a = CargoUnit(id="a", length=1.2, width=0.8, height=0.8, weight=1, is_roll=True)
        b = CargoUnit(id="b", length=1.2, width=0.8, height=0.8, weight=1, is_roll=True)
        c = CargoUnit(id="c", length=1.0, width=0.8, height=0.8, weight=1, is_roll=True)
        assert roll_compatible(a, b)
        assert not roll_compatible(c, a)

    def test_nothing_else_on_a_horizontal_roll(self):
        roll = CargoUnit(id="r", length=1.2, width=0.8, height=0.8, weight=1, is_roll=True)
        box = CargoUnit(id="b", length=0.5, width=0.5, height=0.5, weight=1)
        assert not roll_compatible(box, roll)
        assert roll_compatible(roll, box)

    def test_horizontal_roll_not_on_vertical_roll(self):
        lying = CargoUnit(id="h", length=1.2, width=0.8, height=0.8, weight=1, is_roll=True)
        standing = CargoUnit(id="v", length=0.8, width=0.8, height=1.2, weight=1, is_roll=True, is_vertical_roll=True)
        assert not roll_compatible(lying, standing)
