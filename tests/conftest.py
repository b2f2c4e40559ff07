"""Pytest configuration and fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure project root is on path when running tests
_project_root = Path(__file__).resolve().parents[1]
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from cargoplan.catalog import build_vehicle
from cargoplan.config import EngineSettings
from cargoplan.model import (
    AxleConfig,
    AxleGroup,
    CargoUnit,
    DragSearch,
    DropResolver,
    LoadPlanner,
    LoadSpace,
    PlacementValidator,
    StackAnalyzer,
    Vec3,
)

FLOOR = 1.1


def _box(unit_id, length=1.2, width=0.8, height=1.0, weight=100.0,
         x=0.0, z=0.0, bottom=FLOOR, **kwargs):
    unit = CargoUnit(id=unit_id, length=length, width=width, height=height, weight=weight, **kwargs)
    unit.position = Vec3(x, bottom + height / 2, z)
    return unit


def _roll(unit_id, diameter=0.8, height=1.2, weight=500.0, x=0.0, z=0.0, bottom=FLOOR, **kwargs):
    return _box(unit_id, length=diameter, width=diameter, height=height, weight=weight,
                x=x, z=z, bottom=bottom, is_roll=True, is_vertical_roll=True, **kwargs)


@pytest.fixture
def make_box():
    """Factory for a box resting with its bottom at `bottom` (deck level by default)."""
    return _box


@pytest.fixture
def make_roll():
    """Factory for a vertical roll standing on the deck."""
    return _roll


@pytest.fixture
def settings():
    return EngineSettings()


@pytest.fixture
def space():
    """Standard 13.6 m trailer body, deck at 1.1 m."""
    return LoadSpace(length=13.6, width=2.48, height=2.7, floor_y=FLOOR, max_load=24000)


@pytest.fixture
def twin_space():
    return build_vehicle("jumbo")[0]


@pytest.fixture
def groove_space():
    return build_vehicle("coilmuldeStandard")[0]


@pytest.fixture
def validator(space, settings):
    return PlacementValidator(space, settings)


@pytest.fixture
def analyzer(space, settings):
    return StackAnalyzer(space, settings)


@pytest.fixture
def resolver(space, validator, settings):
    return DropResolver(space, validator, settings)


@pytest.fixture
def search(space, validator, resolver, settings):
    return DragSearch(space, validator, resolver, settings)


@pytest.fixture
def two_axles():
    """Front group 10 t at 1.3 m, rear group 11.5 t at 11.5 m, no empty weight."""
    return AxleConfig(groups=(
        AxleGroup("front", 1.3, 10000.0, role="steer"),
        AxleGroup("rear", 11.5, 11500.0, role="trailer"),
    ))


@pytest.fixture
def planner(space, two_axles, settings):
    return LoadPlanner(space, two_axles, settings)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()
