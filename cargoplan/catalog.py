"""
Vehicle and cargo-unit presets.

Presets are plain data validated through ``schemas`` on every build, so a preset
edited by hand gets the same boundary checks as user input. Axle group
positions are measured from the load-space front wall.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from .schemas import (
    AxleConfigSpec,
    CargoUnitSpec,
    LoadSpaceSpec,
    prepare_axle_config,
    prepare_load_space,
    prepare_unit,
)
from .model.entities import AxleConfig, CargoUnit, LoadSpace

logger = logging.getLogger(__name__)

TRAILER_AXLE_MAX = {1: 10000.0, 2: 18000.0, 3: 24000.0}
DRIVE_AXLE_MAX = {1: 11500.0, 2: 19000.0}

FRONT_AXLE_MAX = 10000.0
EMPTY_FRONT = 5800.0
EMPTY_DRIVE = 3600.0
EMPTY_TRAILER = 5200.0
EMPTY_JUMBO_TRAILER = 4200.0

# semitrailer geometry
DIST_FRONT_TO_KINGPIN = 1.7
DIST_KINGPIN_TO_TRAILER = 7.7
DIST_FRONT_AXLE_TO_KINGPIN = 3.1
DIST_KINGPIN_TO_DRIVE = 0.5

# rigid truck geometry
SOLO_BASE_LENGTH = 7.7
SOLO_FRONT_AXLE = -1.0
SOLO_DRIVE_AXLE = 5.5


def trailer_axles(drive_axles: int = 1, trailer_axles: int = 3) -> Dict[str, Any]:
    """Tractor + semitrailer: cargo rests on the kingpin and the trailer group."""
    kingpin = DIST_FRONT_TO_KINGPIN
    return {
        "groups": [
            {"name": "front", "position": kingpin - DIST_FRONT_AXLE_TO_KINGPIN,
             "max_load": FRONT_AXLE_MAX, "role": "steer", "empty_load": EMPTY_FRONT},
            {"name": "drive", "position": kingpin + DIST_KINGPIN_TO_DRIVE,
             "max_load": DRIVE_AXLE_MAX[drive_axles], "axle_count": drive_axles, "role": "drive",
             "empty_load": EMPTY_DRIVE},
            {"name": "trailer", "position": kingpin + DIST_KINGPIN_TO_TRAILER,
             "max_load": TRAILER_AXLE_MAX[trailer_axles], "axle_count": trailer_axles, "role": "trailer",
             "empty_load": EMPTY_TRAILER},
        ],
        "kingpin": kingpin,
    }


def solo_axles(length: float = SOLO_BASE_LENGTH, drive_axles: int = 1) -> Dict[str, Any]:
    """Rigid truck; the drive axle keeps its proportional spot when the body is resized."""
    drive = round(length * (SOLO_DRIVE_AXLE / SOLO_BASE_LENGTH), 1)
    return {
        "groups": [
            {"name": "front", "position": SOLO_FRONT_AXLE, "max_load": FRONT_AXLE_MAX, "role": "steer",
             "empty_load": EMPTY_FRONT},
            {"name": "drive", "position": drive, "max_load": DRIVE_AXLE_MAX[drive_axles],
             "axle_count": drive_axles, "role": "drive", "empty_load": EMPTY_DRIVE},
        ],
    }


def jumbo_axles(section_length: float = 7.7, gap: float = 0.5, trailer_axles: int = 2) -> Dict[str, Any]:
    """Truck section on steer + drive; the drawbar trailer section carries its own cargo."""
    trailer_start = section_length + gap
    return {
        "groups": [
            {"name": "front", "position": SOLO_FRONT_AXLE, "max_load": FRONT_AXLE_MAX, "role": "steer",
             "empty_load": EMPTY_FRONT},
            {"name": "drive", "position": SOLO_DRIVE_AXLE, "max_load": DRIVE_AXLE_MAX[1], "role": "drive",
             "empty_load": EMPTY_DRIVE},
            {"name": "trailer", "position": trailer_start + SOLO_DRIVE_AXLE,
             "max_load": TRAILER_AXLE_MAX[trailer_axles], "axle_count": trailer_axles, "role": "trailer",
             "empty_load": EMPTY_JUMBO_TRAILER},
        ],
        "trailer_start": trailer_start,
    }


COILMULDE_GROOVE = {"width": 1.25, "depth": 0.3, "length": 8.59, "start_x": 3.99}

VEHICLE_PRESETS: Dict[str, Dict[str, Any]] = {
    "standard": {
        "load_space": {"name": "Standard trailer", "length": 13.6, "width": 2.48, "height": 2.7, "max_load": 24000},
        "axles": trailer_axles(),
    },
    "mega": {
        "load_space": {"name": "Mega trailer", "length": 13.6, "width": 2.48, "height": 3.0, "max_load": 24000},
        "axles": trailer_axles(),
    },
    "jumbo": {
        "load_space": {
            "name": "JUMBO", "length": 15.9, "width": 2.48, "height": 3.0, "max_load": 24000,
            "sections": [{"length": 7.7, "height": 3.0}, {"length": 7.7, "height": 3.0}],
            "section_gap": 0.5,
        },
        "axles": jumbo_axles(),
    },
    "solo": {
        "load_space": {"name": "SOLO", "length": 7.7, "width": 2.48, "height": 2.7, "max_load": 12000},
        "axles": solo_axles(),
    },
    "container20": {
        "load_space": {"name": "Container 20'", "length": 6.06, "width": 2.44, "height": 2.59, "max_load": 28000},
        "axles": trailer_axles(),
    },
    "container40": {
        "load_space": {"name": "Container 40'", "length": 12.19, "width": 2.44, "height": 2.59, "max_load": 28000},
        "axles": trailer_axles(),
    },
    "container40hc": {
        "load_space": {"name": "Container 40' HC", "length": 12.19, "width": 2.44, "height": 2.90, "max_load": 28000},
        "axles": trailer_axles(),
    },
    "coilmuldeStandard": {
        "load_space": {"name": "Coilmulde Standard", "length": 13.6, "width": 2.48, "height": 2.7,
                       "max_load": 24000, "groove": COILMULDE_GROOVE},
        "axles": trailer_axles(),
    },
    "coilmuldeMega": {
        "load_space": {"name": "Coilmulde Mega", "length": 13.6, "width": 2.48, "height": 3.0,
                       "max_load": 24000, "groove": COILMULDE_GROOVE},
        "axles": trailer_axles(),
    },
}

UNIT_PRESETS: Dict[str, Dict[str, Any]] = {
    "eur-pallet": {"name": "EUR pallet", "length": 1.2, "width": 0.8, "height": 0.15,
                   "weight": 25, "max_stack": 3, "max_stack_weight": 750},
    "industrial-pallet": {"name": "Industrial pallet", "length": 1.2, "width": 1.0, "height": 1.0,
                          "weight": 500, "max_stack": 2, "max_stack_weight": 1000},
    "uk-pallet": {"name": "UK pallet", "length": 1.2, "width": 1.0, "height": 0.15,
                  "weight": 35, "max_stack": 3, "max_stack_weight": 750},
    "half-pallet": {"name": "Half pallet", "length": 0.6, "width": 0.8, "height": 0.15,
                    "weight": 15, "max_stack": 4, "max_stack_weight": 500},
    "ibc": {"name": "IBC", "length": 1.2, "width": 1.0, "height": 1.18,
            "weight": 1000, "max_stack": 0, "max_stack_weight": 0},
    "steel-coil": {"name": "Steel coil", "length": 1.8, "width": 1.8, "height": 1.8,
                   "weight": 5000, "max_stack": 0, "max_stack_weight": 0,
                   "is_roll": True, "fixed_diameter": True},
    "roll": {"name": "Roll", "length": 0.8, "width": 0.8, "height": 1.2,
             "weight": 500, "max_stack": 0, "max_stack_weight": 0,
             "is_roll": True, "is_vertical_roll": True},
}


def build_vehicle(key: str, **load_space_overrides: Any) -> Tuple[LoadSpace, AxleConfig]:
    try:
        preset = VEHICLE_PRESETS[key]
    except KeyError:
        raise KeyError(f"Unknown vehicle preset {key!r}") from None
    ls_data = {**preset["load_space"], **load_space_overrides}
    load_space = prepare_load_space(LoadSpaceSpec.model_validate(ls_data))
    axle_config = prepare_axle_config(AxleConfigSpec.model_validate(preset["axles"]))
    logger.debug(f"Built vehicle {key}: {load_space.length}x{load_space.width}x{load_space.height}")
    return load_space, axle_config


def build_solo(length: float, height: float, width: float = 2.48,
               max_load: Optional[float] = 12000) -> Tuple[LoadSpace, AxleConfig]:
    """Rigid truck with a user-sized body."""
    load_space = prepare_load_space(LoadSpaceSpec.model_validate(
        {"name": "SOLO", "length": length, "width": width, "height": height, "max_load": max_load}
    ))
    axle_config = prepare_axle_config(AxleConfigSpec.model_validate(solo_axles(length)))
    return load_space, axle_config


def make_unit(preset: str, unit_id: str, **overrides: Any) -> CargoUnit:
    try:
        data = UNIT_PRESETS[preset]
    except KeyError:
        raise KeyError(f"Unknown cargo preset {preset!r}") from None
    spec = CargoUnitSpec.model_validate({"id": unit_id, "unit_type": preset, **data, **overrides})
    return prepare_unit(spec)
