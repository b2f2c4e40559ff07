"""
Engine settings.

Every tolerance, threshold and search limit used by the placement engine is a
named field on ``EngineSettings``. Defaults reproduce the tuned behaviour of the
interactive load planner; any field can be overridden from the environment as
``CARGOPLAN_<FIELD_NAME>`` (e.g. ``CARGOPLAN_SNAP_THRESHOLD=0.4``) or in code via
``settings.with_overrides(...)``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from typing import Any, Dict

ENV_PREFIX = "CARGOPLAN_"


@dataclass(frozen=True)
class EngineSettings:
    # geometry tolerances (metres)
    contact_tolerance: float = 0.001
    vertical_tolerance: float = 0.01
    fit_tolerance: float = 0.01
    support_tolerance: float = 0.1
    ceiling_tolerance: float = 0.001
    groove_tolerance: float = 0.01

    # drop resolver
    stack_center_ratio: float = 0.25
    snap_threshold: float = 0.5
    roll_snap_threshold: float = 0.15
    roll_tangency_snap: float = 0.05
    surface_search_step: float = 0.05

    # drag search
    coarse_step: float = 0.05
    max_coarse_steps: int = 40
    binary_iterations: int = 10
    binary_tolerance: float = 0.001
    spiral_step: float = 0.1
    spiral_angles: int = 36
    spiral_accept_radius: float = 0.2

    # overflow staging area
    outside_margin: float = 0.5
    staging_offset: float = 2.0
    staging_row_pitch: float = 3.0
    staging_x_step: float = 0.5
    staging_spacing: float = 0.1
    staging_extra_length: float = 10.0
    staging_max_rows: int = 10
    ground_level: float = 0.0

    # stack traversal guard
    max_stack_depth: int = 64

    # drag-time axle recompute interval (seconds)
    axle_update_interval: float = 0.016

    def with_overrides(self, **overrides: Any) -> "EngineSettings":
        return replace(self, **overrides)

    @classmethod
    def from_env(cls) -> "EngineSettings":
        overrides: Dict[str, Any] = {}
        for f in fields(cls):
            raw = os.getenv(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            overrides[f.name] = int(raw) if f.type in ("int", int) else float(raw)
        return cls(**overrides)


DEFAULT_SETTINGS = EngineSettings()
