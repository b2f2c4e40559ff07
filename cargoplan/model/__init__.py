"""
Placement and load-balance engine.

Re-exports the engine components from their modules:
- entities: units, load space, axle configuration
- geometry: box / circle predicates and numba kernels
- stacking: support graph traversal and stack limits
- validator: accept/reject for a proposed position
- drop: landing position for a drag target
- search: slide and spiral searches
- staging: overflow area and gravity settling
- axles: lever-rule axle loads and loading-order heuristic
- throttle: latest-wins recompute scheduler
- planner: session facade
"""

from __future__ import annotations

from .entities import (
    EPS,
    AxleConfig,
    AxleGroup,
    CargoPlanError,
    CargoUnit,
    DuplicateUnitError,
    Footprint,
    Groove,
    LoadSpace,
    NotRotatableError,
    Section,
    UnknownUnitError,
    Vec3,
)
from .geometry import (
    boxes_overlap,
    circles_overlap,
    first_collision,
    fits_within,
    footprints_overlap,
    overlap_area,
    units_collide,
    vertical_overlap,
    within_bounds,
)
from .stacking import StackAnalyzer, StackSummary, StackVerdict, group_placements, roll_compatible
from .validator import PlacementValidator, Verdict
from .drop import DropResolver, DropResult
from .search import DragOutcome, DragSearch
from .staging import settle, staging_placements, staging_slot
from .axles import AxleLoad, AxleLoadModel, AxleLoadReport, LoadSuggestion, distribute_weight, load_tier
from .throttle import RecomputeThrottle
from .planner import LoadPlanner, PlanStatistics

__all__ = [
    "EPS",
    "AxleConfig",
    "AxleGroup",
    "CargoPlanError",
    "CargoUnit",
    "DuplicateUnitError",
    "Footprint",
    "Groove",
    "LoadSpace",
    "NotRotatableError",
    "Section",
    "UnknownUnitError",
    "Vec3",
    "boxes_overlap",
    "circles_overlap",
    "first_collision",
    "fits_within",
    "footprints_overlap",
    "overlap_area",
    "units_collide",
    "vertical_overlap",
    "within_bounds",
    "StackAnalyzer",
    "StackSummary",
    "StackVerdict",
    "group_placements",
    "roll_compatible",
    "PlacementValidator",
    "Verdict",
    "DropResolver",
    "DropResult",
    "DragOutcome",
    "DragSearch",
    "settle",
    "staging_placements",
    "staging_slot",
    "AxleLoad",
    "AxleLoadModel",
    "AxleLoadReport",
    "LoadSuggestion",
    "distribute_weight",
    "load_tier",
    "RecomputeThrottle",
    "LoadPlanner",
    "PlanStatistics",
]
