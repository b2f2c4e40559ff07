"""
LoadPlanner: the session that owns the placed units.

All geometry decisions are delegated to the validator / resolver / search
objects, which only ever see point-in-time snapshots. The planner is the one
place that mutates unit positions, and only after a decision was accepted.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..config import DEFAULT_SETTINGS, EngineSettings
from .axles import AxleLoadModel, AxleLoadReport, LoadSuggestion
from .drop import DropResolver, DropResult
from .entities import (
    AxleConfig,
    CargoUnit,
    DuplicateUnitError,
    LoadSpace,
    UnknownUnitError,
    Vec3,
)
from .search import DragOutcome, DragSearch
from .stacking import StackAnalyzer, group_placements
from .staging import settle, staging_placements
from .throttle import RecomputeThrottle
from .validator import PlacementValidator, Verdict

logger = logging.getLogger(__name__)

COLUMN_TOLERANCE = 0.1


@dataclass
class DragSession:
    unit_ids: List[str]
    last_valid: Optional[Vec3]
    start: Optional[Vec3]


@dataclass
class PlanStatistics:
    total_units: int = 0
    placed_units: int = 0
    outside_units: int = 0
    total_weight: float = 0.0
    placed_weight: float = 0.0
    outside_weight: float = 0.0
    used_volume: float = 0.0
    volume_usage_pct: float = 0.0
    weight_usage_pct: float = 0.0
    groups: Dict[str, int] = field(default_factory=dict)


class LoadPlanner:
    def __init__(self, load_space: LoadSpace, axle_config: AxleConfig,
                 settings: EngineSettings = DEFAULT_SETTINGS,
                 clock: Callable[[], float] = time.monotonic):
        self.settings = settings
        self.units: Dict[str, CargoUnit] = {}
        self.throttle = RecomputeThrottle(settings.axle_update_interval, clock)
        self.axle_report: Optional[AxleLoadReport] = None
        self._drag: Optional[DragSession] = None
        self._configure(load_space, axle_config)

    def _configure(self, load_space: LoadSpace, axle_config: AxleConfig) -> None:
        self.load_space = load_space
        self.axle_config = axle_config
        self.analyzer = StackAnalyzer(load_space, self.settings)
        self.validator = PlacementValidator(load_space, self.settings, self.analyzer)
        self.resolver = DropResolver(load_space, self.validator, self.settings)
        self.search = DragSearch(load_space, self.validator, self.resolver, self.settings)
        self.axle_model = AxleLoadModel(axle_config, load_space)

    # -- lookup --------------------------------------------------------------
    def snapshot(self) -> Tuple[CargoUnit, ...]:
        return tuple(self.units.values())

    def get(self, unit_id: str) -> CargoUnit:
        try:
            return self.units[unit_id]
        except KeyError:
            raise UnknownUnitError(unit_id) from None

    def group(self, group_id: str) -> List[CargoUnit]:
        return [u for u in self.units.values() if u.group_id == group_id]

    def stack_above(self, unit_id: str) -> List[CargoUnit]:
        """Units resting (transitively) on the unit, bottom to top."""
        return self.analyzer.stack_above(self.get(unit_id), self.snapshot())

    def entire_stack(self, unit_id: str) -> List[CargoUnit]:
        """Every unit in the same vertical column as the unit, bottom to top."""
        pos = self.get(unit_id).at()
        column = [
            u for u in self.units.values()
            if u.position is not None
            and abs(u.position.x - pos.x) < COLUMN_TOLERANCE
            and abs(u.position.z - pos.z) < COLUMN_TOLERANCE
        ]
        return sorted(column, key=lambda u: u.position.y)

    # -- mutation helpers ----------------------------------------------------
    def _apply(self, placements: Dict[str, Vec3]) -> None:
        for unit_id, pos in placements.items():
            unit = self.units[unit_id]
            unit.position = pos
            unit.is_outside = self.load_space.is_outside(pos, self.settings.outside_margin)

    def _replace(self, new_units: Iterable[CargoUnit]) -> None:
        for unit in new_units:
            unit.is_outside = unit.position is not None and self.load_space.is_outside(
                unit.position, self.settings.outside_margin)
            self.units[unit.id] = unit

    def _settle(self, units: Sequence[CargoUnit]) -> Dict[str, Vec3]:
        live = [self.units[u.id] for u in units if u.id in self.units and self.units[u.id].position is not None]
        if not live:
            return {}
        moved = settle(live, self.snapshot(), self.load_space, self.settings)
        self._apply(moved)
        return moved

    def _stage(self, units: Sequence[CargoUnit]) -> Dict[str, Vec3]:
        placements = staging_placements(units, self.snapshot(), self.load_space, self.settings)
        self._apply(placements)
        return placements

    def _recompute_axles(self) -> AxleLoadReport:
        self.axle_report = self.axle_model.calculate(self.snapshot())
        return self.axle_report

    # -- add / remove --------------------------------------------------------
    def add_unit(self, unit: CargoUnit, target: Optional[Vec3] = None) -> Vec3:
        """
        Add a unit, dropping it at `target` when that resolves to a valid
        landing; otherwise it goes to the staging area.
        """
        if unit.id in self.units:
            raise DuplicateUnitError(unit.id)
        unit.position = None
        self.units[unit.id] = unit

        if target is not None:
            drop = self.resolver.resolve([unit], target, self.snapshot())
            if drop.can_stack:
                self._apply({unit.id: drop.position})
                self._recompute_axles()
                return drop.position
            logger.info(f"Unit {unit.id} could not be placed at {target}, moved to staging")

        pos = self._stage([unit])[unit.id]
        self._recompute_axles()
        return pos

    def remove_unit(self, unit_id: str) -> CargoUnit:
        unit = self.get(unit_id)
        above = self.stack_above(unit_id) if unit.position is not None else []
        del self.units[unit_id]
        self._settle(above)
        self._recompute_axles()
        return unit

    def remove_group(self, group_id: str) -> List[CargoUnit]:
        members = self.group(group_id)
        member_ids = {u.id for u in members}
        survivors_above: Dict[str, CargoUnit] = {}
        for unit in members:
            if unit.position is None:
                continue
            for upper in self.analyzer.stack_above(unit, self.snapshot()):
                if upper.id not in member_ids:
                    survivors_above[upper.id] = upper
        for unit in members:
            del self.units[unit.id]
        self._settle(list(survivors_above.values()))
        self._recompute_axles()
        return members

    # -- direct placement ----------------------------------------------------
    def place(self, unit_ids: Sequence[str], position: Vec3) -> Verdict:
        """Move the units (first one leads) to an exact position if valid."""
        moving = [self.get(uid) for uid in unit_ids]
        verdict = self.validator.check(moving, position, self.snapshot())
        if verdict:
            self._apply(group_placements(moving, position))
            self._recompute_axles()
        return verdict

    def resolve_drop(self, unit_ids: Sequence[str], target: Vec3) -> DropResult:
        return self.resolver.resolve([self.get(uid) for uid in unit_ids], target, self.snapshot())

    # -- dragging ------------------------------------------------------------
    def begin_drag(self, unit_id: str) -> List[str]:
        """Pick up a unit together with everything resting on it."""
        unit = self.get(unit_id)
        ids = [unit_id]
        if unit.position is not None:
            ids.extend(u.id for u in self.stack_above(unit_id))
        self._drag = DragSession(unit_ids=ids, last_valid=unit.position, start=unit.position)
        return ids

    def drag_to(self, target: Vec3) -> DragOutcome:
        if self._drag is None:
            raise RuntimeError("drag_to called without begin_drag")
        moving = [self.units[uid] for uid in self._drag.unit_ids]
        outcome = self.search.drag(moving, target, self.snapshot(), self._drag.last_valid)
        if outcome.moved:
            self._apply(group_placements(moving, outcome.position))
            self._drag.last_valid = outcome.position
            self.throttle.request(self._recompute_axles)
        else:
            self.throttle.poll()
        return outcome

    def end_drag(self) -> Optional[Vec3]:
        """Release: the last valid position stands; pending axle work runs now."""
        if self._drag is None:
            return None
        final = self._drag.last_valid
        self._drag = None
        if not self.throttle.flush():
            self._recompute_axles()
        return final

    def cancel_drag(self) -> None:
        if self._drag is None:
            return
        session, self._drag = self._drag, None
        if session.start is not None:
            moving = [self.units[uid] for uid in session.unit_ids]
            placements = group_placements(moving, session.start)
            self._apply(placements)
        self.throttle.cancel()
        self._recompute_axles()

    # -- rotation / orientation ----------------------------------------------
    def rotate(self, unit_id: str, angle: int = 90) -> bool:
        """
        Rotate the unit's whole column about the bottom unit. The rotated
        column is repositioned by spiral search, or staged when nothing fits.
        Returns False when the column contains a unit that cannot rotate.
        """
        column = self.entire_stack(unit_id)
        if not column:
            return False
        if any(not u.is_rotatable for u in column):
            logger.warning(f"Column of {unit_id} contains a non-rotatable unit, rotation refused")
            return False

        pivot = column[0].at()
        rad = math.radians(angle)
        cos_a, sin_a = math.cos(rad), math.sin(rad)
        rotated: List[CargoUnit] = []
        for unit in column:
            rel = unit.at() - pivot
            new_pos = Vec3(
                pivot.x + rel.x * cos_a - rel.z * sin_a,
                unit.at().y,
                pivot.z + rel.x * sin_a + rel.z * cos_a,
            )
            rotated.append(unit.rotated(angle).moved(new_pos))

        lead_pos = self.search.spiral(rotated, self.snapshot())
        if lead_pos is None:
            logger.info(f"No valid spot for rotated column of {unit_id}, moving it to staging")
            self._replace(rotated)
            self._stage(rotated)
        else:
            placements = group_placements(rotated, lead_pos)
            self._replace(u.moved(placements[u.id]) for u in rotated)
        self._recompute_axles()
        return True

    def rotate_group(self, group_id: str, angle: int = 90) -> int:
        rotated = 0
        done: set = set()
        for unit in self.group(group_id):
            if unit.id in done or unit.position is None:
                continue
            done.update(u.id for u in self.entire_stack(unit.id))
            if self.rotate(unit.id, angle):
                rotated += 1
        return rotated

    def toggle_roll_orientation(self, unit_id: str) -> CargoUnit:
        """Stand a horizontal roll up or lay a vertical roll down, in place if possible."""
        unit = self.get(unit_id)
        above = self.stack_above(unit_id) if unit.position is not None else []
        toggled = unit.with_roll_orientation(not unit.is_vertical_roll)
        if unit.position is None:
            self._replace([toggled])
            return toggled

        if above:
            logger.info(f"Units resting on roll {unit_id} moved to staging before re-orienting it")
            self._stage(above)
        toggled = toggled.moved(unit.position.with_y(unit.bottom_at() + toggled.height / 2))
        lead_pos = self.search.spiral([toggled], self.snapshot())
        if lead_pos is None:
            self._replace([toggled])
            self._stage([toggled])
        else:
            self._replace([toggled.moved(lead_pos)])
        logger.debug(f"Roll {unit_id} now {'vertical' if toggled.is_vertical_roll else 'horizontal'}")
        self._recompute_axles()
        return self.units[unit_id]

    # -- staging -------------------------------------------------------------
    def move_to_staging(self, unit_id: str) -> Dict[str, Vec3]:
        """Move the unit and everything above it to the staging area."""
        unit = self.get(unit_id)
        column = self.entire_stack(unit_id) if unit.position is not None else [unit]
        moving = [unit] + (self.stack_above(unit_id) if unit.position is not None else [])
        moving_ids = {u.id for u in moving}
        placements = self._stage(moving)
        self._settle([u for u in column if u.id not in moving_ids])
        self._recompute_axles()
        return placements

    def move_group_to_staging(self, group_id: str) -> int:
        moved = 0
        for unit in self.group(group_id):
            if unit.position is not None and not unit.is_outside:
                self.move_to_staging(unit.id)
                moved += 1
        return moved

    # -- vehicle -------------------------------------------------------------
    def set_vehicle(self, load_space: LoadSpace, axle_config: AxleConfig) -> None:
        """Swap the vehicle; every unit is re-staged outside the new load space."""
        logger.info(f"Vehicle changed to {load_space.name or 'custom'} ({load_space.length}x{load_space.width}x{load_space.height})")
        self._configure(load_space, axle_config)
        for unit in self.units.values():
            unit.position = None
        for unit in self.units.values():
            self._stage([unit])
        self._recompute_axles()

    # -- reporting -----------------------------------------------------------
    def axle_loads(self) -> AxleLoadReport:
        return self._recompute_axles()

    def suggest_loading_order(self, unit_ids: Optional[Sequence[str]] = None) -> List[LoadSuggestion]:
        units = [self.get(uid) for uid in unit_ids] if unit_ids is not None else \
            [u for u in self.units.values() if u.position is None or u.is_outside]
        return self.axle_model.optimize_load_distribution(units)

    def statistics(self) -> PlanStatistics:
        stats = PlanStatistics(total_units=len(self.units))
        for unit in self.units.values():
            stats.total_weight += unit.weight
            if unit.group_id is not None:
                stats.groups[unit.group_id] = stats.groups.get(unit.group_id, 0) + 1
            if unit.position is not None and not unit.is_outside:
                stats.placed_units += 1
                stats.placed_weight += unit.weight
                stats.used_volume += unit.volume
            else:
                stats.outside_units += 1
                stats.outside_weight += unit.weight
        if self.load_space.volume > 0:
            stats.volume_usage_pct = stats.used_volume / self.load_space.volume * 100
        if 0 < self.load_space.max_load < math.inf:
            stats.weight_usage_pct = stats.placed_weight / self.load_space.max_load * 100
        return stats
