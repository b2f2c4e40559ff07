"""
Placement Validator: single accept/reject decision for a proposed position.

``is_valid(candidates, position, snapshot)`` treats ``candidates[0]`` as the
lead unit; every other candidate keeps its current offset from the lead, so a
unit with its stack (or any multi-unit selection) is checked as one group move.
The group is valid only when every member is.

Checks, first failure wins:
  1. container bounds / twin-section gap (skipped in the overflow area)
  2. groove seat for fixed-diameter coils in a groove vehicle
  3. collisions against every unit outside the candidate set
  4. support: resting on the floor, on a group member, or on units the
     Stack Analyzer accepts
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

from ..config import DEFAULT_SETTINGS, EngineSettings
from .entities import CargoUnit, LoadSpace, Vec3
from .geometry import (
    first_box_collision_numba,
    first_collision_numba,
    footprints_overlap,
    pack_rows,
    within_bounds,
)
from .stacking import StackAnalyzer, group_placements

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Verdict:
    accepted: bool
    reason: str = ""
    unit_id: Optional[str] = None
    blocker_id: Optional[str] = None

    def __bool__(self) -> bool:
        return self.accepted


VALID = Verdict(True)


class PlacementValidator:
    def __init__(self, load_space: LoadSpace, settings: EngineSettings = DEFAULT_SETTINGS,
                 analyzer: Optional[StackAnalyzer] = None):
        self.load_space = load_space
        self.settings = settings
        self.analyzer = analyzer or StackAnalyzer(load_space, settings)

    def is_valid(self, candidates: Sequence[CargoUnit], position: Vec3,
                 snapshot: Sequence[CargoUnit]) -> bool:
        return self.check(candidates, position, snapshot).accepted

    def check(self, candidates: Sequence[CargoUnit], position: Vec3,
              snapshot: Sequence[CargoUnit]) -> Verdict:
        if not candidates:
            return Verdict(False, "no candidates")
        placements = group_placements(candidates, position)
        return self.check_placements(candidates, placements, snapshot)

    def check_placements(self, candidates: Sequence[CargoUnit], placements: Dict[str, Vec3],
                         snapshot: Sequence[CargoUnit]) -> Verdict:
        candidate_ids = {u.id for u in candidates}
        others = [u for u in snapshot if u.id not in candidate_ids and u.position is not None]
        others_data = pack_rows(others)

        needs_stack_check = False
        for member in candidates:
            pos = placements[member.id]
            outside = self.load_space.is_outside(pos, self.settings.outside_margin)

            if self._uses_groove(member, outside):
                verdict = self._check_groove(member, pos, others, others_data)
                if not verdict:
                    return verdict
                continue

            if not outside:
                verdict = self._check_bounds(member, pos)
                if not verdict:
                    return verdict

            idx = first_collision_numba(member.as_row(pos), others_data,
                                        self.settings.contact_tolerance,
                                        self.settings.vertical_tolerance)
            if idx >= 0:
                return Verdict(False, "collision", member.id, others[idx].id)

            verdict = self._check_support(member, pos, outside, candidates, placements, others)
            if not verdict:
                return verdict
            if verdict.reason == "stacked":
                needs_stack_check = True

        if needs_stack_check:
            stack_verdict = self.analyzer.evaluate(candidates, placements, snapshot)
            if not stack_verdict:
                return Verdict(False, stack_verdict.reason, candidates[0].id, stack_verdict.unit_id)
        return VALID

    # -- individual checks ---------------------------------------------------
    def _uses_groove(self, unit: CargoUnit, outside: bool) -> bool:
        return unit.fixed_diameter and self.load_space.groove is not None and not outside

    def _check_bounds(self, unit: CargoUnit, pos: Vec3) -> Verdict:
        tol = self.settings.contact_tolerance
        lo, hi = self.load_space.bounds
        ceiling = hi.with_y(hi.y + self.settings.ceiling_tolerance - tol)
        if not within_bounds(unit, pos, lo, ceiling, tol):
            return Verdict(False, "out of bounds", unit.id)
        if self.load_space.sections:
            fp = unit.footprint_at(pos)
            section = self.load_space.section_for(fp.x_min, fp.x_max, tol)
            if section is None:
                return Verdict(False, "spans section gap", unit.id)
            if unit.top_at(pos) > self.load_space.floor_y + section.height + self.settings.ceiling_tolerance:
                return Verdict(False, "out of bounds", unit.id)
        return VALID

    def _check_groove(self, unit: CargoUnit, pos: Vec3, others: List[CargoUnit],
                      others_data: np.ndarray) -> Verdict:
        groove = self.load_space.groove
        tol = self.settings.groove_tolerance
        x_start, x_end = self.load_space.groove_x_range()
        hx = unit.half_extents[0]
        if pos.x - hx < x_start - tol or pos.x + hx > x_end + tol:
            return Verdict(False, "outside groove", unit.id)
        if abs(pos.z - groove.center_z) > tol:
            return Verdict(False, "outside groove", unit.id)
        if abs(pos.y - self.load_space.groove_seat_y(unit.radius)) > tol:
            return Verdict(False, "outside groove", unit.id)
        idx = first_box_collision_numba(unit.as_row(pos), others_data, tol)
        if idx >= 0:
            return Verdict(False, "collision", unit.id, others[idx].id)
        return VALID

    def _check_support(self, member: CargoUnit, pos: Vec3, outside: bool,
                       candidates: Sequence[CargoUnit], placements: Dict[str, Vec3],
                       others: List[CargoUnit]) -> Verdict:
        vtol = self.settings.vertical_tolerance
        bottom = member.bottom_at(pos)
        floor = self.load_space.floor_level(outside, self.settings.ground_level)
        if abs(bottom - floor) <= vtol:
            return VALID
        if bottom < floor - vtol:
            return Verdict(False, "below floor", member.id)

        fp = member.footprint_at(pos)
        ctol = self.settings.contact_tolerance
        for other in others:
            if abs(bottom - other.top_at()) <= vtol and footprints_overlap(fp, other.footprint_at(), ctol):
                return Verdict(True, "stacked", member.id)

        for mate in candidates:
            if mate.id == member.id:
                continue
            mate_pos = placements[mate.id]
            if abs(bottom - mate.top_at(mate_pos)) <= vtol and footprints_overlap(fp, mate.footprint_at(mate_pos), ctol):
                return VALID

        return Verdict(False, "unsupported", member.id)
