"""
Stack analysis over a point-in-time snapshot of placed units.

The support graph is implicit: unit A rests on unit B when A's bottom touches
B's top and their footprints overlap. Traversals in both directions run over an
explicit visited set / depth bound so malformed data can never recurse forever.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from ..config import DEFAULT_SETTINGS, EngineSettings
from .entities import EPS, CargoUnit, LoadSpace, Vec3
from .geometry import fits_within, footprints_overlap

logger = logging.getLogger(__name__)


@dataclass
class StackSummary:
    """Everything resting (transitively) on one base unit."""

    base_id: str
    floors: Dict[str, int] = field(default_factory=dict)
    weight_above: float = 0.0

    @property
    def floors_above(self) -> int:
        return max(self.floors.values(), default=0)

    @property
    def members(self) -> List[str]:
        return list(self.floors)


@dataclass(frozen=True)
class StackVerdict:
    accepted: bool
    reason: str = ""
    unit_id: Optional[str] = None

    def __bool__(self) -> bool:
        return self.accepted


ACCEPT = StackVerdict(True)


def hypothetical_snapshot(
    snapshot: Iterable[CargoUnit],
    moving: Sequence[CargoUnit],
    placements: Mapping[str, Vec3],
) -> List[CargoUnit]:
    """Snapshot with the moving units swapped for copies at their proposed positions."""
    moving_ids = {u.id for u in moving}
    hyp = [u for u in snapshot if u.id not in moving_ids and u.position is not None]
    hyp.extend(u.moved(placements[u.id]) for u in moving if u.id in placements)
    return hyp


def group_placements(moving: Sequence[CargoUnit], lead_position: Vec3) -> Dict[str, Vec3]:
    """Proposed position per member, keeping each member's offset from the lead."""
    lead = moving[0]
    placements = {lead.id: lead_position}
    for member in moving[1:]:
        if member.position is None or lead.position is None:
            placements[member.id] = lead_position
        else:
            placements[member.id] = lead_position + (member.position - lead.position)
    return placements


def roll_compatible(upper: CargoUnit, lower: CargoUnit, fit_tol: float = 0.01) -> bool:
    """Shape rules for resting `upper` on `lower`."""
    if upper.is_vertical_roll and lower.is_vertical_roll:
        return True
    if upper.is_horizontal_roll and lower.is_horizontal_roll:
        ux, uz, _ = upper.dims()
        lx, lz, _ = lower.dims()
        return abs(ux - lx) < fit_tol and abs(uz - lz) < fit_tol
    if lower.is_horizontal_roll:
        return False
    if upper.is_horizontal_roll and lower.is_vertical_roll:
        return False
    return True


class StackAnalyzer:
    def __init__(self, load_space: LoadSpace, settings: EngineSettings = DEFAULT_SETTINGS):
        self.load_space = load_space
        self.settings = settings

    # -- adjacency -----------------------------------------------------------
    def rests_on(self, upper: CargoUnit, lower: CargoUnit,
                 upper_pos: Optional[Vec3] = None, lower_pos: Optional[Vec3] = None,
                 tol: Optional[float] = None) -> bool:
        tol = self.settings.support_tolerance if tol is None else tol
        if abs(upper.bottom_at(upper_pos) - lower.top_at(lower_pos)) >= tol:
            return False
        return footprints_overlap(upper.footprint_at(upper_pos), lower.footprint_at(lower_pos),
                                  self.settings.contact_tolerance)

    def supporters_of(self, unit: CargoUnit, snapshot: Sequence[CargoUnit],
                      position: Optional[Vec3] = None, tol: Optional[float] = None) -> List[CargoUnit]:
        """Units directly beneath `unit` (at `position` if given)."""
        return [
            other for other in snapshot
            if other.id != unit.id and other.position is not None
            and self.rests_on(unit, other, position, None, tol)
        ]

    def supported_by(self, base: CargoUnit, snapshot: Sequence[CargoUnit],
                     tol: Optional[float] = None) -> List[CargoUnit]:
        """Units resting directly on `base`."""
        return [
            other for other in snapshot
            if other.id != base.id and other.position is not None
            and self.rests_on(other, base, None, None, tol)
        ]

    # -- traversals ----------------------------------------------------------
    def support_chain(self, unit: CargoUnit, snapshot: Sequence[CargoUnit],
                      position: Optional[Vec3] = None) -> List[CargoUnit]:
        """Every unit holding `unit` up, transitively downward, nearest first."""
        chain: List[CargoUnit] = []
        visited = {unit.id}
        frontier = self.supporters_of(unit, snapshot, position)
        depth = 0
        while frontier and depth < self.settings.max_stack_depth:
            depth += 1
            next_frontier: List[CargoUnit] = []
            for supporter in frontier:
                if supporter.id in visited:
                    continue
                visited.add(supporter.id)
                chain.append(supporter)
                next_frontier.extend(self.supporters_of(supporter, snapshot))
            frontier = next_frontier
        return chain

    def supported_floors(self, base: CargoUnit, snapshot: Sequence[CargoUnit]) -> StackSummary:
        """
        Floors resting on `base`: 1 = directly on it, 2 = on floor 1, ...

        A unit reachable by paths of different lengths gets its highest floor.
        The traversal stops after ``max_stack_depth`` layers.
        """
        by_id = {u.id: u for u in snapshot}
        summary = StackSummary(base_id=base.id)
        current = [base]
        depth = 0
        while current and depth < self.settings.max_stack_depth:
            depth += 1
            next_ids: Dict[str, CargoUnit] = {}
            for unit in current:
                for upper in self.supported_by(unit, snapshot):
                    if upper.id == base.id:
                        continue
                    if summary.floors.get(upper.id, 0) < depth:
                        summary.floors[upper.id] = depth
                        next_ids[upper.id] = upper
            current = list(next_ids.values())
        summary.weight_above = sum(by_id[uid].weight for uid in summary.floors if uid in by_id)
        return summary

    def stack_above(self, unit: CargoUnit, snapshot: Sequence[CargoUnit]) -> List[CargoUnit]:
        """Units carried by `unit`, bottom to top."""
        summary = self.supported_floors(unit, snapshot)
        by_id = {u.id: u for u in snapshot}
        above = [by_id[uid] for uid in summary.floors]
        return sorted(above, key=lambda u: u.at().y)

    # -- proposed placement --------------------------------------------------
    def evaluate(
        self,
        moving: Sequence[CargoUnit],
        placements: Mapping[str, Vec3],
        snapshot: Sequence[CargoUnit],
    ) -> StackVerdict:
        """
        Accept or reject resting the moving units at `placements`.

        Every unit in the support chain below the moving units is re-checked
        against its floor and weight limits in the resulting configuration, and
        the moved stack must stay under the ceiling.
        """
        moving_ids = {u.id for u in moving}
        hyp = hypothetical_snapshot(snapshot, moving, placements)
        hyp_by_id = {u.id: u for u in hyp}
        fixed = [u for u in hyp if u.id not in moving_ids]
        fit_tol = self.settings.fit_tolerance

        ancestors: Dict[str, CargoUnit] = {}
        for unit in moving:
            placed = hyp_by_id.get(unit.id)
            if placed is None:
                continue
            for supporter in self.supporters_of(placed, fixed):
                if not roll_compatible(placed, supporter, fit_tol):
                    return StackVerdict(False, "incompatible shapes", supporter.id)
                if not fits_within(placed.footprint_at(), supporter.footprint_at(), fit_tol):
                    return StackVerdict(False, "does not fit on top", supporter.id)
                ancestors[supporter.id] = supporter
                for below in self.support_chain(supporter, fixed):
                    ancestors.setdefault(below.id, below)

        for ancestor in ancestors.values():
            summary = self.supported_floors(ancestor, hyp)
            if summary.floors_above > ancestor.max_stack:
                logger.debug(
                    f"Stack rejected: {ancestor.id} would carry {summary.floors_above} floors "
                    f"(max {ancestor.max_stack})"
                )
                return StackVerdict(False, "too many floors", ancestor.id)
            if summary.weight_above > ancestor.max_stack_weight + EPS:
                logger.debug(
                    f"Stack rejected: {ancestor.id} would carry {summary.weight_above:.1f} kg "
                    f"(max {ancestor.max_stack_weight})"
                )
                return StackVerdict(False, "too much weight", ancestor.id)

        if ancestors:
            ceiling = self.load_space.max.y + self.settings.ceiling_tolerance
            for unit in moving:
                placed = hyp_by_id.get(unit.id)
                if placed is None or self.load_space.is_outside(placed.at(), self.settings.outside_margin):
                    continue
                if placed.top_at() > ceiling:
                    return StackVerdict(False, "stack exceeds ceiling", unit.id)

        return ACCEPT
