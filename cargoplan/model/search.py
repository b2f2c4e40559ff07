"""
Drag Search: nearest reachable valid position when the direct target is not.

``slide`` marches from the last valid position toward the target in coarse
steps, binary-searches the boundary between the last valid and first invalid
step, and falls back to single-axis motion (dominant axis first) so a unit
pressed diagonally against a wall slides along it. ``spiral`` repositions a
rotated stack by scanning rings of increasing radius around its pivot.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from ..config import DEFAULT_SETTINGS, EngineSettings
from .drop import DropResolver
from .entities import CargoUnit, LoadSpace, Vec3
from .validator import PlacementValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DragOutcome:
    position: Vec3
    moved: bool
    valid: bool
    outside: bool = False
    stacked_on: Optional[str] = None


class DragSearch:
    def __init__(self, load_space: LoadSpace, validator: PlacementValidator,
                 resolver: DropResolver, settings: EngineSettings = DEFAULT_SETTINGS):
        self.load_space = load_space
        self.validator = validator
        self.resolver = resolver
        self.settings = settings

    def _march(self, moving: Sequence[CargoUnit], start: Vec3, end: Vec3,
               snapshot: Sequence[CargoUnit]) -> Tuple[Vec3, float]:
        """Furthest valid point on start->end and the distance travelled."""
        dist = math.dist(start.as_tuple(), end.as_tuple())
        if dist < self.settings.binary_tolerance:
            return start, 0.0

        steps = min(max(1, math.ceil(dist / self.settings.coarse_step)), self.settings.max_coarse_steps)
        lo, hi = 0.0, None
        for i in range(1, steps + 1):
            t = i / steps
            if self.validator.is_valid(moving, start.lerp(end, t), snapshot):
                lo = t
            else:
                hi = t
                break
        if hi is None:
            return end, dist

        for _ in range(self.settings.binary_iterations):
            if (hi - lo) * dist <= self.settings.binary_tolerance:
                break
            mid = (lo + hi) / 2
            if self.validator.is_valid(moving, start.lerp(end, mid), snapshot):
                lo = mid
            else:
                hi = mid
        return start.lerp(end, lo), lo * dist

    def slide(self, moving: Sequence[CargoUnit], current: Vec3, target: Vec3,
              snapshot: Sequence[CargoUnit]) -> Optional[Vec3]:
        """
        Closest valid position toward `target`, or None when the unit cannot
        move at all (the caller keeps it where it was).

        Every sample sits at the height of `target`, which the caller has
        already resolved as the landing; samples are not re-resolved, so a
        slide never climbs onto or drops off a surface part way along.
        """
        if self.validator.is_valid(moving, target, snapshot):
            return target

        start = current.with_y(target.y)
        tol = self.settings.binary_tolerance
        pos, total = self._march(moving, start, target, snapshot)
        if total >= math.dist(start.as_tuple(), target.as_tuple()) - tol:
            return pos

        # continue from the contact point along each axis, dominant first
        x_first = abs(target.x - start.x) >= abs(target.z - start.z)
        for axis in ("x", "z") if x_first else ("z", "x"):
            if axis == "x":
                sub_target = Vec3(target.x, target.y, pos.z)
            else:
                sub_target = Vec3(pos.x, target.y, target.z)
            slid, travelled = self._march(moving, pos, sub_target, snapshot)
            if travelled > tol:
                logger.debug(f"Slide of {moving[0].id} continued along {axis} to {slid}")
                pos = slid
                total += travelled
        if total <= tol:
            return None
        return pos

    def drag(self, moving: Sequence[CargoUnit], target: Vec3, snapshot: Sequence[CargoUnit],
             last_valid: Optional[Vec3]) -> DragOutcome:
        """One drag sample: resolve the landing and slide toward it if blocked."""
        drop = self.resolver.resolve(moving, target, snapshot)
        if drop.can_stack:
            moved = last_valid is None or drop.position != last_valid
            return DragOutcome(drop.position, moved, True, drop.outside, drop.stacked_on)

        if last_valid is None:
            return DragOutcome(drop.position, False, False, drop.outside)

        was_outside = self.load_space.is_outside(last_valid, self.settings.outside_margin)
        if drop.outside != was_outside:
            return DragOutcome(last_valid, False, False, was_outside)

        slid = self.slide(moving, last_valid, drop.position, snapshot)
        if slid is None:
            return DragOutcome(last_valid, False, False, was_outside)
        return DragOutcome(slid, slid != last_valid, False, was_outside)

    def spiral(self, moving: Sequence[CargoUnit], snapshot: Sequence[CargoUnit]) -> Optional[Vec3]:
        """
        Nearest valid lead position around the lead's current spot.

        Rings grow by ``spiral_step`` up to the load-space diagonal with
        ``spiral_angles`` samples each; a hit closer than
        ``spiral_accept_radius`` is taken at once, otherwise the first ring
        with any valid sample wins.
        """
        lead = moving[0]
        pivot = lead.at()
        if self.validator.is_valid(moving, pivot, snapshot):
            return pivot

        outside = self.load_space.is_outside(pivot, self.settings.outside_margin)
        floor = self.load_space.floor_level(outside, self.settings.ground_level)
        y = floor + lead.height / 2
        if lead.fixed_diameter and self.load_space.groove is not None and not outside:
            y = self.load_space.groove_seat_y(lead.radius)

        step = self.settings.spiral_step
        angles = self.settings.spiral_angles
        rings = int(math.ceil(self.load_space.diagonal / step))
        for ring in range(1, rings + 1):
            radius = ring * step
            hits: List[Vec3] = []
            for k in range(angles):
                a = 2 * math.pi * k / angles
                candidate = Vec3(pivot.x + radius * math.cos(a), y, pivot.z + radius * math.sin(a))
                if self.load_space.is_outside(candidate, self.settings.outside_margin) != outside:
                    continue
                if self.validator.is_valid(moving, candidate, snapshot):
                    if radius < self.settings.spiral_accept_radius:
                        return candidate
                    hits.append(candidate)
            if hits:
                return hits[0]
        logger.debug(f"Spiral search exhausted for {lead.id}")
        return None
