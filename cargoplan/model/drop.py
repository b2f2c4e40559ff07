"""
Drop Resolver: turns a horizontal cursor target into a landing position.

Decision order for the lead unit of the moving group:
  - fixed-diameter coil in a groove vehicle -> groove seat
  - cursor well inside another unit's footprint -> stack on its top surface
  - near a same-floor neighbour -> snap flush against the closest side
  - otherwise rest on the floor at the clamped target
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from ..config import DEFAULT_SETTINGS, EngineSettings
from .entities import CargoUnit, LoadSpace, Vec3
from .geometry import fits_within
from .validator import PlacementValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DropResult:
    position: Vec3
    can_stack: bool
    stacked_on: Optional[str] = None
    snapped: bool = False
    outside: bool = False


class DropResolver:
    def __init__(self, load_space: LoadSpace, validator: PlacementValidator,
                 settings: EngineSettings = DEFAULT_SETTINGS):
        self.load_space = load_space
        self.validator = validator
        self.settings = settings

    # -- clamping ------------------------------------------------------------
    def _offsets(self, moving: Sequence[CargoUnit]) -> List[Tuple[CargoUnit, Vec3]]:
        lead = moving[0]
        out = []
        for member in moving:
            if member.position is None or lead.position is None:
                out.append((member, Vec3(0.0, 0.0, 0.0)))
            else:
                out.append((member, member.position - lead.position))
        return out

    def clamp_to_bounds(self, moving: Sequence[CargoUnit], target: Vec3) -> Vec3:
        """Clamp the lead's X/Z so every member's footprint stays inside the walls."""
        lo, hi = self.load_space.bounds
        x_lo, x_hi = -math.inf, math.inf
        z_lo, z_hi = -math.inf, math.inf
        for member, off in self._offsets(moving):
            hx, _, hz = member.half_extents
            x_lo = max(x_lo, lo.x + hx - off.x)
            x_hi = min(x_hi, hi.x - hx - off.x)
            z_lo = max(z_lo, lo.z + hz - off.z)
            z_hi = min(z_hi, hi.z - hz - off.z)
        x = target.x if x_lo > x_hi else min(max(target.x, x_lo), x_hi)
        z = target.z if z_lo > z_hi else min(max(target.z, z_lo), z_hi)
        return Vec3(x, target.y, z)

    def clamp_to_groove(self, unit: CargoUnit, target: Vec3) -> Vec3:
        groove = self.load_space.groove
        x_start, x_end = self.load_space.groove_x_range()
        hx = unit.half_extents[0]
        x = min(max(target.x, x_start + hx), x_end - hx)
        return Vec3(x, self.load_space.groove_seat_y(unit.radius), groove.center_z)

    # -- resolution ----------------------------------------------------------
    def resolve(self, moving: Sequence[CargoUnit], target: Vec3,
                snapshot: Sequence[CargoUnit]) -> DropResult:
        lead = moving[0]
        moving_ids = {u.id for u in moving}
        outside = self.load_space.is_outside(target, self.settings.outside_margin)
        others = [u for u in snapshot if u.id not in moving_ids and u.position is not None]

        if lead.fixed_diameter and self.load_space.groove is not None and not outside:
            pos = self.clamp_to_groove(lead, target)
            return DropResult(pos, self.validator.is_valid(moving, pos, snapshot))

        if not outside:
            target = self.clamp_to_bounds(moving, target)
        floor = self.load_space.floor_level(outside, self.settings.ground_level)
        floor_pos = Vec3(target.x, floor + lead.height / 2, target.z)

        surface = self._stack_target(lead, target, others, floor)
        if surface is not None:
            result = self._resolve_stack(moving, target, surface, snapshot, outside)
            if result is not None:
                return result

        snapped = self._snap(lead, floor_pos, others, floor)
        if snapped is not None and self.validator.is_valid(moving, snapped, snapshot):
            return DropResult(snapped, True, snapped=True, outside=outside)

        return DropResult(floor_pos, self.validator.is_valid(moving, floor_pos, snapshot), outside=outside)

    def _stack_target(self, lead: CargoUnit, target: Vec3, others: Sequence[CargoUnit],
                      floor: float) -> Optional[CargoUnit]:
        """Highest unit whose inner footprint region contains the cursor."""
        inner = 1.0 - self.settings.stack_center_ratio
        best: Optional[CargoUnit] = None
        best_top = floor
        for other in others:
            fp = other.footprint_at()
            if abs(target.x - fp.x) > fp.half_length * inner or abs(target.z - fp.z) > fp.half_width * inner:
                continue
            top = other.top_at()
            if top >= best_top - self.settings.vertical_tolerance and (best is None or top > best.top_at()):
                best = other
                best_top = top
        return best

    def _resolve_stack(self, moving: Sequence[CargoUnit], target: Vec3, surface: CargoUnit,
                       snapshot: Sequence[CargoUnit], outside: bool) -> Optional[DropResult]:
        lead = moving[0]
        y = surface.top_at() + lead.height / 2
        base = surface.footprint_at()
        lhx, _, lhz = lead.half_extents
        if lhx > base.half_length + self.settings.fit_tolerance or lhz > base.half_width + self.settings.fit_tolerance:
            return None

        x_span = max(base.half_length - lhx, 0.0)
        z_span = max(base.half_width - lhz, 0.0)
        clamped = Vec3(
            min(max(target.x, base.x - x_span), base.x + x_span),
            y,
            min(max(target.z, base.z - z_span), base.z + z_span),
        )
        if fits_within(lead.footprint_at(clamped), base, self.settings.fit_tolerance) \
                and self.validator.is_valid(moving, clamped, snapshot):
            return DropResult(clamped, True, stacked_on=surface.id, outside=outside)

        found = self._search_surface(moving, clamped, surface, x_span, z_span, snapshot)
        if found is not None:
            return DropResult(found, True, stacked_on=surface.id, outside=outside)

        logger.debug(f"No valid spot on top of {surface.id} for {lead.id}")
        return DropResult(clamped, False, stacked_on=surface.id, outside=outside)

    def _search_surface(self, moving: Sequence[CargoUnit], start: Vec3, surface: CargoUnit,
                        x_span: float, z_span: float,
                        snapshot: Sequence[CargoUnit]) -> Optional[Vec3]:
        """Nearest valid spot on the same top surface, on a small grid around `start`."""
        base = surface.footprint_at()
        step = self.settings.surface_search_step
        radius = max(base.half_length, base.half_width) * 0.5
        n = int(radius / step)
        offsets = [
            (i * step, k * step)
            for i in range(-n, n + 1)
            for k in range(-n, n + 1)
            if (i, k) != (0, 0)
        ]
        offsets.sort(key=lambda o: o[0] * o[0] + o[1] * o[1])
        for dx, dz in offsets:
            x = start.x + dx
            z = start.z + dz
            if abs(x - base.x) > x_span + 1e-9 or abs(z - base.z) > z_span + 1e-9:
                continue
            candidate = Vec3(x, start.y, z)
            if self.validator.is_valid(moving, candidate, snapshot):
                return candidate
        return None

    def _snap(self, lead: CargoUnit, pos: Vec3, others: Sequence[CargoUnit],
              floor: float) -> Optional[Vec3]:
        """Flush position against the nearest same-floor neighbour, if one is close."""
        vtol = self.settings.vertical_tolerance
        threshold = self.settings.roll_snap_threshold if lead.is_vertical_roll else self.settings.snap_threshold
        lhx, _, lhz = lead.half_extents

        best: Optional[CargoUnit] = None
        best_gap = math.inf
        for other in others:
            if abs(other.bottom_at() - floor) > vtol:
                continue
            o = other.at()
            ohx, _, ohz = other.half_extents
            if lead.is_vertical_roll and other.is_vertical_roll:
                gap = pos.distance_xz(o) - (lead.radius + other.radius)
            else:
                gap = max(abs(pos.x - o.x) - (lhx + ohx), abs(pos.z - o.z) - (lhz + ohz))
            if gap <= threshold and gap < best_gap:
                best, best_gap = other, gap

        if best is None:
            return None

        o = best.at()
        if lead.is_vertical_roll and best.is_vertical_roll:
            if abs(best_gap) > self.settings.roll_tangency_snap:
                return None
            dist = pos.distance_xz(o)
            if dist < 1e-9:
                return None
            reach = lead.radius + best.radius
            return Vec3(o.x + (pos.x - o.x) / dist * reach, pos.y, o.z + (pos.z - o.z) / dist * reach)

        ohx, _, ohz = best.half_extents
        dx = pos.x - o.x
        dz = pos.z - o.z
        x, z = pos.x, pos.z
        if abs(dx) >= abs(dz):
            x = o.x + math.copysign(lhx + ohx, dx if dx != 0 else 1.0)
            if abs(dz) <= threshold:
                z = o.z
        else:
            z = o.z + math.copysign(lhz + ohz, dz if dz != 0 else 1.0)
            if abs(dx) <= threshold:
                x = o.x
        return Vec3(x, pos.y, z)
