"""
Overflow staging area beside the vehicle, and gravity settling.

Staging rows start ``staging_offset`` beyond the far side wall (+z), each row
``staging_row_pitch`` apart; slots advance along x in ``staging_x_step``
increments over the load-space length plus ``staging_extra_length``.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence

from ..config import DEFAULT_SETTINGS, EngineSettings
from .entities import CargoUnit, Footprint, LoadSpace, Vec3
from .geometry import footprints_overlap

logger = logging.getLogger(__name__)


def staging_slot(
    units: Sequence[CargoUnit],
    snapshot: Sequence[CargoUnit],
    load_space: LoadSpace,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> Vec3:
    """
    Free lead position in the staging area for `units` (lead first, the rest
    stacked above it keep their offsets). Falls back to the first slot when
    every row is taken.
    """
    lead = units[0]
    moving_ids = {u.id for u in units}
    occupied = [
        u.footprint_at() for u in snapshot
        if u.id not in moving_ids and u.position is not None
        and load_space.is_outside(u.position, settings.outside_margin)
    ]
    hx, _, hz = lead.half_extents
    for member in units[1:]:
        mhx, _, mhz = member.half_extents
        hx, hz = max(hx, mhx), max(hz, mhz)

    lo, hi = load_space.bounds
    y = settings.ground_level + lead.height / 2
    z0 = hi.z + settings.staging_offset + hz
    x0 = lo.x + hx
    x_end = hi.x + settings.staging_extra_length
    first: Optional[Vec3] = None

    for row in range(settings.staging_max_rows):
        z = z0 + row * settings.staging_row_pitch
        x = x0
        while x + hx <= x_end:
            fp = Footprint(x, z, hx + settings.staging_spacing, hz + settings.staging_spacing)
            if first is None:
                first = Vec3(x, y, z)
            if not any(footprints_overlap(fp, other, 0.0) for other in occupied):
                return Vec3(x, y, z)
            x += settings.staging_x_step

    logger.info(f"Staging area full, stacking {lead.id} on the first slot")
    return first if first is not None else Vec3(x0, y, z0)


def staging_placements(
    units: Sequence[CargoUnit],
    snapshot: Sequence[CargoUnit],
    load_space: LoadSpace,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> Dict[str, Vec3]:
    """Positions for a column of units moved to staging: stacked bottom to top."""
    slot = staging_slot(units, snapshot, load_space, settings)
    placements: Dict[str, Vec3] = {}
    bottom = settings.ground_level
    for unit in units:
        placements[unit.id] = Vec3(slot.x, bottom + unit.height / 2, slot.z)
        bottom += unit.height
    return placements


def settle(
    units: Sequence[CargoUnit],
    snapshot: Sequence[CargoUnit],
    load_space: LoadSpace,
    settings: EngineSettings = DEFAULT_SETTINGS,
) -> Dict[str, Vec3]:
    """
    Drop each unit onto the highest surface under it (or the floor).

    Units are processed bottom-up so a unit lands on the already-settled
    positions of the units below it. Returns only the positions that changed.
    """
    current: Dict[str, CargoUnit] = {u.id: u for u in snapshot if u.position is not None}
    moved: Dict[str, Vec3] = {}

    for unit in sorted(units, key=lambda u: u.bottom_at()):
        unit = current.get(unit.id, unit)
        pos = unit.at()
        outside = load_space.is_outside(pos, settings.outside_margin)
        if unit.fixed_diameter and load_space.groove is not None and not outside:
            rest = load_space.groove_seat_y(unit.radius) - unit.height / 2
        else:
            rest = load_space.floor_level(outside, settings.ground_level)
        bottom = unit.bottom_at()
        fp = unit.footprint_at()
        for other in current.values():
            if other.id == unit.id:
                continue
            top = other.top_at()
            if top <= bottom + settings.vertical_tolerance and top > rest \
                    and footprints_overlap(fp, other.footprint_at(), settings.contact_tolerance):
                rest = top
        new_pos = pos.with_y(rest + unit.height / 2)
        if abs(new_pos.y - pos.y) > 1e-9:
            moved[unit.id] = new_pos
            current[unit.id] = unit.moved(new_pos)
            logger.debug(f"Unit {unit.id} settled from y={pos.y:.3f} to y={new_pos.y:.3f}")
    return moved
