from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

import numpy as np
import numba

from .entities import CargoUnit, Footprint, Vec3

# Row layout for placed units: [x, y, z, half_x, half_y, half_z, round_flag]
ROW_WIDTH = 7


@numba.njit(cache=True)
def footprints_overlap_numba(ax: float, az: float, ahx: float, ahz: float,
                             bx: float, bz: float, bhx: float, bhz: float,
                             tol: float) -> bool:
    """Rectangles centred at (ax, az) and (bx, bz) overlap by more than tol on both axes."""
    return abs(ax - bx) < ahx + bhx - tol and abs(az - bz) < ahz + bhz - tol


@numba.njit(cache=True)
def circles_overlap_numba(ax: float, az: float, ar: float,
                          bx: float, bz: float, br: float,
                          tol: float) -> bool:
    dx = ax - bx
    dz = az - bz
    return math.sqrt(dx * dx + dz * dz) < ar + br - tol


@numba.njit(cache=True)
def vertical_overlap_numba(a_bottom: float, a_top: float,
                           b_bottom: float, b_top: float,
                           tol: float) -> bool:
    return a_bottom < b_top - tol and a_top > b_bottom + tol


@numba.njit(cache=True)
def check_bounds_within_container(x: float, y: float, z: float,
                                  hx: float, hy: float, hz: float,
                                  xmin: float, ymin: float, zmin: float,
                                  xmax: float, ymax: float, zmax: float,
                                  tol: float) -> bool:
    """Check if a box centred at (x, y, z) with half extents (hx, hy, hz) fits the bounds."""
    if x - hx < xmin - tol or y - hy < ymin - tol or z - hz < zmin - tol:
        return False
    if x + hx > xmax + tol:
        return False
    if y + hy > ymax + tol:
        return False
    if z + hz > zmax + tol:
        return False
    return True


@numba.jit(nopython=True)
def first_collision_numba(
    row: np.ndarray,
    placed_units_data: np.ndarray,
    contact_tol: float,
    vertical_tol: float,
) -> int:
    """
    Index of the first placed unit the candidate row collides with, or -1.

    Two units collide when their footprints overlap (circles when both are
    vertical rolls, rectangles otherwise) AND their vertical extents overlap.
    Touching faces never count as a collision.
    """
    x1, y1, z1, hx1, hy1, hz1, round1 = row[0], row[1], row[2], row[3], row[4], row[5], row[6]

    for i in range(placed_units_data.shape[0]):
        x2, y2, z2 = placed_units_data[i, 0], placed_units_data[i, 1], placed_units_data[i, 2]
        hx2, hy2, hz2 = placed_units_data[i, 3], placed_units_data[i, 4], placed_units_data[i, 5]
        round2 = placed_units_data[i, 6]

        if not vertical_overlap_numba(y1 - hy1, y1 + hy1, y2 - hy2, y2 + hy2, vertical_tol):
            continue

        if round1 > 0.5 and round2 > 0.5:
            if circles_overlap_numba(x1, z1, hx1, x2, z2, hx2, contact_tol):
                return i
        elif footprints_overlap_numba(x1, z1, hx1, hz1, x2, z2, hx2, hz2, contact_tol):
            return i
    return -1


@numba.jit(nopython=True)
def first_box_collision_numba(
    row: np.ndarray,
    placed_units_data: np.ndarray,
    tol: float,
) -> int:
    """Plain AABB overlap on all three axes; used for coils seated in a groove."""
    for i in range(placed_units_data.shape[0]):
        if (
            abs(row[0] - placed_units_data[i, 0]) < row[3] + placed_units_data[i, 3] - tol
            and abs(row[1] - placed_units_data[i, 1]) < row[4] + placed_units_data[i, 4] - tol
            and abs(row[2] - placed_units_data[i, 2]) < row[5] + placed_units_data[i, 5] - tol
        ):
            return i
    return -1


def pack_rows(units: Sequence[CargoUnit]) -> np.ndarray:
    """Stack placed units into the kernel row layout."""
    placed = [u for u in units if u.position is not None]
    if not placed:
        return np.empty((0, ROW_WIDTH), dtype=np.float64)
    return np.vstack([u.as_row() for u in placed])


def boxes_overlap(a_min: Vec3, a_max: Vec3, b_min: Vec3, b_max: Vec3, tol: float = 0.001) -> bool:
    return (
        a_min.x < b_max.x - tol and a_max.x > b_min.x + tol
        and a_min.y < b_max.y - tol and a_max.y > b_min.y + tol
        and a_min.z < b_max.z - tol and a_max.z > b_min.z + tol
    )


def footprints_overlap(a: Footprint, b: Footprint, tol: float = 0.001) -> bool:
    return footprints_overlap_numba(a.x, a.z, a.half_length, a.half_width,
                                    b.x, b.z, b.half_length, b.half_width, tol)


def circles_overlap(a_center: Tuple[float, float], a_radius: float,
                    b_center: Tuple[float, float], b_radius: float,
                    tol: float = 0.001) -> bool:
    return circles_overlap_numba(a_center[0], a_center[1], a_radius,
                                 b_center[0], b_center[1], b_radius, tol)


def vertical_overlap(a_bottom: float, a_top: float, b_bottom: float, b_top: float,
                     tol: float = 0.01) -> bool:
    return vertical_overlap_numba(a_bottom, a_top, b_bottom, b_top, tol)


def fits_within(inner: Footprint, outer: Footprint, tol: float = 0.01) -> bool:
    """True when `inner` lies completely inside `outer` (up to tol on each edge)."""
    return (
        inner.x_min >= outer.x_min - tol
        and inner.x_max <= outer.x_max + tol
        and inner.z_min >= outer.z_min - tol
        and inner.z_max <= outer.z_max + tol
    )


def overlap_area(a: Footprint, b: Footprint) -> float:
    dx = min(a.x_max, b.x_max) - max(a.x_min, b.x_min)
    dz = min(a.z_max, b.z_max) - max(a.z_min, b.z_min)
    if dx <= 0 or dz <= 0:
        return 0.0
    return dx * dz


def within_bounds(unit: CargoUnit, position: Vec3, bounds_min: Vec3, bounds_max: Vec3,
                  tol: float = 0.001) -> bool:
    hx, hy, hz = unit.half_extents
    return check_bounds_within_container(
        position.x, position.y, position.z, hx, hy, hz,
        bounds_min.x, bounds_min.y, bounds_min.z,
        bounds_max.x, bounds_max.y, bounds_max.z,
        tol,
    )


def units_collide(a: CargoUnit, a_pos: Vec3, b: CargoUnit, b_pos: Vec3,
                  contact_tol: float = 0.001, vertical_tol: float = 0.01) -> bool:
    if not vertical_overlap(a.bottom_at(a_pos), a.top_at(a_pos),
                            b.bottom_at(b_pos), b.top_at(b_pos), vertical_tol):
        return False
    if a.is_vertical_roll and b.is_vertical_roll:
        return circles_overlap((a_pos.x, a_pos.z), a.radius, (b_pos.x, b_pos.z), b.radius, contact_tol)
    return footprints_overlap(a.footprint_at(a_pos), b.footprint_at(b_pos), contact_tol)


def first_collision(unit: CargoUnit, position: Vec3, others: Sequence[CargoUnit],
                    contact_tol: float = 0.001, vertical_tol: float = 0.01) -> Optional[CargoUnit]:
    """First unit in `others` that the candidate would collide with."""
    placed: List[CargoUnit] = [o for o in others if o.position is not None]
    if not placed:
        return None
    idx = first_collision_numba(unit.as_row(position), pack_rows(placed), contact_tol, vertical_tol)
    return placed[idx] if idx >= 0 else None
