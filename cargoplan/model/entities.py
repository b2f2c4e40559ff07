from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

import numpy as np

EPS = 1e-6

ROTATION_ANGLES = (0, 90, 180, -90)


class CargoPlanError(Exception):
    """Base class for errors raised by the planner session."""


class UnknownUnitError(CargoPlanError, KeyError):
    pass


class DuplicateUnitError(CargoPlanError):
    pass


class NotRotatableError(CargoPlanError):
    pass


def normalize_angle(angle: int) -> int:
    """Fold an angle in degrees onto one of 0, 90, 180, -90."""
    a = int(round(angle)) % 360
    if a not in (0, 90, 180, 270):
        raise ValueError(f"Only quarter turns are supported, got {angle}")
    return -90 if a == 270 else a


def getRotDim(length: float, width: float, height: float, rotation_y: int) -> Tuple[float, float, float]:
    """Oriented (x, z, y) extents for a quarter-turn about the vertical axis."""
    if rotation_y in (90, -90):
        return width, length, height
    return length, width, height


@dataclass(frozen=True)
class Vec3:
    x: float
    y: float
    z: float

    def __add__(self, other: "Vec3") -> "Vec3":
        return Vec3(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "Vec3") -> "Vec3":
        return Vec3(self.x - other.x, self.y - other.y, self.z - other.z)

    def with_y(self, y: float) -> "Vec3":
        return Vec3(self.x, y, self.z)

    def lerp(self, other: "Vec3", t: float) -> "Vec3":
        return Vec3(
            self.x + (other.x - self.x) * t,
            self.y + (other.y - self.y) * t,
            self.z + (other.z - self.z) * t,
        )

    def distance_xz(self, other: "Vec3") -> float:
        return math.hypot(self.x - other.x, self.z - other.z)

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)


@dataclass(frozen=True)
class Footprint:
    """Axis-aligned rectangle on the floor plane, centred at (x, z)."""

    x: float
    z: float
    half_length: float
    half_width: float

    @property
    def x_min(self) -> float:
        return self.x - self.half_length

    @property
    def x_max(self) -> float:
        return self.x + self.half_length

    @property
    def z_min(self) -> float:
        return self.z - self.half_width

    @property
    def z_max(self) -> float:
        return self.z + self.half_width

    @property
    def area(self) -> float:
        return 4.0 * self.half_length * self.half_width


@dataclass
class CargoUnit:
    id: str
    length: float
    width: float
    height: float
    weight: float
    group_id: Optional[str] = None
    name: str = ""
    unit_type: str = "custom"
    max_stack: int = 0
    max_stack_weight: float = math.inf
    is_roll: bool = False
    is_vertical_roll: bool = False
    fixed_diameter: bool = False
    rotation_y: int = 0
    position: Optional[Vec3] = None
    is_outside: bool = False
    volume: float = field(init=False)

    def __post_init__(self) -> None:
        self.rotation_y = normalize_angle(self.rotation_y)
        if self.max_stack_weight is None or self.max_stack_weight < 0:
            self.max_stack_weight = math.inf
        self.volume = self.length * self.width * self.height

    # -- shape ---------------------------------------------------------------
    @property
    def is_horizontal_roll(self) -> bool:
        return self.is_roll and not self.is_vertical_roll and not self.fixed_diameter

    @property
    def is_rotatable(self) -> bool:
        return not self.fixed_diameter

    @property
    def diameter(self) -> float:
        return self.width

    @property
    def radius(self) -> float:
        return self.width / 2

    @property
    def cylinder_length(self) -> float:
        return self.height if self.is_vertical_roll else self.length

    def dims(self) -> Tuple[float, float, float]:
        """Active (x extent, z extent, height) derived from base dims and rotation."""
        return getRotDim(self.length, self.width, self.height, self.rotation_y)

    @property
    def half_extents(self) -> Tuple[float, float, float]:
        dx, dz, dy = self.dims()
        return dx / 2, dy / 2, dz / 2

    # -- placement helpers ---------------------------------------------------
    def at(self, position: Optional[Vec3] = None) -> Vec3:
        pos = position if position is not None else self.position
        if pos is None:
            raise ValueError(f"Unit {self.id} has no position")
        return pos

    def footprint_at(self, position: Optional[Vec3] = None) -> Footprint:
        pos = self.at(position)
        hx, _, hz = self.half_extents
        return Footprint(pos.x, pos.z, hx, hz)

    def bottom_at(self, position: Optional[Vec3] = None) -> float:
        return self.at(position).y - self.height / 2

    def top_at(self, position: Optional[Vec3] = None) -> float:
        return self.at(position).y + self.height / 2

    def as_row(self, position: Optional[Vec3] = None) -> np.ndarray:
        """Row layout shared with the geometry kernels: centre, half extents, round flag."""
        pos = self.at(position)
        hx, hy, hz = self.half_extents
        return np.array(
            [pos.x, pos.y, pos.z, hx, hy, hz, 1.0 if self.is_vertical_roll else 0.0],
            dtype=np.float64,
        )

    # -- transforms ----------------------------------------------------------
    def moved(self, position: Optional[Vec3]) -> "CargoUnit":
        return replace(self, position=position)

    def rotated(self, angle: int = 90) -> "CargoUnit":
        if not self.is_rotatable:
            raise NotRotatableError(f"Unit {self.id} ({self.unit_type}) cannot be rotated")
        return replace(self, rotation_y=normalize_angle(self.rotation_y + angle))

    def with_roll_orientation(self, vertical: bool) -> "CargoUnit":
        """New unit with the cylinder stood up (d x d x L) or laid down (L x d x d)."""
        if not self.is_roll or self.fixed_diameter:
            raise NotRotatableError(f"Unit {self.id} is not a re-orientable roll")
        if vertical == self.is_vertical_roll:
            return replace(self)
        d = self.diameter
        cyl = self.cylinder_length
        if vertical:
            return replace(self, length=d, width=d, height=cyl, is_vertical_roll=True, rotation_y=0)
        return replace(self, length=cyl, width=d, height=d, is_vertical_roll=False, rotation_y=0)


@dataclass(frozen=True)
class Section:
    """One independently bounded volume of a twin load space (world x range)."""

    x_min: float
    x_max: float
    height: float

    @property
    def length(self) -> float:
        return self.x_max - self.x_min


@dataclass(frozen=True)
class Groove:
    width: float
    depth: float
    length: float
    start_x: float  # measured from the load-space front wall
    center_z: float = 0.0


@dataclass(frozen=True)
class LoadSpace:
    length: float
    width: float
    height: float
    floor_y: float = 1.1
    sections: Tuple[Section, ...] = ()
    groove: Optional[Groove] = None
    max_load: float = math.inf
    name: str = ""

    @property
    def min(self) -> Vec3:
        return Vec3(-self.length / 2, self.floor_y, -self.width / 2)

    @property
    def max(self) -> Vec3:
        return Vec3(self.length / 2, self.floor_y + self.height, self.width / 2)

    @property
    def bounds(self) -> Tuple[Vec3, Vec3]:
        return self.min, self.max

    @property
    def diagonal(self) -> float:
        return math.hypot(self.length, self.width)

    @property
    def volume(self) -> float:
        if self.sections:
            return sum(s.length * self.width * s.height for s in self.sections)
        return self.length * self.width * self.height

    @property
    def midpoint_x(self) -> float:
        return 0.0

    def as_array(self) -> np.ndarray:
        lo, hi = self.bounds
        return np.array([lo.x, lo.y, lo.z, hi.x, hi.y, hi.z], dtype=np.float64)

    def section_for(self, x_min: float, x_max: float, tol: float = 0.001) -> Optional[Section]:
        for section in self.sections:
            if x_min >= section.x_min - tol and x_max <= section.x_max + tol:
                return section
        return None

    def gap_ranges(self) -> List[Tuple[float, float]]:
        ordered = sorted(self.sections, key=lambda s: s.x_min)
        return [(a.x_max, b.x_min) for a, b in zip(ordered, ordered[1:]) if b.x_min > a.x_max]

    def groove_x_range(self) -> Optional[Tuple[float, float]]:
        if self.groove is None:
            return None
        start = self.min.x + self.groove.start_x
        return start, start + self.groove.length

    def groove_seat_y(self, radius: float) -> float:
        """Centre height of a coil resting in the groove channel."""
        if self.groove is None:
            return self.floor_y + radius
        return self.floor_y - self.groove.depth / 2 + radius

    def is_outside(self, position: Vec3, margin: float = 0.5) -> bool:
        return position.z > self.max.z + margin

    def floor_level(self, outside: bool, ground_level: float = 0.0) -> float:
        return ground_level if outside else self.floor_y

    def x_from_front(self, x: float) -> float:
        return x - self.min.x


@dataclass(frozen=True)
class AxleGroup:
    name: str
    position: float  # metres from the load-space front wall
    max_load: float
    axle_count: int = 1
    role: str = "trailer"  # steer | drive | trailer
    empty_load: Optional[float] = None


@dataclass(frozen=True)
class AxleConfig:
    """
    Axle groups of one vehicle, sorted front to rear.

    ``kingpin`` couples a semitrailer: trailer-role groups and the kingpin carry
    the cargo, and the kingpin load rests on the tractor groups.
    ``trailer_start`` splits a truck and drawbar trailer: cargo at or behind it
    rests only on the trailer-role groups, cargo ahead of it only on the rest.
    Both are metres from the load-space front wall.
    """
    groups: Tuple[AxleGroup, ...]
    empty_weight: float = 0.0
    empty_front_ratio: float = 0.3
    min_drive_share_pct: float = 25.0
    kingpin: Optional[float] = None
    trailer_start: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "groups", tuple(sorted(self.groups, key=lambda g: g.position)))
        if self.has_group_empty_loads:
            object.__setattr__(self, "empty_weight", float(sum(g.empty_load for g in self.groups)))

    @property
    def has_group_empty_loads(self) -> bool:
        return bool(self.groups) and all(g.empty_load is not None for g in self.groups)

    @property
    def trailer_indices(self) -> List[int]:
        return [i for i, g in enumerate(self.groups) if g.role == "trailer"]

    @property
    def tractor_indices(self) -> List[int]:
        return [i for i, g in enumerate(self.groups) if g.role != "trailer"]

    @property
    def positions(self) -> List[float]:
        return [g.position for g in self.groups]

    @property
    def front(self) -> AxleGroup:
        return self.groups[0]

    @property
    def rear(self) -> AxleGroup:
        return self.groups[-1]
