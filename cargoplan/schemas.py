"""
Boundary models for vehicle, axle and cargo configuration.

Everything user-entered passes through these pydantic models before it reaches
the engine; the ``prepare_*`` converters turn validated models into the frozen
entities the engine works with. Field aliases accept the camelCase names used
by saved load plans.
"""

from __future__ import annotations

import math
from typing import List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from .model.entities import (
    AxleConfig,
    AxleGroup,
    CargoUnit,
    Groove,
    LoadSpace,
    ROTATION_ANGLES,
    Section,
    Vec3,
)


def to_camel(string: str) -> str:
    """Helper function to convert snake_case to camelCase"""
    parts = string.split("_")
    return parts[0] + "".join(word.capitalize() for word in parts[1:])


class SpecBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, frozen=True)


class Vec3Spec(SpecBase):
    x: float
    y: float
    z: float


# ----Cargo-----
class CargoUnitSpec(SpecBase):
    id: str
    group_id: Optional[str] = None
    name: str = ""
    unit_type: str = Field(default="custom", validation_alias=AliasChoices("unit_type", "unitType", "type"))
    length: float = Field(gt=0)
    width: float = Field(gt=0)
    height: float = Field(gt=0)
    weight: float = Field(gt=0)
    max_stack: int = Field(default=0, ge=0)
    max_stack_weight: Optional[float] = Field(default=None, ge=0)
    is_roll: bool = False
    is_vertical_roll: bool = False
    fixed_diameter: bool = False
    rotation_y: int = 0
    position: Optional[Vec3Spec] = None

    @field_validator("rotation_y")
    @classmethod
    def quarter_turn(cls, value: int) -> int:
        folded = value % 360
        if folded not in (0, 90, 180, 270):
            raise ValueError(f"rotation must be one of {ROTATION_ANGLES}")
        return -90 if folded == 270 else folded

    @model_validator(mode="after")
    def roll_flags(self) -> "CargoUnitSpec":
        if (self.is_vertical_roll or self.fixed_diameter) and not self.is_roll:
            raise ValueError("is_vertical_roll / fixed_diameter require is_roll")
        if self.is_vertical_roll and self.fixed_diameter:
            raise ValueError("a fixed-diameter coil lies horizontally")
        if self.is_vertical_roll and abs(self.length - self.width) > 1e-6:
            raise ValueError("a vertical roll needs a circular footprint (length == width)")
        return self


# ----Vehicle-----
class SectionSpec(SpecBase):
    length: float = Field(gt=0)
    height: float = Field(gt=0)


class GrooveSpec(SpecBase):
    width: float = Field(gt=0)
    depth: float = Field(gt=0)
    length: float = Field(gt=0)
    start_x: float = Field(ge=0)


class LoadSpaceSpec(SpecBase):
    name: str = ""
    length: float = Field(gt=0)
    width: float = Field(gt=0)
    height: float = Field(gt=0)
    floor_y: float = Field(default=1.1, ge=0, validation_alias=AliasChoices("floor_y", "floorY", "trailerHeight"))
    max_load: Optional[float] = Field(default=None, gt=0)
    sections: List[SectionSpec] = Field(default_factory=list)
    section_gap: float = Field(default=0.5, ge=0)
    groove: Optional[GrooveSpec] = None

    @model_validator(mode="after")
    def layout_fits(self) -> "LoadSpaceSpec":
        if self.sections:
            if len(self.sections) < 2:
                raise ValueError("a sectioned load space needs at least two sections")
            span = sum(s.length for s in self.sections) + self.section_gap * (len(self.sections) - 1)
            if abs(span - self.length) > 1e-6:
                raise ValueError(f"sections and gaps span {span:.3f} m but length is {self.length:.3f} m")
            if any(s.height > self.height + 1e-6 for s in self.sections):
                raise ValueError("section taller than the load space")
        if self.groove is not None:
            if self.groove.start_x + self.groove.length > self.length + 1e-6:
                raise ValueError("groove runs past the end of the load space")
            if self.groove.width > self.width:
                raise ValueError("groove wider than the load space")
        return self


class AxleGroupSpec(SpecBase):
    name: str
    position: float
    max_load: float = Field(gt=0)
    axle_count: int = Field(default=1, ge=1)
    role: Literal["steer", "drive", "trailer"] = "trailer"
    empty_load: Optional[float] = Field(default=None, ge=0)


class AxleConfigSpec(SpecBase):
    groups: List[AxleGroupSpec] = Field(min_length=1)
    empty_weight: float = Field(default=0.0, ge=0)
    empty_front_ratio: float = Field(default=0.3, ge=0, le=1)
    min_drive_share_pct: float = Field(default=25.0, ge=0, le=100)
    kingpin: Optional[float] = None
    trailer_start: Optional[float] = None

    @field_validator("groups")
    @classmethod
    def distinct_positions(cls, groups: List[AxleGroupSpec]) -> List[AxleGroupSpec]:
        positions = sorted(g.position for g in groups)
        if any(b - a < 1e-6 for a, b in zip(positions, positions[1:])):
            raise ValueError("axle groups must sit at distinct positions")
        names = [g.name for g in groups]
        if len(set(names)) != len(names):
            raise ValueError("axle group names must be unique")
        return groups

    @model_validator(mode="after")
    def coupling(self) -> "AxleConfigSpec":
        if self.kingpin is None and self.trailer_start is None:
            return self
        if self.kingpin is not None and self.trailer_start is not None:
            raise ValueError("a vehicle has either a kingpin or a trailer start, not both")
        trailer = [g.position for g in self.groups if g.role == "trailer"]
        tractor = [g.position for g in self.groups if g.role != "trailer"]
        if not trailer or not tractor:
            raise ValueError("a coupled vehicle needs trailer and tractor axle groups")
        point = self.kingpin if self.kingpin is not None else self.trailer_start
        if min(trailer) <= point:
            raise ValueError("trailer axle groups must sit behind the coupling point")
        if self.kingpin is not None and not min(tractor) <= self.kingpin <= max(tractor):
            raise ValueError("the kingpin must sit between the tractor axle groups")
        return self


def prepare_unit(spec: CargoUnitSpec) -> CargoUnit:
    return CargoUnit(
        id=spec.id,
        group_id=spec.group_id,
        name=spec.name,
        unit_type=spec.unit_type,
        length=spec.length,
        width=spec.width,
        height=spec.height,
        weight=spec.weight,
        max_stack=spec.max_stack,
        max_stack_weight=math.inf if spec.max_stack_weight is None else spec.max_stack_weight,
        is_roll=spec.is_roll,
        is_vertical_roll=spec.is_vertical_roll,
        fixed_diameter=spec.fixed_diameter,
        rotation_y=spec.rotation_y,
        position=Vec3(spec.position.x, spec.position.y, spec.position.z) if spec.position else None,
    )


def prepare_load_space(spec: LoadSpaceSpec) -> LoadSpace:
    sections: List[Section] = []
    x = -spec.length / 2
    for section in spec.sections:
        sections.append(Section(x_min=x, x_max=x + section.length, height=section.height))
        x += section.length + spec.section_gap

    groove = None
    if spec.groove is not None:
        groove = Groove(
            width=spec.groove.width,
            depth=spec.groove.depth,
            length=spec.groove.length,
            start_x=spec.groove.start_x,
        )

    return LoadSpace(
        name=spec.name,
        length=spec.length,
        width=spec.width,
        height=spec.height,
        floor_y=spec.floor_y,
        sections=tuple(sections),
        groove=groove,
        max_load=spec.max_load if spec.max_load is not None else math.inf,
    )


def prepare_axle_config(spec: AxleConfigSpec) -> AxleConfig:
    return AxleConfig(
        groups=tuple(
            AxleGroup(
                name=g.name,
                position=g.position,
                max_load=g.max_load,
                axle_count=g.axle_count,
                role=g.role,
                empty_load=g.empty_load,
            )
            for g in spec.groups
        ),
        empty_weight=spec.empty_weight,
        empty_front_ratio=spec.empty_front_ratio,
        min_drive_share_pct=spec.min_drive_share_pct,
        kingpin=spec.kingpin,
        trailer_start=spec.trailer_start,
    )
