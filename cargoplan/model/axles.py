"""
Axle Load Model.

Static lever rule: a cargo unit's weight is shared between the two axle groups
that bracket its longitudinal position, in inverse proportion to its distance
from each. A unit at or beyond an end group puts its full weight on that group.

Coupled vehicles apply the rule per body. A semitrailer levers cargo between
the kingpin and the trailer groups, then levers the kingpin load over the
tractor groups. A truck with a drawbar trailer sends cargo from
``trailer_start`` rearward to the trailer groups only.

The vehicle's empty weight comes from the per-group ``empty_load`` when every
group has one. Otherwise it is pre-split: ``empty_front_ratio`` on the front
group, the remainder over the other groups in proportion to their rating.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from .entities import AxleConfig, CargoUnit, LoadSpace, Vec3

logger = logging.getLogger(__name__)

WARNING_PCT = 90.0
DANGER_PCT = 100.0

HEAVY_KG = 500.0
LIGHT_KG = 100.0


def load_tier(load: float, max_load: float) -> str:
    if max_load <= 0:
        return "danger" if load > 0 else "normal"
    pct = load / max_load * 100
    if pct > DANGER_PCT:
        return "danger"
    if pct > WARNING_PCT:
        return "warning"
    return "normal"


def distribute_weight(x: float, weight: float, positions: Sequence[float]) -> np.ndarray:
    """Share of `weight` at longitudinal `x` carried by each axle group (sorted positions)."""
    shares = np.zeros(len(positions), dtype=np.float64)
    if not len(positions):
        return shares
    if x <= positions[0]:
        shares[0] = weight
        return shares
    if x >= positions[-1]:
        shares[-1] = weight
        return shares
    i = int(np.searchsorted(positions, x, side="right")) - 1
    span = positions[i + 1] - positions[i]
    rear_part = weight * (x - positions[i]) / span
    shares[i] = weight - rear_part
    shares[i + 1] = rear_part
    return shares


@dataclass(frozen=True)
class AxleLoad:
    name: str
    role: str
    load: float
    max_load: float
    percentage: float
    tier: str
    cargo_load: float
    empty_load: float
    axle_count: int = 1


@dataclass
class AxleLoadReport:
    axles: List[AxleLoad]
    cargo_weight: float
    total_weight: float
    center_of_gravity: Optional[Vec3] = None
    drive_share_pct: Optional[float] = None
    drive_share_ok: bool = True
    warnings: List[str] = field(default_factory=list)

    def by_name(self) -> Dict[str, AxleLoad]:
        return {a.name: a for a in self.axles}

    @property
    def worst_tier(self) -> str:
        order = {"normal": 0, "warning": 1, "danger": 2}
        return max((a.tier for a in self.axles), key=order.__getitem__, default="normal")


@dataclass(frozen=True)
class LoadSuggestion:
    unit_id: str
    weight_class: str
    offset: float
    x: float


class AxleLoadModel:
    def __init__(self, axle_config: AxleConfig, load_space: LoadSpace):
        self.axle_config = axle_config
        self.load_space = load_space

    def in_load_space(self, unit: CargoUnit) -> bool:
        return unit.position is not None and not unit.is_outside and not self.load_space.is_outside(unit.position)

    def empty_split(self) -> np.ndarray:
        groups = self.axle_config.groups
        if self.axle_config.has_group_empty_loads:
            return np.array([g.empty_load for g in groups], dtype=np.float64)
        split = np.zeros(len(groups), dtype=np.float64)
        empty = self.axle_config.empty_weight
        if len(groups) == 1:
            split[0] = empty
            return split
        split[0] = empty * self.axle_config.empty_front_ratio
        ratings = np.array([g.max_load for g in groups[1:]], dtype=np.float64)
        split[1:] = empty * (1 - self.axle_config.empty_front_ratio) * ratings / ratings.sum()
        return split

    def unit_shares(self, x: float, weight: float) -> np.ndarray:
        """Weight at `x` (metres from the front wall) per axle group."""
        config = self.axle_config
        positions = config.positions
        if config.kingpin is None and config.trailer_start is None:
            return distribute_weight(x, weight, positions)

        shares = np.zeros(len(positions), dtype=np.float64)
        trailer, tractor = config.trailer_indices, config.tractor_indices
        if config.kingpin is not None:
            lever = distribute_weight(x, weight, [config.kingpin] + [positions[i] for i in trailer])
            shares[trailer] = lever[1:]
            shares[tractor] = distribute_weight(config.kingpin, lever[0], [positions[i] for i in tractor])
            return shares

        carriers = trailer if x >= config.trailer_start else tractor
        shares[carriers] = distribute_weight(x, weight, [positions[i] for i in carriers])
        return shares

    def cargo_split(self, units: Sequence[CargoUnit]) -> np.ndarray:
        loads = np.zeros(len(self.axle_config.groups), dtype=np.float64)
        for unit in units:
            if not self.in_load_space(unit):
                continue
            loads += self.unit_shares(self.load_space.x_from_front(unit.position.x), unit.weight)
        return loads

    def calculate(self, units: Sequence[CargoUnit]) -> AxleLoadReport:
        placed = [u for u in units if self.in_load_space(u)]
        cargo = self.cargo_split(placed)
        empty = self.empty_split()
        totals = cargo + empty

        axles: List[AxleLoad] = []
        for i, group in enumerate(self.axle_config.groups):
            load = float(totals[i])
            pct = load / group.max_load * 100 if group.max_load > 0 else 0.0
            axles.append(AxleLoad(
                name=group.name,
                role=group.role,
                load=load,
                max_load=group.max_load,
                percentage=pct,
                tier=load_tier(load, group.max_load),
                cargo_load=float(cargo[i]),
                empty_load=float(empty[i]),
                axle_count=group.axle_count,
            ))

        cargo_weight = float(sum(u.weight for u in placed))
        total_weight = float(totals.sum())
        report = AxleLoadReport(axles=axles, cargo_weight=cargo_weight, total_weight=total_weight)

        if placed and cargo_weight > 0:
            w = np.array([u.weight for u in placed], dtype=np.float64)
            p = np.array([u.position.as_tuple() for u in placed], dtype=np.float64)
            cx, cy, cz = (p * w[:, None]).sum(axis=0) / w.sum()
            report.center_of_gravity = Vec3(float(cx), float(cy), float(cz))

        drive = [a for a in axles if a.role == "drive"]
        if drive and total_weight > 0:
            share = sum(a.load for a in drive) / total_weight * 100
            report.drive_share_pct = share
            report.drive_share_ok = share >= self.axle_config.min_drive_share_pct
            if not report.drive_share_ok:
                report.warnings.append(
                    f"Drive axle share {share:.1f}% below minimum {self.axle_config.min_drive_share_pct:.0f}%"
                )
        for a in axles:
            if a.tier == "danger":
                report.warnings.append(f"{a.name} axle overloaded ({a.percentage:.1f}%)")
        return report

    def optimize_load_distribution(self, units: Sequence[CargoUnit]) -> List[LoadSuggestion]:
        """
        Suggested longitudinal slot for each unplaced unit, heaviest first.

        Heavy units go 1 m behind the midpoint while the rear group stays under
        90 % of its rating, otherwise 1 m ahead; medium units go 0.5 m toward
        whichever end currently carries less cargo; light units fill the middle.
        The running front/rear tallies count only the suggested cargo.
        """
        rear = self.axle_config.rear
        front_load = rear_load = 0.0
        mid = self.load_space.midpoint_x

        suggestions: List[LoadSuggestion] = []
        for unit in sorted(units, key=lambda u: u.weight, reverse=True):
            w = unit.weight
            if w > HEAVY_KG:
                if rear_load < rear.max_load * 0.9:
                    offset, rear_load, front_load = 1.0, rear_load + w * 0.6, front_load + w * 0.4
                else:
                    offset, front_load, rear_load = -1.0, front_load + w * 0.6, rear_load + w * 0.4
                weight_class = "heavy"
            elif w >= LIGHT_KG:
                if front_load < rear_load:
                    offset, front_load, rear_load = -0.5, front_load + w * 0.55, rear_load + w * 0.45
                else:
                    offset, rear_load, front_load = 0.5, rear_load + w * 0.55, front_load + w * 0.45
                weight_class = "medium"
            else:
                offset, front_load, rear_load = 0.0, front_load + w * 0.5, rear_load + w * 0.5
                weight_class = "light"
            suggestions.append(LoadSuggestion(unit.id, weight_class, offset, mid + offset))
        logger.debug(
            f"Load distribution plan for {len(suggestions)} units: front {front_load:.0f} kg, rear {rear_load:.0f} kg"
        )
        return suggestions
