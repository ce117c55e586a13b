"""
Action validation for Axiom City.

``validate`` is the single gate for every BUILD and DEMOLISH request,
whether it comes from a player over HTTP or from the agent arbiter. It
never raises for an illegal move: it returns a ``Rejected`` carrying a
typed reason. An ``Accepted`` result carries the new grid and stats, with
exactly one tile changed and the cost deducted.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Union

from axiom.core.buildings import BUILDINGS, BuildingType, get_config
from axiom.core.grid import Grid
from axiom.core.stats import CityStats


class RejectionReason(str, Enum):
    OUT_OF_BOUNDS = "out_of_bounds"
    LOCKED_REGION = "locked_region"
    WATER_REQUIRES_BRIDGE = "water_requires_bridge"
    BRIDGE_REQUIRES_WATER = "bridge_requires_water"
    TILE_OCCUPIED = "tile_occupied"
    NOTHING_TO_DEMOLISH = "nothing_to_demolish"
    NOT_BUILDABLE = "not_buildable"
    LIMIT_REACHED = "limit_reached"
    INSUFFICIENT_FUNDS = "insufficient_funds"


@dataclass(frozen=True)
class BuildAction:
    building_type: BuildingType
    x: int
    y: int


@dataclass(frozen=True)
class DemolishAction:
    x: int
    y: int


Action = Union[BuildAction, DemolishAction]


@dataclass(frozen=True)
class Accepted:
    """A legal move, already applied to fresh copies of grid and stats."""

    grid: Grid
    stats: CityStats
    cost: int
    previous_type: BuildingType
    new_type: BuildingType

    accepted = True


@dataclass(frozen=True)
class Rejected:
    reason: RejectionReason
    detail: str = ""

    accepted = False


ValidationResult = Union[Accepted, Rejected]


def validate(
    grid: Grid,
    stats: CityStats,
    op: Action,
    *,
    demolish_cost: int = 5,
    actor: str = "SYSTEM",
    now: float = 0.0,
) -> ValidationResult:
    """Check a build or demolish request against grid and treasury rules.

    Args:
        grid: Current grid snapshot (not modified).
        stats: Current stats snapshot (not modified).
        op: The requested move.
        demolish_cost: Flat fee for a demolition.
        actor: Recorded as ``placed_by`` on the changed tile.
        now: Recorded as ``placed_at`` on the changed tile.

    Returns:
        ``Accepted`` with the new grid/stats, or ``Rejected`` with a reason.
    """
    if not grid.in_bounds(op.x, op.y):
        return Rejected(
            RejectionReason.OUT_OF_BOUNDS,
            f"({op.x}, {op.y}) is outside the {grid.width}x{grid.height} grid",
        )
    if isinstance(op, DemolishAction):
        return _validate_demolish(grid, stats, op, demolish_cost, actor, now)
    return _validate_build(grid, stats, op, actor, now)


def _validate_build(
    grid: Grid,
    stats: CityStats,
    op: BuildAction,
    actor: str,
    now: float,
) -> ValidationResult:
    btype = op.building_type
    if btype in (BuildingType.NONE, BuildingType.WATER) or btype not in BUILDINGS:
        return Rejected(RejectionReason.NOT_BUILDABLE, f"{btype.value} cannot be built")

    if not grid.is_unlocked(op.x, op.y, stats.unlocked_grid_size):
        return Rejected(
            RejectionReason.LOCKED_REGION,
            f"({op.x}, {op.y}) lies outside the unlocked territory",
        )

    tile = grid.get(op.x, op.y)
    is_bridge = btype == BuildingType.BRIDGE
    if tile.is_water and not is_bridge:
        return Rejected(RejectionReason.WATER_REQUIRES_BRIDGE, "Only bridges go on water")
    if is_bridge and not tile.is_water:
        return Rejected(RejectionReason.BRIDGE_REQUIRES_WATER, "Bridges must span water")
    if not tile.is_water and not tile.is_empty:
        return Rejected(
            RejectionReason.TILE_OCCUPIED,
            f"({op.x}, {op.y}) already holds {tile.building_type.value}",
        )

    config = get_config(btype)
    if config.max_allowed is not None and grid.count(btype) >= config.max_allowed:
        return Rejected(
            RejectionReason.LIMIT_REACHED,
            f"Only {config.max_allowed} {config.name} allowed",
        )
    if stats.money < config.cost:
        return Rejected(
            RejectionReason.INSUFFICIENT_FUNDS,
            f"{config.name} costs {config.cost}, treasury holds {stats.money}",
        )

    new_stats = stats.copy()
    new_stats.money -= config.cost
    if btype == BuildingType.RESEARCH_CENTRE:
        new_stats.research_centre_built = True

    return Accepted(
        grid=grid.with_tile(replace(
            tile, building_type=btype, placed_by=actor, placed_at=now,
        )),
        stats=new_stats,
        cost=config.cost,
        previous_type=tile.building_type,
        new_type=btype,
    )


def _validate_demolish(
    grid: Grid,
    stats: CityStats,
    op: DemolishAction,
    demolish_cost: int,
    actor: str,
    now: float,
) -> ValidationResult:
    tile = grid.get(op.x, op.y)
    if tile.is_empty or tile.is_water:
        return Rejected(
            RejectionReason.NOTHING_TO_DEMOLISH,
            f"({op.x}, {op.y}) holds nothing to demolish",
        )

    # Bridges sit over water; everything else leaves bare land.
    replacement = BuildingType.WATER if tile.building_type == BuildingType.BRIDGE else BuildingType.NONE

    new_stats = stats.copy()
    new_stats.money -= demolish_cost
    if tile.building_type == BuildingType.RESEARCH_CENTRE:
        new_stats.research_centre_built = False

    return Accepted(
        grid=grid.with_tile(replace(
            tile, building_type=replacement, placed_by=actor, placed_at=now,
        )),
        stats=new_stats,
        cost=demolish_cost,
        previous_type=tile.building_type,
        new_type=replacement,
    )
