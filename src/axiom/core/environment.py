"""
Environment stepper: wind and per-tile pollution.

Runs once per tick ahead of the economy. Pollution is generated by
polluting buildings, decays at a rate set by what sits on the tile, and is
carried one tile downwind. The city-wide ``pollution_level`` gauge is the
mean field scaled onto a 0-100 reading.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from axiom.core.buildings import BUILDINGS, BuildingType
from axiom.core.grid import Grid

if TYPE_CHECKING:
    from axiom.core.config import SimulationConfig


@dataclass(frozen=True)
class EnvironmentStep:
    """Output of one environment update."""
    grid: Grid
    wind_direction: tuple[float, float]
    wind_speed: float
    pollution_level: float


# ---------------------------------------------------------------------------
# Wind
# ---------------------------------------------------------------------------

def step_wind(
    direction: tuple[float, float],
    speed: float,
    config: SimulationConfig,
    rng: np.random.Generator,
) -> tuple[tuple[float, float], float]:
    """Random walk of the wind vector.

    Most ticks the wind is unchanged. With ``wind_change_probability`` the
    heading turns by a bounded random angle and the speed is jittered,
    clamped to ``[wind_speed_min, wind_speed_max]``.
    """
    if rng.random() >= config.wind_change_probability:
        return direction, speed

    heading = math.atan2(direction[1], direction[0])
    heading += float(rng.uniform(-config.wind_max_turn, config.wind_max_turn))
    new_speed = speed + float(rng.uniform(-config.wind_speed_jitter, config.wind_speed_jitter))
    new_speed = float(np.clip(new_speed, config.wind_speed_min, config.wind_speed_max))
    return (math.cos(heading), math.sin(heading)), new_speed


# ---------------------------------------------------------------------------
# Pollution
# ---------------------------------------------------------------------------

def _coefficient_array(grid: Grid) -> np.ndarray:
    return np.array(
        [[BUILDINGS[t.building_type].pollution for t in row] for row in grid.rows],
        dtype=float,
    )


def _retention_array(grid: Grid, config: SimulationConfig) -> np.ndarray:
    retention = np.full((grid.height, grid.width), config.pollution_retention)
    retention[grid.type_mask({BuildingType.PARK})] = config.park_retention
    retention[grid.type_mask({BuildingType.WATER})] = config.water_retention
    return retention


def advect(field: np.ndarray, dx: int, dy: int, fraction: float) -> np.ndarray:
    """Move ``fraction`` of every cell's mass to the cell at ``(+dx, +dy)``.

    Mass pushed across the grid edge is dropped. Returns a new array.
    """
    if (dx == 0 and dy == 0) or fraction <= 0:
        return field.copy()

    moved = field * fraction
    result = field - moved
    h, w = field.shape
    src_y = slice(max(0, -dy), min(h, h - dy))
    src_x = slice(max(0, -dx), min(w, w - dx))
    dst_y = slice(max(0, dy), min(h, h + dy))
    dst_x = slice(max(0, dx), min(w, w + dx))
    result[dst_y, dst_x] += moved[src_y, src_x]
    return result


def step_pollution(
    grid: Grid,
    wind_direction: tuple[float, float],
    wind_speed: float,
    config: SimulationConfig,
) -> np.ndarray:
    """Generation, then decay, then advection. Returns the new field."""
    field = grid.pollution_array()

    # (a) generation
    coefficients = _coefficient_array(grid)
    sources = coefficients > 0
    field[sources] += coefficients[sources] * config.pollution_generation_rate
    np.minimum(field, config.pollution_cap, out=field)

    # (b) decay
    field *= _retention_array(grid, config)

    # (c) advection
    dx = int(round(wind_direction[0]))
    dy = int(round(wind_direction[1]))
    field = advect(field, dx, dy, wind_speed * config.advection_rate)

    field[field < config.pollution_floor] = 0.0
    return field


def pollution_level(field: np.ndarray, multiplier: float) -> float:
    """City-wide gauge: mean concentration scaled and capped at 100."""
    if field.size == 0:
        return 0.0
    return float(min(100.0, field.mean() * multiplier))


def step_environment(
    grid: Grid,
    wind_direction: tuple[float, float],
    wind_speed: float,
    config: SimulationConfig,
    rng: np.random.Generator,
) -> EnvironmentStep:
    """Advance wind and pollution by one tick.

    Args:
        grid: Frozen grid snapshot.
        wind_direction: Current unit wind vector.
        wind_speed: Current wind speed in ``[0, 1]``.
        config: Environment tunables.
        rng: Session random source.

    Returns:
        An ``EnvironmentStep`` with the new grid and wind state.
    """
    new_direction, new_speed = step_wind(wind_direction, wind_speed, config, rng)
    field = step_pollution(grid, new_direction, new_speed, config)
    return EnvironmentStep(
        grid=grid.with_pollution(field),
        wind_direction=new_direction,
        wind_speed=new_speed,
        pollution_level=pollution_level(field, config.pollution_level_multiplier),
    )
