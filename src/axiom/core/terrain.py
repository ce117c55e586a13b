"""
Terrain generators for the Axiom City grid.

Each generator returns a fully populated ``Grid`` whose tiles are either
empty land or Water. Generators draw all randomness from a numpy
``Generator`` so a seeded session reproduces the same map.
"""

from __future__ import annotations

from typing import Callable

import numpy as np

from axiom.core.buildings import BuildingType
from axiom.core.grid import Grid, Tile


def noise_field(
    width: int,
    height: int,
    scale: float,
    phase: float,
) -> np.ndarray:
    """Two-octave sine/cosine noise indexed ``[y, x]``.

    ``sin(nx+s)cos(ny+s) + 0.5 sin(2nx+s)cos(2ny+s)`` with ``nx = x/scale``,
    ``ny = y/scale`` and phase ``s``. Values fall in ``[-1.5, 1.5]``.
    """
    ys, xs = np.mgrid[0:height, 0:width]
    nx = xs / scale
    ny = ys / scale
    return (
        np.sin(nx + phase) * np.cos(ny + phase)
        + 0.5 * np.sin(nx * 2 + phase) * np.cos(ny * 2 + phase)
    )


def generate_noise_terrain(
    width: int = 45,
    height: int = 45,
    rng: np.random.Generator | None = None,
    scale: float = 15.0,
    water_threshold: float = -0.3,
) -> Grid:
    """Generate land with lakes and rivers from a thresholded noise field.

    Args:
        width: Number of columns.
        height: Number of rows.
        rng: Random source for the phase offset.
        scale: Spatial period divisor; larger values give broader features.
        water_threshold: Noise values below this become Water.

    Returns:
        A grid of empty land and Water tiles.
    """
    rng = rng if rng is not None else np.random.default_rng()
    phase = float(rng.uniform(0.0, 1000.0))
    field = noise_field(width, height, scale, phase)
    water = field < water_threshold

    rows = []
    for y in range(height):
        row = []
        for x in range(width):
            btype = BuildingType.WATER if water[y, x] else BuildingType.NONE
            row.append(Tile(x=x, y=y, building_type=btype))
        rows.append(row)
    return Grid(rows)


def generate_flat_terrain(
    width: int = 45,
    height: int = 45,
    rng: np.random.Generator | None = None,
    **_: float,
) -> Grid:
    """All-land map, handy for tests and benchmarks."""
    return Grid.empty(width, height)


# Registry of available terrain generators.
TERRAIN_GENERATORS: dict[str, Callable[..., Grid]] = {
    "noise": generate_noise_terrain,
    "flat": generate_flat_terrain,
}


def generate_terrain(
    name: str,
    width: int,
    height: int,
    rng: np.random.Generator | None = None,
    **kwargs: float,
) -> Grid:
    """Factory function to generate terrain by name.

    Raises:
        KeyError: If the generator name is not found.
    """
    if name not in TERRAIN_GENERATORS:
        raise KeyError(
            f"Unknown terrain generator '{name}'. "
            f"Available: {list(TERRAIN_GENERATORS.keys())}"
        )
    return TERRAIN_GENERATORS[name](width=width, height=height, rng=rng, **kwargs)
