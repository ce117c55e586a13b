"""
Square tile grid for Axiom City.

A fixed-size rectangular matrix of immutable ``Tile`` records. Grids are
treated as values: every update returns a new ``Grid`` that shares the
untouched tiles with its predecessor, so a snapshot handed to a reader is
never modified behind its back.

Coordinate system: ``x`` is the column, ``y`` the row; numpy arrays derived
from a grid are indexed ``[y, x]``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Iterator

import numpy as np

from axiom.core.buildings import (
    ROAD_TYPES,
    SELF_CONNECTED_TYPES,
    BuildingType,
    is_building,
)


@dataclass(frozen=True)
class Tile:
    """A single grid cell.

    Attributes:
        x: Column index.
        y: Row index.
        building_type: What occupies the tile.
        pollution: Local pollution concentration, ``>= 0``.
        has_road_access: Result of the last connectivity scan.
        placed_by: ``"AI"``, ``"USER"`` or ``"SYSTEM"``.
        placed_at: Epoch seconds of the last placement.
    """

    x: int
    y: int
    building_type: BuildingType = BuildingType.NONE
    pollution: float = 0.0
    has_road_access: bool = True
    placed_by: str = "SYSTEM"
    placed_at: float = 0.0

    @property
    def coords(self) -> tuple[int, int]:
        return (self.x, self.y)

    @property
    def is_empty(self) -> bool:
        return self.building_type == BuildingType.NONE

    @property
    def is_water(self) -> bool:
        return self.building_type == BuildingType.WATER

    def to_dict(self) -> dict[str, Any]:
        """Serialize tile to dictionary."""
        return {
            "x": self.x,
            "y": self.y,
            "building_type": self.building_type.value,
            "pollution": self.pollution,
            "has_road_access": self.has_road_access,
            "placed_by": self.placed_by,
            "placed_at": self.placed_at,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Tile:
        """Deserialize tile from dictionary."""
        return cls(
            x=d["x"],
            y=d["y"],
            building_type=BuildingType(d.get("building_type", "None")),
            pollution=d.get("pollution", 0.0),
            has_road_access=d.get("has_road_access", True),
            placed_by=d.get("placed_by", "SYSTEM"),
            placed_at=d.get("placed_at", 0.0),
        )


class Grid:
    """An immutable-by-convention matrix of tiles.

    Attributes:
        width: Number of columns.
        height: Number of rows.
        rows: ``rows[y][x]`` is the tile at ``(x, y)``.
    """

    # 4-neighbourhood used for road adjacency.
    DIRECTIONS: list[tuple[int, int]] = [(1, 0), (-1, 0), (0, 1), (0, -1)]

    def __init__(self, rows: list[list[Tile]]) -> None:
        if not rows or not rows[0]:
            raise ValueError("Grid must have at least one row and one column")
        self.rows = rows
        self.height = len(rows)
        self.width = len(rows[0])

    @classmethod
    def empty(cls, width: int, height: int | None = None) -> Grid:
        """Create a grid of empty land tiles."""
        height = width if height is None else height
        return cls([[Tile(x=x, y=y) for x in range(width)] for y in range(height)])

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def get(self, x: int, y: int) -> Tile:
        """Return the tile at ``(x, y)``.

        Raises:
            IndexError: If the coordinates fall outside the grid.
        """
        if not self.in_bounds(x, y):
            raise IndexError(f"Tile ({x}, {y}) outside {self.width}x{self.height} grid")
        return self.rows[y][x]

    def tiles(self) -> Iterator[Tile]:
        """Iterate over all tiles row by row."""
        for row in self.rows:
            yield from row

    def neighbors(self, x: int, y: int) -> list[Tile]:
        """Return the in-bounds 4-neighbours of a tile."""
        result = []
        for dx, dy in self.DIRECTIONS:
            nx, ny = x + dx, y + dy
            if self.in_bounds(nx, ny):
                result.append(self.rows[ny][nx])
        return result

    def count(self, building_type: BuildingType) -> int:
        return sum(1 for t in self.tiles() if t.building_type == building_type)

    def building_counts(self) -> dict[str, int]:
        """Tally tiles per building type value."""
        counts: dict[str, int] = {}
        for t in self.tiles():
            key = t.building_type.value
            counts[key] = counts.get(key, 0) + 1
        return counts

    def occupied_tiles(self) -> list[Tile]:
        """Tiles holding a structure other than roads and bridges."""
        return [t for t in self.tiles() if is_building(t.building_type)]

    def empty_tiles(self) -> list[Tile]:
        return [t for t in self.tiles() if t.is_empty]

    def water_tiles(self) -> list[Tile]:
        return [t for t in self.tiles() if t.is_water]

    # ------------------------------------------------------------------
    # Fog of war
    # ------------------------------------------------------------------

    def unlocked_bounds(self, unlocked_size: int) -> tuple[int, int]:
        """Inclusive ``(min, max)`` coordinate of the unlocked centre square."""
        center = min(self.width, self.height) // 2
        half = unlocked_size // 2
        return (max(0, center - half), min(max(self.width, self.height) - 1, center + half))

    def is_unlocked(self, x: int, y: int, unlocked_size: int) -> bool:
        lo, hi = self.unlocked_bounds(unlocked_size)
        return lo <= x <= hi and lo <= y <= hi

    # ------------------------------------------------------------------
    # Array views
    # ------------------------------------------------------------------

    def pollution_array(self) -> np.ndarray:
        """Per-tile pollution as a float array indexed ``[y, x]``."""
        return np.array(
            [[t.pollution for t in row] for row in self.rows], dtype=float,
        )

    def type_mask(self, types: frozenset[BuildingType] | set[BuildingType]) -> np.ndarray:
        """Boolean array marking tiles whose type is in ``types``."""
        return np.array(
            [[t.building_type in types for t in row] for row in self.rows], dtype=bool,
        )

    def compute_road_access(self) -> np.ndarray:
        """Connectivity of every tile, computed from this frozen snapshot.

        A tile is connected when a 4-neighbour is a Road or Bridge. Roads,
        bridges and water count as connected themselves. Returns a fresh
        boolean array; the grid itself is untouched.
        """
        roads = self.type_mask(ROAD_TYPES)
        padded = np.pad(roads, 1, constant_values=False)
        adjacent = (
            padded[:-2, 1:-1] | padded[2:, 1:-1]
            | padded[1:-1, :-2] | padded[1:-1, 2:]
        )
        return adjacent | self.type_mask(SELF_CONNECTED_TYPES)

    # ------------------------------------------------------------------
    # Functional updates
    # ------------------------------------------------------------------

    def with_tile(self, tile: Tile) -> Grid:
        """Return a new grid with one tile replaced."""
        if not self.in_bounds(tile.x, tile.y):
            raise IndexError(f"Tile ({tile.x}, {tile.y}) outside grid")
        rows = list(self.rows)
        row = list(rows[tile.y])
        row[tile.x] = tile
        rows[tile.y] = row
        return Grid(rows)

    def with_building(
        self, x: int, y: int, building_type: BuildingType,
        placed_by: str = "SYSTEM", placed_at: float = 0.0,
    ) -> Grid:
        """Return a new grid with the building type at ``(x, y)`` replaced."""
        tile = replace(
            self.get(x, y),
            building_type=building_type,
            placed_by=placed_by,
            placed_at=placed_at,
        )
        return self.with_tile(tile)

    def with_pollution(self, pollution: np.ndarray) -> Grid:
        """Return a new grid carrying the given pollution field."""
        if pollution.shape != (self.height, self.width):
            raise ValueError(
                f"Pollution shape {pollution.shape} does not match grid "
                f"{(self.height, self.width)}"
            )
        return Grid([
            [replace(t, pollution=float(pollution[t.y, t.x])) for t in row]
            for row in self.rows
        ])

    def with_road_access(self, access: np.ndarray) -> Grid:
        """Return a new grid with connectivity flags applied."""
        return Grid([
            [replace(t, has_road_access=bool(access[t.y, t.x])) for t in row]
            for row in self.rows
        ])

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize the full grid to a dictionary."""
        return {
            "width": self.width,
            "height": self.height,
            "tiles": [t.to_dict() for t in self.tiles()],
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Grid:
        """Deserialize a grid from a dictionary produced by ``to_dict``."""
        grid = cls.empty(d["width"], d["height"])
        rows = [list(row) for row in grid.rows]
        for td in d.get("tiles", []):
            tile = Tile.from_dict(td)
            if grid.in_bounds(tile.x, tile.y):
                rows[tile.y][tile.x] = tile
        return cls(rows)

    def __repr__(self) -> str:
        return f"Grid({self.width}x{self.height})"
