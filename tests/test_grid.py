"""Tests for the tile grid and terrain generators."""

import numpy as np
import pytest

from axiom.core.buildings import BuildingType
from axiom.core.grid import Grid, Tile
from axiom.core.terrain import (
    TERRAIN_GENERATORS,
    generate_noise_terrain,
    generate_terrain,
)


class TestGridBasics:
    def test_empty_grid_dimensions(self):
        grid = Grid.empty(10, 6)
        assert grid.width == 10
        assert grid.height == 6
        assert len(list(grid.tiles())) == 60

    def test_get_out_of_bounds_raises(self):
        grid = Grid.empty(5)
        with pytest.raises(IndexError):
            grid.get(5, 0)

    def test_neighbors_at_corner(self):
        grid = Grid.empty(5)
        coords = {t.coords for t in grid.neighbors(0, 0)}
        assert coords == {(1, 0), (0, 1)}

    def test_with_building_returns_new_grid(self):
        grid = Grid.empty(5)
        updated = grid.with_building(2, 3, BuildingType.PARK, placed_by="USER", placed_at=12.5)
        assert grid.get(2, 3).building_type == BuildingType.NONE
        tile = updated.get(2, 3)
        assert tile.building_type == BuildingType.PARK
        assert tile.placed_by == "USER"
        assert tile.placed_at == 12.5

    def test_building_counts(self):
        grid = Grid.empty(4).with_building(0, 0, BuildingType.ROAD).with_building(1, 0, BuildingType.ROAD)
        counts = grid.building_counts()
        assert counts["Road"] == 2
        assert counts["None"] == 14

    def test_occupied_excludes_roads(self):
        grid = Grid.empty(4).with_building(0, 0, BuildingType.ROAD).with_building(1, 1, BuildingType.SCHOOL)
        assert [t.coords for t in grid.occupied_tiles()] == [(1, 1)]


class TestUnlockedRegion:
    def test_centred_square(self):
        grid = Grid.empty(45)
        assert grid.unlocked_bounds(25) == (10, 34)
        assert grid.is_unlocked(22, 22, 25)
        assert not grid.is_unlocked(5, 22, 25)

    def test_oversized_square_covers_grid(self):
        grid = Grid.empty(10)
        lo, hi = grid.unlocked_bounds(25)
        assert lo == 0
        assert hi == 9


class TestRoadAccess:
    def test_neighbour_of_road_is_connected(self):
        grid = Grid.empty(5).with_building(2, 2, BuildingType.ROAD)
        access = grid.compute_road_access()
        assert access[2, 3]  # (x=3, y=2)
        assert access[1, 2]  # (x=2, y=1)
        assert not access[0, 0]

    def test_diagonal_is_not_connected(self):
        grid = Grid.empty(5).with_building(2, 2, BuildingType.ROAD)
        assert not grid.compute_road_access()[3, 3]

    def test_bridge_counts_as_road(self):
        grid = Grid.empty(5).with_building(0, 0, BuildingType.BRIDGE)
        assert grid.compute_road_access()[0, 1]

    def test_scan_does_not_modify_grid(self):
        grid = Grid.empty(3)
        before = [t.has_road_access for t in grid.tiles()]
        grid.compute_road_access()
        assert [t.has_road_access for t in grid.tiles()] == before

    def test_with_road_access_applies_flags(self):
        grid = Grid.empty(3).with_building(1, 1, BuildingType.COMMERCIAL)
        applied = grid.with_road_access(grid.compute_road_access())
        assert applied.get(1, 1).has_road_access is False


class TestPollutionArray:
    def test_roundtrip_through_array(self):
        grid = Grid.empty(3, 2)
        field = np.arange(6, dtype=float).reshape(2, 3)
        updated = grid.with_pollution(field)
        assert updated.get(2, 1).pollution == 5.0
        np.testing.assert_array_equal(updated.pollution_array(), field)

    def test_shape_mismatch_raises(self):
        with pytest.raises(ValueError):
            Grid.empty(3).with_pollution(np.zeros((2, 2)))


class TestSerialization:
    def test_grid_roundtrip(self):
        grid = Grid.empty(4).with_building(1, 2, BuildingType.MANSION, placed_by="AI", placed_at=3.0)
        restored = Grid.from_dict(grid.to_dict())
        tile = restored.get(1, 2)
        assert tile.building_type == BuildingType.MANSION
        assert tile.placed_by == "AI"

    def test_tile_defaults(self):
        tile = Tile.from_dict({"x": 1, "y": 1})
        assert tile.is_empty
        assert tile.placed_by == "SYSTEM"


class TestTerrain:
    def test_noise_terrain_is_seeded(self):
        a = generate_noise_terrain(20, 20, rng=np.random.default_rng(7))
        b = generate_noise_terrain(20, 20, rng=np.random.default_rng(7))
        assert a.building_counts() == b.building_counts()

    def test_noise_terrain_only_land_or_water(self):
        grid = generate_noise_terrain(30, 30, rng=np.random.default_rng(3))
        assert {t.building_type for t in grid.tiles()} <= {BuildingType.NONE, BuildingType.WATER}

    def test_low_threshold_means_no_water(self):
        grid = generate_noise_terrain(15, 15, rng=np.random.default_rng(1), water_threshold=-10.0)
        assert not grid.water_tiles()

    def test_flat_terrain(self):
        grid = generate_terrain("flat", 8, 8)
        assert len(grid.empty_tiles()) == 64

    def test_unknown_generator_raises(self):
        with pytest.raises(KeyError):
            generate_terrain("volcanic", 8, 8)

    def test_registry(self):
        assert set(TERRAIN_GENERATORS) == {"noise", "flat"}
