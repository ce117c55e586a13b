"""Tests for build/demolish validation."""

from dataclasses import replace

import pytest

from axiom.core.buildings import BUILDABLE_TYPES, BuildingType
from axiom.core.grid import Grid
from axiom.core.stats import initial_stats
from axiom.core.validator import (
    Accepted,
    BuildAction,
    DemolishAction,
    Rejected,
    RejectionReason,
    validate,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _changed_tiles(before: Grid, after: Grid) -> list[tuple[int, int]]:
    return [
        (a.x, a.y)
        for a, b in zip(before.tiles(), after.tiles())
        if a.building_type != b.building_type
    ]


def _lake_grid() -> Grid:
    return Grid.empty(10).with_building(4, 4, BuildingType.WATER)


class TestBuild:
    def test_residential_on_empty_land(self):
        grid = Grid.empty(10)
        stats = initial_stats(money=2000)
        result = validate(grid, stats, BuildAction(BuildingType.RESIDENTIAL, 3, 3), actor="USER", now=5.0)
        assert isinstance(result, Accepted)
        assert result.accepted
        assert result.stats.money == 1800
        assert result.cost == 200
        tile = result.grid.get(3, 3)
        assert tile.building_type == BuildingType.RESIDENTIAL
        assert tile.placed_by == "USER"
        assert tile.placed_at == 5.0

    def test_inputs_untouched(self):
        grid = Grid.empty(10)
        stats = initial_stats(money=2000)
        validate(grid, stats, BuildAction(BuildingType.ROAD, 1, 1))
        assert grid.get(1, 1).building_type == BuildingType.NONE
        assert stats.money == 2000

    @pytest.mark.parametrize("btype", [b for b in BUILDABLE_TYPES if b != BuildingType.BRIDGE])
    def test_exactly_one_tile_changes(self, btype):
        grid = Grid.empty(10)
        stats = initial_stats(money=10**6)
        result = validate(grid, stats, BuildAction(btype, 2, 7))
        assert isinstance(result, Accepted)
        assert _changed_tiles(grid, result.grid) == [(2, 7)]
        assert stats.money - result.stats.money == result.cost

    def test_occupied_tile_rejected_regardless_of_money(self):
        grid = Grid.empty(10).with_building(3, 3, BuildingType.PARK)
        for money in (0, 2000, 10**9):
            result = validate(grid, initial_stats(money=money), BuildAction(BuildingType.ROAD, 3, 3))
            assert isinstance(result, Rejected)
            assert result.reason == RejectionReason.TILE_OCCUPIED

    def test_residential_on_water_rejected(self):
        result = validate(_lake_grid(), initial_stats(), BuildAction(BuildingType.RESIDENTIAL, 4, 4))
        assert not result.accepted
        assert result.reason == RejectionReason.WATER_REQUIRES_BRIDGE

    def test_bridge_on_water_accepted(self):
        result = validate(_lake_grid(), initial_stats(), BuildAction(BuildingType.BRIDGE, 4, 4))
        assert result.accepted
        assert result.grid.get(4, 4).building_type == BuildingType.BRIDGE
        assert result.stats.money == 2000 - 150

    def test_bridge_on_land_rejected(self):
        result = validate(_lake_grid(), initial_stats(), BuildAction(BuildingType.BRIDGE, 0, 0))
        assert result.reason == RejectionReason.BRIDGE_REQUIRES_WATER

    def test_insufficient_funds(self):
        result = validate(Grid.empty(10), initial_stats(money=100), BuildAction(BuildingType.RESIDENTIAL, 1, 1))
        assert result.reason == RejectionReason.INSUFFICIENT_FUNDS

    def test_out_of_bounds(self):
        result = validate(Grid.empty(10), initial_stats(), BuildAction(BuildingType.ROAD, 10, 0))
        assert result.reason == RejectionReason.OUT_OF_BOUNDS

    def test_locked_region(self):
        grid = Grid.empty(45)
        stats = initial_stats(unlocked_grid_size=25)
        assert validate(grid, stats, BuildAction(BuildingType.ROAD, 2, 2)).reason == RejectionReason.LOCKED_REGION
        assert validate(grid, stats, BuildAction(BuildingType.ROAD, 22, 22)).accepted

    def test_water_and_land_not_buildable(self):
        for btype in (BuildingType.NONE, BuildingType.WATER):
            result = validate(Grid.empty(10), initial_stats(), BuildAction(btype, 1, 1))
            assert result.reason == RejectionReason.NOT_BUILDABLE

    def test_specialty_limit(self):
        grid = Grid.empty(10).with_building(0, 0, BuildingType.STADIUM)
        result = validate(grid, initial_stats(money=10**6), BuildAction(BuildingType.STADIUM, 5, 5))
        assert result.reason == RejectionReason.LIMIT_REACHED

    def test_research_centre_sets_flag(self):
        result = validate(
            Grid.empty(10), initial_stats(money=20000),
            BuildAction(BuildingType.RESEARCH_CENTRE, 5, 5),
        )
        assert result.stats.research_centre_built is True


class TestDemolish:
    def test_demolish_reverses_build(self):
        grid = Grid.empty(10)
        stats = initial_stats(money=2000)
        built = validate(grid, stats, BuildAction(BuildingType.COMMERCIAL, 6, 2))
        razed = validate(built.grid, built.stats, DemolishAction(6, 2), demolish_cost=5)
        assert razed.accepted
        assert razed.grid.get(6, 2).building_type == BuildingType.NONE
        assert razed.stats.money == 2000 - 200 - 5
        assert razed.previous_type == BuildingType.COMMERCIAL

    def test_demolish_bridge_restores_water(self):
        grid = _lake_grid().with_building(4, 4, BuildingType.BRIDGE)
        result = validate(grid, initial_stats(), DemolishAction(4, 4))
        assert result.grid.get(4, 4).building_type == BuildingType.WATER

    def test_demolish_empty_rejected(self):
        result = validate(Grid.empty(10), initial_stats(), DemolishAction(1, 1))
        assert result.reason == RejectionReason.NOTHING_TO_DEMOLISH

    def test_demolish_water_rejected(self):
        result = validate(_lake_grid(), initial_stats(), DemolishAction(4, 4))
        assert result.reason == RejectionReason.NOTHING_TO_DEMOLISH

    def test_demolish_allowed_in_debt(self):
        grid = Grid.empty(10).with_building(1, 1, BuildingType.ROAD)
        stats = replace(initial_stats(), money=-50)
        result = validate(grid, stats, DemolishAction(1, 1), demolish_cost=5)
        assert result.accepted
        assert result.stats.money == -55

    def test_demolish_research_centre_clears_flag(self):
        grid = Grid.empty(10).with_building(2, 2, BuildingType.RESEARCH_CENTRE)
        stats = replace(initial_stats(), research_centre_built=True)
        result = validate(grid, stats, DemolishAction(2, 2))
        assert result.stats.research_centre_built is False
