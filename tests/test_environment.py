"""Tests for the wind and pollution stepper."""

import numpy as np

from axiom.core.buildings import BuildingType
from axiom.core.config import SimulationConfig
from axiom.core.environment import (
    advect,
    pollution_level,
    step_environment,
    step_pollution,
    step_wind,
)
from axiom.core.grid import Grid


class TestWind:
    def test_no_change_below_probability(self):
        config = SimulationConfig(wind_change_probability=0.0)
        direction, speed = step_wind((1.0, 0.0), 0.3, config, np.random.default_rng(1))
        assert direction == (1.0, 0.0)
        assert speed == 0.3

    def test_change_stays_unit_and_in_range(self):
        config = SimulationConfig(wind_change_probability=1.0)
        rng = np.random.default_rng(2)
        direction, speed = (1.0, 0.0), 0.3
        for _ in range(50):
            direction, speed = step_wind(direction, speed, config, rng)
            assert abs(np.hypot(*direction) - 1.0) < 1e-9
            assert config.wind_speed_min <= speed <= config.wind_speed_max


class TestAdvect:
    def test_moves_mass_downwind(self):
        field = np.zeros((3, 3))
        field[1, 1] = 10.0
        moved = advect(field, 1, 0, 0.5)
        assert moved[1, 1] == 5.0
        assert moved[1, 2] == 5.0

    def test_mass_leaves_at_edge(self):
        field = np.zeros((3, 3))
        field[1, 2] = 10.0
        moved = advect(field, 1, 0, 0.5)
        assert moved.sum() == 5.0

    def test_calm_wind_is_identity(self):
        field = np.ones((2, 2))
        assert np.array_equal(advect(field, 0, 0, 0.5), field)


class TestPollution:
    def test_industrial_generates_pollution(self):
        config = SimulationConfig()
        grid = Grid.empty(5).with_building(2, 2, BuildingType.INDUSTRIAL)
        field = step_pollution(grid, (1.0, 0.0), 0.0, config)
        assert field[2, 2] > 0
        assert field.max() <= config.pollution_cap

    def test_park_does_not_generate(self):
        grid = Grid.empty(5).with_building(2, 2, BuildingType.PARK)
        field = step_pollution(grid, (1.0, 0.0), 0.0, SimulationConfig())
        assert field.sum() == 0.0

    def test_total_decreases_without_sources(self):
        config = SimulationConfig(wind_change_probability=0.0)
        rng = np.random.default_rng(3)
        grid = Grid.empty(6).with_pollution(np.full((6, 6), 40.0))
        total = grid.pollution_array().sum()
        direction, speed = (0.0, 1.0), 0.5
        for _ in range(30):
            env = step_environment(grid, direction, speed, config, rng)
            new_total = env.grid.pollution_array().sum()
            assert new_total <= total
            total = new_total
            grid = env.grid
        assert total < 40.0 * 36

    def test_values_never_negative(self):
        config = SimulationConfig()
        grid = (
            Grid.empty(5)
            .with_building(1, 1, BuildingType.PARK)
            .with_pollution(np.full((5, 5), 0.6))
        )
        field = step_pollution(grid, (1.0, 0.0), 1.0, config)
        assert (field >= 0).all()

    def test_small_values_snap_to_zero(self):
        config = SimulationConfig()
        grid = Grid.empty(3).with_pollution(np.full((3, 3), 0.4))
        field = step_pollution(grid, (1.0, 0.0), 0.0, config)
        assert field.sum() == 0.0


class TestPollutionLevel:
    def test_scaled_mean(self):
        assert pollution_level(np.full((2, 2), 2.0), 5.0) == 10.0

    def test_capped_at_hundred(self):
        assert pollution_level(np.full((2, 2), 90.0), 5.0) == 100.0

    def test_step_environment_reports_gauge(self):
        config = SimulationConfig()
        grid = Grid.empty(4).with_building(0, 0, BuildingType.INDUSTRIAL)
        env = step_environment(grid, (1.0, 0.0), 0.3, config, np.random.default_rng(0))
        assert env.pollution_level > 0
        assert env.grid is not grid
