#!/usr/bin/env python3
"""Run a headless Axiom City for a few weeks and print the results."""

from axiom.core.buildings import BuildingType
from axiom.core.config import SimulationConfig
from axiom.core.engine import CityEngine
from axiom.core.validator import BuildAction
from axiom.metrics.collector import MetricsCollector

# A small starter district around the centre of the map.
STARTER_LAYOUT = [
    (BuildingType.ROAD, 0, 0), (BuildingType.ROAD, 1, 0), (BuildingType.ROAD, 2, 0),
    (BuildingType.ROAD, 3, 0), (BuildingType.ROAD, 4, 0),
    (BuildingType.RESIDENTIAL, 0, 1), (BuildingType.RESIDENTIAL, 1, 1),
    (BuildingType.RESIDENTIAL, 2, 1), (BuildingType.COMMERCIAL, 3, 1),
    (BuildingType.COMMERCIAL, 4, 1), (BuildingType.INDUSTRIAL, 4, -1),
    (BuildingType.PARK, 0, -1), (BuildingType.SCHOOL, 1, -1),
    (BuildingType.POLICE, 2, -1),
]


def main():
    config = SimulationConfig(city_name="baseline", random_seed=42)
    engine = CityEngine(config, terrain="flat")
    collector = MetricsCollector()

    print(f"=== Axiom City: {config.city_name} ===")
    print(f"Grid: {config.grid_size}x{config.grid_size}, unlocked {config.initial_unlocked_size}")
    print(f"Starting money: {config.initial_money}")
    print()

    cx = cy = config.grid_size // 2
    for btype, dx, dy in STARTER_LAYOUT:
        result = engine.apply_action(BuildAction(btype, cx + dx, cy + dy), now=0.0)
        status = "ok" if result.accepted else result.reason.value
        print(f"  build {btype.value:12s} at ({cx + dx:2d}, {cy + dy:2d}): {status}")
    print()

    print(f"{'Day':>4} {'Money':>7} {'Pop':>5} {'Jobs':>5} {'Happy':>6} "
          f"{'Crime':>6} {'Pollut':>7} {'Share':>6} {'Event':>10}")
    print("-" * 66)

    for _ in range(60):
        engine.tick()
        grid, stats = engine.snapshot()
        m = collector.collect(stats, grid)
        print(
            f"{m.day:4d} {m.money:7d} {m.population:5d} {m.jobs_total:5d} "
            f"{m.happiness:6.1f} {m.crime_rate:6.1f} {m.pollution_level:7.2f} "
            f"{m.share_price:6.0f} {m.active_event:>10s}"
        )

    summary = collector.summary()
    print()
    print(f"=== Final State (Day {summary['last_day']}) ===")
    print(f"Peak population: {summary['peak_population']}")
    print(f"Mean happiness: {summary['mean_happiness']:.1f}")
    print(f"Days in debt: {summary['days_in_debt']}")

    print("\nHeadlines:")
    for item in engine.recent_news():
        print(f"  [{item.type.value:8s}] {item.text}")


if __name__ == "__main__":
    main()
