"""
Metrics Collector: per-tick city statistics.

Records a flat snapshot of the headline gauges after every tick and
provides time series extraction and export for charts.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

import numpy as np

from axiom.core.grid import Grid
from axiom.core.stats import CityStats


@dataclass
class TickMetrics:
    """Headline numbers for a single tick."""

    day: int
    money: int
    population: int
    housing_capacity: int
    happiness: float
    education: float
    safety: float
    crime_rate: float
    pollution_level: float
    supply_level: float
    share_price: float

    # Budget
    income: int
    expenses: int

    # Labour
    jobs_total: int
    unemployed: int

    # Demographics
    children: int
    adults: int
    seniors: int

    active_event: str
    weather: str
    building_counts: dict[str, int] = field(default_factory=dict)


class MetricsCollector:
    """Collects and aggregates metrics across ticks."""

    def __init__(self, max_history: int | None = None):
        self.max_history = max_history
        self.metrics_history: list[TickMetrics] = []

    def collect(self, stats: CityStats, grid: Grid | None = None) -> TickMetrics:
        """Record metrics for the current tick."""
        counts = {}
        if grid is not None:
            counts = {k: v for k, v in grid.building_counts().items() if k != "None"}

        metrics = TickMetrics(
            day=stats.day,
            money=stats.money,
            population=stats.population,
            housing_capacity=stats.housing_capacity,
            happiness=float(stats.happiness),
            education=float(stats.education),
            safety=float(stats.safety),
            crime_rate=float(stats.crime_rate),
            pollution_level=float(stats.pollution_level),
            supply_level=float(stats.supply_level),
            share_price=float(stats.share_price),
            income=stats.budget.income,
            expenses=stats.budget.expenses,
            jobs_total=stats.jobs.total,
            unemployed=stats.jobs.unemployment,
            children=stats.demographics.children,
            adults=stats.demographics.adults,
            seniors=stats.demographics.seniors,
            active_event=stats.active_event.value,
            weather=stats.weather.value,
            building_counts=counts,
        )
        self.metrics_history.append(metrics)
        if self.max_history is not None and len(self.metrics_history) > self.max_history:
            del self.metrics_history[: len(self.metrics_history) - self.max_history]
        return metrics

    def get_time_series(self, field_name: str) -> list[Any]:
        """Extract a time series for a specific metric field."""
        return [getattr(m, field_name) for m in self.metrics_history]

    def export_for_visualization(self) -> list[dict[str, Any]]:
        """Export all metrics as a list of JSON-serializable dicts."""
        return [asdict(m) for m in self.metrics_history]

    def summary(self) -> dict[str, Any]:
        """Aggregate view over the recorded window."""
        if not self.metrics_history:
            return {"ticks": 0}
        happiness = np.array(self.get_time_series("happiness"), dtype=float)
        money = np.array(self.get_time_series("money"), dtype=float)
        population = np.array(self.get_time_series("population"), dtype=float)
        return {
            "ticks": len(self.metrics_history),
            "first_day": self.metrics_history[0].day,
            "last_day": self.metrics_history[-1].day,
            "peak_population": int(population.max()),
            "mean_happiness": float(happiness.mean()),
            "min_money": int(money.min()),
            "max_money": int(money.max()),
            "days_in_debt": int((money < 0).sum()),
        }
