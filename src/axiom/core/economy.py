"""
Economic and demographic simulator.

``simulate_economy`` turns (stats, grid) into the next stats record. It is
a pure function of its inputs and the session RNG. Sub-phases run in a
fixed order:

1. census of the grid (counts, housing, jobs, crime, road connectivity)
2. derived gauges (education, crime, safety, security)
3. cohort demographics (births, immigration, aging, deaths)
4. jobs and welfare
5. macro event countdown
6. share price random walk
7. revenue (tax, business, buildings, theft)
8. expenses (upkeep, bureaucracy, welfare, festival)
9. debt spiral penalty
10. happiness

A new macro event is rolled last, so it first takes effect next tick.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from axiom.core.buildings import (
    BUILDINGS,
    JOB_YIELD,
    RESIDENTIAL_TYPES,
    SERVICE_UPKEEP,
    BuildingType,
    is_building,
)
from axiom.core.events import decay_event, effect_of, roll_event, start_event
from axiom.core.grid import Grid
from axiom.core.stats import Budget, CityStats, Demographics, EconomicEvent, Jobs

if TYPE_CHECKING:
    from axiom.core.config import SimulationConfig


# ---------------------------------------------------------------------------
# Census
# ---------------------------------------------------------------------------

@dataclass
class Census:
    """Single-pass tally of a frozen grid."""
    counts: dict[BuildingType, int] = field(default_factory=dict)
    housing: int = 0
    raw_crime: float = 0.0
    commercial_jobs: int = 0
    industrial_jobs: int = 0
    building_income: int = 0
    building_upkeep: int = 0
    disconnected: int = 0
    residential_pollution: float = 0.0

    def count(self, building_type: BuildingType) -> int:
        return self.counts.get(building_type, 0)

    @property
    def total_jobs(self) -> int:
        return self.commercial_jobs + self.industrial_jobs


def take_census(grid: Grid, config: SimulationConfig) -> Census:
    """Tally buildings, housing, jobs, crime and income over ``grid``.

    Connectivity is computed into a fresh array first, then read; the grid
    is never modified. Buildings without a road earn only
    ``disconnected_income_factor`` of their positive income.
    """
    access = grid.compute_road_access()
    census = Census()
    residential_pollution: list[float] = []

    for tile in grid.tiles():
        btype = tile.building_type
        if btype == BuildingType.NONE:
            continue
        census.counts[btype] = census.counts.get(btype, 0) + 1
        cfg = BUILDINGS[btype]

        census.housing += cfg.pop_gen
        census.raw_crime += cfg.crime
        census.building_upkeep += SERVICE_UPKEEP.get(btype, 0)

        jobs = JOB_YIELD.get(btype, 0)
        if btype == BuildingType.COMMERCIAL:
            census.commercial_jobs += jobs
        elif btype == BuildingType.INDUSTRIAL:
            census.industrial_jobs += jobs

        connected = bool(access[tile.y, tile.x])
        if is_building(btype) and not connected:
            census.disconnected += 1

        if cfg.income_gen > 0:
            factor = 1.0 if connected else config.disconnected_income_factor
            census.building_income += math.floor(cfg.income_gen * factor)
        elif cfg.income_gen < 0:
            census.building_upkeep += -cfg.income_gen

        if btype in RESIDENTIAL_TYPES:
            residential_pollution.append(tile.pollution)

    if residential_pollution:
        census.residential_pollution = float(np.mean(residential_pollution))
    return census


# ---------------------------------------------------------------------------
# Demographics
# ---------------------------------------------------------------------------

def step_demographics(
    demographics: Demographics,
    housing: int,
    happiness: float,
    schools: int,
    hospitals: int,
    crime_rate: float,
    config: SimulationConfig,
) -> Demographics:
    """One tick of the three-cohort population model.

    Every transition is ``floor(count * p)``, so small towns grow slowly.
    """
    children = demographics.children
    adults = demographics.adults
    seniors = demographics.seniors
    total = children + adults + seniors

    school_factor = 1 + (schools * config.school_aging_boost) / (max(1, children) + 1)

    if total < housing:
        births = math.floor(adults * config.birth_rate * (happiness / 100.0))
        children += births
        if total < config.immigration_milestone:
            adults += config.immigration_small_town
        elif total < housing * 0.5:
            adults += config.immigration_growing

    aging_children = min(children, math.floor(children * config.child_aging_rate * school_factor))
    children -= aging_children
    adults += aging_children

    aging_adults = math.floor(adults * config.adult_aging_rate)
    adults -= aging_adults
    seniors += aging_adults

    death_rate = config.senior_death_rate / (1 + hospitals)
    if crime_rate > config.crime_death_threshold:
        death_rate += config.crime_death_rate
    deaths = min(seniors, math.floor(seniors * death_rate))
    seniors -= deaths

    return Demographics(children=children, adults=adults, seniors=seniors)


# ---------------------------------------------------------------------------
# Happiness
# ---------------------------------------------------------------------------

def compute_happiness(
    stats: CityStats,
    census: Census,
    unemployment: int,
    config: SimulationConfig,
) -> float:
    """Happiness for the new tick, clamped to ``[0, 100]`` and floored.

    ``stats`` must already carry this tick's tax rate, pollution level,
    crime rate, active event and money.
    """
    h = 100.0
    h -= stats.tax_rate * config.tax_happiness_factor
    h += min(config.park_happiness_cap, census.count(BuildingType.PARK) * config.park_happiness_bonus)

    if stats.pollution_level > config.pollution_happiness_threshold:
        h -= stats.pollution_level - config.pollution_happiness_threshold
    local_excess = census.residential_pollution - config.local_pollution_threshold
    if local_excess > 0:
        h -= config.local_pollution_factor * local_excess

    h -= unemployment * config.unemployment_happiness_factor * (1 - stats.shadow_economy)

    if stats.supply_level < config.supply_shortage_threshold:
        h -= (1 - stats.supply_level) * config.supply_happiness_factor

    h -= min(
        config.disconnected_happiness_cap,
        census.disconnected * config.disconnected_happiness_penalty,
    )
    h += effect_of(stats.active_event).happiness_shift
    h -= stats.crime_rate * config.crime_happiness_factor

    if stats.money < 0:
        h -= config.debt_happiness_penalty

    return float(math.floor(max(0.0, min(100.0, h))))


# ---------------------------------------------------------------------------
# Main step
# ---------------------------------------------------------------------------

def simulate_economy(
    stats: CityStats,
    grid: Grid,
    config: SimulationConfig,
    rng: np.random.Generator,
) -> CityStats:
    """Advance the city economy by one tick.

    Args:
        stats: Stats entering the tick; ``pollution_level`` must already
            hold the environment step's output.
        grid: Frozen grid snapshot for this tick.
        config: Economy tunables.
        rng: Session random source.

    Returns:
        A new ``CityStats``; the input is not modified.
    """
    new = stats.copy()
    new.day += 1

    # 1. census
    census = take_census(grid, config)
    new.housing_capacity = census.housing

    # 2. gauges
    new.crime_rate = max(0.0, float(census.raw_crime))
    new.security = max(0.0, 100.0 - new.crime_rate)
    new.safety = max(0.0, 100.0 - new.crime_rate * 2)
    new.education = min(
        100.0,
        config.base_education + census.count(BuildingType.SCHOOL) * config.education_per_school,
    )

    # 3. demographics
    new.demographics = step_demographics(
        new.demographics,
        housing=census.housing,
        happiness=stats.happiness,
        schools=census.count(BuildingType.SCHOOL),
        hospitals=census.count(BuildingType.HOSPITAL),
        crime_rate=new.crime_rate,
        config=config,
    )
    new.population = new.demographics.total
    adults = new.demographics.adults

    # 4. jobs and welfare
    unemployment = max(0, adults - census.total_jobs)
    new.jobs = Jobs(
        commercial=census.commercial_jobs,
        industrial=census.industrial_jobs,
        total=census.total_jobs,
        unemployment=unemployment,
    )
    welfare = unemployment * config.welfare_per_unemployed

    # 5. event countdown
    decay_event(new)
    effect = effect_of(new.active_event)

    # 6. share price
    volatility = float(rng.uniform(-config.share_volatility, config.share_volatility))
    new.share_price = max(1, math.floor(new.share_price * (1 + volatility) * effect.share_trend))

    # 7. revenue
    tax_efficiency = 1 - new.shadow_economy * config.shadow_tax_loss
    tax_revenue = math.floor(
        adults * config.per_capita_tax * new.tax_rate * tax_efficiency * effect.revenue_multiplier
    )
    business_revenue = math.floor(
        min(census.total_jobs, adults) * config.per_job_business * new.tax_rate
        * new.supply_level * effect.revenue_multiplier
    )
    theft = 0
    if new.crime_rate > config.theft_threshold:
        theft = math.floor((new.crime_rate - config.theft_threshold) * config.theft_rate)

    # 8. expenses
    bureaucracy = math.floor((new.population ** config.bureaucracy_exponent) * config.bureaucracy_factor)
    festival = math.floor(new.population * effect.cost_per_capita)

    income = tax_revenue + business_revenue + census.building_income
    expenses = census.building_upkeep + bureaucracy + welfare + theft + festival
    new.money += income - expenses

    details = {
        "tax": tax_revenue,
        "business": business_revenue,
        "buildings": census.building_income,
        "services": census.building_upkeep,
        "bureaucracy": bureaucracy,
        "welfare": welfare,
        "theft": theft,
        "festival": festival,
        "debt_service": 0,
    }

    # 9. debt spiral
    if new.money < 0:
        debt_service = max(1, math.floor(-new.money * config.debt_penalty_rate))
        new.money -= debt_service
        expenses += debt_service
        details["debt_service"] = debt_service

    new.budget = Budget(income=income, expenses=expenses, details=details)

    # 10. happiness
    new.happiness = compute_happiness(new, census, unemployment, config)

    # Next tick's event
    event = roll_event(new, rng)
    if event is not None and event != EconomicEvent.NONE:
        start_event(new, event)

    return new
