"""
Master configuration for Axiom City.

ALL tunable parameters live here. The building catalog is reference data
(see ``axiom.core.buildings``); every rate, threshold and timing is a field.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass
class SimulationConfig:
    """
    Master configuration: every simulation parameter as a tunable.

    Use ``to_dict()`` / ``from_dict()`` for serialization and comparison.
    """

    # === Session identity ===
    city_name: str = "Axiom City"
    random_seed: int | None = None

    # === World ===
    grid_size: int = 45
    water_threshold: float = -0.3
    terrain_scale: float = 15.0
    initial_unlocked_size: int = 25
    land_expansion_step: int = 10
    land_expansion_base_cost: int = 5000

    # === Timing (seconds) ===
    tick_period: float = 3.0
    agent_think_delay: float = 4.0
    goal_retry_delay: float = 5.0

    # === Proposer ===
    proposer_timeout: float = 300.0
    proposer_retries: int = 1
    failure_memory_size: int = 20
    candidate_tile_sample: int = 12
    news_chance: float = 0.15
    weird_event_chance: float = 0.05

    # === Treasury ===
    initial_money: int = 2000
    demolish_cost: int = 5
    loan_amount: int = 5000
    share_lot_size: int = 10
    tax_cycle: list[float] = field(default_factory=lambda: [0.05, 0.10, 0.20])

    # === Environment ===
    wind_change_probability: float = 0.05
    wind_max_turn: float = 0.7853981633974483  # pi / 4
    wind_speed_jitter: float = 0.1
    wind_speed_min: float = 0.1
    wind_speed_max: float = 1.0
    pollution_generation_rate: float = 0.5
    pollution_cap: float = 100.0
    pollution_retention: float = 0.95
    park_retention: float = 0.80
    water_retention: float = 0.98
    advection_rate: float = 0.1
    pollution_floor: float = 0.5
    pollution_level_multiplier: float = 5.0

    # === Demographics ===
    birth_rate: float = 0.02
    child_aging_rate: float = 0.05
    school_aging_boost: float = 50.0
    adult_aging_rate: float = 0.02
    senior_death_rate: float = 0.05
    crime_death_threshold: float = 50.0
    crime_death_rate: float = 0.05
    immigration_milestone: int = 50
    immigration_small_town: int = 2
    immigration_growing: int = 1

    # === Economy ===
    per_capita_tax: float = 5.0
    per_job_business: float = 2.0
    shadow_tax_loss: float = 0.5
    welfare_per_unemployed: int = 2
    bureaucracy_exponent: float = 1.1
    bureaucracy_factor: float = 0.1
    theft_threshold: float = 20.0
    theft_rate: float = 5.0
    disconnected_income_factor: float = 0.5
    debt_penalty_rate: float = 0.01
    debt_happiness_penalty: float = 5.0
    share_volatility: float = 0.05

    # === Happiness ===
    tax_happiness_factor: float = 200.0
    park_happiness_bonus: float = 2.0
    park_happiness_cap: float = 20.0
    pollution_happiness_threshold: float = 20.0
    local_pollution_threshold: float = 10.0
    local_pollution_factor: float = 1.5
    unemployment_happiness_factor: float = 0.5
    supply_shortage_threshold: float = 0.8
    supply_happiness_factor: float = 20.0
    disconnected_happiness_penalty: float = 1.0
    disconnected_happiness_cap: float = 15.0
    crime_happiness_factor: float = 0.5

    # === Gauges ===
    base_education: float = 50.0
    education_per_school: float = 10.0

    # === Disasters & weather ===
    disaster_probability: float = 0.15
    alien_abduction_fraction: float = 0.2
    weather_change_probability: float = 0.03

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------
    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict (excludes private fields)."""
        d: dict[str, Any] = {}
        for k, v in self.__dict__.items():
            if k.startswith("_"):
                continue
            d[k] = v
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> SimulationConfig:
        """Deserialize from a dict."""
        return cls(**{k: v for k, v in d.items() if not k.startswith("_")})

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)

    @classmethod
    def from_json(cls, s: str) -> SimulationConfig:
        return cls.from_dict(json.loads(s))

    def diff(self, other: SimulationConfig) -> dict[str, tuple[Any, Any]]:
        """Return parameters that differ between two configs."""
        diffs: dict[str, tuple[Any, Any]] = {}
        for k in self.to_dict():
            v1 = getattr(self, k)
            v2 = getattr(other, k)
            if v1 != v2:
                diffs[k] = (v1, v2)
        return diffs
