"""
City statistics records for Axiom City.

``CityStats`` is the single aggregate the simulation owns. Each tick builds a
fresh record from the previous one (``copy()`` then assign), so readers
holding an older record never see it change.
"""

from __future__ import annotations

import copy
import math
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class EconomicEvent(str, Enum):
    NONE = "None"
    BOOM = "Boom"
    RECESSION = "Recession"
    STRIKE = "Strike"
    AUDIT = "Audit"
    FESTIVAL = "Festival"
    EXODUS = "Exodus"


class GoalTargetType(str, Enum):
    POPULATION = "population"
    MONEY = "money"
    BUILDING_COUNT = "building_count"


class NewsType(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class HistoryType(str, Enum):
    MAJOR = "major"
    MINOR = "minor"
    DISASTER = "disaster"
    MILESTONE = "milestone"


class WeatherType(str, Enum):
    """Cosmetic weather; carried in state for clients, never simulated."""

    CLEAR = "Clear"
    RAIN = "Rain"
    SNOW = "Snow"
    ACID_RAIN = "AcidRain"
    FOG = "Fog"


@dataclass
class Demographics:
    children: int = 0
    adults: int = 0
    seniors: int = 0

    @property
    def total(self) -> int:
        return self.children + self.adults + self.seniors


@dataclass
class Jobs:
    commercial: int = 0
    industrial: int = 0
    total: int = 0
    unemployment: int = 0


@dataclass
class Budget:
    income: int = 0
    expenses: int = 0
    details: dict[str, int] = field(default_factory=dict)


@dataclass
class AIGoal:
    """A target handed out by the advisor.

    The simulation only ever flips ``completed``; everything else is owned
    by whoever set the goal.
    """

    description: str
    target_type: GoalTargetType
    target_value: int
    reward: int
    building_type: str | None = None
    completed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "target_type": self.target_type.value,
            "target_value": self.target_value,
            "building_type": self.building_type,
            "reward": self.reward,
            "completed": self.completed,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> AIGoal:
        return cls(
            description=d["description"],
            target_type=GoalTargetType(d["target_type"]),
            target_value=int(d["target_value"]),
            reward=int(d["reward"]),
            building_type=d.get("building_type"),
            completed=bool(d.get("completed", False)),
        )


@dataclass
class NewsItem:
    id: str
    text: str
    type: NewsType = NewsType.NEUTRAL

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.text, "type": self.type.value}


@dataclass
class HistoryEntry:
    id: str
    day: int
    text: str
    type: HistoryType = HistoryType.MINOR

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "day": self.day, "text": self.text, "type": self.type.value}


@dataclass
class CityStats:
    """Everything the economy, environment and treasury read and write."""

    # === Treasury ===
    money: int = 2000
    day: int = 1
    tax_rate: float = 0.1
    budget: Budget = field(default_factory=Budget)

    # === People ===
    population: int = 0
    housing_capacity: int = 0
    demographics: Demographics = field(default_factory=Demographics)
    jobs: Jobs = field(default_factory=Jobs)

    # === Gauges (0-100) ===
    happiness: float = 100.0
    education: float = 50.0
    safety: float = 100.0
    crime_rate: float = 0.0
    security: float = 100.0
    pollution_level: float = 0.0

    # === Macro economy ===
    shadow_economy: float = 0.0
    supply_level: float = 1.0
    loan_principal: int = 0
    loan_interest_rate: float = 0.05
    active_event: EconomicEvent = EconomicEvent.NONE
    event_duration: int = 0
    share_price: int = 100
    investment_shares: int = 0
    investment_average_cost: float = 0.0

    # === Environment ===
    wind_direction: tuple[float, float] = (1.0, 0.0)
    wind_speed: float = 0.3
    weather: WeatherType = WeatherType.CLEAR

    # === Progression ===
    unlocked_grid_size: int = 25
    land_expansion_level: int = 0
    research_centre_built: bool = False
    current_goal: AIGoal | None = None

    def copy(self) -> CityStats:
        """Deep copy; the basis of every functional update."""
        return copy.deepcopy(self)

    @property
    def in_debt(self) -> bool:
        return self.money < 0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        d = asdict(self)
        d["active_event"] = self.active_event.value
        d["weather"] = self.weather.value
        d["wind_direction"] = list(self.wind_direction)
        d["current_goal"] = self.current_goal.to_dict() if self.current_goal else None
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> CityStats:
        """Deserialize from a dict produced by ``to_dict``.

        Unknown keys are ignored so older snapshots still load.
        """
        known = {f for f in cls.__dataclass_fields__}
        kwargs = {k: v for k, v in d.items() if k in known}
        if "demographics" in kwargs:
            kwargs["demographics"] = Demographics(**kwargs["demographics"])
        if "jobs" in kwargs:
            kwargs["jobs"] = Jobs(**kwargs["jobs"])
        if "budget" in kwargs:
            kwargs["budget"] = Budget(**kwargs["budget"])
        if "active_event" in kwargs:
            kwargs["active_event"] = EconomicEvent(kwargs["active_event"])
        if "weather" in kwargs:
            kwargs["weather"] = WeatherType(kwargs["weather"])
        if "wind_direction" in kwargs:
            kwargs["wind_direction"] = tuple(kwargs["wind_direction"])
        if kwargs.get("current_goal"):
            kwargs["current_goal"] = AIGoal.from_dict(kwargs["current_goal"])
        return cls(**kwargs)


def initial_stats(
    money: int = 2000,
    unlocked_grid_size: int = 25,
    wind_heading: float = 0.0,
) -> CityStats:
    """Fresh stats for a new city.

    Args:
        money: Starting treasury.
        unlocked_grid_size: Side of the initially buildable square.
        wind_heading: Initial wind angle in radians (0 points along +x).
    """
    return CityStats(
        money=money,
        unlocked_grid_size=unlocked_grid_size,
        wind_direction=(math.cos(wind_heading), math.sin(wind_heading)),
    )
