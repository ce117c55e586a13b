"""
Main city engine.

``CityEngine`` owns the session's (grid, stats) pair and serializes every
write to it behind one re-entrant lock. Each tick and each accepted action
is an atomic read-compute-publish: the current snapshot is read, the next
one is computed from it, and both halves are swapped in together.

Phases per tick:
1. Environment (wind, pollution)
2. Road connectivity scan
3. Economy and demographics
4. Goal check
5. Disasters (advance stages, roll for a new one)
6. Announcements (events, milestones, weather)
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable
from uuid import uuid4

import numpy as np

from axiom.core.config import SimulationConfig
from axiom.core.disasters import (
    DisasterEffect,
    DisasterScheduler,
    DisasterType,
    EffectKind,
    apply_effects,
)
from axiom.core.economy import simulate_economy
from axiom.core.environment import step_environment
from axiom.core.events import effect_of
from axiom.core.goals import check_goal
from axiom.core.grid import Grid
from axiom.core.stats import (
    AIGoal,
    CityStats,
    EconomicEvent,
    HistoryEntry,
    HistoryType,
    NewsItem,
    NewsType,
    WeatherType,
    initial_stats,
)
from axiom.core.terrain import generate_terrain
from axiom.core.validator import Action, Accepted, ValidationResult, validate

logger = logging.getLogger(__name__)

NEWS_FEED_SIZE = 12
POPULATION_MILESTONES = (100, 500, 1000, 5000)

# Clear and Rain are twice as likely as the rest.
WEATHER_TABLE: list[WeatherType] = [
    WeatherType.CLEAR, WeatherType.CLEAR,
    WeatherType.RAIN, WeatherType.RAIN,
    WeatherType.SNOW, WeatherType.FOG, WeatherType.ACID_RAIN,
]


# ---------------------------------------------------------------------------
# Tick result
# ---------------------------------------------------------------------------
@dataclass
class TickResult:
    """Summary of one tick, returned to drivers and API callers."""
    day: int
    population: int
    money: int
    happiness: float
    pollution_level: float
    active_event: EconomicEvent
    event_started: EconomicEvent | None = None
    goal_completed: bool = False
    disaster_effects: list[DisasterEffect] = field(default_factory=list)
    news: list[NewsItem] = field(default_factory=list)
    news_requested: bool = False
    weird_event_requested: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "day": self.day,
            "population": self.population,
            "money": self.money,
            "happiness": self.happiness,
            "pollution_level": round(self.pollution_level, 4),
            "active_event": self.active_event.value,
            "event_started": self.event_started.value if self.event_started else None,
            "goal_completed": self.goal_completed,
            "disasters": [
                {"kind": e.kind.value, "type": e.disaster_type.value, "message": e.message}
                for e in self.disaster_effects
            ],
            "news": [n.to_dict() for n in self.news],
        }


# ---------------------------------------------------------------------------
# City engine
# ---------------------------------------------------------------------------
class CityEngine:
    """Owns one city and the lock guarding it."""

    def __init__(
        self,
        config: SimulationConfig,
        grid: Grid | None = None,
        stats: CityStats | None = None,
        terrain: str = "noise",
    ) -> None:
        self.config = config
        self.rng = np.random.default_rng(config.random_seed)
        self._lock = threading.RLock()
        self._agent_enabled = threading.Event()

        if grid is None:
            grid = generate_terrain(
                terrain,
                width=config.grid_size,
                height=config.grid_size,
                rng=self.rng,
                scale=config.terrain_scale,
                water_threshold=config.water_threshold,
            )
        self.grid = grid
        self.stats = stats if stats is not None else initial_stats(
            money=config.initial_money,
            unlocked_grid_size=config.initial_unlocked_size,
        )
        self.disasters = DisasterScheduler(config)
        self.news: deque[NewsItem] = deque(maxlen=NEWS_FEED_SIZE)
        self.history: list[HistoryEntry] = []
        self.tick_count = 0
        self._milestones_reached: set[int] = {
            m for m in POPULATION_MILESTONES if self.stats.population >= m
        }

    # ------------------------------------------------------------------
    # Agent flag
    # ------------------------------------------------------------------
    @property
    def agent_enabled(self) -> bool:
        return self._agent_enabled.is_set()

    def set_agent_enabled(self, enabled: bool) -> None:
        if enabled:
            self._agent_enabled.set()
        else:
            self._agent_enabled.clear()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def snapshot(self) -> tuple[Grid, CityStats]:
        """Consistent (grid, stats) pair. Grids are never mutated, stats are copied."""
        with self._lock:
            return self.grid, self.stats.copy()

    def recent_news(self) -> list[NewsItem]:
        with self._lock:
            return list(self.news)

    def history_entries(self) -> list[HistoryEntry]:
        with self._lock:
            return list(self.history)

    # ------------------------------------------------------------------
    # Feeds
    # ------------------------------------------------------------------
    def add_news(self, text: str, news_type: NewsType = NewsType.NEUTRAL) -> NewsItem:
        item = NewsItem(id=uuid4().hex[:12], text=text, type=news_type)
        with self._lock:
            self.news.append(item)
        return item

    def add_history(self, text: str, history_type: HistoryType = HistoryType.MINOR) -> HistoryEntry:
        with self._lock:
            entry = HistoryEntry(id=uuid4().hex[:12], day=self.stats.day, text=text, type=history_type)
            self.history.append(entry)
        return entry

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def tick(self, now: float | None = None) -> TickResult:
        """Advance the city by one tick as a single transaction."""
        now = time.time() if now is None else now
        config = self.config

        with self._lock:
            before = self.stats
            new_news: list[NewsItem] = []

            # === Phase 1: Environment ===
            env = step_environment(
                self.grid, before.wind_direction, before.wind_speed, config, self.rng,
            )
            entering = before.copy()
            entering.wind_direction = env.wind_direction
            entering.wind_speed = env.wind_speed
            entering.pollution_level = env.pollution_level

            # === Phase 2: Connectivity (computed from the frozen grid, then applied) ===
            grid = env.grid.with_road_access(env.grid.compute_road_access())

            # === Phase 3: Economy ===
            stats = simulate_economy(entering, grid, config, self.rng)

            # === Phase 4: Goal ===
            goal_completed = False
            checked = check_goal(stats.current_goal, stats, grid)
            if checked is not stats.current_goal:
                stats.current_goal = checked
                goal_completed = True
                new_news.append(self._news(
                    "GOAL COMPLETED! Mayor approval rating soaring.", NewsType.POSITIVE,
                ))

            # === Phase 5: Disasters ===
            effects = self.disasters.advance(now)
            effects += self.disasters.maybe_trigger(grid, stats, self.rng, now)
            grid, stats = apply_effects(effects, grid, stats, config)
            for effect in effects:
                if effect.kind in (EffectKind.ANNOUNCE, EffectKind.IMPACT):
                    new_news.append(self._news(effect.message, effect.news_type))
                if effect.kind == EffectKind.ANNOUNCE:
                    self._history(stats.day, effect.message, HistoryType.DISASTER)

            # === Phase 6: Announcements ===
            event_started = None
            if (
                stats.active_event != EconomicEvent.NONE
                and stats.active_event != entering.active_event
            ):
                event_started = stats.active_event
                eff = effect_of(event_started)
                new_news.append(self._news(eff.headline, eff.news_type))
                kind = HistoryType.DISASTER if event_started == EconomicEvent.EXODUS else HistoryType.MINOR
                self._history(stats.day, f"{event_started.value} began", kind)

            for milestone in POPULATION_MILESTONES:
                if stats.population >= milestone and milestone not in self._milestones_reached:
                    self._milestones_reached.add(milestone)
                    self._history(
                        stats.day, f"Population reached {milestone}", HistoryType.MILESTONE,
                    )

            if self.rng.random() < config.weather_change_probability:
                next_weather = WEATHER_TABLE[int(self.rng.integers(len(WEATHER_TABLE)))]
                if next_weather != stats.weather and next_weather != WeatherType.CLEAR:
                    new_news.append(self._news(
                        f"Weather Alert: {next_weather.value} incoming.", NewsType.NEUTRAL,
                    ))
                stats.weather = next_weather

            news_requested = False
            weird_requested = False
            if self.agent_enabled and self.rng.random() < config.news_chance:
                news_requested = True
                weird_requested = bool(self.rng.random() < config.weird_event_chance)

            # Publish
            self.grid = grid
            self.stats = stats
            self.tick_count += 1

            logger.debug(
                "Tick %d: day=%d pop=%d money=%d happiness=%.0f pollution=%.1f",
                self.tick_count, stats.day, stats.population, stats.money,
                stats.happiness, stats.pollution_level,
            )

            return TickResult(
                day=stats.day,
                population=stats.population,
                money=stats.money,
                happiness=stats.happiness,
                pollution_level=stats.pollution_level,
                active_event=stats.active_event,
                event_started=event_started,
                goal_completed=goal_completed,
                disaster_effects=effects,
                news=new_news,
                news_requested=news_requested,
                weird_event_requested=weird_requested,
            )

    def apply_action(
        self,
        op: Action,
        actor: str = "USER",
        now: float | None = None,
    ) -> ValidationResult:
        """Validate a build/demolish request and publish it if accepted.

        This is the only path that writes a building type outside the tick.
        """
        now = time.time() if now is None else now
        with self._lock:
            result = validate(
                self.grid, self.stats, op,
                demolish_cost=self.config.demolish_cost,
                actor=actor,
                now=now,
            )
            if isinstance(result, Accepted):
                self.grid = result.grid
                self.stats = result.stats
            return result

    def transact(self, fn: Callable[[CityStats], CityStats]) -> CityStats:
        """Run a stats-only update atomically.

        ``fn`` receives a private copy and returns the stats to publish. Any
        exception it raises propagates and nothing is published.
        """
        with self._lock:
            new_stats = fn(self.stats.copy())
            self.stats = new_stats
            return new_stats.copy()

    def set_goal(self, goal: AIGoal | None) -> None:
        def _set(stats: CityStats) -> CityStats:
            stats.current_goal = goal
            return stats
        self.transact(_set)

    def trigger_disaster(
        self,
        forced_type: DisasterType | None = None,
        now: float | None = None,
    ) -> list[DisasterEffect]:
        """Start a disaster immediately, bypassing the debt condition."""
        now = time.time() if now is None else now
        with self._lock:
            effects = self.disasters.trigger(self.grid, self.rng, now, forced_type)
            self.grid, self.stats = apply_effects(effects, self.grid, self.stats, self.config)
            for effect in effects:
                if effect.kind in (EffectKind.ANNOUNCE, EffectKind.IMPACT):
                    self._news(effect.message, effect.news_type)
                if effect.kind == EffectKind.ANNOUNCE:
                    self._history(self.stats.day, effect.message, HistoryType.DISASTER)
            return effects

    # ------------------------------------------------------------------
    # Internal helpers (caller holds the lock)
    # ------------------------------------------------------------------
    def _news(self, text: str, news_type: NewsType) -> NewsItem:
        item = NewsItem(id=uuid4().hex[:12], text=text, type=news_type)
        self.news.append(item)
        return item

    def _history(self, day: int, text: str, history_type: HistoryType) -> None:
        self.history.append(HistoryEntry(id=uuid4().hex[:12], day=day, text=text, type=history_type))
