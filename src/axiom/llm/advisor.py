"""
City advisor: goals, news headlines and weird events.

Every generator degrades gracefully. When the proposer is offline or its
reply does not decode, goals and headlines fall back to a small canned
set; a weird event falls back to a fixed "static noise" dilemma, and the
mayor's ruling defaults to NO. Rulings are narrated in the news feed and
never change city stats.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np

from axiom.core.buildings import BuildingType
from axiom.core.grid import Grid
from axiom.core.stats import AIGoal, CityStats, GoalTargetType, NewsItem, NewsType
from axiom.llm.client import LLMClient, LLMUnavailableError
from axiom.llm.parsers import (
    WeirdEvent,
    parse_decision,
    parse_goal,
    parse_news,
    parse_weird_event,
)
from axiom.llm.prompts import (
    JSON_ONLY_SYSTEM_PROMPT,
    MAYOR_SYSTEM_PROMPT,
    build_city_summary,
    build_decision_prompt,
    build_goal_prompt,
    build_news_prompt,
    build_weird_event_prompt,
)

if TYPE_CHECKING:
    from axiom.core.engine import CityEngine

logger = logging.getLogger(__name__)


FALLBACK_HEADLINES: list[tuple[str, NewsType]] = [
    ("Local cat elected as honorary council member.", NewsType.POSITIVE),
    ("Mysterious hum heard coming from the sewers.", NewsType.NEUTRAL),
    ("Traffic jam causes minor delays in sector 7.", NewsType.NEGATIVE),
    ("Scientists predict a sunny day tomorrow.", NewsType.POSITIVE),
]

STATIC_NOISE_EVENT = WeirdEvent(
    title="Static Noise",
    description="The emergency radio is picking up strange static noise from the void.",
    yes_label="Listen Closely",
    no_label="Turn it off",
    yes_effect="Insight Gained",
    no_effect="Nothing happens",
)


def fallback_goal(stats: CityStats, rng: np.random.Generator) -> AIGoal:
    """One of three canned goals scaled to the current city."""
    goals = [
        AIGoal(
            description="Expand the residential district to house more workers.",
            target_type=GoalTargetType.POPULATION,
            target_value=stats.population + 50,
            reward=500,
        ),
        AIGoal(
            description="Increase tax revenue by developing the commercial sector.",
            target_type=GoalTargetType.MONEY,
            target_value=max(1, stats.money + 1000),
            reward=1000,
        ),
        AIGoal(
            description="Build 5 new parks to improve city aesthetics.",
            target_type=GoalTargetType.BUILDING_COUNT,
            target_value=5,
            building_type=BuildingType.PARK.value,
            reward=300,
        ),
    ]
    return goals[int(rng.integers(len(goals)))]


class CityAdvisor:
    """Generates advisory content for a city.

    Parameters
    ----------
    client : LLMClient | None
        Proposer. ``None`` puts the advisor in offline mode.
    """

    def __init__(self, client: LLMClient | None) -> None:
        self.client = client

    def _ask(self, system: str, prompt: str, max_tokens: int = 512, temperature: float = 0.8) -> str | None:
        if self.client is None:
            return None
        try:
            response = self.client.complete(
                system=system,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except LLMUnavailableError:
            logger.warning("Advisor request failed", exc_info=True)
            return None
        return response.text

    # ------------------------------------------------------------------
    # Generators
    # ------------------------------------------------------------------
    def generate_goal(self, stats: CityStats, grid: Grid, rng: np.random.Generator) -> AIGoal:
        """A fresh short-term goal, canned when the proposer fails."""
        text = self._ask(JSON_ONLY_SYSTEM_PROMPT, build_goal_prompt(build_city_summary(stats, grid)))
        if text is not None:
            try:
                return parse_goal(text)
            except ValueError:
                logger.warning("Unusable goal reply: %.200r", text)
        return fallback_goal(stats, rng)

    def generate_news(
        self,
        stats: CityStats,
        grid: Grid,
        rng: np.random.Generator,
        recent_action: str | None = None,
    ) -> tuple[str, NewsType]:
        text = self._ask(
            JSON_ONLY_SYSTEM_PROMPT,
            build_news_prompt(build_city_summary(stats, grid), recent_action),
        )
        if text is not None:
            try:
                return parse_news(text)
            except ValueError:
                logger.warning("Unusable news reply: %.200r", text)
        return FALLBACK_HEADLINES[int(rng.integers(len(FALLBACK_HEADLINES)))]

    def generate_weird_event(self, stats: CityStats, grid: Grid) -> WeirdEvent | None:
        """A weird dilemma. Offline gives the static-noise event; a garbled reply gives None."""
        text = self._ask(
            "You are a creative sci-fi writer engine. JSON only.",
            build_weird_event_prompt(build_city_summary(stats, grid)),
            temperature=0.9,
        )
        if text is None:
            return STATIC_NOISE_EVENT
        try:
            return parse_weird_event(text)
        except ValueError:
            logger.warning("Unusable weird-event reply: %.200r", text)
            return None

    def decide(self, event: WeirdEvent) -> bool:
        """Second call, as a responsible mayor. Defaults to NO."""
        text = self._ask(MAYOR_SYSTEM_PROMPT, build_decision_prompt(event.to_dict()), temperature=0.3)
        if text is None:
            return False
        try:
            return parse_decision(text)
        except ValueError:
            logger.warning("Unusable decision reply: %.200r", text)
            return False

    # ------------------------------------------------------------------
    # Engine integration
    # ------------------------------------------------------------------
    def refresh_goal(self, engine: CityEngine) -> AIGoal:
        grid, stats = engine.snapshot()
        goal = self.generate_goal(stats, grid, engine.rng)
        engine.set_goal(goal)
        return goal

    def publish_news(self, engine: CityEngine, recent_action: str | None = None) -> NewsItem:
        grid, stats = engine.snapshot()
        text, news_type = self.generate_news(stats, grid, engine.rng, recent_action)
        return engine.add_news(text, news_type)

    def run_weird_event(self, engine: CityEngine) -> NewsItem | None:
        """Generate, decide and narrate a weird event. Stats are untouched."""
        grid, stats = engine.snapshot()
        event = self.generate_weird_event(stats, grid)
        if event is None:
            return None
        accepted = self.decide(event)
        decision = "YES" if accepted else "NO"
        result = event.yes_effect if accepted else event.no_effect
        return engine.add_news(
            f'MAYOR RULING: "{event.title}" - {decision}! Result: {result}',
            NewsType.POSITIVE if accepted else NewsType.NEGATIVE,
        )
