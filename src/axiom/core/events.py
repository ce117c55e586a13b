"""
Macro-economic events: booms, recessions, strikes, audits, festivals and
the (astronomically rare) exodus.

At most one event is active. It counts down once per tick and clears at
zero; a new one can only be rolled while none is active.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from axiom.core.stats import CityStats, EconomicEvent, NewsType


@dataclass(frozen=True)
class EventEffect:
    """What an active event does each tick while it lasts."""
    duration: int
    revenue_multiplier: float = 1.0
    happiness_shift: float = 0.0
    share_trend: float = 1.0
    cost_per_capita: float = 0.0
    headline: str = ""
    news_type: NewsType = NewsType.NEUTRAL


NO_EFFECT = EventEffect(duration=0)

EVENT_EFFECTS: dict[EconomicEvent, EventEffect] = {
    EconomicEvent.BOOM: EventEffect(
        duration=20, revenue_multiplier=1.5, happiness_shift=10.0, share_trend=1.05,
        headline="MARKET BOOM! Business is thriving. Tax revenue up!",
        news_type=NewsType.POSITIVE,
    ),
    EconomicEvent.RECESSION: EventEffect(
        duration=20, revenue_multiplier=0.7, happiness_shift=-10.0, share_trend=0.95,
        headline="RECESSION! Market crash. Revenue down.",
        news_type=NewsType.NEGATIVE,
    ),
    EconomicEvent.STRIKE: EventEffect(
        duration=10, revenue_multiplier=0.2, happiness_shift=-20.0,
        headline="GENERAL STRIKE! Workers demand better conditions. Production halted.",
        news_type=NewsType.NEGATIVE,
    ),
    EconomicEvent.AUDIT: EventEffect(
        duration=5, revenue_multiplier=0.5,
        headline="TAX AUDIT! Accounts frozen for investigation.",
    ),
    EconomicEvent.FESTIVAL: EventEffect(
        duration=5, happiness_shift=15.0, cost_per_capita=1.0,
        headline="CITY FESTIVAL! Parades fill the streets, paid for by the treasury.",
        news_type=NewsType.POSITIVE,
    ),
    EconomicEvent.EXODUS: EventEffect(
        duration=30, revenue_multiplier=0.5, happiness_shift=-30.0, share_trend=0.9,
        headline="MASS DESERTION! Citizens are abandoning civilization in droves.",
        news_type=NewsType.NEGATIVE,
    ),
}

# Cumulative roll thresholds, checked in order against a single uniform draw.
BOOM_THRESHOLD = 0.05
RECESSION_THRESHOLD = 0.10
STRIKE_THRESHOLD = 0.15
STRIKE_HAPPINESS_CEILING = 40.0
AUDIT_THRESHOLD = 0.12
AUDIT_MONEY_FLOOR = 5000
FESTIVAL_THRESHOLD = 0.17
EXODUS_PROBABILITY = 1e-15


def effect_of(event: EconomicEvent) -> EventEffect:
    """Effect table row for an event (neutral for ``NONE``)."""
    return EVENT_EFFECTS.get(event, NO_EFFECT)


def decay_event(stats: CityStats) -> None:
    """Count the active event down one tick, clearing it at zero.

    Operates on a stats record the caller already owns.
    """
    if stats.active_event == EconomicEvent.NONE:
        return
    stats.event_duration -= 1
    if stats.event_duration <= 0:
        stats.active_event = EconomicEvent.NONE
        stats.event_duration = 0


def roll_event(
    stats: CityStats,
    rng: np.random.Generator,
    exodus_probability: float = EXODUS_PROBABILITY,
) -> EconomicEvent | None:
    """Draw a new event, or ``None`` when nothing starts this tick.

    Always ``None`` while another event is active. Boom and Recession are
    the common outcomes; a Strike needs low happiness and an Audit a fat
    treasury. Exodus is checked with its own independent draw.
    """
    if stats.active_event != EconomicEvent.NONE:
        return None

    roll = rng.random()
    chosen: EconomicEvent | None = None
    if roll < BOOM_THRESHOLD:
        chosen = EconomicEvent.BOOM
    elif roll < RECESSION_THRESHOLD:
        chosen = EconomicEvent.RECESSION
    elif stats.happiness < STRIKE_HAPPINESS_CEILING and roll < STRIKE_THRESHOLD:
        chosen = EconomicEvent.STRIKE
    elif stats.money > AUDIT_MONEY_FLOOR and roll < AUDIT_THRESHOLD:
        chosen = EconomicEvent.AUDIT
    elif roll < FESTIVAL_THRESHOLD:
        chosen = EconomicEvent.FESTIVAL

    if rng.random() < exodus_probability:
        chosen = EconomicEvent.EXODUS
    return chosen


def start_event(stats: CityStats, event: EconomicEvent) -> None:
    """Activate ``event`` on a stats record the caller already owns."""
    stats.active_event = event
    stats.event_duration = effect_of(event).duration
