"""Tests for macro-economic event rolls."""

from unittest.mock import MagicMock

from axiom.core.events import (
    EVENT_EFFECTS,
    EXODUS_PROBABILITY,
    decay_event,
    effect_of,
    roll_event,
    start_event,
)
from axiom.core.stats import EconomicEvent, initial_stats


def _rng(*draws):
    """Generator stand-in returning the given uniform draws in order."""
    rng = MagicMock()
    rng.random.side_effect = list(draws)
    return rng


class TestRoll:
    def test_boom(self):
        assert roll_event(initial_stats(), _rng(0.01, 0.9)) == EconomicEvent.BOOM

    def test_recession(self):
        assert roll_event(initial_stats(), _rng(0.07, 0.9)) == EconomicEvent.RECESSION

    def test_strike_needs_unhappiness(self):
        stats = initial_stats()
        stats.happiness = 30
        assert roll_event(stats, _rng(0.12, 0.9)) == EconomicEvent.STRIKE
        stats.happiness = 90
        # Falls through to the festival band instead
        assert roll_event(stats, _rng(0.12, 0.9)) == EconomicEvent.FESTIVAL

    def test_audit_needs_money(self):
        stats = initial_stats(money=8000)
        assert roll_event(stats, _rng(0.11, 0.9)) == EconomicEvent.AUDIT

    def test_festival_band(self):
        assert roll_event(initial_stats(), _rng(0.16, 0.9)) == EconomicEvent.FESTIVAL

    def test_quiet_tick(self):
        assert roll_event(initial_stats(), _rng(0.5, 0.9)) is None

    def test_exodus_overrides(self):
        stats = initial_stats()
        assert roll_event(stats, _rng(0.5, 0.0), exodus_probability=0.5) == EconomicEvent.EXODUS

    def test_default_exodus_odds(self):
        assert EXODUS_PROBABILITY == 1e-15
        assert roll_event(initial_stats(), _rng(0.5, 5e-16)) == EconomicEvent.EXODUS
        assert roll_event(initial_stats(), _rng(0.5, 5e-15)) is None

    def test_nothing_rolls_while_active(self):
        stats = initial_stats()
        stats.active_event = EconomicEvent.BOOM
        rng = _rng()
        assert roll_event(stats, rng) is None
        rng.random.assert_not_called()


class TestLifecycle:
    def test_start_sets_duration(self):
        stats = initial_stats()
        start_event(stats, EconomicEvent.STRIKE)
        assert stats.active_event == EconomicEvent.STRIKE
        assert stats.event_duration == EVENT_EFFECTS[EconomicEvent.STRIKE].duration

    def test_decay_to_none(self):
        stats = initial_stats()
        start_event(stats, EconomicEvent.AUDIT)
        for _ in range(EVENT_EFFECTS[EconomicEvent.AUDIT].duration):
            decay_event(stats)
        assert stats.active_event == EconomicEvent.NONE
        assert stats.event_duration == 0

    def test_decay_noop_when_idle(self):
        stats = initial_stats()
        decay_event(stats)
        assert stats.event_duration == 0

    def test_none_has_neutral_effect(self):
        effect = effect_of(EconomicEvent.NONE)
        assert effect.revenue_multiplier == 1.0
        assert effect.happiness_shift == 0.0

    def test_every_event_has_headline(self):
        for event, effect in EVENT_EFFECTS.items():
            assert effect.headline, event
            assert effect.duration > 0
