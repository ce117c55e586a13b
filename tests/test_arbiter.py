"""Tests for the agent arbiter: retry, timeout, validation and failure memory."""

import threading
import time
from unittest.mock import MagicMock

import numpy as np

from axiom.core.buildings import BuildingType
from axiom.core.config import SimulationConfig
from axiom.core.engine import CityEngine
from axiom.core.grid import Grid
from axiom.core.stats import initial_stats
from axiom.core.validator import BuildAction, RejectionReason
from axiom.llm.arbiter import (
    MALFORMED_REASONING,
    NO_MOVES_REASONING,
    OFFLINE_REASONING,
    AgentArbiter,
    AgentContext,
    AgentLoop,
    FailureMemory,
)
from axiom.llm.client import LLMClient, LLMResponse, LLMUnavailableError
from axiom.llm.parsers import ActionKind, AgentAction


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _response(text: str) -> LLMResponse:
    return LLMResponse(text=text, model="test-model", input_tokens=100, output_tokens=50)


def _mock_client(text: str = '{"action": "WAIT"}') -> MagicMock:
    client = MagicMock(spec=LLMClient)
    client.complete.return_value = _response(text)
    return client


def _config(**overrides) -> SimulationConfig:
    params = {"grid_size": 10, "random_seed": 3, "proposer_timeout": 5.0}
    params.update(overrides)
    return SimulationConfig(**params)


def _engine(config: SimulationConfig) -> CityEngine:
    engine = CityEngine(config, terrain="flat")
    engine.set_agent_enabled(True)
    return engine


def _context() -> AgentContext:
    return AgentContext(summary={"day": 1, "money": 2000}, candidates=[], forbidden=[])


class TestFailureMemory:
    def test_fifo_eviction(self):
        memory = FailureMemory(capacity=20)
        for i in range(21):
            memory.record(i, i)
        assert len(memory) == 20
        assert (0, 0) not in memory
        assert (1, 1) in memory
        assert memory.items()[0] == (1, 1)

    def test_clear(self):
        memory = FailureMemory(capacity=3)
        memory.record(1, 2)
        memory.clear()
        assert len(memory) == 0


class TestContext:
    def test_candidates_are_affordable_and_empty(self):
        config = _config(candidate_tile_sample=4)
        arbiter = AgentArbiter(_mock_client(), config)
        grid = Grid.empty(10).with_building(0, 0, BuildingType.ROAD)
        context = arbiter.build_context(grid, initial_stats(money=300), np.random.default_rng(1))
        assert context.candidates
        types = {c.building_type for c in context.candidates}
        assert BuildingType.HOSPITAL not in types
        assert BuildingType.RESIDENTIAL in types
        assert len({(c.x, c.y) for c in context.candidates}) <= 4
        assert all((c.x, c.y) != (0, 0) for c in context.candidates)

    def test_forbidden_tiles_excluded(self):
        config = _config(candidate_tile_sample=200)
        arbiter = AgentArbiter(_mock_client(), config)
        arbiter.failures.record(5, 5)
        context = arbiter.build_context(Grid.empty(10), initial_stats(), np.random.default_rng(1))
        assert all((c.x, c.y) != (5, 5) for c in context.candidates)
        assert context.forbidden == [(5, 5)]
        assert "[5,5]" in context.prompt()

    def test_bridges_offered_on_water(self):
        arbiter = AgentArbiter(_mock_client(), _config())
        grid = Grid.empty(10).with_building(4, 4, BuildingType.WATER)
        context = arbiter.build_context(grid, initial_stats(), np.random.default_rng(1))
        bridges = [c for c in context.candidates if c.building_type == BuildingType.BRIDGE]
        assert [(c.x, c.y) for c in bridges] == [(4, 4)]

    def test_capped_types_not_offered(self):
        arbiter = AgentArbiter(_mock_client(), _config())
        grid = Grid.empty(10).with_building(0, 0, BuildingType.STADIUM)
        types = arbiter.affordable_types(grid, initial_stats(money=10**6))
        assert BuildingType.STADIUM not in types
        assert BuildingType.MEGA_MALL in types


class TestPropose:
    def test_offline_is_wait(self):
        arbiter = AgentArbiter(None, _config())
        action = arbiter.propose(_context())
        assert action.kind == ActionKind.WAIT
        assert action.reasoning == OFFLINE_REASONING

    def test_decodes_reply(self):
        client = _mock_client('{"action": "BUILD", "buildingType": "Park", "x": 1, "y": 1}')
        action = AgentArbiter(client, _config()).propose(_context())
        assert action.kind == ActionKind.BUILD
        kwargs = client.complete.call_args.kwargs
        assert kwargs["messages"][0]["role"] == "user"

    def test_malformed_is_wait(self):
        action = AgentArbiter(_mock_client("I refuse."), _config()).propose(_context())
        assert action.kind == ActionKind.WAIT
        assert action.reasoning == MALFORMED_REASONING

    def test_retries_once_on_server_error(self):
        client = _mock_client()
        client.complete.side_effect = [
            LLMUnavailableError("boom", status_code=503),
            _response('{"action": "DEMOLISH", "x": 2, "y": 3}'),
        ]
        action = AgentArbiter(client, _config()).propose(_context())
        assert action.kind == ActionKind.DEMOLISH
        assert client.complete.call_count == 2

    def test_retries_on_transport_error(self):
        client = _mock_client()
        client.complete.side_effect = [
            LLMUnavailableError("refused"),
            _response('{"action": "WAIT"}'),
        ]
        AgentArbiter(client, _config()).propose(_context())
        assert client.complete.call_count == 2

    def test_no_retry_on_client_error(self):
        client = _mock_client()
        client.complete.side_effect = LLMUnavailableError("bad request", status_code=400)
        action = AgentArbiter(client, _config()).propose(_context())
        assert action.reasoning == OFFLINE_REASONING
        assert client.complete.call_count == 1

    def test_retry_budget_exhausted(self):
        client = _mock_client()
        client.complete.side_effect = LLMUnavailableError("down", status_code=500)
        action = AgentArbiter(client, _config(proposer_retries=1)).propose(_context())
        assert action.reasoning == OFFLINE_REASONING
        assert client.complete.call_count == 2

    def test_timeout_is_wait(self):
        release = threading.Event()

        def _slow(**kwargs):
            release.wait(5.0)
            return _response('{"action": "WAIT"}')

        client = _mock_client()
        client.complete.side_effect = _slow
        arbiter = AgentArbiter(client, _config(proposer_timeout=0.1))
        started = time.monotonic()
        action = arbiter.propose(_context())
        release.set()
        assert time.monotonic() - started < 2.0
        assert action.kind == ActionKind.WAIT
        assert action.reasoning == OFFLINE_REASONING
        arbiter.shutdown()


class TestApply:
    def test_accepted_build(self):
        config = _config()
        engine = _engine(config)
        arbiter = AgentArbiter(_mock_client(), config)
        action = AgentAction(ActionKind.BUILD, BuildingType.PARK, 2, 2, reasoning="Fresh air!")
        outcome = arbiter.apply(engine, action)
        assert outcome.applied
        assert engine.grid.get(2, 2).building_type == BuildingType.PARK
        assert engine.grid.get(2, 2).placed_by == "AI"
        assert engine.recent_news()[-1].text == "Fresh air!"
        assert arbiter.last_outcome is outcome

    def test_rejection_recorded(self):
        config = _config()
        engine = _engine(config)
        engine.apply_action(BuildAction(BuildingType.PARK, 2, 2))
        arbiter = AgentArbiter(_mock_client(), config)
        outcome = arbiter.apply(engine, AgentAction(ActionKind.BUILD, BuildingType.ROAD, 2, 2))
        assert not outcome.applied
        assert outcome.rejection == RejectionReason.TILE_OCCUPIED
        assert (2, 2) in arbiter.failures
        assert outcome.to_dict()["rejection"] == "tile_occupied"

    def test_disabled_agent_ignored(self):
        config = _config()
        engine = _engine(config)
        engine.set_agent_enabled(False)
        arbiter = AgentArbiter(_mock_client(), config)
        outcome = arbiter.apply(engine, AgentAction(ActionKind.BUILD, BuildingType.PARK, 2, 2))
        assert outcome.ignored
        assert engine.grid.get(2, 2).is_empty
        assert engine.stats.money == 2000

    def test_wait_changes_nothing(self):
        config = _config()
        engine = _engine(config)
        outcome = AgentArbiter(None, config).apply(engine, AgentAction(ActionKind.WAIT))
        assert not outcome.applied
        assert engine.stats.money == 2000


class TestStep:
    def test_full_cycle(self):
        config = _config()
        engine = _engine(config)
        client = _mock_client('{"action": "BUILD", "buildingType": "Road", "x": 4, "y": 4}')
        outcome = AgentArbiter(client, config).step(engine)
        assert outcome.applied
        prompt = client.complete.call_args.kwargs["messages"][0]["content"]
        assert "Available Moves" in prompt

    def test_no_moves_when_broke(self):
        config = _config(initial_money=0)
        engine = _engine(config)
        client = _mock_client()
        outcome = AgentArbiter(client, config).step(engine)
        assert outcome.action.reasoning == NO_MOVES_REASONING
        client.complete.assert_not_called()

    def test_offline_step(self):
        config = _config()
        engine = _engine(config)
        outcome = AgentArbiter(None, config).step(engine)
        assert outcome.action.reasoning == OFFLINE_REASONING


class TestAgentLoop:
    def test_loop_runs_and_stops(self):
        config = _config()
        engine = _engine(config)
        client = _mock_client('{"action": "BUILD", "buildingType": "Road", "x": 4, "y": 4}')
        arbiter = AgentArbiter(client, config)
        loop = AgentLoop(engine, arbiter, delay=0.01)
        loop.start()
        deadline = time.monotonic() + 2.0
        while arbiter.last_outcome is None and time.monotonic() < deadline:
            time.sleep(0.01)
        loop.stop()
        assert not loop.running
        assert engine.grid.get(4, 4).building_type == BuildingType.ROAD
