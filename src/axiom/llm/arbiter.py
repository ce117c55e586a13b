"""
Agent action arbiter.

Treats the proposer as an untrusted suggestion source. Each cycle:

1. Snapshot the city and offer a short list of legal candidate moves.
2. Ask the proposer, off the calling thread, with one retry on transport
   or server errors and a hard timeout.
3. Decode the reply strictly; anything malformed becomes WAIT.
4. Re-validate the move through ``CityEngine.apply_action``; a rejected
   coordinate goes into a bounded FIFO so it is not offered again until
   it ages out.

``AgentLoop`` runs those cycles on a daemon thread with a fixed think
delay, independent of the tick thread.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np

from axiom.core.buildings import BUILDABLE_TYPES, BuildingType, get_config
from axiom.core.grid import Grid
from axiom.core.stats import CityStats, NewsType
from axiom.core.validator import (
    Accepted,
    BuildAction,
    DemolishAction,
    RejectionReason,
    ValidationResult,
)
from axiom.llm.client import LLMClient, LLMUnavailableError
from axiom.llm.parsers import ActionKind, AgentAction, parse_agent_action
from axiom.llm.prompts import AGENT_SYSTEM_PROMPT, build_agent_prompt, build_city_summary

if TYPE_CHECKING:
    from axiom.core.config import SimulationConfig
    from axiom.core.engine import CityEngine

logger = logging.getLogger(__name__)

OFFLINE_REASONING = "AI is offline. Holding position."
MALFORMED_REASONING = "Proposal was unreadable. Holding position."
NO_MOVES_REASONING = "No legal moves available. Saving money."


def wait_action(reasoning: str) -> AgentAction:
    return AgentAction(kind=ActionKind.WAIT, reasoning=reasoning)


# ---------------------------------------------------------------------------
# Failure memory
# ---------------------------------------------------------------------------

class FailureMemory:
    """Bounded FIFO of recently rejected ``(x, y)`` coordinates."""

    def __init__(self, capacity: int = 20) -> None:
        self.capacity = capacity
        self._items: deque[tuple[int, int]] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def record(self, x: int, y: int) -> None:
        with self._lock:
            self._items.append((x, y))

    def items(self) -> list[tuple[int, int]]:
        with self._lock:
            return list(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __contains__(self, coords: object) -> bool:
        with self._lock:
            return coords in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Candidate:
    building_type: BuildingType
    x: int
    y: int

    def to_dict(self) -> dict[str, Any]:
        return {"buildingType": self.building_type.value, "x": self.x, "y": self.y}


@dataclass
class AgentContext:
    """What the proposer is shown for one decision."""
    summary: dict[str, Any]
    candidates: list[Candidate] = field(default_factory=list)
    forbidden: list[tuple[int, int]] = field(default_factory=list)

    def prompt(self) -> str:
        return build_agent_prompt(
            self.summary, [c.to_dict() for c in self.candidates], self.forbidden,
        )


@dataclass
class ArbiterOutcome:
    """Result of applying one proposal."""
    action: AgentAction
    applied: bool = False
    ignored: bool = False
    rejection: RejectionReason | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.to_dict(),
            "applied": self.applied,
            "ignored": self.ignored,
            "rejection": self.rejection.value if self.rejection else None,
        }


# ---------------------------------------------------------------------------
# Arbiter
# ---------------------------------------------------------------------------

class AgentArbiter:
    """Wraps a proposer client with retry, timeout and validation.

    Parameters
    ----------
    client : LLMClient | None
        Proposer. ``None`` means offline: every proposal is WAIT.
    config : SimulationConfig
        Supplies timeout, retry budget, failure memory size and sample size.
    """

    def __init__(self, client: LLMClient | None, config: SimulationConfig) -> None:
        self.client = client
        self.config = config
        self.failures = FailureMemory(config.failure_memory_size)
        self.last_outcome: ArbiterOutcome | None = None
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="proposer")

    # ------------------------------------------------------------------
    # Context
    # ------------------------------------------------------------------
    def affordable_types(self, grid: Grid, stats: CityStats) -> list[BuildingType]:
        """Buildable types the treasury covers and the city has room for."""
        counts = grid.building_counts()
        result = []
        for btype in BUILDABLE_TYPES:
            cfg = get_config(btype)
            if cfg.cost > stats.money:
                continue
            if cfg.max_allowed is not None and counts.get(btype.value, 0) >= cfg.max_allowed:
                continue
            result.append(btype)
        return result

    def build_context(
        self,
        grid: Grid,
        stats: CityStats,
        rng: np.random.Generator,
    ) -> AgentContext:
        """Summary plus legal candidate moves.

        Candidates are every affordable type on a random sample of empty,
        unlocked tiles that have not recently failed, plus water tiles for
        Bridge.
        """
        forbidden = self.failures.items()
        blocked = set(forbidden)
        size = stats.unlocked_grid_size
        sample_size = self.config.candidate_tile_sample

        def _sample(tiles: list) -> list:
            tiles = [t for t in tiles if t.coords not in blocked and grid.is_unlocked(t.x, t.y, size)]
            if len(tiles) <= sample_size:
                return tiles
            picks = rng.choice(len(tiles), size=sample_size, replace=False)
            return [tiles[int(i)] for i in sorted(picks)]

        types = self.affordable_types(grid, stats)
        candidates: list[Candidate] = []

        land_types = [t for t in types if t != BuildingType.BRIDGE]
        if land_types:
            for tile in _sample(grid.empty_tiles()):
                candidates.extend(Candidate(t, tile.x, tile.y) for t in land_types)
        if BuildingType.BRIDGE in types:
            for tile in _sample(grid.water_tiles()):
                candidates.append(Candidate(BuildingType.BRIDGE, tile.x, tile.y))

        return AgentContext(
            summary=build_city_summary(stats, grid),
            candidates=candidates,
            forbidden=forbidden,
        )

    # ------------------------------------------------------------------
    # Proposal
    # ------------------------------------------------------------------
    def _call_with_retry(self, prompt: str) -> str:
        attempts = 1 + max(0, self.config.proposer_retries)
        for attempt in range(attempts):
            try:
                response = self.client.complete(
                    system=AGENT_SYSTEM_PROMPT,
                    messages=[{"role": "user", "content": prompt}],
                    max_tokens=512,
                    temperature=0.7,
                )
                return response.text
            except LLMUnavailableError as e:
                if not e.retryable or attempt == attempts - 1:
                    raise
                logger.warning("Proposer attempt %d failed, retrying: %s", attempt + 1, e)
        raise LLMUnavailableError("Proposer retry budget exhausted")

    def propose(self, context: AgentContext) -> AgentAction:
        """Ask the proposer for one move. Never raises.

        Unavailability or a timeout yields WAIT with ``OFFLINE_REASONING``;
        an unreadable reply yields WAIT with ``MALFORMED_REASONING``.
        """
        if self.client is None:
            return wait_action(OFFLINE_REASONING)

        future = self._executor.submit(self._call_with_retry, context.prompt())
        try:
            text = future.result(timeout=self.config.proposer_timeout)
        except FutureTimeoutError:
            logger.warning("Proposer timed out after %.0fs", self.config.proposer_timeout)
            return wait_action(OFFLINE_REASONING)
        except LLMUnavailableError:
            logger.warning("Proposer unavailable", exc_info=True)
            return wait_action(OFFLINE_REASONING)
        except Exception:
            logger.warning("Proposer call failed", exc_info=True)
            return wait_action(OFFLINE_REASONING)

        try:
            return parse_agent_action(text)
        except ValueError:
            logger.warning("Malformed proposer reply: %.200r", text)
            return wait_action(MALFORMED_REASONING)

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------
    def apply(self, engine: CityEngine, action: AgentAction) -> ArbiterOutcome:
        """Re-validate and apply a proposal through the engine.

        A no-op when the agent has been disabled since the proposal was
        requested. Rejected coordinates enter the failure memory.
        """
        if not engine.agent_enabled:
            outcome = ArbiterOutcome(action=action, ignored=True)
        elif action.kind == ActionKind.WAIT:
            outcome = ArbiterOutcome(action=action)
        else:
            if action.kind == ActionKind.BUILD:
                op: BuildAction | DemolishAction = BuildAction(action.building_type, action.x, action.y)
            else:
                op = DemolishAction(action.x, action.y)
            result: ValidationResult = engine.apply_action(op, actor="AI")
            if isinstance(result, Accepted):
                logger.info(
                    "Agent %s %s at (%d, %d)", action.kind.value,
                    result.new_type.value, action.x, action.y,
                )
                if action.reasoning:
                    engine.add_news(action.reasoning, NewsType.NEUTRAL)
                outcome = ArbiterOutcome(action=action, applied=True)
            else:
                self.failures.record(action.x, action.y)
                logger.info(
                    "Agent move rejected at (%d, %d): %s", action.x, action.y, result.reason.value,
                )
                outcome = ArbiterOutcome(action=action, rejection=result.reason)

        self.last_outcome = outcome
        return outcome

    def step(self, engine: CityEngine) -> ArbiterOutcome:
        """One full snapshot, propose, apply cycle."""
        grid, stats = engine.snapshot()
        context = self.build_context(grid, stats, engine.rng)
        if not context.candidates and self.client is not None:
            action = wait_action(NO_MOVES_REASONING)
        else:
            action = self.propose(context)
        return self.apply(engine, action)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)


# ---------------------------------------------------------------------------
# Background loop
# ---------------------------------------------------------------------------

class AgentLoop:
    """Daemon thread running arbiter cycles every ``agent_think_delay`` seconds."""

    def __init__(self, engine: CityEngine, arbiter: AgentArbiter, delay: float | None = None) -> None:
        self.engine = engine
        self.arbiter = arbiter
        self.delay = arbiter.config.agent_think_delay if delay is None else delay
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="agent-loop")
        self._thread.start()

    def stop(self, timeout: float | None = 1.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self._stop.wait(self.delay):
            if not self.engine.agent_enabled:
                continue
            try:
                self.arbiter.step(self.engine)
            except Exception:
                logger.exception("Agent cycle failed")
