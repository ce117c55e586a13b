"""
Session manager for city games with SQLite persistence.

Each session wraps a CityEngine + MetricsCollector together with the
agent arbiter and advisor that act on it. A running session owns two
daemon threads: a ``TickDriver`` that advances the simulation every
``tick_period`` seconds, and an ``AgentLoop`` that asks the proposer for a
move every ``agent_think_delay`` seconds. Both write through the engine's
lock, so neither can observe the other's half-applied state.

Sessions are auto-saved to SQLite after actions and periodically while
running. On startup only metadata is loaded; full state is deserialized
lazily on first access.
"""

from __future__ import annotations

import logging
import os
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable

import numpy as np

from axiom.core.config import SimulationConfig
from axiom.core.disasters import DisasterEffect, DisasterType
from axiom.core.engine import CityEngine, TickResult
from axiom.core.goals import claim_reward
from axiom.core.stats import AIGoal, CityStats, NewsType
from axiom.core.validator import Action, ValidationResult
from axiom.llm.advisor import CityAdvisor
from axiom.llm.arbiter import AgentArbiter, AgentLoop, ArbiterOutcome
from axiom.llm.client import LLMClient, LLMUnavailableError, create_client
from axiom.metrics.collector import MetricsCollector

logger = logging.getLogger(__name__)

AUTOSAVE_EVERY_TICKS = 10


def client_from_env() -> LLMClient | None:
    """Build the proposer named by ``AXIOM_LLM_PROVIDER``.

    Returns ``None`` (offline mode) when no provider is configured or the
    provider cannot be constructed.
    """
    provider = os.environ.get("AXIOM_LLM_PROVIDER")
    if not provider:
        return None
    try:
        return create_client(
            provider=provider,
            model=os.environ.get("AXIOM_LLM_MODEL") or None,
            base_url=os.environ.get("AXIOM_LLM_BASE_URL") or None,
            api_key=os.environ.get("AXIOM_LLM_API_KEY") or None,
        )
    except (LLMUnavailableError, ValueError):
        logger.warning("LLM provider %r unavailable, running offline", provider, exc_info=True)
        return None


class TickDriver:
    """Daemon thread calling ``on_tick`` every ``period`` seconds.

    A failing tick is logged and the loop carries on.
    """

    def __init__(self, period: float, on_tick: Callable[[], Any], name: str = "tick-driver") -> None:
        self.period = period
        self.on_tick = on_tick
        self.name = name
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name=self.name)
        self._thread.start()

    def stop(self, timeout: float | None = 1.0) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self._stop.wait(self.period):
            try:
                self.on_tick()
            except Exception:
                logger.exception("Tick failed in %s", self.name)


@dataclass
class GameSession:
    """A city and everything acting on it."""

    id: str
    name: str
    config: SimulationConfig
    engine: CityEngine
    collector: MetricsCollector
    arbiter: AgentArbiter
    advisor: CityAdvisor
    status: str = "created"  # created | running | stopped
    driver: TickDriver | None = None
    agent_loop: AgentLoop | None = None
    # Advisor requests in flight; guarded by requests_lock
    weird_event_open: bool = False
    goal_pending: bool = False
    requests_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def claim_request(self, flag: str) -> bool:
        """Set ``flag`` unless it is already set. True when this call set it."""
        with self.requests_lock:
            if getattr(self, flag):
                return False
            setattr(self, flag, True)
            return True

    def release_request(self, flag: str) -> None:
        with self.requests_lock:
            setattr(self, flag, False)

    @property
    def running(self) -> bool:
        return self.driver is not None and self.driver.running


class SessionManager:
    """Manages multiple city sessions with optional SQLite persistence.

    Parameters
    ----------
    db_path : str | None
        Path to the SQLite database file. ``None`` disables persistence
        (pure in-memory mode).
    client : LLMClient | None
        Proposer shared by every session. Defaults to ``client_from_env()``;
        pass ``None`` explicitly with ``offline=True`` to force offline mode.
    offline : bool
        Skip environment lookup and run without a proposer.
    """

    def __init__(
        self,
        db_path: str | None = "data/axiom.db",
        client: LLMClient | None = None,
        offline: bool = False,
    ):
        self.sessions: dict[str, GameSession] = {}
        self.client = client if (client is not None or offline) else client_from_env()

        # Metadata for sessions persisted but not yet loaded into memory.
        self._session_index: dict[str, dict[str, Any]] = {}

        self._store = None
        if db_path is not None:
            from axiom.api.persistence import SessionStore
            self._store = SessionStore(db_path)
            self._load_index()

    def _load_index(self) -> None:
        """Populate _session_index from the database (metadata only)."""
        if self._store is None or not self._store.available:
            return
        for row in self._store.list_sessions():
            sid = row["id"]
            if sid not in self.sessions:
                self._session_index[sid] = row

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    def _persist_session(self, session: GameSession) -> None:
        """Save a session to the database (best-effort)."""
        if self._store is None or not self._store.available:
            return
        try:
            from axiom.api.persistence import build_state_blob

            grid, stats = session.engine.snapshot()
            blob = build_state_blob(
                grid=grid,
                stats=stats,
                news=session.engine.recent_news(),
                history=session.engine.history_entries(),
                metrics_history=list(session.collector.metrics_history),
            )
            self._store.save_session(
                session_id=session.id,
                name=session.name,
                status=session.status,
                stats=stats,
                config=session.config,
                state_blob=blob,
            )
            self._session_index.pop(session.id, None)
        except Exception:
            logger.warning(
                "Failed to persist session %s", session.id, exc_info=True,
            )

    def _load_session_from_db(self, session_id: str) -> GameSession | None:
        """Fully load a session from the database into memory."""
        if self._store is None or not self._store.available:
            return None
        try:
            from axiom.api.persistence import restore_state
            record = self._store.load_session(session_id)
            if record is None:
                return None

            config = SimulationConfig.from_json(record["config_json"])
            state = restore_state(record["state_blob"])
            engine = CityEngine(config, grid=state["grid"], stats=state["stats"])
            engine.news.extend(state["news"])
            engine.history.extend(state["history"])

            # Reseed RNG deterministically: seed + day
            if config.random_seed is not None:
                engine.rng = np.random.default_rng(config.random_seed + engine.stats.day)

            collector = MetricsCollector()
            collector.metrics_history = state["metrics_history"]

            status = record["status"]
            return self._build_session(
                record["id"], record["name"], config, engine, collector,
                status="stopped" if status == "running" else status,
            )
        except Exception:
            logger.warning(
                "Failed to load session %s from database", session_id,
                exc_info=True,
            )
            return None

    def _build_session(
        self,
        session_id: str,
        name: str,
        config: SimulationConfig,
        engine: CityEngine,
        collector: MetricsCollector,
        status: str = "created",
    ) -> GameSession:
        return GameSession(
            id=session_id,
            name=name,
            config=config,
            engine=engine,
            collector=collector,
            arbiter=AgentArbiter(self.client, config),
            advisor=CityAdvisor(self.client),
            status=status,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create_session(
        self,
        config: SimulationConfig | None = None,
        name: str | None = None,
        terrain: str = "noise",
    ) -> GameSession:
        """Create a new city session."""
        if config is None:
            config = SimulationConfig()

        session_id = uuid.uuid4().hex[:8]
        engine = CityEngine(config, terrain=terrain)
        session = self._build_session(
            session_id, name or config.city_name, config, engine, MetricsCollector(),
        )

        self.sessions[session_id] = session
        self._persist_session(session)
        logger.info("Created session %s (%s)", session_id, session.name)
        return session

    def get_session(self, session_id: str) -> GameSession:
        """Get a session by ID. Lazy-loads from DB if needed.

        Raises KeyError if not found in memory or database.
        """
        if session_id in self.sessions:
            return self.sessions[session_id]

        if session_id in self._session_index or (
            self._store is not None and self._store.has_session(session_id)
        ):
            session = self._load_session_from_db(session_id)
            if session is not None:
                self.sessions[session_id] = session
                self._session_index.pop(session_id, None)
                return session

        raise KeyError(f"Session '{session_id}' not found")

    def list_sessions(self) -> list[dict[str, Any]]:
        """List all sessions as summary dicts (in-memory + persisted)."""
        seen: set[str] = set()
        result: list[dict[str, Any]] = []

        for s in self.sessions.values():
            seen.add(s.id)
            _, stats = s.engine.snapshot()
            result.append({
                "id": s.id,
                "name": s.name,
                "status": s.status,
                "day": stats.day,
                "population": stats.population,
                "money": stats.money,
            })

        for sid, meta in self._session_index.items():
            if sid not in seen:
                seen.add(sid)
                result.append({
                    "id": meta["id"],
                    "name": meta["name"],
                    "status": meta["status"],
                    "day": meta["day"],
                    "population": meta["population"],
                    "money": meta["money"],
                })

        return result

    def delete_session(self, session_id: str) -> None:
        """Stop and delete a session from memory and database."""
        in_memory = session_id in self.sessions
        in_index = session_id in self._session_index
        in_db = self._store is not None and self._store.has_session(session_id)

        if not in_memory and not in_index and not in_db:
            raise KeyError(f"Session '{session_id}' not found")

        session = self.sessions.pop(session_id, None)
        if session is not None:
            self._halt(session)
            session.arbiter.shutdown()
        self._session_index.pop(session_id, None)

        if self._store is not None:
            self._store.delete_session(session_id)

    # ------------------------------------------------------------------
    # Ticking
    # ------------------------------------------------------------------

    def _tick(self, session: GameSession) -> TickResult:
        result = session.engine.tick()
        grid, stats = session.engine.snapshot()
        session.collector.collect(stats, grid)
        self._dispatch_requests(session, result)
        return result

    def _dispatch_requests(self, session: GameSession, result: TickResult) -> None:
        """Run advisor calls the tick asked for, off the calling thread.

        Only one weird event is open per session; a request arriving while
        one is being decided is dropped.
        """
        if result.weird_event_requested and session.claim_request("weird_event_open"):
            self._run_advisor(
                session,
                lambda: session.advisor.run_weird_event(session.engine),
                release="weird_event_open",
            )
        elif result.news_requested:
            self._run_advisor(session, lambda: session.advisor.publish_news(session.engine))

    def _run_advisor(
        self,
        session: GameSession,
        target: Callable[[], Any],
        release: str | None = None,
    ) -> threading.Thread:
        def _worker():
            try:
                target()
            except Exception:
                logger.exception("Advisor request failed for %s", session.id)
            finally:
                if release is not None:
                    session.release_request(release)

        thread = threading.Thread(target=_worker, daemon=True, name=f"advisor-{session.id}")
        thread.start()
        return thread

    def _request_goal(self, session: GameSession) -> bool:
        """Fetch a goal in the background for an agent-run city with none.

        Ignored while a fetch is in flight. A failed fetch is retried after
        ``goal_retry_delay`` seconds while the agent stays enabled.
        """
        _, stats = session.engine.snapshot()
        if not session.engine.agent_enabled or stats.current_goal is not None:
            return False
        if not session.claim_request("goal_pending"):
            return False

        def _fetch():
            try:
                session.advisor.refresh_goal(session.engine)
            except Exception:
                logger.warning(
                    "Goal request failed for %s, retrying in %.1fs",
                    session.id, session.config.goal_retry_delay, exc_info=True,
                )
                session.release_request("goal_pending")
                if session.id in self.sessions:
                    retry = threading.Timer(session.config.goal_retry_delay, self._request_goal, args=(session,))
                    retry.daemon = True
                    retry.start()
                return
            session.release_request("goal_pending")

        threading.Thread(target=_fetch, daemon=True, name=f"goal-{session.id}").start()
        return True

    def step(self, session_id: str, n: int = 1) -> list[TickResult]:
        """Advance a session by N ticks synchronously."""
        session = self.get_session(session_id)
        results = [self._tick(session) for _ in range(max(0, n))]
        self._persist_session(session)
        return results

    def start(self, session_id: str) -> GameSession:
        """Start the tick driver and the agent loop."""
        session = self.get_session(session_id)
        if session.running:
            return session

        counter = {"ticks": 0}

        def _on_tick():
            self._tick(session)
            counter["ticks"] += 1
            if counter["ticks"] % AUTOSAVE_EVERY_TICKS == 0:
                self._persist_session(session)

        session.driver = TickDriver(session.config.tick_period, _on_tick, name=f"tick-{session.id}")
        session.agent_loop = AgentLoop(session.engine, session.arbiter)
        session.driver.start()
        session.agent_loop.start()
        session.status = "running"
        self._persist_session(session)
        self._request_goal(session)
        return session

    def stop(self, session_id: str) -> GameSession:
        """Stop background threads and save."""
        session = self.get_session(session_id)
        self._halt(session)
        if session.status == "running":
            session.status = "stopped"
        self._persist_session(session)
        return session

    def _halt(self, session: GameSession) -> None:
        if session.driver is not None:
            session.driver.stop()
            session.driver = None
        if session.agent_loop is not None:
            session.agent_loop.stop()
            session.agent_loop = None

    def is_running(self, session_id: str) -> bool:
        session = self.sessions.get(session_id)
        return session is not None and session.running

    # ------------------------------------------------------------------
    # Player and agent operations
    # ------------------------------------------------------------------

    def apply_action(self, session_id: str, op: Action, actor: str = "USER") -> ValidationResult:
        session = self.get_session(session_id)
        result = session.engine.apply_action(op, actor=actor)
        if result.accepted:
            self._persist_session(session)
        return result

    def transact(self, session_id: str, fn: Callable[[CityStats], CityStats]) -> CityStats:
        """Run a treasury or goal update. Errors raised by ``fn`` propagate."""
        session = self.get_session(session_id)
        stats = session.engine.transact(fn)
        self._persist_session(session)
        return stats

    def trigger_disaster(
        self, session_id: str, forced_type: DisasterType | None = None,
    ) -> list[DisasterEffect]:
        session = self.get_session(session_id)
        effects = session.engine.trigger_disaster(forced_type)
        self._persist_session(session)
        return effects

    def set_agent_enabled(self, session_id: str, enabled: bool) -> GameSession:
        session = self.get_session(session_id)
        session.engine.set_agent_enabled(enabled)
        logger.info("Agent %s for session %s", "enabled" if enabled else "disabled", session_id)
        if enabled:
            self._request_goal(session)
        return session

    def propose(self, session_id: str) -> ArbiterOutcome:
        """Run one arbiter cycle now, on the calling thread."""
        session = self.get_session(session_id)
        outcome = session.arbiter.step(session.engine)
        if outcome.applied:
            self._persist_session(session)
        return outcome

    def refresh_goal(self, session_id: str) -> AIGoal:
        session = self.get_session(session_id)
        goal = session.advisor.refresh_goal(session.engine)
        self._persist_session(session)
        return goal

    def claim_goal(self, session_id: str) -> CityStats:
        """Pay out the completed goal, then ask for the next one.

        Raises TreasuryError when there is no completed goal to claim.
        """
        session = self.get_session(session_id)
        claimed: list[AIGoal] = []

        def _claim(stats: CityStats) -> CityStats:
            goal = stats.current_goal
            new = claim_reward(stats)
            claimed.append(goal)
            return new

        stats = self.transact(session_id, _claim)
        session.engine.add_news(
            f"Goal achieved! {claimed[0].reward} deposited to treasury.", NewsType.POSITIVE,
        )
        self._request_goal(session)
        return stats

    def close(self) -> None:
        """Stop every session, save, and close the store."""
        for session in list(self.sessions.values()):
            self._halt(session)
            if session.status == "running":
                session.status = "stopped"
            self._persist_session(session)
            session.arbiter.shutdown()
        if self._store is not None:
            self._store.close()
