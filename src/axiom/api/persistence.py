"""
SQLite-backed session persistence for Axiom City.

Stores session metadata in columns for fast listing, and the full city
snapshot as a zlib-compressed JSON blob. Lazy loading: only metadata is
read on startup; snapshots are deserialized on demand.

The snapshot keeps the tile-record layout used by the browser client:
``{"tiles": [{x, y, type, placedBy, timestamp}], "meta": {lastSaved,
version}}``, extended with ``stats``, feeds and metrics. Only non-empty
tiles are written.

Persistence failures are logged as warnings and never crash the app;
the system degrades gracefully to in-memory-only operation.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
import zlib
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any

import numpy as np

from axiom.core.buildings import BuildingType
from axiom.core.config import SimulationConfig
from axiom.core.grid import Grid, Tile
from axiom.core.stats import CityStats, HistoryEntry, HistoryType, NewsItem, NewsType
from axiom.metrics.collector import TickMetrics

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1

# ---------------------------------------------------------------------------
# JSON helpers
# ---------------------------------------------------------------------------

def _json_fallback(obj: Any) -> Any:
    """Handle numpy types and other non-JSON-serializable objects."""
    if isinstance(obj, (np.integer,)):
        return int(obj)
    if isinstance(obj, (np.floating,)):
        return float(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    raise TypeError(f"Object of type {type(obj)} is not JSON serializable")


# ---------------------------------------------------------------------------
# Tile records
# ---------------------------------------------------------------------------

def serialize_tiles(grid: Grid) -> list[dict[str, Any]]:
    """Tile records for every non-empty tile. Timestamps are in milliseconds."""
    return [
        {
            "x": t.x,
            "y": t.y,
            "type": t.building_type.value,
            "placedBy": t.placed_by,
            "timestamp": int(t.placed_at * 1000),
        }
        for t in grid.tiles()
        if t.building_type != BuildingType.NONE
    ]


def deserialize_tiles(records: list[dict[str, Any]], width: int, height: int) -> Grid:
    """Rebuild a grid from tile records. Out-of-range records are dropped."""
    rows = [list(row) for row in Grid.empty(width, height).rows]
    for r in records:
        x, y = r["x"], r["y"]
        if 0 <= x < width and 0 <= y < height:
            rows[y][x] = Tile(
                x=x,
                y=y,
                building_type=BuildingType(r["type"]),
                placed_by=r.get("placedBy", "SYSTEM"),
                placed_at=r.get("timestamp", 0) / 1000.0,
            )
    grid = Grid(rows)
    return grid.with_road_access(grid.compute_road_access())


# ---------------------------------------------------------------------------
# State blob compress / decompress
# ---------------------------------------------------------------------------

def compress_state(state: dict[str, Any]) -> bytes:
    """Serialize state dict to zlib-compressed JSON bytes."""
    json_bytes = json.dumps(state, default=_json_fallback).encode("utf-8")
    return zlib.compress(json_bytes, level=6)


def decompress_state(blob: bytes) -> dict[str, Any]:
    """Decompress zlib blob and parse JSON."""
    json_bytes = zlib.decompress(blob)
    return json.loads(json_bytes.decode("utf-8"))


def build_state_blob(
    grid: Grid,
    stats: CityStats,
    news: list[NewsItem] | None = None,
    history: list[HistoryEntry] | None = None,
    metrics_history: list[TickMetrics] | None = None,
) -> bytes:
    """Build and compress the full city snapshot."""
    state = {
        "tiles": serialize_tiles(grid),
        "meta": {
            "lastSaved": int(time.time() * 1000),
            "version": SNAPSHOT_VERSION,
            "width": grid.width,
            "height": grid.height,
        },
        "stats": stats.to_dict(),
        "news": [n.to_dict() for n in news or []],
        "history": [h.to_dict() for h in history or []],
        "metrics_history": [asdict(m) for m in metrics_history or []],
    }
    return compress_state(state)


def restore_state(blob: bytes) -> dict[str, Any]:
    """Decompress and restore state from blob.

    Returns dict with keys:
        grid: Grid
        stats: CityStats | None  (absent in tile-only snapshots)
        news: list[NewsItem]
        history: list[HistoryEntry]
        metrics_history: list[TickMetrics]
        meta: dict
    """
    raw = decompress_state(blob)
    meta = raw.get("meta", {})
    width = meta.get("width")
    height = meta.get("height")
    if width is None or height is None:
        extent = max((max(r["x"], r["y"]) for r in raw.get("tiles", [])), default=0) + 1
        width = height = max(extent, SimulationConfig().grid_size)

    return {
        "grid": deserialize_tiles(raw.get("tiles", []), width, height),
        "stats": CityStats.from_dict(raw["stats"]) if raw.get("stats") else None,
        "news": [
            NewsItem(id=n["id"], text=n["text"], type=NewsType(n["type"]))
            for n in raw.get("news", [])
        ],
        "history": [
            HistoryEntry(id=h["id"], day=h["day"], text=h["text"], type=HistoryType(h["type"]))
            for h in raw.get("history", [])
        ],
        "metrics_history": [TickMetrics(**m) for m in raw.get("metrics_history", [])],
        "meta": meta,
    }


# ---------------------------------------------------------------------------
# SQLite SessionStore
# ---------------------------------------------------------------------------

_SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'created',
    day INTEGER NOT NULL DEFAULT 1,
    population INTEGER NOT NULL DEFAULT 0,
    money INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    config_json TEXT NOT NULL,
    state_blob BLOB
);
"""


class SessionStore:
    """SQLite-backed storage for city sessions.

    Thread-safety: uses ``check_same_thread=False`` so FastAPI's
    thread pool and the tick threads can access it. Writes are
    serialized by SQLite's internal locking.
    """

    def __init__(self, db_path: str = "data/axiom.db"):
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._init_db()

    def _init_db(self) -> None:
        """Open connection and create table if needed."""
        try:
            self._conn = sqlite3.connect(
                self.db_path, check_same_thread=False,
            )
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute(_SCHEMA)
            self._conn.commit()
        except sqlite3.Error:
            logger.warning(
                "Failed to open SQLite database at %s, "
                "falling back to in-memory only",
                self.db_path,
                exc_info=True,
            )
            self._conn = None

    @property
    def available(self) -> bool:
        """True if the database connection is open."""
        return self._conn is not None

    # ---- Write operations ----

    def save_session(
        self,
        session_id: str,
        name: str,
        status: str,
        stats: CityStats,
        config: SimulationConfig,
        state_blob: bytes,
    ) -> None:
        """Insert or replace a full session record."""
        if not self.available:
            return
        now = datetime.now(timezone.utc).isoformat()
        try:
            self._conn.execute(  # type: ignore[union-attr]
                """
                INSERT INTO sessions
                    (id, name, status, day, population, money,
                     created_at, updated_at, config_json, state_blob)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    status = excluded.status,
                    day = excluded.day,
                    population = excluded.population,
                    money = excluded.money,
                    updated_at = excluded.updated_at,
                    config_json = excluded.config_json,
                    state_blob = excluded.state_blob
                """,
                (
                    session_id, name, status,
                    int(stats.day), int(stats.population), int(stats.money),
                    now, now,
                    config.to_json(),
                    state_blob,
                ),
            )
            self._conn.commit()  # type: ignore[union-attr]
        except sqlite3.Error:
            logger.warning(
                "Failed to save session %s to database", session_id,
                exc_info=True,
            )

    def delete_session(self, session_id: str) -> None:
        """Remove a session from the database."""
        if not self.available:
            return
        try:
            self._conn.execute(  # type: ignore[union-attr]
                "DELETE FROM sessions WHERE id = ?", (session_id,),
            )
            self._conn.commit()  # type: ignore[union-attr]
        except sqlite3.Error:
            logger.warning(
                "Failed to delete session %s from database", session_id,
                exc_info=True,
            )

    # ---- Read operations ----

    def list_sessions(self) -> list[dict[str, Any]]:
        """Return metadata for all persisted sessions (no state blob)."""
        if not self.available:
            return []
        try:
            cur = self._conn.execute(  # type: ignore[union-attr]
                """
                SELECT id, name, status, day, population, money,
                       created_at, updated_at
                FROM sessions
                ORDER BY created_at DESC
                """,
            )
            rows = cur.fetchall()
            return [
                {
                    "id": r[0],
                    "name": r[1],
                    "status": r[2],
                    "day": r[3],
                    "population": r[4],
                    "money": r[5],
                    "created_at": r[6],
                    "updated_at": r[7],
                }
                for r in rows
            ]
        except sqlite3.Error:
            logger.warning("Failed to list sessions from database", exc_info=True)
            return []

    def load_session(self, session_id: str) -> dict[str, Any] | None:
        """Load a full session record (metadata + config + state blob).

        Returns ``None`` if not found or on error.
        """
        if not self.available:
            return None
        try:
            cur = self._conn.execute(  # type: ignore[union-attr]
                """
                SELECT id, name, status, day, population, money,
                       config_json, state_blob
                FROM sessions WHERE id = ?
                """,
                (session_id,),
            )
            row = cur.fetchone()
            if row is None:
                return None
            return {
                "id": row[0],
                "name": row[1],
                "status": row[2],
                "day": row[3],
                "population": row[4],
                "money": row[5],
                "config_json": row[6],
                "state_blob": row[7],
            }
        except sqlite3.Error:
            logger.warning(
                "Failed to load session %s from database", session_id,
                exc_info=True,
            )
            return None

    def has_session(self, session_id: str) -> bool:
        """Check if a session exists in the database."""
        if not self.available:
            return False
        try:
            cur = self._conn.execute(  # type: ignore[union-attr]
                "SELECT 1 FROM sessions WHERE id = ?", (session_id,),
            )
            return cur.fetchone() is not None
        except sqlite3.Error:
            return False

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
