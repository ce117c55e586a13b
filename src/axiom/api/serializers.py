"""
Serializers for converting city objects to JSON-safe dicts.
"""

from __future__ import annotations

from typing import Any

from axiom.api.sessions import GameSession
from axiom.core.grid import Grid
from axiom.core.validator import Accepted, ValidationResult
from axiom.core.stats import CityStats


def serialize_tile_layer(grid: Grid) -> dict[str, Any]:
    """Grid as parallel row-major layers, compact enough to poll every tick."""
    return {
        "width": grid.width,
        "height": grid.height,
        "types": [[t.building_type.value for t in row] for row in grid.rows],
        "pollution": [[round(float(t.pollution), 2) for t in row] for row in grid.rows],
        "road_access": [[t.has_road_access for t in row] for row in grid.rows],
    }


def serialize_stats(stats: CityStats) -> dict[str, Any]:
    d = stats.to_dict()
    d["pollution_level"] = round(float(stats.pollution_level), 4)
    d["in_debt"] = stats.in_debt
    return d


def serialize_session(session: GameSession) -> dict[str, Any]:
    _, stats = session.engine.snapshot()
    return {
        "id": session.id,
        "name": session.name,
        "status": session.status,
        "running": session.running,
        "agent_enabled": session.engine.agent_enabled,
        "stats": serialize_stats(stats),
        "config": session.config.to_dict(),
    }


def serialize_validation(result: ValidationResult, stats: CityStats) -> dict[str, Any]:
    if isinstance(result, Accepted):
        return {
            "accepted": True,
            "reason": None,
            "detail": None,
            "cost": result.cost,
            "stats": serialize_stats(stats),
        }
    return {
        "accepted": False,
        "reason": result.reason.value,
        "detail": result.detail,
        "cost": 0,
        "stats": serialize_stats(stats),
    }
