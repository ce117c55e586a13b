"""
Pydantic models for API request/response validation.
"""

from __future__ import annotations

from pydantic import BaseModel, Field
from typing import Any


# === Sessions ===

class CreateSessionRequest(BaseModel):
    config: dict[str, Any] | None = None
    name: str | None = None
    terrain: str = "noise"


class StepRequest(BaseModel):
    n: int = Field(default=1, ge=1, le=1000)


class SessionSummary(BaseModel):
    id: str
    name: str
    status: str
    day: int
    population: int
    money: int


class SessionResponse(BaseModel):
    id: str
    name: str
    status: str
    running: bool
    agent_enabled: bool
    stats: dict[str, Any]
    config: dict[str, Any]


class StepResponse(BaseModel):
    session: SessionResponse
    ticks: list[dict[str, Any]]


# === Actions ===

class BuildRequest(BaseModel):
    building_type: str
    x: int
    y: int


class DemolishRequest(BaseModel):
    x: int
    y: int


class DisasterRequest(BaseModel):
    disaster_type: str | None = None


class ActionResponse(BaseModel):
    accepted: bool
    reason: str | None = None
    detail: str | None = None
    cost: int = 0
    stats: dict[str, Any]


# === Agent ===

class AgentStatusResponse(BaseModel):
    enabled: bool
    online: bool
    running: bool
    forbidden_tiles: list[list[int]]
    last_outcome: dict[str, Any] | None = None


# === Metrics ===

class TimeSeriesResponse(BaseModel):
    field: str
    days: list[int]
    values: list[Any]
