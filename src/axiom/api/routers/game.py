"""City session management endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request

from axiom.api.schemas import (
    CreateSessionRequest,
    SessionResponse,
    SessionSummary,
    StepRequest,
    StepResponse,
    TimeSeriesResponse,
)
from axiom.api.serializers import serialize_session, serialize_tile_layer
from axiom.core.config import SimulationConfig
from axiom.core.terrain import TERRAIN_GENERATORS

router = APIRouter()


def _get(request: Request, session_id: str):
    mgr = request.app.state.session_manager
    try:
        return mgr.get_session(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")


@router.post("/sessions", response_model=SessionResponse)
def create_session(req: CreateSessionRequest, request: Request):
    mgr = request.app.state.session_manager
    if req.terrain not in TERRAIN_GENERATORS:
        raise HTTPException(status_code=400, detail=f"Unknown terrain '{req.terrain}'")
    try:
        config = SimulationConfig.from_dict(req.config) if req.config else None
    except TypeError as exc:
        raise HTTPException(status_code=400, detail=f"Invalid config: {exc}")
    session = mgr.create_session(config=config, name=req.name, terrain=req.terrain)
    return serialize_session(session)


@router.get("/sessions", response_model=list[SessionSummary])
def list_sessions(request: Request):
    mgr = request.app.state.session_manager
    return mgr.list_sessions()


@router.get("/sessions/{session_id}", response_model=SessionResponse)
def get_session(session_id: str, request: Request):
    return serialize_session(_get(request, session_id))


@router.delete("/sessions/{session_id}")
def delete_session(session_id: str, request: Request):
    mgr = request.app.state.session_manager
    try:
        mgr.delete_session(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    return {"deleted": True}


@router.post("/sessions/{session_id}/step", response_model=StepResponse)
def step_session(session_id: str, req: StepRequest, request: Request):
    mgr = request.app.state.session_manager
    if mgr.is_running(session_id):
        raise HTTPException(status_code=409, detail="Session is running; stop it before stepping")
    try:
        results = mgr.step(session_id, req.n)
        session = mgr.get_session(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    return {
        "session": serialize_session(session),
        "ticks": [r.to_dict() for r in results],
    }


@router.post("/sessions/{session_id}/start", response_model=SessionResponse)
def start_session(session_id: str, request: Request):
    mgr = request.app.state.session_manager
    try:
        session = mgr.start(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    return serialize_session(session)


@router.post("/sessions/{session_id}/stop", response_model=SessionResponse)
def stop_session(session_id: str, request: Request):
    mgr = request.app.state.session_manager
    try:
        session = mgr.stop(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    return serialize_session(session)


@router.get("/sessions/{session_id}/grid")
def get_grid(session_id: str, request: Request) -> dict[str, Any]:
    session = _get(request, session_id)
    grid, stats = session.engine.snapshot()
    layer = serialize_tile_layer(grid)
    active = session.engine.disasters.active
    layer["unlocked_bounds"] = list(grid.unlocked_bounds(stats.unlocked_grid_size))
    layer["disaster"] = active.to_dict() if active else None
    return layer


@router.get("/sessions/{session_id}/news")
def get_news(session_id: str, request: Request) -> list[dict[str, Any]]:
    session = _get(request, session_id)
    return [n.to_dict() for n in session.engine.recent_news()]


@router.get("/sessions/{session_id}/history")
def get_history(session_id: str, request: Request) -> list[dict[str, Any]]:
    session = _get(request, session_id)
    return [h.to_dict() for h in session.engine.history_entries()]


@router.get("/sessions/{session_id}/metrics")
def get_metrics(
    session_id: str,
    request: Request,
    last: int | None = Query(None, ge=1),
) -> dict[str, Any]:
    session = _get(request, session_id)
    collector = session.collector
    ticks = collector.export_for_visualization()
    if last is not None:
        ticks = ticks[-last:]
    return {"summary": collector.summary(), "ticks": ticks}


@router.get("/sessions/{session_id}/metrics/{field_name}", response_model=TimeSeriesResponse)
def get_time_series(session_id: str, field_name: str, request: Request):
    session = _get(request, session_id)
    collector = session.collector
    try:
        values = collector.get_time_series(field_name)
    except AttributeError:
        raise HTTPException(status_code=400, detail=f"Unknown metric field: '{field_name}'")
    return {
        "field": field_name,
        "days": collector.get_time_series("day"),
        "values": values,
    }
