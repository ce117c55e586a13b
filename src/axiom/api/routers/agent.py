"""Agent mayor endpoints: toggle, inspect, force a move, request a goal."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from axiom.api.schemas import AgentStatusResponse

router = APIRouter()


def _status(session) -> dict[str, Any]:
    last = session.arbiter.last_outcome
    return {
        "enabled": session.engine.agent_enabled,
        "online": session.arbiter.client is not None,
        "running": session.agent_loop is not None and session.agent_loop.running,
        "forbidden_tiles": [list(c) for c in session.arbiter.failures.items()],
        "last_outcome": last.to_dict() if last else None,
    }


def _toggle(request: Request, session_id: str, enabled: bool) -> dict[str, Any]:
    mgr = request.app.state.session_manager
    try:
        session = mgr.set_agent_enabled(session_id, enabled)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    return _status(session)


@router.post("/{session_id}/enable", response_model=AgentStatusResponse)
def enable_agent(session_id: str, request: Request):
    return _toggle(request, session_id, True)


@router.post("/{session_id}/disable", response_model=AgentStatusResponse)
def disable_agent(session_id: str, request: Request):
    return _toggle(request, session_id, False)


@router.get("/{session_id}/status", response_model=AgentStatusResponse)
def agent_status(session_id: str, request: Request):
    mgr = request.app.state.session_manager
    try:
        session = mgr.get_session(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    return _status(session)


@router.post("/{session_id}/propose")
def propose(session_id: str, request: Request) -> dict[str, Any]:
    """Run one proposal cycle immediately. Ignored unless the agent is enabled."""
    mgr = request.app.state.session_manager
    try:
        outcome = mgr.propose(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    return outcome.to_dict()


@router.post("/{session_id}/goal")
def new_goal(session_id: str, request: Request) -> dict[str, Any]:
    """Ask the advisor for a fresh goal, replacing the current one."""
    mgr = request.app.state.session_manager
    try:
        goal = mgr.refresh_goal(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    return goal.to_dict()
