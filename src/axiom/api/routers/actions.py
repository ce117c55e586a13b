"""Player actions: building, treasury, goals, research and disasters.

Every write goes through the session manager, which routes it through the
engine's lock. Refused moves answer 409 with the typed reason.
"""

from __future__ import annotations

from typing import Any, Callable

from fastapi import APIRouter, HTTPException, Request

from axiom.api.schemas import ActionResponse, BuildRequest, DemolishRequest, DisasterRequest
from axiom.api.serializers import serialize_stats, serialize_validation
from axiom.core import treasury
from axiom.core.buildings import parse_building_type
from axiom.core.disasters import DisasterType
from axiom.core.stats import CityStats
from axiom.core.validator import Accepted, BuildAction, DemolishAction

router = APIRouter()


def _apply(request: Request, session_id: str, op) -> dict[str, Any]:
    mgr = request.app.state.session_manager
    try:
        result = mgr.apply_action(session_id, op, actor="USER")
        _, stats = mgr.get_session(session_id).engine.snapshot()
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    body = serialize_validation(result, stats)
    if not isinstance(result, Accepted):
        raise HTTPException(status_code=409, detail=body)
    return body


def _transact(
    request: Request,
    session_id: str,
    fn: Callable[[CityStats], CityStats],
) -> dict[str, Any]:
    mgr = request.app.state.session_manager
    try:
        stats = mgr.transact(session_id, fn)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    except treasury.TreasuryError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return serialize_stats(stats)


def _config(request: Request, session_id: str):
    mgr = request.app.state.session_manager
    try:
        return mgr.get_session(session_id).config
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")


# ---------------------------------------------------------------------------
# Building
# ---------------------------------------------------------------------------

@router.post("/{session_id}/build", response_model=ActionResponse)
def build(session_id: str, req: BuildRequest, request: Request):
    try:
        building_type = parse_building_type(req.building_type)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _apply(request, session_id, BuildAction(building_type, req.x, req.y))


@router.post("/{session_id}/demolish", response_model=ActionResponse)
def demolish(session_id: str, req: DemolishRequest, request: Request):
    return _apply(request, session_id, DemolishAction(req.x, req.y))


# ---------------------------------------------------------------------------
# Treasury
# ---------------------------------------------------------------------------

@router.post("/{session_id}/tax/cycle")
def cycle_tax(session_id: str, request: Request) -> dict[str, Any]:
    config = _config(request, session_id)
    return _transact(request, session_id, lambda s: treasury.cycle_tax(s, config))


@router.post("/{session_id}/loan/take")
def take_loan(session_id: str, request: Request) -> dict[str, Any]:
    config = _config(request, session_id)
    return _transact(request, session_id, lambda s: treasury.take_loan(s, config))


@router.post("/{session_id}/loan/repay")
def repay_loan(session_id: str, request: Request) -> dict[str, Any]:
    config = _config(request, session_id)
    return _transact(request, session_id, lambda s: treasury.repay_loan(s, config))


@router.post("/{session_id}/shares/buy")
def buy_shares(session_id: str, request: Request) -> dict[str, Any]:
    config = _config(request, session_id)
    return _transact(request, session_id, lambda s: treasury.buy_shares(s, config))


@router.post("/{session_id}/shares/sell")
def sell_shares(session_id: str, request: Request) -> dict[str, Any]:
    config = _config(request, session_id)
    return _transact(request, session_id, lambda s: treasury.sell_shares(s, config))


@router.post("/{session_id}/research/land")
def research_land(session_id: str, request: Request) -> dict[str, Any]:
    config = _config(request, session_id)
    return _transact(request, session_id, lambda s: treasury.expand_land(s, config))


# ---------------------------------------------------------------------------
# Goals and disasters
# ---------------------------------------------------------------------------

@router.post("/{session_id}/goal/claim")
def claim_goal(session_id: str, request: Request) -> dict[str, Any]:
    """Claim a completed goal. The next goal is fetched in the background."""
    mgr = request.app.state.session_manager
    try:
        stats = mgr.claim_goal(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    except treasury.TreasuryError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return serialize_stats(stats)


@router.post("/{session_id}/disaster")
def trigger_disaster(
    session_id: str,
    request: Request,
    req: DisasterRequest | None = None,
) -> dict[str, Any]:
    forced = None
    if req is not None and req.disaster_type:
        try:
            forced = DisasterType(req.disaster_type)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown disaster '{req.disaster_type}'")

    mgr = request.app.state.session_manager
    try:
        effects = mgr.trigger_disaster(session_id, forced)
        session = mgr.get_session(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    if not effects:
        raise HTTPException(status_code=409, detail="A disaster is already in progress")

    active = session.engine.disasters.active
    return {
        "effects": [
            {"kind": e.kind.value, "type": e.disaster_type.value, "message": e.message}
            for e in effects
        ],
        "active": active.to_dict() if active else None,
    }
