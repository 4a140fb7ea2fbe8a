"""FastAPI router for the value chain simulation game."""

from __future__ import annotations

import threading
from typing import Annotated, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

import game_engine
from game_store import GameStore
from kv_store import create_store
from notifier import Notifier, create_notifier
from sim_engine.activities import ALL_ACTIVITIES, activity_to_dict
from sim_engine.constants import MAX_CYCLES
from sim_engine.errors import GameError, NotFoundError, StateError
from sim_engine.linkages import get_all_linkages, linkage_to_dict
from sim_engine.scorecard import build_scorecards
from sim_engine.shocks import get_all_shocks, get_suggested_shocks_for_cycle


router = APIRouter()

_store: Optional[GameStore] = None
_notifier: Optional[Notifier] = None

# Every write to a session's records (session, teams, activities) runs under
# that session's lock. Locks exist only for sessions that were found.
_session_locks: Dict[str, threading.Lock] = {}
_session_locks_guard = threading.Lock()


def get_store() -> GameStore:
    global _store
    if _store is None:
        _store = GameStore(create_store())
    return _store


def get_notifier() -> Notifier:
    global _notifier
    if _notifier is None:
        _notifier = create_notifier()
    return _notifier


def _session_lock(session_id: str) -> threading.Lock:
    with _session_locks_guard:
        lock = _session_locks.get(session_id)
        if lock is None:
            lock = _session_locks[session_id] = threading.Lock()
        return lock


def _lock_for_session(store: GameStore, session_id: str) -> threading.Lock:
    return _session_lock(store.require_session(session_id)["id"])


def _lock_for_team(store: GameStore, team_id: str) -> threading.Lock:
    return _session_lock(store.require_team(team_id)["sessionId"])


def _lock_for_team_code(store: GameStore, code: str) -> threading.Lock:
    team = store.get_team_by_code((code or "").strip().upper())
    if not team:
        raise NotFoundError("Invalid team code")
    return _session_lock(team["sessionId"])


def _http_error(exc: GameError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, StateError):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=422, detail=str(exc))


class CreateGameRequest(BaseModel):
    team_count: Optional[int] = Field(None, alias="teamCount", ge=1, le=50)
    max_cycles: int = Field(MAX_CYCLES, alias="maxCycles", ge=1, le=12)
    cycle_time_limit: Optional[int] = Field(None, alias="cycleTimeLimit", ge=0)
    created_by: str = Field("instructor", alias="createdBy")


class TeamCode(BaseModel):
    teamNumber: int
    code: str


class CreateGameResponse(BaseModel):
    sessionId: str
    instructorCode: str
    teamCodes: List[TeamCode]


class JoinGameRequest(BaseModel):
    code: str
    team_name: Optional[str] = Field(None, alias="teamName")


class JoinGameResponse(BaseModel):
    teamId: str
    sessionId: str
    team: dict


class SubmitDecisionRequest(BaseModel):
    team_id: str = Field(..., alias="teamId")
    allocations: Dict[str, Annotated[float, Field(ge=0, allow_inf_nan=False)]] = Field(default_factory=dict)
    cuts: List[str] = Field(default_factory=list)


class SubmitDecisionResponse(BaseModel):
    success: bool = True
    decisionId: str
    cycle: int


class AdvanceRequest(BaseModel):
    session_id: str = Field(..., alias="sessionId")
    shock_id: Optional[str] = Field(None, alias="shockId")


class AdvanceResponse(BaseModel):
    success: bool = True
    session: dict
    results: List[dict]
    rankings: List[dict] = []


class ShockRequest(BaseModel):
    session_id: str = Field(..., alias="sessionId")
    shock_id: str = Field(..., alias="shockId")


class TeamRequest(BaseModel):
    team_id: str = Field(..., alias="teamId")


@router.post("/create", response_model=CreateGameResponse)
def create_game(
    req: CreateGameRequest,
    store: GameStore = Depends(get_store),
) -> CreateGameResponse:
    """Create a session in the lobby with placeholder teams and join codes."""
    session, team_codes = store.create_session(
        req.created_by,
        team_count=req.team_count,
        max_cycles=req.max_cycles,
        cycle_time_limit=req.cycle_time_limit,
    )
    return CreateGameResponse(
        sessionId=session["id"],
        instructorCode=session["code"],
        teamCodes=[TeamCode(**c) for c in team_codes],
    )


@router.post("/join", response_model=JoinGameResponse)
def join_game(
    req: JoinGameRequest,
    store: GameStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
) -> JoinGameResponse:
    try:
        with _lock_for_team_code(store, req.code):
            team, events = game_engine.join_team(store, req.code, req.team_name)
    except GameError as exc:
        raise _http_error(exc) from exc
    notifier.publish_all(events)
    return JoinGameResponse(teamId=team["id"], sessionId=team["sessionId"], team=team)


@router.post("/submit", response_model=SubmitDecisionResponse)
def submit_decision(
    req: SubmitDecisionRequest,
    store: GameStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
) -> SubmitDecisionResponse:
    """Submit a team's allocations and cuts for the current cycle."""
    try:
        with _lock_for_team(store, req.team_id):
            decision, events = game_engine.submit_decision(store, req.team_id, req.allocations, req.cuts)
    except GameError as exc:
        raise _http_error(exc) from exc
    notifier.publish_all(events)
    return SubmitDecisionResponse(decisionId=decision["id"], cycle=decision["cycle"])


@router.post("/advance", response_model=AdvanceResponse)
def advance(
    req: AdvanceRequest,
    store: GameStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
) -> AdvanceResponse:
    """Score the finished cycle for every team and open the next one."""
    try:
        with _lock_for_session(store, req.session_id):
            outcome = game_engine.advance_cycle(store, req.session_id, req.shock_id)
    except GameError as exc:
        raise _http_error(exc) from exc
    notifier.publish_all(outcome.events)
    return AdvanceResponse(session=outcome.session, results=outcome.results, rankings=outcome.rankings)


@router.get("/shocks")
def list_shocks(cycle: Optional[int] = None) -> dict:
    """All shocks, or those suggested for ``cycle``."""
    shocks = get_suggested_shocks_for_cycle(cycle) if cycle else get_all_shocks()
    return {"shocks": [s.to_dict() for s in shocks]}


@router.post("/shock")
def inject_shock(
    req: ShockRequest,
    store: GameStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
) -> dict:
    try:
        with _lock_for_session(store, req.session_id):
            session, events = game_engine.announce_shock(store, req.session_id, req.shock_id)
    except GameError as exc:
        raise _http_error(exc) from exc
    notifier.publish_all(events)
    return {"success": True, "shock": events[0]["data"]["shock"], "session": session}


@router.post("/innovation/activate")
def activate_innovation(
    req: TeamRequest,
    store: GameStore = Depends(get_store),
) -> dict:
    try:
        with _lock_for_team(store, req.team_id):
            game_engine.activate_innovation_lab(store, req.team_id)
    except GameError as exc:
        raise _http_error(exc) from exc
    return {"success": True}


@router.get("/activities")
def list_activities() -> List[dict]:
    """Public activity catalog. Linkages are not included."""
    return [activity_to_dict(a) for a in ALL_ACTIVITIES]


@router.get("/team/{team_id}")
def team_state(
    team_id: str,
    mark_seen: bool = False,
    store: GameStore = Depends(get_store),
) -> dict:
    try:
        if not mark_seen:
            return game_engine.get_team_game_state(store, team_id)
        with _lock_for_team(store, team_id):
            return game_engine.get_team_game_state(store, team_id, mark_seen=True)
    except GameError as exc:
        raise _http_error(exc) from exc


@router.get("/session/{session_id}")
def instructor_state(
    session_id: str,
    store: GameStore = Depends(get_store),
) -> dict:
    try:
        state = game_engine.get_instructor_game_state(store, session_id)
    except GameError as exc:
        raise _http_error(exc) from exc
    state["linkages"] = [linkage_to_dict(l) for l in get_all_linkages()]
    return state


@router.get("/session/{session_id}/scorecard")
def session_scorecard(
    session_id: str,
    store: GameStore = Depends(get_store),
) -> dict:
    """Per-team, per-cycle scorecard rows for the debrief."""
    try:
        data = store.export_session_data(session_id)
    except GameError as exc:
        raise _http_error(exc) from exc
    return {"session": data["session"], "rows": build_scorecards(data["teams"], data["decisions"])}


@router.get("/session/{session_id}/export")
def export_session(
    session_id: str,
    store: GameStore = Depends(get_store),
) -> dict:
    """Raw session, teams, decisions and activities for offline analysis."""
    try:
        return store.export_session_data(session_id)
    except GameError as exc:
        raise _http_error(exc) from exc
