"""Game service: validates player actions and advances sessions.

Each function loads the records it needs from a ``GameStore``, checks the
request, calls the pure engine in ``sim_engine`` and writes the results
back. Rejections raise ``sim_engine.errors`` exceptions before anything is
written. Functions return the events to publish; they never publish
themselves.

The service does no locking. Callers must not run two advances for the same
session, or two submissions for the same team, at the same time.
"""

from __future__ import annotations

import logging
import math
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from game_store import GameStore
from notifier import EventName, GameEvent, session_event
from sim_engine.activities import INNOVATION_LAB_ID, get_activity_by_id
from sim_engine.calculations import calculate_rankings
from sim_engine.constants import BUDGET_TOLERANCE, MAX_HEALTH
from sim_engine.cycle import ensure_accepting_decisions, ensure_can_advance, next_cycle_state, process_cycle
from sim_engine.errors import NotFoundError, StateError, ValidationError
from sim_engine.linkages import active_linkage_ids, get_near_active_linkages
from sim_engine.shocks import get_shock_by_id
from sim_engine.types import ActivityCategory, CycleResult, Decision, GameSession, GameStatus, health_map

logger = logging.getLogger(__name__)


@dataclass
class AdvanceOutcome:
    session: GameSession
    results: List[CycleResult] = field(default_factory=list)
    rankings: List[dict] = field(default_factory=list)
    events: List[GameEvent] = field(default_factory=list)


def _rankings_for(store: GameStore, session_id: str) -> List[dict]:
    return calculate_rankings(store.get_session_teams(session_id))


# ==================================================
# DECISIONS
# ==================================================

def _validate_allocations(allocations: Dict[str, float]) -> float:
    total = 0.0
    for activity_id, amount in allocations.items():
        if get_activity_by_id(activity_id) is None:
            raise ValidationError(f"Activity {activity_id} not found")
        if amount is None or not math.isfinite(amount) or amount < 0:
            raise ValidationError(f"Allocation for {activity_id} must be a non-negative number")
        total += amount
    return total


def _validate_cuts(cuts: List[str], activities: List[dict]) -> float:
    """Check each cut and return the summed one-time elimination cost."""
    if len(set(cuts)) != len(cuts):
        raise ValidationError("Each activity can only be cut once")

    by_id = {a["activityId"]: a for a in activities}
    cost = 0.0
    for activity_id in cuts:
        activity = by_id.get(activity_id)
        if activity is None:
            raise ValidationError(f"Activity {activity_id} not found")
        if activity.get("isEliminated"):
            raise ValidationError(f"Activity {activity_id} already eliminated")
        definition = get_activity_by_id(activity_id)
        if definition is None or definition.category is not ActivityCategory.NON_VALUE_ADD:
            raise ValidationError(f"Cannot eliminate non-NVA activity {activity_id}")
        if not definition.is_eliminable:
            raise ValidationError(f"{definition.name} cannot be eliminated once started")
        cost += definition.elimination_cost
    return cost


def submit_decision(
    store: GameStore, team_id: str, allocations: Dict[str, float], cuts: List[str]
) -> Tuple[Decision, List[GameEvent]]:
    """Record a team's allocations and cuts for the current cycle."""
    team = store.require_team(team_id)
    session = store.get_session(team["sessionId"])
    if not session:
        raise NotFoundError("Session not found")
    ensure_accepting_decisions(session, team)

    allocations = dict(allocations or {})
    cuts = list(cuts or [])
    activities = store.get_team_activities(team_id)

    spend = _validate_allocations(allocations) + _validate_cuts(cuts, activities)
    if spend > team["budget"] + BUDGET_TOLERANCE:
        raise ValidationError(f"Spending (${spend:g}M) exceeds budget (${team['budget']:g}M)")

    decision: Decision = {
        "id": str(uuid.uuid4()),
        "teamId": team_id,
        "sessionId": team["sessionId"],
        "cycle": session["currentCycle"],
        "allocations": allocations,
        "cuts": cuts,
        "submittedAt": time.time() * 1000,
    }
    store.save_decision(decision)

    team["hasSubmitted"] = True
    store.update_team(team)

    event = session_event(
        team["sessionId"], EventName.DECISION_SUBMITTED, {"teamId": team_id, "teamName": team["name"]}
    )
    return decision, [event]


# ==================================================
# CYCLE ADVANCE
# ==================================================

def advance_cycle(store: GameStore, session_id: str, shock_id: Optional[str] = None) -> AdvanceOutcome:
    """Score the cycle that just finished and move the session forward.

    ``shock_id`` defaults to the shock announced on the session. The first
    advance only leaves the lobby; nothing is scored.
    """
    session = store.require_session(session_id)
    ensure_can_advance(session)

    if shock_id is None:
        shock_id = session.get("shock")

    teams = store.get_session_teams(session_id)
    results: List[CycleResult] = []

    if session["currentCycle"] > 0:
        cycle = session["currentCycle"]
        team_inputs = []
        for team in teams:
            decision = store.get_team_decision_for_cycle(team["id"], cycle)
            if decision is None:
                logger.warning("Team %s submitted nothing for cycle %s", team["id"], cycle)
            team_inputs.append(
                {
                    "id": team["id"],
                    "activities": store.get_team_activities(team["id"]),
                    "allocations": (decision or {}).get("allocations") or {},
                    "cuts": (decision or {}).get("cuts") or [],
                    "revenue": team["revenue"],
                }
            )

        results, updated_activities = process_cycle(team_inputs, cycle, shock_id)
        results_by_team = {r["teamId"]: r for r in results}

        for team in teams:
            result = results_by_team[team["id"]]
            team["cas"] += result["casChange"]
            team["margin"] += result["marginChange"]
            team["budget"] = result["newBudget"]
            team["cycleResults"].append(result)
            store.update_team_activities(team["id"], updated_activities[team["id"]])

    new_session = next_cycle_state(session)
    store.update_session(new_session)

    for team in teams:
        team["hasSubmitted"] = False
        store.update_team(team)

    outcome = AdvanceOutcome(session=new_session, results=results)
    if new_session["status"] == GameStatus.COMPLETED:
        outcome.rankings = calculate_rankings(teams)
        outcome.events.append(
            session_event(session_id, EventName.GAME_COMPLETED, {"rankings": outcome.rankings})
        )
        logger.info("Session %s completed after %s cycles", session_id, session["currentCycle"])
    else:
        outcome.events.append(
            session_event(
                session_id, EventName.CYCLE_ADVANCED, {"cycle": new_session["currentCycle"], "shock": None}
            )
        )
        logger.info("Session %s advanced to cycle %s", session_id, new_session["currentCycle"])

    return outcome


def announce_shock(store: GameStore, session_id: str, shock_id: str) -> Tuple[GameSession, List[GameEvent]]:
    """Attach a shock to the session so the next advance applies it."""
    session = store.require_session(session_id)
    shock = get_shock_by_id(shock_id)
    if shock is None:
        raise NotFoundError("Shock not found")
    if session["status"] == GameStatus.COMPLETED:
        raise StateError("Game already completed")

    session["shock"] = shock.id
    store.update_session(session)
    return session, [session_event(session_id, EventName.SHOCK_ANNOUNCED, {"shock": shock.to_dict()})]


# ==================================================
# TEAMS
# ==================================================

def join_team(store: GameStore, code: str, team_name: Optional[str] = None) -> Tuple[dict, List[GameEvent]]:
    team = store.get_team_by_code((code or "").strip().upper())
    if not team:
        raise NotFoundError("Invalid team code")
    session = store.get_session(team["sessionId"])
    if not session:
        raise NotFoundError("Game session not found")
    if session["status"] == GameStatus.COMPLETED:
        raise StateError("Game has already completed")

    events: List[GameEvent] = []
    if team_name and team_name.strip():
        team, events = update_team_name(store, team["id"], team_name)

    events.append(
        session_event(team["sessionId"], EventName.TEAM_JOINED, {"teamId": team["id"], "teamName": team["name"]})
    )
    return team, events


def update_team_name(store: GameStore, team_id: str, name: str) -> Tuple[dict, List[GameEvent]]:
    team = store.require_team(team_id)
    team["name"] = name.strip()
    store.update_team(team)
    return team, [session_event(team["sessionId"], EventName.STATE_UPDATED, {"timestamp": time.time() * 1000})]


def mark_brief_seen(store: GameStore, team_id: str) -> dict:
    team = store.require_team(team_id)
    if not team["hasSeenBrief"]:
        team["hasSeenBrief"] = True
        store.update_team(team)
    return team


def activate_innovation_lab(store: GameStore, team_id: str) -> List[dict]:
    """Switch on the innovation lab. It can never be eliminated afterwards."""
    store.require_team(team_id)
    activities = store.get_team_activities(team_id)
    lab = next((a for a in activities if a["activityId"] == INNOVATION_LAB_ID), None)
    if lab is None:
        raise NotFoundError("Innovation lab not found")
    if lab.get("isEliminated"):
        raise ValidationError("Innovation lab has been eliminated")
    if lab["health"] > 0:
        raise ValidationError("Innovation lab already active")

    lab["health"] = MAX_HEALTH
    store.update_team_activities(team_id, activities)
    return activities


# ==================================================
# STATE VIEWS
# ==================================================

def _current_shock(session: GameSession) -> Optional[dict]:
    shock = get_shock_by_id(session.get("shock"))
    return shock.to_dict() if shock else None


def get_team_game_state(store: GameStore, team_id: str, mark_seen: bool = False) -> dict:
    team = store.require_team(team_id)
    session = store.get_session(team["sessionId"])
    if not session:
        raise NotFoundError("Session not found")
    if mark_seen:
        team = mark_brief_seen(store, team_id)

    return {
        "team": team,
        "activities": store.get_team_activities(team_id),
        "session": session,
        "rankings": _rankings_for(store, team["sessionId"]),
        "currentShock": _current_shock(session),
    }


def get_instructor_game_state(store: GameStore, session_id: str) -> dict:
    """Full cohort view, including each team's active and nearly active linkages."""
    session = store.require_session(session_id)
    teams = store.get_session_teams(session_id)

    team_activities = {}
    linkage_status = {}
    for team in teams:
        activities = store.get_team_activities(team["id"])
        health = health_map(activities)
        team_activities[team["id"]] = activities
        linkage_status[team["id"]] = {
            "active": active_linkage_ids(health),
            "nearActive": [l.id for l in get_near_active_linkages(health)],
        }

    return {
        "session": session,
        "teams": teams,
        "teamActivities": team_activities,
        "linkageStatus": linkage_status,
        "rankings": calculate_rankings(teams),
        "currentShock": _current_shock(session),
    }
