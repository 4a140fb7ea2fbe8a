"""One simulation cycle across the whole cohort, plus the session state machine.

Scoring is relative to the cohort average, so every team's transition is
computed before any team is scored.
"""

from __future__ import annotations

import logging
import time
from typing import Dict, List, Optional, Tuple

from .calculations import (
    apply_cuts,
    calculate_cas,
    calculate_margin_change,
    calculate_new_budget,
    calculate_new_health,
    orphaned_linkage_ids,
)
from .constants import MAX_CYCLES, STARTING_REVENUE
from .errors import StateError
from .linkages import active_linkage_ids
from .shocks import get_shock_by_id
from .types import CycleResult, GameStatus, health_map

logger = logging.getLogger(__name__)


def assign_ranks(results: List[CycleResult]) -> List[CycleResult]:
    """Sort results by CAS change, highest first, and number them 1..N."""
    results.sort(key=lambda r: r["casChange"], reverse=True)
    for index, result in enumerate(results):
        result["rank"] = index + 1
    return results


def process_cycle(
    teams: List[dict], cycle: int, shock_id: Optional[str] = None
) -> Tuple[List[CycleResult], Dict[str, List[dict]]]:
    """Run the health transition and scoring for every team.

    Each team entry is ``{"id", "activities", "allocations", "cuts"}`` with an
    optional ``"revenue"``. Returns the ranked results and each team's
    updated activity records keyed by team id. Input records are not mutated.
    """
    shock = get_shock_by_id(shock_id)
    if shock_id and shock is None:
        logger.warning("Unknown shock %r ignored for cycle %s", shock_id, cycle)

    updated: Dict[str, List[dict]] = {}
    for team in teams:
        activities = apply_cuts(team["activities"], team.get("cuts") or [], cycle)
        updated[team["id"]] = calculate_new_health(activities, team.get("allocations") or {}, shock)

    cohort = list(updated.values())
    results: List[CycleResult] = []

    for team in teams:
        activities = updated[team["id"]]
        cas = calculate_cas(activities, cohort, shock)
        active = active_linkage_ids(health_map(activities))

        results.append(
            {
                "teamId": team["id"],
                "cycle": cycle,
                "casChange": cas["total"],
                "casBreakdown": {
                    "baseScore": cas["baseScore"],
                    "linkageBonuses": cas["linkageBonuses"],
                    "shockEffect": cas["shockEffect"],
                    "nvaDrag": cas["nvaDrag"],
                    "total": cas["total"],
                },
                "activeLinkages": active,
                "orphanedLinkages": orphaned_linkage_ids(active),
                "newHealth": health_map(activities),
                "marginChange": calculate_margin_change(cas["total"]),
                "newBudget": calculate_new_budget(
                    team.get("revenue", STARTING_REVENUE), cas["total"], activities
                ),
                "rank": 0,
            }
        )

    return assign_ranks(results), updated


# ==================================================
# SESSION STATE MACHINE
# ==================================================

def ensure_can_advance(session: dict) -> None:
    if session.get("status") == GameStatus.COMPLETED:
        raise StateError("Game already completed")


def ensure_accepting_decisions(session: dict, team: dict) -> None:
    if session.get("status") != GameStatus.ACTIVE:
        raise StateError("Game is not active")
    if team.get("hasSubmitted"):
        raise StateError("Already submitted for this cycle")


def next_cycle_state(session: dict, now: Optional[float] = None) -> dict:
    """Return the session moved to the next cycle.

    lobby -> active on the first advance; -> completed once the cycle
    counter passes the session's cycle limit.
    """
    ensure_can_advance(session)

    new_session = dict(session)
    new_session["currentCycle"] = session.get("currentCycle", 0) + 1
    new_session["cycleStartTime"] = now if now is not None else time.time() * 1000
    new_session["shock"] = None

    if new_session["currentCycle"] == 1:
        new_session["status"] = GameStatus.ACTIVE.value
    if new_session["currentCycle"] > session.get("maxCycles", MAX_CYCLES):
        new_session["status"] = GameStatus.COMPLETED.value

    return new_session
