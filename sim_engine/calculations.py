"""Health transition and Competitive Advantage Score (CAS) calculations.

All functions are total over well-formed input: activity ids missing from
the catalog are skipped or contribute 0 instead of raising, so a single bad
record never blocks scoring for the cohort.
"""

from __future__ import annotations

import math
from typing import Dict, Iterable, List, Optional

from .activities import NON_VALUE_ADD_ACTIVITIES, VALUE_CREATING_ACTIVITIES, get_activity_by_id
from .constants import (
    BASE_INVESTMENT_EFFECTIVENESS,
    BUDGET_CAS_MULTIPLIER,
    BUDGET_PERCENTAGE,
    DIMINISHING_RETURNS_MULTIPLIER,
    DIMINISHING_RETURNS_THRESHOLD,
    LINKAGE_SCORE_SCALE,
    MARGIN_CAS_MULTIPLIER,
    MAX_HEALTH,
    MIN_HEALTH,
    NVA_DRAG_MULTIPLIER,
    SHOCK_IMMUNITY_BONUS,
    SHOCK_SCORE_MULTIPLIER,
)
from .linkages import (
    LINKAGES,
    active_linkage_ids,
    calculate_linkage_bonus,
    get_active_linkages,
    get_decay_modifier,
)
from .shocks import apply_shock_effects, team_has_shock_immunity
from .types import ActivityCategory, HealthMap, ShockDefinition, health_map


def round1(value: float) -> float:
    """Round to one decimal place, halves toward positive infinity."""
    return math.floor(value * 10 + 0.5) / 10


def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


# ==================================================
# HEALTH TRANSITION
# ==================================================

def calculate_health_from_investment(
    activity_id: str, investment: float, current_health: float, health: HealthMap
) -> float:
    if get_activity_by_id(activity_id) is None:
        return 0

    effectiveness = BASE_INVESTMENT_EFFECTIVENESS * (1 + calculate_linkage_bonus(activity_id, health))
    gain = investment * effectiveness

    if current_health >= DIMINISHING_RETURNS_THRESHOLD:
        return gain * DIMINISHING_RETURNS_MULTIPLIER
    return gain


def calculate_decay(activity_id: str, health: HealthMap) -> float:
    activity = get_activity_by_id(activity_id)
    if activity is None:
        return 0
    return activity.decay_rate * get_decay_modifier(activity_id, health)


def apply_cuts(activities: List[dict], cuts: Iterable[str], cycle: int) -> List[dict]:
    """Mark cut activities eliminated. Earlier eliminations keep their cycle."""
    cut_ids = set(cuts)
    updated = []
    for activity in activities:
        if activity["activityId"] in cut_ids and not activity.get("isEliminated"):
            activity = {**activity, "isEliminated": True, "eliminatedInCycle": cycle}
        updated.append(activity)
    return updated


def calculate_new_health(
    activities: List[dict], allocations: Dict[str, float], shock: Optional[ShockDefinition]
) -> List[dict]:
    """Advance one team's activities by one cycle.

    The shock is applied first. Linkage bonuses and decay modifiers are read
    from the health map as it stood before the shock. Eliminated and
    non-value-add activities do not transition.
    """
    start_health = health_map(activities)
    linkage_ids = active_linkage_ids(start_health)

    updated = []
    for activity in apply_shock_effects(activities, shock, linkage_ids):
        if activity.get("isEliminated"):
            updated.append(activity)
            continue

        definition = get_activity_by_id(activity["activityId"])
        if definition is None or definition.category is ActivityCategory.NON_VALUE_ADD:
            updated.append(activity)
            continue

        investment = allocations.get(activity["activityId"]) or 0
        decay = calculate_decay(activity["activityId"], start_health)
        gain = calculate_health_from_investment(
            activity["activityId"], investment, activity["health"], start_health
        )
        new_health = _clamp(activity["health"] + gain - decay, MIN_HEALTH, MAX_HEALTH)

        updated.append({**activity, "health": round1(new_health), "investment": investment})

    return updated


# ==================================================
# SCORING
# ==================================================

def calculate_base_cas(activities: List[dict], all_teams_activities: List[List[dict]]) -> dict:
    """Weighted health difference from the cohort average over primary activities."""
    own = health_map(activities)
    cohort = [health_map(team) for team in all_teams_activities]
    breakdown: Dict[str, dict] = {}
    total = 0.0

    for primary in VALUE_CREATING_ACTIVITIES:
        if primary.id not in own:
            continue
        values = [team.get(primary.id, 0) for team in cohort]
        avg = sum(values) / len(values) if values else own[primary.id]

        weighted_diff = (own[primary.id] - avg) * (primary.weight or 1)
        breakdown[primary.id] = {
            "team": own[primary.id],
            "avg": round1(avg),
            "diff": round1(weighted_diff),
        }
        total += weighted_diff

    return {"score": round1(total), "breakdown": breakdown}


def calculate_linkage_bonuses(activities: List[dict]) -> dict:
    bonuses: Dict[str, float] = {}
    total = 0.0
    for linkage in get_active_linkages(health_map(activities)):
        bonus = linkage.effectiveness_bonus * LINKAGE_SCORE_SCALE
        bonuses[linkage.id] = round1(bonus)
        total += bonus
    return {"total": round1(total), "bonuses": bonuses}


def calculate_nva_drag(activities: List[dict]) -> dict:
    """Score penalty for overhead that is switched on from the start.

    Keyed on the catalog starting health, not live state: an opted-in
    innovation lab is charged maintenance but no drag.
    """
    by_id = {a["activityId"]: a for a in activities}
    costs: Dict[str, float] = {}
    total = 0.0

    for nva in NON_VALUE_ADD_ACTIVITIES:
        activity = by_id.get(nva.id)
        if activity is None or activity.get("isEliminated") or not nva.active_by_default:
            continue
        drag = (nva.maintenance_cost or 0) * NVA_DRAG_MULTIPLIER
        costs[nva.id] = -drag
        total -= drag

    return {"total": round1(total), "costs": costs}


def calculate_shock_cas_effect(activities: List[dict], shock: Optional[ShockDefinition]) -> float:
    if shock is None:
        return 0
    if team_has_shock_immunity(shock, active_linkage_ids(health_map(activities))):
        return SHOCK_IMMUNITY_BONUS
    return shock.health_impact * SHOCK_SCORE_MULTIPLIER


def calculate_cas(
    activities: List[dict], all_teams_activities: List[List[dict]], shock: Optional[ShockDefinition]
) -> dict:
    base = calculate_base_cas(activities, all_teams_activities)["score"]
    linkage = calculate_linkage_bonuses(activities)
    nva_drag = calculate_nva_drag(activities)["total"]
    shock_effect = calculate_shock_cas_effect(activities, shock)

    return {
        "total": round1(base + linkage["total"] + nva_drag + shock_effect),
        "baseScore": base,
        "linkageBonuses": linkage["bonuses"],
        "shockEffect": round1(shock_effect),
        "nvaDrag": nva_drag,
    }


# ==================================================
# BUDGET, MARGIN, RANKINGS
# ==================================================

def calculate_nva_maintenance_cost(activities: List[dict]) -> float:
    """Maintenance owed for every NVA activity not yet eliminated.

    The innovation lab is charged even before a team activates it.
    """
    by_id = {a["activityId"]: a for a in activities}
    total = 0.0
    for nva in NON_VALUE_ADD_ACTIVITIES:
        activity = by_id.get(nva.id)
        if activity is None or activity.get("isEliminated"):
            continue
        total += nva.maintenance_cost or 0
    return total


def calculate_new_budget(revenue: float, cas_change: float, activities: List[dict]) -> float:
    base_budget = revenue * BUDGET_PERCENTAGE
    cas_adjustment = cas_change * BUDGET_CAS_MULTIPLIER
    return max(0.0, base_budget + cas_adjustment - calculate_nva_maintenance_cost(activities))


def calculate_margin_change(cas_change: float) -> float:
    return cas_change * MARGIN_CAS_MULTIPLIER


def orphaned_linkage_ids(active_ids: Iterable[str]) -> List[str]:
    active = set(active_ids)
    return [l.id for l in LINKAGES if l.id not in active]


def calculate_rankings(teams: List[dict]) -> List[dict]:
    """Rank teams by cumulative CAS, highest first. Ties keep input order."""
    ordered = sorted(teams, key=lambda t: t["cas"], reverse=True)
    return [
        {
            "teamId": team["id"],
            "teamName": team["name"],
            "cas": team["cas"],
            "rank": index + 1,
            "hasSubmitted": team.get("hasSubmitted", False),
        }
        for index, team in enumerate(ordered)
    ]
