"""Per-team, per-cycle scorecard rows for instructor debriefs."""

from __future__ import annotations

from typing import Dict, List

from .activities import get_activity_by_id
from .calculations import round1


def _elimination_costs(cuts: List[str]) -> float:
    total = 0.0
    for activity_id in cuts:
        activity = get_activity_by_id(activity_id)
        if activity is not None and activity.elimination_cost:
            total += activity.elimination_cost
    return total


def _allocations_by_category(allocations: Dict[str, float]) -> Dict[str, float]:
    by_category: Dict[str, float] = {}
    for activity_id, amount in allocations.items():
        activity = get_activity_by_id(activity_id)
        if activity is None:
            continue
        key = activity.category.value
        by_category[key] = by_category.get(key, 0) + amount
    return by_category


def build_scorecards(teams: List[dict], decisions: List[dict]) -> List[dict]:
    """Flatten each team's cycle history joined with its decisions."""
    decision_map = {(d["teamId"], d["cycle"]): d for d in decisions}
    rows: List[dict] = []

    for team in teams:
        previous_avg = None
        running_total = 0.0

        for result in sorted(team.get("cycleResults") or [], key=lambda r: r["cycle"]):
            health_values = list((result.get("newHealth") or {}).values())
            avg_health = sum(health_values) / len(health_values) if health_values else 0
            avg_delta = 0 if previous_avg is None else avg_health - previous_avg
            previous_avg = avg_health

            decision = decision_map.get((team["id"], result["cycle"])) or {}
            allocations = decision.get("allocations") or {}
            cuts = decision.get("cuts") or []

            allocation_total = sum(allocations.values())
            elimination_costs = _elimination_costs(cuts)
            running_total += result["casChange"]

            rows.append(
                {
                    "teamId": team["id"],
                    "teamName": team["name"],
                    "teamCode": team.get("code"),
                    "cycle": result["cycle"],
                    "casChange": result["casChange"],
                    "casTotal": round1(running_total),
                    "baseScore": result["casBreakdown"]["baseScore"],
                    "linkageBonusTotal": round1(sum(result["casBreakdown"]["linkageBonuses"].values())),
                    "shockEffect": result["casBreakdown"]["shockEffect"],
                    "nvaDrag": result["casBreakdown"]["nvaDrag"],
                    "activeLinkageCount": len(result["activeLinkages"]),
                    "avgHealth": round1(avg_health),
                    "avgHealthDelta": round1(avg_delta),
                    "allocationTotal": round1(allocation_total),
                    "eliminationCosts": round1(elimination_costs),
                    "spendTotal": round1(allocation_total + elimination_costs),
                    "cutsCount": len(cuts),
                    "allocationsByCategory": _allocations_by_category(allocations),
                }
            )

    return rows
