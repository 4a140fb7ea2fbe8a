"""Hidden linkages between support and primary activities.

A linkage is active when both its support and primary activity are at or
above their thresholds. Active linkages make investment in the primary
activity more effective, may slow its decay and may shield a team from
shocks. Teams are never shown this table; they find linkages by playing.

Every function here is a pure function of a single team's health map.
Missing activities count as health 0.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from .types import HealthMap, LinkageDefinition


LINKAGES: List[LinkageDefinition] = [
    LinkageDefinition(
        id="forecasting-inventory",
        support_activity_id="demand-forecasting",
        primary_activity_id="inventory-replenishment",
        support_threshold=60,
        primary_threshold=60,
        effectiveness_bonus=0.15,
        decay_reduction=0.20,
        description="Accurate demand forecasting enables optimal inventory levels and reduces stockouts",
    ),
    LinkageDefinition(
        id="training-store-ops",
        support_activity_id="training-programs",
        primary_activity_id="store-operations",
        support_threshold=50,
        primary_threshold=50,
        effectiveness_bonus=0.10,
        description="Well-trained staff execute store operations more effectively",
    ),
    LinkageDefinition(
        id="training-customer-service",
        support_activity_id="training-programs",
        primary_activity_id="customer-service",
        support_threshold=50,
        primary_threshold=50,
        effectiveness_bonus=0.10,
        description="Training programs improve customer service quality and consistency",
    ),
    LinkageDefinition(
        id="it-checkout",
        support_activity_id="it-infrastructure",
        primary_activity_id="checkout-experience",
        support_threshold=60,
        primary_threshold=50,
        effectiveness_bonus=0.12,
        shock_immunity=True,
        description="Robust IT infrastructure ensures reliable checkout systems",
    ),
    LinkageDefinition(
        id="it-distribution",
        support_activity_id="it-infrastructure",
        primary_activity_id="distribution-throughput",
        support_threshold=60,
        primary_threshold=50,
        effectiveness_bonus=0.10,
        shock_immunity=True,
        description="IT systems enable efficient logistics and distribution tracking",
    ),
    LinkageDefinition(
        id="supplier-inventory",
        support_activity_id="supplier-management",
        primary_activity_id="inventory-replenishment",
        support_threshold=50,
        primary_threshold=50,
        effectiveness_bonus=0.08,
        decay_reduction=0.15,
        description="Strong supplier relationships ensure reliable product availability",
    ),
    LinkageDefinition(
        id="supplier-pricing",
        support_activity_id="supplier-management",
        primary_activity_id="pricing-merchandising",
        support_threshold=50,
        primary_threshold=50,
        effectiveness_bonus=0.08,
        description="Better supplier terms enable more competitive pricing and promotions",
    ),
    LinkageDefinition(
        id="workforce-store-ops",
        support_activity_id="workforce-systems",
        primary_activity_id="store-operations",
        support_threshold=50,
        primary_threshold=60,
        effectiveness_bonus=0.05,
        decay_reduction=0.10,
        description="Effective workforce systems reduce turnover and maintain operational consistency",
    ),
]

_LINKAGES_BY_ID: Dict[str, LinkageDefinition] = {l.id: l for l in LINKAGES}


def get_linkage_by_id(linkage_id: str) -> Optional[LinkageDefinition]:
    return _LINKAGES_BY_ID.get(linkage_id)


def get_all_linkages() -> List[LinkageDefinition]:
    return list(LINKAGES)


def get_linkages_for_support_activity(support_activity_id: str) -> List[LinkageDefinition]:
    return [l for l in LINKAGES if l.support_activity_id == support_activity_id]


def get_linkages_for_primary_activity(primary_activity_id: str) -> List[LinkageDefinition]:
    return [l for l in LINKAGES if l.primary_activity_id == primary_activity_id]


def is_linkage_active(linkage: LinkageDefinition, support_health: float, primary_health: float) -> bool:
    return support_health >= linkage.support_threshold and primary_health >= linkage.primary_threshold


def _active_in(linkage: LinkageDefinition, health: HealthMap) -> bool:
    return is_linkage_active(
        linkage,
        health.get(linkage.support_activity_id) or 0,
        health.get(linkage.primary_activity_id) or 0,
    )


def get_active_linkages(health: HealthMap) -> List[LinkageDefinition]:
    """Linkages active for this health map, in catalog order."""
    return [l for l in LINKAGES if _active_in(l, health)]


def active_linkage_ids(health: HealthMap) -> List[str]:
    return [l.id for l in get_active_linkages(health)]


def get_near_active_linkages(health: HealthMap, within_points: float = 10) -> List[LinkageDefinition]:
    """Inactive linkages that are close to switching on.

    At least one threshold must be within ``within_points`` and neither may
    be more than twice that away.
    """
    near: List[LinkageDefinition] = []
    for linkage in LINKAGES:
        if _active_in(linkage, health):
            continue
        support_gap = linkage.support_threshold - (health.get(linkage.support_activity_id) or 0)
        primary_gap = linkage.primary_threshold - (health.get(linkage.primary_activity_id) or 0)
        if (support_gap <= within_points or primary_gap <= within_points) and (
            support_gap <= within_points * 2 and primary_gap <= within_points * 2
        ):
            near.append(linkage)
    return near


def calculate_linkage_bonus(primary_activity_id: str, health: HealthMap) -> float:
    """Summed effectiveness bonus of active linkages targeting the activity."""
    return sum(
        l.effectiveness_bonus
        for l in get_linkages_for_primary_activity(primary_activity_id)
        if _active_in(l, health)
    )


def get_decay_modifier(activity_id: str, health: HealthMap) -> float:
    """Multiplier applied to the activity's decay rate, e.g. 0.8 for -20%."""
    reduction = sum(
        l.decay_reduction
        for l in get_linkages_for_primary_activity(activity_id)
        if l.decay_reduction and _active_in(l, health)
    )
    return max(0.0, 1 - reduction)


def has_shock_immunity(activity_id: str, health: HealthMap) -> bool:
    return any(
        l.shock_immunity and _active_in(l, health)
        for l in get_linkages_for_primary_activity(activity_id)
    )


def linkage_to_dict(linkage: LinkageDefinition) -> dict:
    return {
        "id": linkage.id,
        "supportActivityId": linkage.support_activity_id,
        "primaryActivityId": linkage.primary_activity_id,
        "supportThreshold": linkage.support_threshold,
        "primaryThreshold": linkage.primary_threshold,
        "effectivenessBonus": linkage.effectiveness_bonus,
        "decayReduction": linkage.decay_reduction,
        "shockImmunity": linkage.shock_immunity,
        "description": linkage.description,
    }
