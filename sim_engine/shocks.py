"""External shocks the instructor can inject into a cycle.

A shock hits the same activities for every team in the cohort. A team
holding any of the shock's immunity linkages is fully shielded; there is
no partial mitigation.
"""

from __future__ import annotations

import random
from typing import Dict, Iterable, List, Optional

from .types import ShockDefinition


SHOCKS: List[ShockDefinition] = [
    ShockDefinition(
        id="supply-chain-disruption",
        name="Supply Chain Disruption",
        description="Major supplier experiences production issues",
        narrative=(
            "BREAKING NEWS: One of your key regional suppliers has experienced a warehouse fire, "
            "disrupting deliveries for the foreseeable future. Teams with strong supplier relationships "
            "and robust inventory systems may weather this storm better than others."
        ),
        affected_activities=("inventory-replenishment", "distribution-throughput"),
        health_impact=-15,
        immunity_linkages=("supplier-inventory",),
    ),
    ShockDefinition(
        id="pos-system-outage",
        name="POS System Outage",
        description="Regional point-of-sale system failure",
        narrative=(
            "SYSTEM ALERT: A critical software bug has caused widespread POS terminal failures "
            "across the region. Checkout lines are backing up. Teams with robust IT infrastructure "
            "may have redundant systems in place."
        ),
        affected_activities=("checkout-experience",),
        health_impact=-20,
        immunity_linkages=("it-checkout",),
    ),
    ShockDefinition(
        id="labor-shortage",
        name="Labor Shortage",
        description="Regional labor market tightens significantly",
        narrative=(
            "MARKET UPDATE: A new distribution center opening nearby is aggressively recruiting, "
            "creating a regional labor shortage. Stores are struggling to maintain staffing levels. "
            "Teams with strong workforce systems and training programs may retain staff better."
        ),
        affected_activities=("store-operations", "customer-service"),
        health_impact=-12,
        immunity_linkages=("workforce-store-ops", "training-store-ops"),
    ),
    ShockDefinition(
        id="competitor-price-war",
        name="Competitor Price War",
        description="Major competitor launches aggressive pricing campaign",
        narrative=(
            'COMPETITIVE ALERT: Your largest competitor has launched a "Price Match Guarantee" '
            "campaign with significant markdowns. Customers are comparing prices more carefully. "
            "Teams with strong supplier relationships may have more margin flexibility."
        ),
        affected_activities=("pricing-merchandising",),
        health_impact=-18,
        immunity_linkages=("supplier-pricing",),
    ),
    ShockDefinition(
        id="logistics-disruption",
        name="Logistics Network Disruption",
        description="Transportation delays affect distribution",
        narrative=(
            "OPERATIONS ALERT: Severe weather and road construction have created significant "
            "delays in your regional distribution network. Delivery windows are being missed. "
            "Teams with strong IT infrastructure for logistics may route around disruptions."
        ),
        affected_activities=("distribution-throughput", "inventory-replenishment"),
        health_impact=-14,
        immunity_linkages=("it-distribution",),
    ),
    ShockDefinition(
        id="demand-spike",
        name="Unexpected Demand Spike",
        description="Viral social media trend causes demand surge",
        narrative=(
            "TRENDING NOW: A viral video featuring products from your stores has created "
            "unexpected demand surges. Shelves are emptying faster than anticipated. Teams with "
            "strong demand forecasting and inventory systems may capitalize on this opportunity."
        ),
        affected_activities=("inventory-replenishment", "store-operations"),
        health_impact=-10,
        immunity_linkages=("forecasting-inventory",),
    ),
    ShockDefinition(
        id="customer-service-crisis",
        name="Customer Service Crisis",
        description="Social media backlash from service incident",
        narrative=(
            "REPUTATION ALERT: A customer service incident at one of your stores has gone viral "
            "on social media. Customers are demanding better treatment. Teams with strong training "
            "programs may demonstrate better service recovery skills."
        ),
        affected_activities=("customer-service",),
        health_impact=-16,
        immunity_linkages=("training-customer-service",),
    ),
    ShockDefinition(
        id="cybersecurity-incident",
        name="Cybersecurity Incident",
        description="Attempted data breach detected",
        narrative=(
            "SECURITY ALERT: Your IT team has detected and contained an attempted data breach. "
            "While no customer data was compromised, system lockdowns are affecting operations. "
            "Teams with robust IT infrastructure may recover faster."
        ),
        affected_activities=("checkout-experience", "distribution-throughput"),
        health_impact=-12,
        immunity_linkages=("it-checkout", "it-distribution"),
    ),
]

_SHOCKS_BY_ID: Dict[str, ShockDefinition] = {s.id: s for s in SHOCKS}


def get_shock_by_id(shock_id: Optional[str]) -> Optional[ShockDefinition]:
    if not shock_id:
        return None
    return _SHOCKS_BY_ID.get(shock_id)


def get_all_shocks() -> List[ShockDefinition]:
    return list(SHOCKS)


def get_random_shock(rng: Optional[random.Random] = None) -> ShockDefinition:
    return (rng or random).choice(SHOCKS)


def get_shocks_affecting_activity(activity_id: str) -> List[ShockDefinition]:
    return [s for s in SHOCKS if activity_id in s.affected_activities]


def get_suggested_shocks_for_cycle(cycle: int) -> List[ShockDefinition]:
    """Shocks of an intensity suited to the given cycle."""
    if cycle == 1:
        return [s for s in SHOCKS if abs(s.health_impact) <= 12]
    if cycle == 2:
        return [s for s in SHOCKS if 10 <= abs(s.health_impact) <= 16]
    if cycle == 3:
        return [s for s in SHOCKS if abs(s.health_impact) >= 14]
    return list(SHOCKS)


def team_has_shock_immunity(shock: ShockDefinition, active_linkage_ids: Iterable[str]) -> bool:
    active = set(active_linkage_ids)
    return any(linkage_id in active for linkage_id in shock.immunity_linkages)


def calculate_shock_impact(
    shock: Optional[ShockDefinition], activity_id: str, active_linkage_ids: Iterable[str]
) -> float:
    """Health change the shock causes on one activity (0 or negative)."""
    if shock is None or activity_id not in shock.affected_activities:
        return 0
    if team_has_shock_immunity(shock, active_linkage_ids):
        return 0
    return shock.health_impact


def apply_shock_effects(
    activities: List[dict], shock: Optional[ShockDefinition], active_linkage_ids: Iterable[str]
) -> List[dict]:
    """Return activity records with the shock's impact applied, floored at 0."""
    if shock is None:
        return list(activities)

    active = list(active_linkage_ids)
    updated = []
    for activity in activities:
        impact = 0 if activity.get("isEliminated") else calculate_shock_impact(
            shock, activity["activityId"], active
        )
        if impact == 0:
            updated.append(activity)
            continue
        updated.append({**activity, "health": max(0, activity["health"] + impact)})
    return updated
