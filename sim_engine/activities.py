"""Static activity catalog for the grocery-retail value chain.

Activities fall into three fixed categories: value-creating (primary,
weighted into CAS), value-supporting (enable primary activities through
linkages) and non-value-add (overhead with a maintenance cost that can be
eliminated for a one-time cost).
"""

from __future__ import annotations

from typing import Dict, List, Optional

from .types import ActivityCategory, ActivityDefinition


_ACTIVITIES: Dict[str, ActivityDefinition] = {}


def _register(activity: ActivityDefinition) -> ActivityDefinition:
    if activity.id in _ACTIVITIES:
        raise ValueError(f"Duplicate activity id {activity.id!r}")
    _ACTIVITIES[activity.id] = activity
    return activity


VALUE_CREATING_ACTIVITIES: List[ActivityDefinition] = [
    _register(
        ActivityDefinition(
            id="store-operations",
            name="Store Operations",
            description="Shelf stocking, store cleanliness, floor labor management, and in-store execution",
            category=ActivityCategory.VALUE_CREATING,
            starting_health=60,
            decay_rate=5,
            weight=1.2,
        )
    ),
    _register(
        ActivityDefinition(
            id="checkout-experience",
            name="Checkout Experience",
            description="Point-of-sale systems, queue management, payment processing, and customer throughput",
            category=ActivityCategory.VALUE_CREATING,
            starting_health=55,
            decay_rate=4,
            weight=1.0,
        )
    ),
    _register(
        ActivityDefinition(
            id="inventory-replenishment",
            name="Inventory Replenishment",
            description="Stock availability, reorder processes, backroom management, and fill rates",
            category=ActivityCategory.VALUE_CREATING,
            starting_health=65,
            decay_rate=6,
            weight=1.3,
        )
    ),
    _register(
        ActivityDefinition(
            id="pricing-merchandising",
            name="Pricing & Merchandising",
            description="Pricing strategy, promotional execution, product placement, and category management",
            category=ActivityCategory.VALUE_CREATING,
            starting_health=50,
            decay_rate=4,
            weight=1.1,
        )
    ),
    _register(
        ActivityDefinition(
            id="distribution-throughput",
            name="Distribution Throughput",
            description="Warehouse operations, delivery scheduling, logistics efficiency, and distribution network",
            category=ActivityCategory.VALUE_CREATING,
            starting_health=60,
            decay_rate=5,
            weight=1.0,
        )
    ),
    _register(
        ActivityDefinition(
            id="customer-service",
            name="Customer Service",
            description="Customer inquiries, complaint resolution, returns processing, and service quality",
            category=ActivityCategory.VALUE_CREATING,
            starting_health=55,
            decay_rate=4,
            weight=0.9,
        )
    ),
]

VALUE_SUPPORTING_ACTIVITIES: List[ActivityDefinition] = [
    _register(
        ActivityDefinition(
            id="workforce-systems",
            name="Workforce Systems",
            description="HR processes, scheduling software, payroll systems, and labor planning tools",
            category=ActivityCategory.VALUE_SUPPORTING,
            starting_health=50,
            decay_rate=3,
        )
    ),
    _register(
        ActivityDefinition(
            id="it-infrastructure",
            name="IT Infrastructure",
            description="Network systems, hardware maintenance, software platforms, and technology backbone",
            category=ActivityCategory.VALUE_SUPPORTING,
            starting_health=55,
            decay_rate=4,
        )
    ),
    _register(
        ActivityDefinition(
            id="supplier-management",
            name="Supplier Management",
            description="Vendor relationships, procurement processes, contract management, and supplier scorecards",
            category=ActivityCategory.VALUE_SUPPORTING,
            starting_health=50,
            decay_rate=3,
        )
    ),
    _register(
        ActivityDefinition(
            id="training-programs",
            name="Training Programs",
            description="Employee onboarding, skill development, certification programs, and knowledge management",
            category=ActivityCategory.VALUE_SUPPORTING,
            starting_health=45,
            decay_rate=3,
        )
    ),
    _register(
        ActivityDefinition(
            id="demand-forecasting",
            name="Demand Forecasting",
            description="Sales prediction, trend analysis, seasonal planning, and inventory optimization models",
            category=ActivityCategory.VALUE_SUPPORTING,
            starting_health=50,
            decay_rate=4,
        )
    ),
]

NON_VALUE_ADD_ACTIVITIES: List[ActivityDefinition] = [
    _register(
        ActivityDefinition(
            id="legacy-inventory-system",
            name="Legacy Inventory System",
            description="Outdated inventory tracking software requiring manual reconciliation and workarounds",
            category=ActivityCategory.NON_VALUE_ADD,
            starting_health=100,
            decay_rate=0,
            maintenance_cost=1.5,
            elimination_cost=3,
        )
    ),
    _register(
        ActivityDefinition(
            id="regional-management-layer",
            name="Regional Management Layer",
            description="Redundant middle management structure creating bureaucracy and slow decision-making",
            category=ActivityCategory.NON_VALUE_ADD,
            starting_health=100,
            decay_rate=0,
            maintenance_cost=2,
            elimination_cost=4,
        )
    ),
    _register(
        ActivityDefinition(
            id="manual-reporting-processes",
            name="Manual Reporting Processes",
            description="Time-consuming manual data entry and report generation across departments",
            category=ActivityCategory.NON_VALUE_ADD,
            starting_health=100,
            decay_rate=0,
            maintenance_cost=1,
            elimination_cost=2,
        )
    ),
    # Inactive until a team opts in, and never eliminable afterwards.
    _register(
        ActivityDefinition(
            id="innovation-lab",
            name="Innovation Lab",
            description="A shiny new initiative exploring emerging technologies with unclear ROI",
            category=ActivityCategory.NON_VALUE_ADD,
            starting_health=0,
            decay_rate=0,
            maintenance_cost=2.5,
            elimination_cost=None,
        )
    ),
]

INNOVATION_LAB_ID = "innovation-lab"

ALL_ACTIVITIES: List[ActivityDefinition] = [
    *VALUE_CREATING_ACTIVITIES,
    *VALUE_SUPPORTING_ACTIVITIES,
    *NON_VALUE_ADD_ACTIVITIES,
]


def get_activity_by_id(activity_id: str) -> Optional[ActivityDefinition]:
    return _ACTIVITIES.get(activity_id)


def get_activities_by_category(category: ActivityCategory) -> List[ActivityDefinition]:
    return [a for a in ALL_ACTIVITIES if a.category is ActivityCategory(category)]


def get_starting_nva_maintenance_cost() -> float:
    """Maintenance owed for the NVA activities a team starts with switched on."""
    return sum(a.maintenance_cost or 0 for a in NON_VALUE_ADD_ACTIVITIES if a.active_by_default)


def initial_team_activities() -> List[dict]:
    """Fresh activity records for a newly created team."""
    return [
        {
            "activityId": a.id,
            "health": a.starting_health,
            "investment": 0,
            "isEliminated": False,
        }
        for a in ALL_ACTIVITIES
    ]


def activity_to_dict(activity: ActivityDefinition) -> dict:
    data = {
        "id": activity.id,
        "name": activity.name,
        "description": activity.description,
        "category": activity.category.value,
        "startingHealth": activity.starting_health,
        "decayRate": activity.decay_rate,
    }
    if activity.weight is not None:
        data["weight"] = activity.weight
    if activity.category is ActivityCategory.NON_VALUE_ADD:
        data["maintenanceCost"] = activity.maintenance_cost
        data["eliminationCost"] = activity.elimination_cost
    return data
