"""Catalog definitions and the plain records the engine consumes and returns.

Catalog entries are frozen dataclasses validated on construction. Runtime
records (team activities, decisions, cycle results, teams, sessions) are
plain dicts so they can be stored as JSON without conversion; the
TypedDicts below document their shape using the wire (camelCase) keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, TypedDict


class ActivityCategory(str, Enum):
    VALUE_CREATING = "value-creating"
    VALUE_SUPPORTING = "value-supporting"
    NON_VALUE_ADD = "non-value-add"


class GameStatus(str, Enum):
    LOBBY = "lobby"
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass(frozen=True)
class ActivityDefinition:
    id: str
    name: str
    description: str
    category: ActivityCategory
    starting_health: float
    decay_rate: float
    weight: Optional[float] = None            # value-creating only
    maintenance_cost: Optional[float] = None  # non-value-add only
    elimination_cost: Optional[float] = None  # non-value-add only; None = cannot be eliminated

    def __post_init__(self):
        if not isinstance(self.category, ActivityCategory):
            raise ValueError(f"Unknown activity category for {self.id!r}: {self.category!r}")
        if not 0 <= self.starting_health <= 100:
            raise ValueError(f"Starting health for {self.id!r} must be within [0, 100]")
        if self.decay_rate < 0:
            raise ValueError(f"Decay rate for {self.id!r} must be non-negative")

        has_costs = self.maintenance_cost is not None or self.elimination_cost is not None
        if self.category is ActivityCategory.VALUE_CREATING:
            if self.weight is None:
                raise ValueError(f"Value-creating activity {self.id!r} requires a weight")
            if has_costs:
                raise ValueError(f"Value-creating activity {self.id!r} cannot carry costs")
        elif self.category is ActivityCategory.VALUE_SUPPORTING:
            if self.weight is not None or has_costs:
                raise ValueError(f"Value-supporting activity {self.id!r} takes no weight or costs")
        else:
            if self.weight is not None:
                raise ValueError(f"Non-value-add activity {self.id!r} cannot carry a weight")
            if self.maintenance_cost is None:
                raise ValueError(f"Non-value-add activity {self.id!r} requires a maintenance cost")

    @property
    def is_eliminable(self) -> bool:
        return self.category is ActivityCategory.NON_VALUE_ADD and self.elimination_cost is not None

    @property
    def active_by_default(self) -> bool:
        return self.starting_health == 100


@dataclass(frozen=True)
class LinkageDefinition:
    id: str
    support_activity_id: str
    primary_activity_id: str
    support_threshold: float
    primary_threshold: float
    effectiveness_bonus: float
    description: str = ""
    decay_reduction: float = 0.0
    shock_immunity: bool = False

    def __post_init__(self):
        if self.effectiveness_bonus < 0 or self.decay_reduction < 0:
            raise ValueError(f"Linkage {self.id!r} bonuses must be non-negative")


@dataclass(frozen=True)
class ShockDefinition:
    id: str
    name: str
    description: str
    narrative: str
    affected_activities: Tuple[str, ...]
    health_impact: float
    immunity_linkages: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if self.health_impact >= 0:
            raise ValueError(f"Shock {self.id!r} must have a negative health impact")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "narrative": self.narrative,
            "affectedActivities": list(self.affected_activities),
            "healthImpact": self.health_impact,
            "immunityLinkages": list(self.immunity_linkages),
        }


HealthMap = Dict[str, float]


class _TeamActivityBase(TypedDict):
    activityId: str
    health: float
    investment: float
    isEliminated: bool


class TeamActivity(_TeamActivityBase, total=False):
    eliminatedInCycle: int


class Decision(TypedDict):
    id: str
    teamId: str
    sessionId: str
    cycle: int
    allocations: Dict[str, float]
    cuts: List[str]
    submittedAt: float


class CasBreakdown(TypedDict):
    baseScore: float
    linkageBonuses: Dict[str, float]
    shockEffect: float
    nvaDrag: float
    total: float


class CycleResult(TypedDict):
    teamId: str
    cycle: int
    casChange: float
    casBreakdown: CasBreakdown
    activeLinkages: List[str]
    orphanedLinkages: List[str]
    newHealth: Dict[str, float]
    marginChange: float
    newBudget: float
    rank: int


class Team(TypedDict):
    id: str
    sessionId: str
    name: str
    code: str
    budget: float
    cas: float
    margin: float
    revenue: float
    operatingProfit: float
    hasSubmitted: bool
    hasSeenBrief: bool
    cycleResults: List[CycleResult]


class GameSession(TypedDict):
    id: str
    code: str
    status: str
    currentCycle: int
    maxCycles: int
    cycleStartTime: float
    cycleTimeLimit: int
    shock: Optional[str]
    createdAt: float
    createdBy: str


class TeamRanking(TypedDict):
    teamId: str
    teamName: str
    cas: float
    rank: int
    hasSubmitted: bool


def health_map(activities: List[TeamActivity]) -> HealthMap:
    """Index a team's activity records by activity id."""
    return {a["activityId"]: a["health"] for a in activities}
