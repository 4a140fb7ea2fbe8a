"""Game records on top of the key/value store.

Sessions, teams, team activities and decisions are stored as plain JSON
records. Only record-level reads and writes live here; game rules are in
``game_engine`` and ``sim_engine``.
"""

from __future__ import annotations

import logging
import os
import secrets
import time
import uuid
from typing import Dict, List, Optional, Tuple

from kv_store import KeyValueStore
from sim_engine.activities import get_starting_nva_maintenance_cost, initial_team_activities
from sim_engine.constants import (
    BUDGET_PERCENTAGE,
    DEFAULT_CYCLE_TIME,
    DEFAULT_TEAM_COUNT,
    MAX_CYCLES,
    STARTING_MARGIN,
    STARTING_OPERATING_PROFIT,
    STARTING_REVENUE,
)
from sim_engine.errors import NotFoundError
from sim_engine.types import Decision, GameSession, GameStatus, Team

logger = logging.getLogger(__name__)

# No 0/O or 1/I so codes read cleanly off a projector
_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


class Keys:
    @staticmethod
    def session(session_id: str) -> str:
        return f"session:{session_id}"

    @staticmethod
    def session_by_code(code: str) -> str:
        return f"session:code:{code}"

    @staticmethod
    def team(team_id: str) -> str:
        return f"team:{team_id}"

    @staticmethod
    def team_by_code(code: str) -> str:
        return f"team:code:{code}"

    @staticmethod
    def team_activities(team_id: str) -> str:
        return f"team:{team_id}:activities"

    @staticmethod
    def session_teams(session_id: str) -> str:
        return f"session:{session_id}:teams"

    @staticmethod
    def decision(decision_id: str) -> str:
        return f"decision:{decision_id}"

    @staticmethod
    def team_decisions(team_id: str) -> str:
        return f"team:{team_id}:decisions"

    @staticmethod
    def session_decisions(session_id: str) -> str:
        return f"session:{session_id}:decisions"


def generate_code(length: int = 6) -> str:
    return "".join(secrets.choice(_CODE_ALPHABET) for _ in range(length))


def _now_ms() -> float:
    return time.time() * 1000


def default_team_count() -> int:
    return int(os.getenv("DEFAULT_TEAM_COUNT", DEFAULT_TEAM_COUNT))


def default_cycle_time() -> int:
    return int(os.getenv("DEFAULT_CYCLE_TIME", DEFAULT_CYCLE_TIME))


class GameStore:
    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    # ---------- sessions ----------

    def create_session(
        self,
        created_by: str,
        team_count: Optional[int] = None,
        max_cycles: int = MAX_CYCLES,
        cycle_time_limit: Optional[int] = None,
    ) -> Tuple[GameSession, List[dict]]:
        """Create a session in the lobby with ``team_count`` placeholder teams."""
        session_id = str(uuid.uuid4())
        session: GameSession = {
            "id": session_id,
            "code": generate_code(8),
            "status": GameStatus.LOBBY.value,
            "currentCycle": 0,
            "maxCycles": max_cycles,
            "cycleStartTime": 0,
            "cycleTimeLimit": cycle_time_limit if cycle_time_limit is not None else default_cycle_time(),
            "shock": None,
            "createdAt": _now_ms(),
            "createdBy": created_by,
        }

        team_codes = []
        for number in range(1, (team_count or default_team_count()) + 1):
            code = generate_code(6)
            team = self.create_team(session_id, f"Team {number}", code)
            self.kv.set(Keys.team_by_code(code), team["id"])
            team_codes.append({"teamNumber": number, "code": code})

        self.kv.set(Keys.session(session_id), session)
        self.kv.set(Keys.session_by_code(session["code"]), session_id)
        logger.info("Created session %s with %d teams", session_id, len(team_codes))
        return session, team_codes

    def get_session(self, session_id: str) -> Optional[GameSession]:
        return self.kv.get(Keys.session(session_id))

    def require_session(self, session_id: str) -> GameSession:
        session = self.get_session(session_id)
        if not session:
            raise NotFoundError("Session not found")
        return session

    def get_session_by_code(self, code: str) -> Optional[GameSession]:
        session_id = self.kv.get(Keys.session_by_code(code))
        return self.get_session(session_id) if session_id else None

    def update_session(self, session: GameSession) -> None:
        self.kv.set(Keys.session(session["id"]), session)

    # ---------- teams ----------

    def create_team(self, session_id: str, name: str, code: str) -> Team:
        team_id = str(uuid.uuid4())
        team: Team = {
            "id": team_id,
            "sessionId": session_id,
            "name": name,
            "code": code,
            "budget": STARTING_REVENUE * BUDGET_PERCENTAGE - get_starting_nva_maintenance_cost(),
            "cas": 0,
            "margin": STARTING_MARGIN,
            "revenue": STARTING_REVENUE,
            "operatingProfit": STARTING_OPERATING_PROFIT,
            "hasSubmitted": False,
            "hasSeenBrief": False,
            "cycleResults": [],
        }
        self.kv.set(Keys.team(team_id), team)
        self.kv.set(Keys.team_activities(team_id), initial_team_activities())
        self.kv.sadd(Keys.session_teams(session_id), team_id)
        return team

    def get_team(self, team_id: str) -> Optional[Team]:
        return self.kv.get(Keys.team(team_id))

    def require_team(self, team_id: str) -> Team:
        team = self.get_team(team_id)
        if not team:
            raise NotFoundError("Team not found")
        return team

    def get_team_by_code(self, code: str) -> Optional[Team]:
        team_id = self.kv.get(Keys.team_by_code(code))
        return self.get_team(team_id) if team_id else None

    def update_team(self, team: Team) -> None:
        self.kv.set(Keys.team(team["id"]), team)

    def get_session_teams(self, session_id: str) -> List[Team]:
        """Teams of a session ordered by name."""
        teams = []
        for team_id in self.kv.smembers(Keys.session_teams(session_id)):
            team = self.get_team(team_id)
            if team:
                teams.append(team)
        return sorted(teams, key=lambda t: t["name"])

    # ---------- activities ----------

    def get_team_activities(self, team_id: str) -> List[dict]:
        return self.kv.get(Keys.team_activities(team_id)) or []

    def update_team_activities(self, team_id: str, activities: List[dict]) -> None:
        self.kv.set(Keys.team_activities(team_id), activities)

    # ---------- decisions ----------

    def save_decision(self, decision: Decision) -> None:
        self.kv.set(Keys.decision(decision["id"]), decision)
        self.kv.rpush(Keys.team_decisions(decision["teamId"]), decision["id"])
        self.kv.rpush(Keys.session_decisions(decision["sessionId"]), decision["id"])

    def get_decision(self, decision_id: str) -> Optional[Decision]:
        return self.kv.get(Keys.decision(decision_id))

    def _load_decisions(self, key: str) -> List[Decision]:
        decisions = []
        for decision_id in self.kv.lrange(key, 0, -1):
            decision = self.get_decision(decision_id)
            if decision:
                decisions.append(decision)
        return decisions

    def get_team_decisions(self, team_id: str) -> List[Decision]:
        return sorted(self._load_decisions(Keys.team_decisions(team_id)), key=lambda d: d["cycle"])

    def get_team_decision_for_cycle(self, team_id: str, cycle: int) -> Optional[Decision]:
        return next((d for d in self.get_team_decisions(team_id) if d["cycle"] == cycle), None)

    def get_session_decisions(self, session_id: str) -> List[Decision]:
        return self._load_decisions(Keys.session_decisions(session_id))

    # ---------- export ----------

    def export_session_data(self, session_id: str) -> Dict[str, object]:
        session = self.require_session(session_id)
        teams = self.get_session_teams(session_id)
        return {
            "session": session,
            "teams": teams,
            "decisions": self.get_session_decisions(session_id),
            "teamActivities": {t["id"]: self.get_team_activities(t["id"]) for t in teams},
        }
