"""Tests for cohort cycle processing and the session state machine."""

import unittest

from sim_engine.activities import initial_team_activities
from sim_engine.cycle import (
    assign_ranks,
    ensure_accepting_decisions,
    ensure_can_advance,
    next_cycle_state,
    process_cycle,
)
from sim_engine.errors import StateError
from sim_engine.types import GameStatus


def team_input(team_id, allocations=None, cuts=None, activities=None):
    return {
        "id": team_id,
        "activities": activities if activities is not None else initial_team_activities(),
        "allocations": allocations or {},
        "cuts": cuts or [],
        "revenue": 1000,
    }


class TestProcessCycle(unittest.TestCase):

    def test_idle_identical_teams(self):
        """Two teams doing nothing tie on decay and NVA drag alone."""
        results, updated = process_cycle([team_input("a"), team_input("b")], 1)

        self.assertEqual([r["teamId"] for r in results], ["a", "b"])
        self.assertEqual([r["rank"] for r in results], [1, 2])
        for result in results:
            self.assertEqual(result["cycle"], 1)
            self.assertEqual(result["casChange"], -2.2)
            self.assertEqual(result["casBreakdown"]["baseScore"], 0)
            self.assertEqual(result["activeLinkages"], [])
            self.assertEqual(len(result["orphanedLinkages"]), 8)
            self.assertAlmostEqual(result["newBudget"], 42.78)
            self.assertAlmostEqual(result["marginChange"], -0.11)

        health = results[0]["newHealth"]
        self.assertEqual(health["store-operations"], 55.5)
        self.assertEqual(health["inventory-replenishment"], 59.9)
        self.assertEqual(health["workforce-systems"], 47)
        self.assertEqual(updated["a"][0]["activityId"], "store-operations")

    def test_investment_beats_idle_team(self):
        results, _ = process_cycle(
            [team_input("idle"), team_input("investor", {"inventory-replenishment": 10})], 1
        )
        by_team = {r["teamId"]: r for r in results}

        self.assertEqual(results[0]["teamId"], "investor")
        self.assertEqual(by_team["investor"]["newHealth"]["inventory-replenishment"], 81.5)
        self.assertEqual(by_team["investor"]["casBreakdown"]["baseScore"], 14.0)
        self.assertEqual(by_team["idle"]["casBreakdown"]["baseScore"], -14.0)
        self.assertAlmostEqual(by_team["investor"]["casChange"], 11.8)
        self.assertAlmostEqual(by_team["idle"]["casChange"], -16.2)

    def test_ranks_are_dense_and_ordered(self):
        teams = [
            team_input("t1", {"store-operations": 4}),
            team_input("t2", {"checkout-experience": 12}),
            team_input("t3"),
            team_input("t4", {"inventory-replenishment": 6, "pricing-merchandising": 6}),
            team_input("t5", {"customer-service": 3}),
        ]
        results, _ = process_cycle(teams, 2)

        self.assertEqual(sorted(r["rank"] for r in results), [1, 2, 3, 4, 5])
        changes = [r["casChange"] for r in results]
        self.assertEqual(changes, sorted(changes, reverse=True))
        self.assertAlmostEqual(sum(r["casBreakdown"]["baseScore"] for r in results), 0, delta=0.3)

    def test_shock_applies_to_cohort(self):
        exposed = initial_team_activities()
        for record in exposed:
            if record["activityId"] == "supplier-management":
                record["health"] = 40
        protected = initial_team_activities()
        for record in protected:
            if record["activityId"] == "supplier-management":
                record["health"] = 60

        results, _ = process_cycle(
            [team_input("exposed", activities=exposed), team_input("protected", activities=protected)],
            1,
            "supply-chain-disruption",
        )
        by_team = {r["teamId"]: r for r in results}

        self.assertEqual(by_team["protected"]["casBreakdown"]["shockEffect"], 2)
        self.assertEqual(by_team["exposed"]["casBreakdown"]["shockEffect"], -3.0)
        self.assertEqual(by_team["exposed"]["newHealth"]["inventory-replenishment"], 44.0)
        self.assertEqual(by_team["protected"]["newHealth"]["inventory-replenishment"], 59.9)

    def test_unknown_shock_is_ignored(self):
        with self.assertLogs("sim_engine.cycle", level="WARNING"):
            results, _ = process_cycle([team_input("a")], 1, "alien-invasion")
        self.assertEqual(results[0]["casBreakdown"]["shockEffect"], 0)

    def test_elimination_is_permanent(self):
        _, updated = process_cycle([team_input("a", cuts=["legacy-inventory-system"])], 1)
        _, updated = process_cycle([team_input("a", activities=updated["a"])], 2)
        _, updated = process_cycle(
            [team_input("a", cuts=["legacy-inventory-system"], activities=updated["a"])], 3
        )
        legacy = next(r for r in updated["a"] if r["activityId"] == "legacy-inventory-system")
        self.assertTrue(legacy["isEliminated"])
        self.assertEqual(legacy["eliminatedInCycle"], 1)

    def test_cut_reduces_drag_and_maintenance(self):
        results, _ = process_cycle([team_input("a", cuts=["regional-management-layer"])], 1)
        self.assertEqual(results[0]["casBreakdown"]["nvaDrag"], -1.2)
        self.assertAlmostEqual(results[0]["newBudget"], 50 + results[0]["casChange"] * 0.1 - 5.0)

    def test_inputs_not_mutated(self):
        team = team_input("a", {"checkout-experience": 5}, ["manual-reporting-processes"])
        before = [dict(r) for r in team["activities"]]
        process_cycle([team], 1, "pos-system-outage")
        self.assertEqual(team["activities"], before)


class TestAssignRanks(unittest.TestCase):

    def test_ties_keep_input_order(self):
        results = [
            {"teamId": "a", "casChange": 1.0, "rank": 0},
            {"teamId": "b", "casChange": 5.0, "rank": 0},
            {"teamId": "c", "casChange": 1.0, "rank": 0},
        ]
        ranked = assign_ranks(results)
        self.assertEqual([r["teamId"] for r in ranked], ["b", "a", "c"])
        self.assertEqual([r["rank"] for r in ranked], [1, 2, 3])


class TestSessionStateMachine(unittest.TestCase):

    def _session(self, **overrides):
        session = {"id": "s", "status": GameStatus.LOBBY, "currentCycle": 0, "maxCycles": 4, "shock": None}
        session.update(overrides)
        return session

    def test_lobby_to_active(self):
        state = next_cycle_state(self._session(shock="labor-shortage"), now=1234)
        self.assertEqual(state["status"], GameStatus.ACTIVE)
        self.assertEqual(state["currentCycle"], 1)
        self.assertEqual(state["cycleStartTime"], 1234)
        self.assertIsNone(state["shock"])

    def test_active_stays_active_until_limit(self):
        state = self._session(status=GameStatus.ACTIVE, currentCycle=3)
        self.assertEqual(next_cycle_state(state)["status"], GameStatus.ACTIVE)

    def test_completes_after_last_cycle(self):
        state = next_cycle_state(self._session(status=GameStatus.ACTIVE, currentCycle=4))
        self.assertEqual(state["status"], GameStatus.COMPLETED)
        self.assertEqual(state["currentCycle"], 5)

    def test_custom_cycle_limit(self):
        state = next_cycle_state(self._session(status=GameStatus.ACTIVE, currentCycle=2, maxCycles=2))
        self.assertEqual(state["status"], GameStatus.COMPLETED)

    def test_completed_is_terminal(self):
        done = self._session(status=GameStatus.COMPLETED, currentCycle=5)
        with self.assertRaises(StateError):
            ensure_can_advance(done)
        with self.assertRaises(StateError):
            next_cycle_state(done)

    def test_status_is_written_as_plain_string(self):
        state = next_cycle_state(self._session(status="lobby"))
        self.assertIs(type(state["status"]), str)
        self.assertEqual(state["status"], "active")
        self.assertIs(GameStatus(state["status"]), GameStatus.ACTIVE)

    def test_input_session_not_mutated(self):
        session = self._session()
        next_cycle_state(session)
        self.assertEqual(session["currentCycle"], 0)

    def test_decisions_only_while_active(self):
        with self.assertRaises(StateError):
            ensure_accepting_decisions(self._session(), {"hasSubmitted": False})
        with self.assertRaises(StateError):
            ensure_accepting_decisions(self._session(status=GameStatus.ACTIVE), {"hasSubmitted": True})
        ensure_accepting_decisions(self._session(status=GameStatus.ACTIVE), {"hasSubmitted": False})


if __name__ == "__main__":
    unittest.main()
