"""Tests for the game service against the in-memory store."""

import unittest

import game_engine
from game_store import GameStore
from kv_store import MemoryKeyValueStore
from notifier import EventName
from sim_engine.errors import NotFoundError, StateError, ValidationError
from sim_engine.types import GameStatus


class GameServiceTestCase(unittest.TestCase):

    def setUp(self):
        self.store = GameStore(MemoryKeyValueStore())
        self.session, self.codes = self.store.create_session("tester", team_count=3)
        self.session_id = self.session["id"]
        self.teams = self.store.get_session_teams(self.session_id)
        self.team_id = self.teams[0]["id"]

    def start(self):
        return game_engine.advance_cycle(self.store, self.session_id)


class TestCreateSession(GameServiceTestCase):

    def test_session_starts_in_lobby(self):
        self.assertEqual(self.session["status"], GameStatus.LOBBY)
        self.assertEqual(self.session["currentCycle"], 0)
        self.assertEqual(len(self.session["code"]), 8)
        self.assertEqual(len(self.codes), 3)

    def test_stored_status_is_plain_string(self):
        stored = self.store.get_session(self.session_id)["status"]
        self.assertEqual(stored, "lobby")
        self.assertIs(GameStatus(stored), GameStatus.LOBBY)

    def test_teams_start_with_budget_after_maintenance(self):
        for team in self.teams:
            self.assertAlmostEqual(team["budget"], 45.5)
            self.assertEqual(team["cas"], 0)
            self.assertEqual(len(self.store.get_team_activities(team["id"])), 15)

    def test_lookup_by_code(self):
        self.assertEqual(self.store.get_session_by_code(self.session["code"])["id"], self.session_id)
        team = self.store.get_team_by_code(self.codes[0]["code"])
        self.assertEqual(team["name"], "Team 1")


class TestSubmitDecision(GameServiceTestCase):

    def assertNothingWritten(self):
        team = self.store.get_team(self.team_id)
        self.assertFalse(team["hasSubmitted"])
        self.assertEqual(self.store.get_team_decisions(self.team_id), [])

    def test_rejected_in_lobby(self):
        with self.assertRaises(StateError):
            game_engine.submit_decision(self.store, self.team_id, {"store-operations": 5}, [])
        self.assertNothingWritten()

    def test_valid_submission(self):
        self.start()
        decision, events = game_engine.submit_decision(
            self.store, self.team_id, {"store-operations": 20, "it-infrastructure": 10}, ["manual-reporting-processes"]
        )
        self.assertEqual(decision["cycle"], 1)
        self.assertEqual(decision["cuts"], ["manual-reporting-processes"])
        self.assertTrue(self.store.get_team(self.team_id)["hasSubmitted"])
        self.assertEqual(self.store.get_team_decision_for_cycle(self.team_id, 1)["id"], decision["id"])
        self.assertEqual(events[0]["event"], EventName.DECISION_SUBMITTED)
        self.assertEqual(events[0]["channel"], f"private-session-{self.session_id}")

    def test_spend_within_tolerance(self):
        self.start()
        game_engine.submit_decision(self.store, self.team_id, {"store-operations": 45.51}, [])

    def test_over_budget(self):
        self.start()
        with self.assertRaises(ValidationError):
            game_engine.submit_decision(self.store, self.team_id, {"store-operations": 46}, [])
        self.assertNothingWritten()

    def test_elimination_cost_counts_toward_spend(self):
        self.start()
        with self.assertRaises(ValidationError):
            game_engine.submit_decision(
                self.store, self.team_id, {"store-operations": 42}, ["regional-management-layer"]
            )
        self.assertNothingWritten()

    def test_invalid_allocations(self):
        self.start()
        for allocations in ({"space-program": 5}, {"store-operations": -1}):
            with self.assertRaises(ValidationError):
                game_engine.submit_decision(self.store, self.team_id, allocations, [])
        self.assertNothingWritten()

    def test_non_finite_allocations(self):
        """NaN slips past a plain ``< 0`` check and would poison health and CAS."""
        self.start()
        for amount in (float("nan"), float("inf"), float("-inf")):
            with self.assertRaises(ValidationError):
                game_engine.submit_decision(self.store, self.team_id, {"store-operations": amount}, [])
        self.assertNothingWritten()

    def test_invalid_cuts(self):
        self.start()
        bad_cuts = [
            ["store-operations"],
            ["innovation-lab"],
            ["not-an-activity"],
            ["manual-reporting-processes", "manual-reporting-processes"],
        ]
        for cuts in bad_cuts:
            with self.assertRaises(ValidationError):
                game_engine.submit_decision(self.store, self.team_id, {}, cuts)
        self.assertNothingWritten()

    def test_cannot_cut_twice_across_cycles(self):
        self.start()
        game_engine.submit_decision(self.store, self.team_id, {}, ["legacy-inventory-system"])
        game_engine.advance_cycle(self.store, self.session_id)
        with self.assertRaises(ValidationError):
            game_engine.submit_decision(self.store, self.team_id, {}, ["legacy-inventory-system"])

    def test_second_submission_rejected(self):
        self.start()
        game_engine.submit_decision(self.store, self.team_id, {"store-operations": 5}, [])
        with self.assertRaises(StateError):
            game_engine.submit_decision(self.store, self.team_id, {"store-operations": 5}, [])
        self.assertEqual(len(self.store.get_team_decisions(self.team_id)), 1)

    def test_unknown_team(self):
        with self.assertRaises(NotFoundError):
            game_engine.submit_decision(self.store, "nope", {}, [])


class TestAdvanceCycle(GameServiceTestCase):

    def test_first_advance_leaves_lobby_without_scoring(self):
        outcome = self.start()
        self.assertEqual(outcome.session["status"], GameStatus.ACTIVE)
        self.assertEqual(outcome.session["currentCycle"], 1)
        self.assertEqual(outcome.results, [])
        self.assertEqual(outcome.events[0]["event"], EventName.CYCLE_ADVANCED)
        self.assertEqual(outcome.events[0]["data"]["cycle"], 1)

    def test_missing_decisions_default_to_nothing(self):
        self.start()
        with self.assertLogs("game_engine", level="WARNING"):
            outcome = game_engine.advance_cycle(self.store, self.session_id)

        self.assertEqual(len(outcome.results), 3)
        for team in self.store.get_session_teams(self.session_id):
            self.assertEqual(team["cas"], -2.2)
            self.assertAlmostEqual(team["budget"], 42.78)
            self.assertAlmostEqual(team["margin"], 5 - 0.11)
            self.assertEqual(len(team["cycleResults"]), 1)

    def test_submission_flags_reset(self):
        self.start()
        game_engine.submit_decision(self.store, self.team_id, {"checkout-experience": 10}, [])
        game_engine.advance_cycle(self.store, self.session_id)
        self.assertFalse(self.store.get_team(self.team_id)["hasSubmitted"])
        # a new cycle accepts a new decision
        game_engine.submit_decision(self.store, self.team_id, {"checkout-experience": 10}, [])

    def test_activities_are_persisted(self):
        self.start()
        game_engine.submit_decision(self.store, self.team_id, {"inventory-replenishment": 10}, [])
        game_engine.advance_cycle(self.store, self.session_id)
        health = {a["activityId"]: a["health"] for a in self.store.get_team_activities(self.team_id)}
        self.assertEqual(health["inventory-replenishment"], 81.5)

    def test_full_game_completes_with_rankings(self):
        self.start()
        for cycle in range(1, 5):
            game_engine.submit_decision(self.store, self.team_id, {"inventory-replenishment": 10}, [])
            outcome = game_engine.advance_cycle(self.store, self.session_id)
            self.assertEqual([r["cycle"] for r in outcome.results], [cycle] * 3)

        self.assertEqual(outcome.session["status"], GameStatus.COMPLETED)
        self.assertEqual(outcome.events[-1]["event"], EventName.GAME_COMPLETED)
        self.assertEqual([r["rank"] for r in outcome.rankings], [1, 2, 3])
        self.assertEqual(outcome.rankings[0]["teamId"], self.team_id)

        for team in self.store.get_session_teams(self.session_id):
            self.assertEqual(len(team["cycleResults"]), 4)
            total = sum(r["casChange"] for r in team["cycleResults"])
            self.assertAlmostEqual(team["cas"], total)

        with self.assertRaises(StateError):
            game_engine.advance_cycle(self.store, self.session_id)

    def test_announced_shock_is_applied_and_cleared(self):
        self.start()
        session, events = game_engine.announce_shock(self.store, self.session_id, "pos-system-outage")
        self.assertEqual(session["shock"], "pos-system-outage")
        self.assertEqual(events[0]["event"], EventName.SHOCK_ANNOUNCED)

        outcome = game_engine.advance_cycle(self.store, self.session_id)
        for result in outcome.results:
            self.assertEqual(result["casBreakdown"]["shockEffect"], -4.0)
            self.assertEqual(result["newHealth"]["checkout-experience"], 31.0)
        self.assertIsNone(self.store.get_session(self.session_id)["shock"])

    def test_explicit_shock_overrides_announced(self):
        self.start()
        game_engine.announce_shock(self.store, self.session_id, "pos-system-outage")
        outcome = game_engine.advance_cycle(self.store, self.session_id, "competitor-price-war")
        # supplier-pricing shields every starting team from the price war
        self.assertEqual(outcome.results[0]["newHealth"]["checkout-experience"], 51.0)

    def test_announce_unknown_shock(self):
        with self.assertRaises(NotFoundError):
            game_engine.announce_shock(self.store, self.session_id, "meteor-strike")

    def test_unknown_session(self):
        with self.assertRaises(NotFoundError):
            game_engine.advance_cycle(self.store, "missing")


class TestTeams(GameServiceTestCase):

    def test_join_with_name(self):
        code = self.codes[1]["code"].lower()
        team, events = game_engine.join_team(self.store, f"  {code} ", "Fresh Picks")
        self.assertEqual(team["name"], "Fresh Picks")
        self.assertEqual(self.store.get_team(team["id"])["name"], "Fresh Picks")
        self.assertEqual([e["event"] for e in events], [EventName.STATE_UPDATED, EventName.TEAM_JOINED])

    def test_join_invalid_code(self):
        with self.assertRaises(NotFoundError):
            game_engine.join_team(self.store, "ZZZZZZ")

    def test_join_completed_game(self):
        session = self.store.get_session(self.session_id)
        session["status"] = GameStatus.COMPLETED
        self.store.update_session(session)
        with self.assertRaises(StateError):
            game_engine.join_team(self.store, self.codes[0]["code"])

    def test_activate_innovation_lab(self):
        self.start()
        activities = game_engine.activate_innovation_lab(self.store, self.team_id)
        lab = next(a for a in activities if a["activityId"] == "innovation-lab")
        self.assertEqual(lab["health"], 100)

        with self.assertRaises(ValidationError):
            game_engine.activate_innovation_lab(self.store, self.team_id)

        outcome = game_engine.advance_cycle(self.store, self.session_id)
        result = next(r for r in outcome.results if r["teamId"] == self.team_id)
        # charged maintenance, but no extra drag
        self.assertEqual(result["casBreakdown"]["nvaDrag"], -2.2)
        self.assertAlmostEqual(result["newBudget"], 50 + result["casChange"] * 0.1 - 7.0)

    def test_team_state_marks_brief_seen(self):
        state = game_engine.get_team_game_state(self.store, self.team_id)
        self.assertFalse(state["team"]["hasSeenBrief"])
        self.assertIsNone(state["currentShock"])
        self.assertEqual(len(state["rankings"]), 3)

        state = game_engine.get_team_game_state(self.store, self.team_id, mark_seen=True)
        self.assertTrue(state["team"]["hasSeenBrief"])
        self.assertTrue(self.store.get_team(self.team_id)["hasSeenBrief"])

    def test_instructor_state(self):
        state = game_engine.get_instructor_game_state(self.store, self.session_id)
        self.assertEqual(len(state["teams"]), 3)
        status = state["linkageStatus"][self.team_id]
        self.assertIn("supplier-inventory", status["active"])
        self.assertIn("forecasting-inventory", status["nearActive"])
        self.assertEqual(len(state["teamActivities"][self.team_id]), 15)


if __name__ == "__main__":
    unittest.main()
