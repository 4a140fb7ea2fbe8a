"""Unit tests for shock selection and impact."""

import random
import unittest

from sim_engine.activities import initial_team_activities
from sim_engine.shocks import (
    SHOCKS,
    apply_shock_effects,
    calculate_shock_impact,
    get_random_shock,
    get_shock_by_id,
    get_shocks_affecting_activity,
    get_suggested_shocks_for_cycle,
    team_has_shock_immunity,
)


class TestShockLookup(unittest.TestCase):

    def test_get_shock_by_id(self):
        self.assertEqual(get_shock_by_id("pos-system-outage").health_impact, -20)
        self.assertIsNone(get_shock_by_id("meteor-strike"))
        self.assertIsNone(get_shock_by_id(None))

    def test_random_shock_uses_given_rng(self):
        """Same seed, same shock."""
        first = get_random_shock(random.Random(3))
        second = get_random_shock(random.Random(3))
        self.assertEqual(first.id, second.id)
        self.assertIn(first, SHOCKS)

    def test_shocks_affecting_activity(self):
        ids = {s.id for s in get_shocks_affecting_activity("checkout-experience")}
        self.assertEqual(ids, {"pos-system-outage", "cybersecurity-incident"})

    def test_suggested_shocks_by_cycle(self):
        """Early cycles get mild shocks, later cycles harsher ones."""
        cycle1 = {s.id for s in get_suggested_shocks_for_cycle(1)}
        self.assertEqual(cycle1, {"labor-shortage", "demand-spike", "cybersecurity-incident"})

        cycle3 = get_suggested_shocks_for_cycle(3)
        self.assertTrue(all(abs(s.health_impact) >= 14 for s in cycle3))
        self.assertNotIn("demand-spike", {s.id for s in cycle3})

        self.assertEqual(len(get_suggested_shocks_for_cycle(4)), len(SHOCKS))


class TestShockImpact(unittest.TestCase):

    def setUp(self):
        self.shock = get_shock_by_id("supply-chain-disruption")

    def test_immune_team_takes_no_damage(self):
        """A team holding supplier-inventory is shielded from the disruption."""
        self.assertTrue(team_has_shock_immunity(self.shock, ["supplier-inventory"]))
        self.assertEqual(calculate_shock_impact(self.shock, "inventory-replenishment", ["supplier-inventory"]), 0)

    def test_exposed_team_takes_full_impact(self):
        self.assertEqual(calculate_shock_impact(self.shock, "inventory-replenishment", []), -15)
        self.assertEqual(calculate_shock_impact(self.shock, "distribution-throughput", ["it-checkout"]), -15)

    def test_unaffected_activity_and_no_shock(self):
        self.assertEqual(calculate_shock_impact(self.shock, "checkout-experience", []), 0)
        self.assertEqual(calculate_shock_impact(None, "inventory-replenishment", []), 0)

    def test_apply_shock_effects_floors_at_zero(self):
        activities = [
            {"activityId": "inventory-replenishment", "health": 10, "investment": 0, "isEliminated": False},
            {"activityId": "distribution-throughput", "health": 60, "investment": 0, "isEliminated": False},
            {"activityId": "checkout-experience", "health": 55, "investment": 0, "isEliminated": False},
        ]
        shocked = {a["activityId"]: a["health"] for a in apply_shock_effects(activities, self.shock, [])}
        self.assertEqual(shocked["inventory-replenishment"], 0)
        self.assertEqual(shocked["distribution-throughput"], 45)
        self.assertEqual(shocked["checkout-experience"], 55)
        # input records are left alone
        self.assertEqual(activities[0]["health"], 10)

    def test_apply_shock_effects_without_shock(self):
        activities = initial_team_activities()
        self.assertEqual(apply_shock_effects(activities, None, []), activities)


if __name__ == "__main__":
    unittest.main()
