#!/usr/bin/env python3
"""CLI tool for running and inspecting value chain simulation games.

Usage:
    python cli_game.py catalog                          # Show activities, linkages and shocks
    python cli_game.py create [--teams=8]               # Create a session in the configured store
    python cli_game.py advance SESSION_ID [--shock=ID]  # Score the current cycle and move on
    python cli_game.py scorecard SESSION_ID             # Show per-cycle scorecard rows
    python cli_game.py simulate [--teams=4] [--seed=7]  # Play a whole game in memory with random teams
"""

import argparse
import random

import game_engine
from game_store import GameStore
from kv_store import MemoryKeyValueStore, create_store
from sim_engine.activities import ALL_ACTIVITIES, NON_VALUE_ADD_ACTIVITIES
from sim_engine.errors import GameError
from sim_engine.linkages import LINKAGES
from sim_engine.scorecard import build_scorecards
from sim_engine.shocks import SHOCKS, get_suggested_shocks_for_cycle
from sim_engine.types import ActivityCategory, GameStatus


def cmd_catalog(args):
    """Print the full catalog, including the hidden linkages."""
    print("\n📋 Activities\n")
    for category in ActivityCategory:
        print(f"  {category.value}")
        for a in ALL_ACTIVITIES:
            if a.category is not category:
                continue
            extra = ""
            if a.weight is not None:
                extra = f" weight={a.weight}"
            elif a.maintenance_cost is not None:
                extra = f" maint=${a.maintenance_cost}M elim={a.elimination_cost}"
            print(f"    - {a.id:<28} start={a.starting_health:<5} decay={a.decay_rate}{extra}")

    print("\n🔗 Linkages (hidden from teams)\n")
    for l in LINKAGES:
        print(
            f"  - {l.id:<26} {l.support_activity_id}>={l.support_threshold} & "
            f"{l.primary_activity_id}>={l.primary_threshold}  +{l.effectiveness_bonus:.0%}"
            + (f" decay-{l.decay_reduction:.0%}" if l.decay_reduction else "")
            + (" immunity" if l.shock_immunity else "")
        )

    print("\n⚡ Shocks\n")
    for s in SHOCKS:
        print(f"  - {s.id:<26} {s.health_impact:>4} on {', '.join(s.affected_activities)}")


def cmd_create(args):
    store = GameStore(create_store())
    session, codes = store.create_session("cli", team_count=args.teams)
    print(f"\n✓ Session {session['id']}")
    print(f"  Instructor code: {session['code']}")
    for c in codes:
        print(f"  Team {c['teamNumber']}: {c['code']}")


def _print_results(results, store):
    for r in results:
        team = store.get_team(r["teamId"])
        b = r["casBreakdown"]
        print(
            f"  #{r['rank']} {team['name']:<10} CAS {r['casChange']:+6.1f} "
            f"(base {b['baseScore']:+.1f}, linkages {sum(b['linkageBonuses'].values()):+.1f}, "
            f"nva {b['nvaDrag']:+.1f}, shock {b['shockEffect']:+.1f})  budget ${r['newBudget']:.1f}M"
        )


def cmd_advance(args):
    store = GameStore(create_store())
    try:
        outcome = game_engine.advance_cycle(store, args.session_id, args.shock)
    except GameError as e:
        print(f"✗ {e}")
        return
    _print_results(outcome.results, store)
    print(f"\n→ Session now at cycle {outcome.session['currentCycle']} ({outcome.session['status']})")


def cmd_scorecard(args):
    store = GameStore(create_store())
    try:
        data = store.export_session_data(args.session_id)
    except GameError as e:
        print(f"✗ {e}")
        return
    for row in build_scorecards(data["teams"], data["decisions"]):
        print(
            f"  {row['teamName']:<10} cycle {row['cycle']}  CAS {row['casChange']:+6.1f}  "
            f"total {row['casTotal']:+6.1f}  spend ${row['spendTotal']:.1f}M  avg health {row['avgHealth']:.1f}"
        )


def _random_decision(rng, team, activities):
    """Spread most of the budget over a few random activities, sometimes cutting overhead."""
    budget = team["budget"]
    cuts = []
    eliminable = [
        a for a in NON_VALUE_ADD_ACTIVITIES
        if a.is_eliminable and not next(x for x in activities if x["activityId"] == a.id)["isEliminated"]
    ]
    if eliminable and rng.random() < 0.3:
        cut = rng.choice(eliminable)
        if cut.elimination_cost <= budget:
            cuts.append(cut.id)
            budget -= cut.elimination_cost

    targets = rng.sample(
        [a.id for a in ALL_ACTIVITIES if a.category is not ActivityCategory.NON_VALUE_ADD], k=5
    )
    weights = [rng.random() for _ in targets]
    spend = budget * 0.95
    allocations = {t: round(spend * w / sum(weights), 2) for t, w in zip(targets, weights)}
    return allocations, cuts


def cmd_simulate(args):
    rng = random.Random(args.seed)
    store = GameStore(MemoryKeyValueStore())
    session, _ = store.create_session("cli", team_count=args.teams)
    session_id = session["id"]

    outcome = game_engine.advance_cycle(store, session_id)
    while store.get_session(session_id)["status"] != GameStatus.COMPLETED:
        cycle = store.get_session(session_id)["currentCycle"]
        for team in store.get_session_teams(session_id):
            allocations, cuts = _random_decision(rng, team, store.get_team_activities(team["id"]))
            game_engine.submit_decision(store, team["id"], allocations, cuts)

        shock = rng.choice(get_suggested_shocks_for_cycle(cycle)) if rng.random() < 0.5 else None
        print(f"\n🔄 Cycle {cycle}" + (f" - shock: {shock.name}" if shock else ""))
        outcome = game_engine.advance_cycle(store, session_id, shock.id if shock else None)
        _print_results(outcome.results, store)

    print("\n🏆 Final rankings\n")
    for r in outcome.rankings:
        print(f"  #{r['rank']} {r['teamName']:<10} CAS {r['cas']:+.1f}")


def main():
    parser = argparse.ArgumentParser(
        description="Value chain simulation game tools",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("catalog", help="Show activities, linkages and shocks")

    create_parser = subparsers.add_parser("create", help="Create a game session")
    create_parser.add_argument("--teams", type=int, default=None, help="Number of teams")

    advance_parser = subparsers.add_parser("advance", help="Advance a session by one cycle")
    advance_parser.add_argument("session_id")
    advance_parser.add_argument("--shock", default=None, help="Shock id to apply this cycle")

    scorecard_parser = subparsers.add_parser("scorecard", help="Show a session's scorecard")
    scorecard_parser.add_argument("session_id")

    simulate_parser = subparsers.add_parser("simulate", help="Play a full game with random teams")
    simulate_parser.add_argument("--teams", type=int, default=4, help="Number of teams")
    simulate_parser.add_argument("--seed", type=int, default=None, help="Random seed")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    commands = {
        "catalog": cmd_catalog,
        "create": cmd_create,
        "advance": cmd_advance,
        "scorecard": cmd_scorecard,
        "simulate": cmd_simulate,
    }

    commands[args.command](args)


if __name__ == "__main__":
    main()
