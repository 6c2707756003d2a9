"""Offline voting simulation for tuning selection and rating settings.

Builds a synthetic catalog where every item has a hidden strength, lets
simulated voters pick the stronger item with Elo-like probability, and
prints the resulting leaderboard.
"""

import argparse
import asyncio
import random
from collections.abc import Mapping
from typing import Any

from rich.console import Console

from bestthing.display import create_standings_table, create_vote_panel
from bestthing.leaderboard import LeaderboardEntry, build_leaderboard
from bestthing.logging import configure_logging, get_logger
from bestthing.matchup.elo import expected_score
from bestthing.matchup.orchestrator import ComparisonOrchestrator
from bestthing.models import Item
from bestthing.store import InMemoryItemStore

log = get_logger(__name__)


def make_catalog(size: int, rng: random.Random) -> tuple[list[Item], dict[int, float]]:
    """Create `size` items and their hidden strengths (on the Elo scale)."""
    items = [
        Item(id=i, title=f"Thing {i}", image_url=f"https://example.org/things/{i}.jpg")
        for i in range(1, size + 1)
    ]
    strengths = {item.id: rng.gauss(1500.0, 200.0) for item in items}
    return items, strengths


async def run_simulation(
    votes: int,
    catalog_size: int = 20,
    skip_rate: float = 0.05,
    seed: int | None = None,
    settings: Mapping[str, Any] | None = None,
    console: Console | None = None
) -> list[LeaderboardEntry]:
    """Run `votes` serve/vote cycles and return the final leaderboard.

    Args:
        votes: Number of comparisons to resolve
        catalog_size: Number of synthetic items
        skip_rate: Probability a voter skips instead of choosing
        seed: Seed for both selection and simulated voters
        settings: Raw settings overrides for the store
        console: When given, each result is printed as it happens

    Returns:
        Leaderboard entries, highest rated first
    """
    rng = random.Random(seed)
    items, strengths = make_catalog(catalog_size, rng)
    store = InMemoryItemStore(items, settings=settings)
    orchestrator = ComparisonOrchestrator(store, rng=random.Random(rng.random()))

    for _ in range(votes):
        pair = await orchestrator.serve_comparison()
        if rng.random() < skip_rate:
            winner_id = None
        else:
            p_first = expected_score(strengths[pair.item1.id], strengths[pair.item2.id])
            winner_id = pair.item1.id if rng.random() < p_first else pair.item2.id

        outcome = await orchestrator.submit_vote(pair.item1.id, pair.item2.id, winner_id)
        if console is not None:
            console.print(create_vote_panel(outcome))

    config = await store.get_configuration()
    leaderboard = build_leaderboard(await store.get_all_items(), config)
    log.info("simulation_complete", votes=votes, items=catalog_size)
    return leaderboard


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Simulate head-to-head voting")
    parser.add_argument("--votes", type=int, default=500)
    parser.add_argument("--items", type=int, default=20)
    parser.add_argument("--skip-rate", type=float, default=0.05)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--top", type=int, default=10)
    parser.add_argument("--verbose", action="store_true", help="Print every vote")
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args(argv)

    configure_logging(cli_mode=True, log_level=args.log_level)
    console = Console()

    leaderboard = asyncio.run(run_simulation(
        votes=args.votes,
        catalog_size=args.items,
        skip_rate=args.skip_rate,
        seed=args.seed,
        console=console if args.verbose else None,
    ))
    console.print(create_standings_table(leaderboard, top_n=args.top))


if __name__ == "__main__":
    main()
