"""Crowd-ranked leaderboard built from item ratings."""

from collections.abc import Iterable

from pydantic import BaseModel

from bestthing.matchup.elo import confidence
from bestthing.matchup.models import Configuration
from bestthing.models import Item


class LeaderboardEntry(BaseModel):
    rank: int
    item: Item
    confidence: float
    win_rate: float


def build_leaderboard(
    items: Iterable[Item],
    config: Configuration,
    min_comparisons: int = 0,
    limit: int | None = None
) -> list[LeaderboardEntry]:
    """Rank items by rating, highest first.

    Ties go to the item with more comparisons, then alphabetically by title.

    Args:
        items: Items to rank
        config: Configuration used for the confidence column
        min_comparisons: Leave out items with fewer comparisons than this
        limit: Maximum number of entries to return

    Returns:
        Leaderboard entries with 1-based ranks
    """
    ranked = sorted(
        (item for item in items if item.comparison_count >= min_comparisons),
        key=lambda item: (-item.elo_rating, -item.comparison_count, item.title),
    )
    if limit is not None:
        ranked = ranked[:limit]

    return [
        LeaderboardEntry(
            rank=i,
            item=item,
            confidence=confidence(item, config),
            win_rate=item.wins / max(1, item.wins + item.losses),
        )
        for i, item in enumerate(ranked, 1)
    ]
