"""Per-item leaderboard metrics refreshed after every decided vote."""

from datetime import datetime

from bestthing.models import ItemMetrics


def update_metrics(
    metrics: ItemMetrics,
    won: bool,
    new_rating: float,
    now: datetime,
    was_upset: bool = False
) -> ItemMetrics:
    """Return refreshed metrics for one side of a decided comparison.

    Args:
        metrics: Metrics before the vote
        won: Whether this item won
        new_rating: The item's rating after the vote
        now: Time of the vote
        was_upset: Whether the comparison was an upset (only counted for the winner)

    Returns:
        A new ItemMetrics; the input is not modified
    """
    update: dict = {}

    if metrics.peak_rating is None or new_rating > metrics.peak_rating:
        update["peak_rating"] = new_rating
        update["peak_rating_at"] = now

    if won:
        streak = metrics.current_win_streak + 1
        update["current_win_streak"] = streak
        update["current_loss_streak"] = 0
        update["longest_win_streak"] = max(metrics.longest_win_streak, streak)
        if was_upset:
            update["upset_win_count"] = metrics.upset_win_count + 1
    else:
        update["current_win_streak"] = 0
        update["current_loss_streak"] = metrics.current_loss_streak + 1

    if metrics.first_vote_at is None:
        update["first_vote_at"] = now

    return metrics.model_copy(update=update)
