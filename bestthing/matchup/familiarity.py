"""Familiarity scoring: how well-known an item already is to voters."""

from datetime import UTC, datetime

from bestthing.matchup.models import Configuration
from bestthing.models import Item

SECONDS_PER_DAY = 60 * 60 * 24


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are stored and compared as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def comparison_factor(comparison_count: int, config: Configuration) -> float:
    return min(1.0, comparison_count / config.comparison_saturation_point)


def win_rate_factor(wins: int, losses: int) -> float:
    return wins / max(1, wins + losses)


def recency_factor(
    last_compared_at: datetime | None,
    config: Configuration,
    now: datetime | None = None,
) -> float:
    """Linear decay from 1.0 (compared just now) to 0.0 after `recency_decay_days`."""
    if last_compared_at is None:
        return 0.0
    now = _as_utc(now or datetime.now(UTC))
    last_compared_at = _as_utc(last_compared_at)
    days_since = (now - last_compared_at).total_seconds() / SECONDS_PER_DAY
    # A timestamp slightly in the future counts as "just now"
    return min(1.0, max(0.0, 1.0 - days_since / config.recency_decay_days))


def engagement_factor(skip_count: int, comparison_count: int) -> float:
    """Share of appearances that were actually voted on rather than skipped."""
    return 1.0 - skip_count / max(1, comparison_count + skip_count)


def familiarity_score(
    item: Item,
    config: Configuration,
    now: datetime | None = None,
) -> float:
    """Combine the four familiarity factors into a score in [0, 1].

    The weighted sum is clamped, so weights that drift from summing to 1.0
    still produce a usable score.

    Args:
        item: Item with its comparison history already loaded
        config: Active configuration snapshot
        now: Reference time for the recency factor (defaults to current UTC time)

    Returns:
        Familiarity score between 0.0 and 1.0
    """
    score = (
        config.comparison_factor_weight * comparison_factor(item.comparison_count, config)
        + config.win_rate_factor_weight * win_rate_factor(item.wins, item.losses)
        + config.recency_factor_weight * recency_factor(item.last_compared_at, config, now)
        + config.engagement_factor_weight * engagement_factor(item.skip_count, item.comparison_count)
    )
    return max(0.0, min(1.0, score))
