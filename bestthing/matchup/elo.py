"""Pure Elo rating calculations with confidence-tiered K-factors."""

import math

from bestthing.matchup.models import Configuration
from bestthing.models import Item


def expected_score(rating_a: float, rating_b: float) -> float:
    """Calculate expected score for item A against item B.

    Uses the standard Elo formula: E_A = 1 / (1 + 10^((R_B - R_A) / 400))

    Args:
        rating_a: Elo rating of item A
        rating_b: Elo rating of item B

    Returns:
        Expected score (0.0 to 1.0) for item A
    """
    return 1.0 / (1.0 + math.pow(10.0, (rating_b - rating_a) / 400.0))


def confidence(item: Item, config: Configuration) -> float:
    """Fraction of the comparisons needed before a rating is fully trusted."""
    return min(1.0, item.comparison_count / config.min_comparisons_for_confidence)


def k_factor(item_confidence: float, config: Configuration, tiered: bool = True) -> float:
    """Pick the K-factor for an item at the given confidence.

    Args:
        item_confidence: Value returned by `confidence`
        config: Active configuration snapshot
        tiered: When False, the flat legacy `base_k_factor` is returned

    Returns:
        Maximum rating points the item can move in one comparison
    """
    if not tiered:
        return config.base_k_factor
    if item_confidence >= config.high_confidence_threshold:
        return config.high_confidence_k
    if item_confidence >= config.medium_confidence_threshold:
        return config.medium_confidence_k
    return config.low_confidence_k


def detect_upset(winner: Item, loser: Item, config: Configuration) -> bool:
    """True when the winner was rated lower than the loser by more than the threshold.

    Must be called with pre-vote ratings.
    """
    return (loser.elo_rating - winner.elo_rating) > config.upset_threshold


def apply_result(winner: Item, loser: Item, config: Configuration) -> tuple[Item, Item]:
    """Return updated copies of winner and loser after a decided comparison.

    Each side moves by its own K-factor, so an established item shifts more
    slowly than a newcomer. Ratings are not clamped. The inputs are left
    untouched.
    """
    k_winner = k_factor(confidence(winner, config), config)
    k_loser = k_factor(confidence(loser, config), config)

    expected_winner = expected_score(winner.elo_rating, loser.elo_rating)
    expected_loser = expected_score(loser.elo_rating, winner.elo_rating)

    # R' = R + K * (S - E)
    new_winner = winner.model_copy(update={
        "elo_rating": winner.elo_rating + k_winner * (1.0 - expected_winner),
        "comparison_count": winner.comparison_count + 1,
        "wins": winner.wins + 1,
    })
    new_loser = loser.model_copy(update={
        "elo_rating": loser.elo_rating + k_loser * (0.0 - expected_loser),
        "comparison_count": loser.comparison_count + 1,
        "losses": loser.losses + 1,
    })
    return new_winner, new_loser
