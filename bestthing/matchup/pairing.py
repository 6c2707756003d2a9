"""Pairing strategies for choosing the next comparison."""

import random
from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from bestthing.errors import InsufficientItemsError
from bestthing.logging import get_logger
from bestthing.matchup.familiarity import familiarity_score
from bestthing.matchup.models import ComparisonPair, Configuration, SelectionMode
from bestthing.models import Comparison, Item, ItemFilter
from bestthing.similarity import diversity_penalty, recent_group_positions, similarity_group

log = get_logger(__name__)

# Order in which modes give way when their pool is too small
FALLBACK_ORDER = [SelectionMode.FAMILIARITY, SelectionMode.NEEDS_VOTES, SelectionMode.RANDOM]


class PairingStrategy(Protocol):
    """Protocol for pairing strategies."""

    def select_pair(
        self,
        candidates: Sequence[Item],
        rng: random.Random
    ) -> tuple[Item, Item] | None:
        """Pick two distinct items from the candidates.

        Args:
            candidates: Items this strategy may choose from
            rng: Random source to draw from

        Returns:
            (item1, item2) or None when the strategy cannot form a pair
        """
        ...


def _weighted_index(weights: Sequence[float], rng: random.Random) -> int:
    total = sum(weights)
    if total <= 0:
        return rng.randrange(len(weights))

    threshold = rng.random() * total
    cumulative = 0.0
    for i, weight in enumerate(weights):
        cumulative += weight
        if threshold < cumulative:
            return i
    # Float rounding can leave threshold == total
    return max(i for i, weight in enumerate(weights) if weight > 0)


def weighted_sample_pair(
    items: Sequence[Item],
    weights: Sequence[float],
    rng: random.Random
) -> tuple[Item, Item] | None:
    """Draw two distinct items without replacement, proportional to weight.

    When every remaining weight is zero the draw is uniform.
    """
    if len(items) < 2:
        return None

    pool = list(items)
    pool_weights = [max(0.0, w) for w in weights]

    first = _weighted_index(pool_weights, rng)
    item1 = pool.pop(first)
    pool_weights.pop(first)

    second = _weighted_index(pool_weights, rng)
    return item1, pool[second]


class RandomPairing:
    """Uniform pairing over every candidate."""

    def select_pair(
        self,
        candidates: Sequence[Item],
        rng: random.Random
    ) -> tuple[Item, Item] | None:
        if len(candidates) < 2:
            return None
        item1, item2 = rng.sample(list(candidates), 2)
        return item1, item2


class NeedsVotesPairing:
    """Uniform pairing restricted to items whose ratings are still unsettled."""

    def __init__(self, config: Configuration):
        self.config = config
        self.item_filter = ItemFilter.needing_votes(config)

    def needs_votes(self, item: Item) -> bool:
        return self.item_filter.matches(item)

    def select_pair(
        self,
        candidates: Sequence[Item],
        rng: random.Random
    ) -> tuple[Item, Item] | None:
        pool = [item for item in candidates if self.needs_votes(item)]
        return RandomPairing().select_pair(pool, rng)


class FamiliarityPairing:
    """Pairing biased toward items voters already know.

    Each candidate is weighted by its familiarity score. With diversity
    filtering on, items whose similarity group showed up recently are
    down-weighted further.
    """

    def __init__(
        self,
        config: Configuration,
        now: datetime | None = None,
        group_positions: dict[str, int] | None = None
    ):
        self.config = config
        self.now = now
        self.group_positions = group_positions or {}

    def weight(self, item: Item) -> float:
        score = familiarity_score(item, self.config, self.now)
        if self.config.diversity_filtering_enabled and self.group_positions:
            group = similarity_group(item.title)
            if group is not None:
                score *= diversity_penalty(
                    self.group_positions.get(group),
                    self.config.diversity_penalty_strength,
                )
        return score

    def select_pair(
        self,
        candidates: Sequence[Item],
        rng: random.Random
    ) -> tuple[Item, Item] | None:
        weights = [self.weight(item) for item in candidates]
        return weighted_sample_pair(candidates, weights, rng)


def choose_mode(draw: float, config: Configuration) -> SelectionMode:
    """Map a uniform draw in [0, 1) onto a selection mode."""
    if draw < config.familiarity_weight:
        return SelectionMode.FAMILIARITY
    if draw < config.needs_votes_cutoff:
        return SelectionMode.NEEDS_VOTES
    return SelectionMode.RANDOM


def cooldown_exclusion(recent: Sequence[Comparison], cooldown_period: int) -> set[int]:
    """Item ids from the newest `cooldown_period` comparisons (newest first)."""
    excluded: set[int] = set()
    for comparison in recent[:cooldown_period]:
        excluded.update(comparison.item_ids)
    return excluded


class SelectionPolicy:
    """Chooses the next pair to present.

    A single draw picks familiarity, needs-votes or random selection. The
    first two ignore items from the cooldown window; random selection uses
    the whole eligible pool. A mode that cannot form a pair hands over to
    the next one in `FALLBACK_ORDER`.
    """

    def __init__(
        self,
        config: Configuration,
        rng: random.Random | None = None,
        now: datetime | None = None
    ):
        self.config = config
        self.rng = rng or random.Random()
        self.now = now

    @property
    def history_limit(self) -> int:
        """How many recent comparisons `select` needs to see."""
        lookback = self.config.diversity_lookback_count if self.config.diversity_filtering_enabled else 0
        return max(self.config.cooldown_period, lookback)

    def strategy_for(
        self,
        mode: SelectionMode,
        recent: Sequence[Comparison],
        items_by_id: dict[int, Item]
    ) -> PairingStrategy:
        if mode is SelectionMode.FAMILIARITY:
            positions: dict[str, int] = {}
            if self.config.diversity_filtering_enabled:
                positions = recent_group_positions(
                    recent[:self.config.diversity_lookback_count], items_by_id
                )
            return FamiliarityPairing(self.config, self.now, positions)
        if mode is SelectionMode.NEEDS_VOTES:
            return NeedsVotesPairing(self.config)
        return RandomPairing()

    def select(
        self,
        eligible: Sequence[Item],
        recent: Sequence[Comparison] = ()
    ) -> ComparisonPair:
        """Pick two distinct eligible items.

        Args:
            eligible: Items with an image, as loaded from the store
            recent: Recent comparisons, newest first

        Returns:
            The chosen pair and the mode that produced it

        Raises:
            InsufficientItemsError: fewer than two eligible items exist
        """
        items_by_id = {item.id: item for item in eligible if item.is_eligible}
        if len(items_by_id) < 2:
            raise InsufficientItemsError(len(items_by_id))

        candidates = list(items_by_id.values())
        excluded = cooldown_exclusion(recent, self.config.cooldown_period)
        cooled = [item for item in candidates if item.id not in excluded]

        requested = choose_mode(self.rng.random(), self.config)
        for mode in FALLBACK_ORDER[FALLBACK_ORDER.index(requested):]:
            pool = candidates if mode is SelectionMode.RANDOM else cooled
            pair = self.strategy_for(mode, recent, items_by_id).select_pair(pool, self.rng)
            if pair is not None:
                if mode is not requested:
                    log.info("selection_fallback", requested=str(requested), used=str(mode))
                return ComparisonPair(item1=pair[0], item2=pair[1], mode=mode)

        # RandomPairing over >= 2 candidates always yields a pair
        raise InsufficientItemsError(len(candidates))
