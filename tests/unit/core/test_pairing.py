"""Unit tests for comparison pairing and selection policy."""

import random
from collections import Counter
from datetime import UTC, datetime, timedelta

import pytest

from bestthing.errors import InsufficientItemsError
from bestthing.matchup.models import Configuration, SelectionMode
from bestthing.matchup.pairing import (
    FamiliarityPairing,
    NeedsVotesPairing,
    RandomPairing,
    SelectionPolicy,
    choose_mode,
    cooldown_exclusion,
    weighted_sample_pair,
)
from bestthing.models import Comparison, Item

pytestmark = pytest.mark.unit

NOW = datetime(2024, 6, 1, tzinfo=UTC)


class ScriptedRandom(random.Random):
    """Random source whose first `random()` draws are scripted."""

    def __init__(self, draws: list[float], seed: int = 7):
        super().__init__(seed)
        self.draws = list(draws)

    def random(self) -> float:
        if self.draws:
            return self.draws.pop(0)
        return super().random()


def make_items(n: int, **kwargs) -> list[Item]:
    return [
        Item(id=i, title=f"Item {i}", image_url=f"https://example.org/{i}.jpg", **kwargs)
        for i in range(1, n + 1)
    ]


def make_history(pairs: list[tuple[int, int]]) -> list[Comparison]:
    """Comparisons newest first, in the order given."""
    return [
        Comparison(
            id=len(pairs) - i,
            item1_id=a,
            item2_id=b,
            winner_id=a,
            created_at=NOW - timedelta(minutes=i),
        )
        for i, (a, b) in enumerate(pairs)
    ]


class TestChooseMode:
    """Tests for the three-way mode split."""

    @pytest.mark.parametrize(
        "draw, expected",
        [
            (0.0, SelectionMode.FAMILIARITY),
            (0.19, SelectionMode.FAMILIARITY),
            (0.2, SelectionMode.NEEDS_VOTES),
            (0.59, SelectionMode.NEEDS_VOTES),
            (0.61, SelectionMode.RANDOM),
            (0.99, SelectionMode.RANDOM),
        ],
    )
    def test_partition(self, draw, expected):
        assert choose_mode(draw, Configuration(familiarity_weight=0.2)) is expected

    def test_zero_familiarity_weight_never_picks_familiarity(self):
        config = Configuration(familiarity_weight=0.0)
        assert choose_mode(0.0, config) is SelectionMode.NEEDS_VOTES

    def test_selection_shares(self):
        shares = Configuration(familiarity_weight=0.2).selection_shares()
        assert shares["familiarity"] == pytest.approx(0.2)
        assert shares["needs_votes"] == pytest.approx(0.4)
        assert shares["random"] == pytest.approx(0.4)


class TestCooldownExclusion:
    """Tests for cooldown_exclusion."""

    def test_only_window_counts(self):
        history = make_history([(1, 2), (3, 4), (5, 6)])
        assert cooldown_exclusion(history, 2) == {1, 2, 3, 4}

    def test_zero_period_excludes_nothing(self):
        history = make_history([(1, 2)])
        assert cooldown_exclusion(history, 0) == set()


class TestWeightedSamplePair:
    """Tests for weighted_sample_pair."""

    def test_zero_weights_are_uniform(self):
        items = make_items(3)
        rng = random.Random(1)
        seen = Counter()
        for _ in range(600):
            a, b = weighted_sample_pair(items, [0.0, 0.0, 0.0], rng)
            assert a.id != b.id
            seen[a.id] += 1
        assert set(seen) == {1, 2, 3}

    def test_heavier_item_is_drawn_first(self):
        items = make_items(3)
        rng = random.Random(2)
        for _ in range(200):
            a, b = weighted_sample_pair(items, [1.0, 0.0, 0.0], rng)
            assert a.id == 1
            assert b.id in (2, 3)

    def test_weight_bias(self):
        items = make_items(4)
        rng = random.Random(3)
        firsts = Counter(
            weighted_sample_pair(items, [10.0, 1.0, 1.0, 1.0], rng)[0].id
            for _ in range(2000)
        )
        assert firsts[1] > firsts[2] + firsts[3] + firsts[4]

    def test_too_few_items(self):
        assert weighted_sample_pair(make_items(1), [1.0], random.Random()) is None


class TestStrategies:
    """Tests for the individual pairing strategies."""

    @pytest.mark.parametrize("strategy_name", ["random", "needs_votes", "familiarity"])
    def test_never_pairs_item_with_itself(self, strategy_name):
        config = Configuration()
        strategies = {
            "random": RandomPairing(),
            "needs_votes": NeedsVotesPairing(config),
            "familiarity": FamiliarityPairing(config, NOW),
        }
        strategy = strategies[strategy_name]
        items = make_items(2) + [
            Item(id=i, title=f"Item {i}", image_url="x", comparison_count=i, wins=i // 2)
            for i in range(3, 8)
        ]
        rng = random.Random(11)
        for _ in range(10_000):
            a, b = strategy.select_pair(items, rng)
            assert a.id != b.id

    def test_needs_votes_filters_settled_items(self):
        config = Configuration(
            min_comparisons_for_confidence=30,
            items_needing_votes_confidence_threshold=0.8,
            items_needing_votes_comparison_threshold=20,
        )
        settled = Item(id=1, title="Settled", image_url="x", comparison_count=40)
        busy = Item(id=2, title="Busy", image_url="x", comparison_count=20)
        fresh = [
            Item(id=3, title="Fresh", image_url="x", comparison_count=3),
            Item(id=4, title="Fresher", image_url="x"),
        ]

        strategy = NeedsVotesPairing(config)
        assert not strategy.needs_votes(settled)
        assert not strategy.needs_votes(busy)

        rng = random.Random(5)
        for _ in range(100):
            a, b = strategy.select_pair([settled, busy, *fresh], rng)
            assert {a.id, b.id} == {3, 4}

    def test_needs_votes_needs_two_candidates(self):
        items = make_items(3, comparison_count=100)
        assert NeedsVotesPairing(Configuration()).select_pair(items, random.Random()) is None

    def test_diversity_penalty_reduces_weight(self):
        config = Configuration(diversity_penalty_strength=1.0)
        item = Item(id=1, title="3rd Battalion", image_url="x", comparison_count=10)
        plain = FamiliarityPairing(config, NOW)
        penalized = FamiliarityPairing(config, NOW, {"military_battalion": 1})
        assert penalized.weight(item) == pytest.approx(plain.weight(item) * 0.2)

    def test_diversity_filtering_can_be_disabled(self):
        config = Configuration(diversity_filtering_enabled=False)
        item = Item(id=1, title="3rd Battalion", image_url="x", comparison_count=10)
        plain = FamiliarityPairing(config, NOW)
        penalized = FamiliarityPairing(config, NOW, {"military_battalion": 1})
        assert penalized.weight(item) == plain.weight(item)


class TestSelectionPolicy:
    """Tests for SelectionPolicy.select."""

    def test_cooldown_enforced_in_familiarity_mode(self):
        config = Configuration(familiarity_weight=1.0, cooldown_period=5)
        items = make_items(10, comparison_count=5, wins=3)
        # Item 1 appears in 3 of the last 5 comparisons
        history = make_history([(1, 2), (3, 1), (4, 5), (1, 6), (2, 3), (7, 8)])
        policy = SelectionPolicy(config, random.Random(42), now=NOW)

        for _ in range(1000):
            pair = policy.select(items, history)
            assert pair.mode is SelectionMode.FAMILIARITY
            assert 1 not in (pair.item1.id, pair.item2.id)
            assert {pair.item1.id, pair.item2.id} <= {7, 8, 9, 10}

    def test_cooldown_enforced_in_needs_votes_mode(self):
        config = Configuration(familiarity_weight=0.0, cooldown_period=2)
        items = make_items(6)
        history = make_history([(1, 2), (3, 4)])
        for seed in range(50):
            policy = SelectionPolicy(config, ScriptedRandom([0.1], seed), now=NOW)
            pair = policy.select(items, history)
            assert pair.mode is SelectionMode.NEEDS_VOTES
            assert {pair.item1.id, pair.item2.id} == {5, 6}

    def test_random_mode_ignores_cooldown(self):
        config = Configuration(familiarity_weight=0.0, cooldown_period=5)
        items = make_items(3)
        history = make_history([(1, 2), (2, 3)])
        policy = SelectionPolicy(config, ScriptedRandom([0.9]), now=NOW)

        pair = policy.select(items, history)

        assert pair.mode is SelectionMode.RANDOM
        assert pair.item1.id != pair.item2.id

    def test_needs_votes_falls_back_to_random(self):
        config = Configuration(familiarity_weight=0.0)
        items = make_items(4, comparison_count=100)
        policy = SelectionPolicy(config, ScriptedRandom([0.1]), now=NOW)

        pair = policy.select(items, [])

        assert pair.mode is SelectionMode.RANDOM

    def test_familiarity_falls_back_when_cooldown_leaves_one_item(self):
        config = Configuration(familiarity_weight=1.0, cooldown_period=10)
        items = make_items(3)
        history = make_history([(1, 2)])
        policy = SelectionPolicy(config, random.Random(0), now=NOW)

        pair = policy.select(items, history)

        assert pair.mode is SelectionMode.RANDOM

    def test_items_without_images_are_ignored(self):
        items = make_items(2) + [Item(id=3, title="No image")]
        policy = SelectionPolicy(Configuration(), random.Random(1), now=NOW)
        for _ in range(200):
            pair = policy.select(items, [])
            assert {pair.item1.id, pair.item2.id} == {1, 2}

    def test_insufficient_items(self):
        items = make_items(1) + [Item(id=2, title="No image")]
        policy = SelectionPolicy(Configuration(), random.Random(), now=NOW)
        with pytest.raises(InsufficientItemsError) as exc_info:
            policy.select(items, [])
        assert exc_info.value.available == 1

    def test_never_self_pairs(self):
        config = Configuration(familiarity_weight=0.34, cooldown_period=3)
        items = make_items(6, comparison_count=2, wins=1)
        history = make_history([(1, 2), (3, 4)])
        policy = SelectionPolicy(config, random.Random(99), now=NOW)
        modes = Counter()
        for _ in range(10_000):
            pair = policy.select(items, history)
            assert pair.item1.id != pair.item2.id
            modes[pair.mode] += 1
        assert set(modes) == set(SelectionMode)

    def test_history_limit_covers_cooldown_and_lookback(self):
        config = Configuration(cooldown_period=5, diversity_lookback_count=20)
        assert SelectionPolicy(config).history_limit == 20
        config = Configuration(cooldown_period=55, diversity_filtering_enabled=False)
        assert SelectionPolicy(config).history_limit == 55
