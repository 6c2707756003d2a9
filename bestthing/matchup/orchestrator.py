"""Comparison orchestrator: serves pairs and resolves votes."""

import random
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from bestthing.errors import InvalidWinnerError, StaleComparisonError
from bestthing.events import EventHandler, NullEventHandler
from bestthing.logging import get_logger, vote_context
from bestthing.matchup.elo import apply_result, detect_upset
from bestthing.matchup.metrics import update_metrics
from bestthing.matchup.models import (
    ComparisonPair,
    ComparisonState,
    Configuration,
    VoteOutcome,
)
from bestthing.matchup.pairing import SelectionPolicy
from bestthing.models import Item

if TYPE_CHECKING:
    from bestthing.store import ItemStore, StoreTransaction

log = get_logger(__name__)


class ComparisonOrchestrator:
    """Serves head-to-head comparisons and records their outcomes.

    Every call reads one configuration snapshot from the store and uses it
    throughout. No state is kept between calls; the cooldown window comes
    from the persisted comparison log.
    """

    def __init__(
        self,
        store: "ItemStore",
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
        event_handler: EventHandler | None = None
    ):
        """Initialize the orchestrator.

        Args:
            store: Item store collaborator
            rng: Random source for selection (seed it for reproducible pairs)
            clock: Returns the current time (defaults to UTC now)
            event_handler: Optional listener for served pairs and votes
        """
        self.store = store
        self.rng = rng or random.Random()
        self.clock = clock or (lambda: datetime.now(UTC))
        self.event_handler = event_handler or NullEventHandler()

    async def serve_comparison(self, config: Configuration | None = None) -> ComparisonPair:
        """Pick the next pair to show. Read-only; safe to retry or abandon.

        Raises:
            InsufficientItemsError: fewer than two eligible items exist
        """
        if config is None:
            config = await self.store.get_configuration()
        policy = SelectionPolicy(config, self.rng, now=self.clock())

        eligible = await self.store.get_eligible_items()
        recent = await self.store.get_recent_comparisons(policy.history_limit)

        pair = policy.select(eligible, recent)
        log.info(
            "comparison_served",
            mode=str(pair.mode),
            item1_id=pair.item1.id,
            item2_id=pair.item2.id,
        )
        self.event_handler.on_comparison_served(pair=pair)
        return pair

    async def submit_vote(
        self,
        item1_id: int,
        item2_id: int,
        winner_id: int | None,
        *,
        user_id: int | None = None,
        session_id: str | None = None,
        config: Configuration | None = None
    ) -> VoteOutcome:
        """Record a vote (or a skip when winner_id is None).

        The rating updates and the comparison row are written in one store
        transaction; nothing persists if any step fails.

        Raises:
            InvalidWinnerError: winner_id is not one of the two items
            StaleComparisonError: an item was removed or lost its image
        """
        with vote_context(user_id=user_id, session_id=session_id):
            return await self._submit_vote(item1_id, item2_id, winner_id, user_id, session_id, config)

    async def _submit_vote(
        self,
        item1_id: int,
        item2_id: int,
        winner_id: int | None,
        user_id: int | None,
        session_id: str | None,
        config: Configuration | None
    ) -> VoteOutcome:
        if item1_id == item2_id:
            raise ValueError("A comparison needs two different items")
        if winner_id is not None and winner_id not in (item1_id, item2_id):
            log.warning("vote_rejected", reason="invalid_winner", winner_id=winner_id)
            raise InvalidWinnerError(winner_id, item1_id, item2_id)

        if config is None:
            config = await self.store.get_configuration()

        async with self.store.transaction(item1_id, item2_id) as tx:
            item1, item2 = await self._load_pair(tx, item1_id, item2_id)
            if winner_id is None:
                outcome = await self._record_skip(tx, item1, item2, user_id, session_id)
            else:
                outcome = await self._record_vote(
                    tx, item1, item2, winner_id, config, user_id, session_id
                )

        if outcome.state is ComparisonState.SKIPPED:
            log.info("skip_recorded", item1_id=item1_id, item2_id=item2_id)
            self.event_handler.on_skip_recorded(outcome=outcome)
        else:
            log.info(
                "vote_recorded",
                item1_id=item1_id,
                item2_id=item2_id,
                winner_id=winner_id,
                item1_rating=outcome.item1.elo_rating,
                item2_rating=outcome.item2.elo_rating,
                was_upset=outcome.was_upset,
            )
            self.event_handler.on_vote_recorded(outcome=outcome)
            if outcome.was_upset:
                log.info(
                    "upset_detected",
                    winner_id=winner_id,
                    rating_difference=outcome.comparison.rating_difference,
                )
                self.event_handler.on_upset(
                    outcome=outcome,
                    rating_difference=outcome.comparison.rating_difference,
                )
        return outcome

    async def _load_pair(
        self,
        tx: "StoreTransaction",
        item1_id: int,
        item2_id: int
    ) -> tuple[Item, Item]:
        item1 = await tx.get_item(item1_id)
        item2 = await tx.get_item(item2_id)

        missing = [
            item_id
            for item_id, item in ((item1_id, item1), (item2_id, item2))
            if item is None or not item.is_eligible
        ]
        if missing:
            log.warning("vote_rejected", reason="stale_comparison", missing_ids=missing)
            raise StaleComparisonError(missing)
        return item1, item2

    async def _record_skip(
        self,
        tx: "StoreTransaction",
        item1: Item,
        item2: Item,
        user_id: int | None,
        session_id: str | None
    ) -> VoteOutcome:
        updated1 = await tx.increment_skip_count(item1.id)
        updated2 = await tx.increment_skip_count(item2.id)
        comparison = await tx.append_comparison(
            item1.id, item2.id, None, user_id=user_id, session_id=session_id
        )
        return VoteOutcome(
            item1=updated1,
            item2=updated2,
            comparison=comparison,
            state=ComparisonState.SKIPPED,
        )

    async def _record_vote(
        self,
        tx: "StoreTransaction",
        item1: Item,
        item2: Item,
        winner_id: int,
        config: Configuration,
        user_id: int | None,
        session_id: str | None
    ) -> VoteOutcome:
        winner, loser = (item1, item2) if winner_id == item1.id else (item2, item1)

        # Upset is judged on pre-vote ratings
        was_upset = detect_upset(winner, loser, config)
        rating_difference = abs(winner.elo_rating - loser.elo_rating)
        new_winner, new_loser = apply_result(winner, loser, config)
        now = self.clock()

        saved: dict[int, Item] = {}
        for before, after, won in ((winner, new_winner, True), (loser, new_loser, False)):
            await tx.update_item_rating(
                after.id,
                new_rating=after.elo_rating,
                new_comparison_count=after.comparison_count,
                wins_delta=after.wins - before.wins,
                losses_delta=after.losses - before.losses,
                last_compared_at=now,
            )
            metrics = update_metrics(
                before.metrics, won, after.elo_rating, now, was_upset=was_upset and won
            )
            saved[after.id] = await tx.update_item_metrics(after.id, metrics)

        comparison = await tx.append_comparison(
            item1.id,
            item2.id,
            winner_id,
            user_id=user_id,
            session_id=session_id,
            was_upset=was_upset,
            rating_difference=rating_difference,
        )
        return VoteOutcome(
            item1=saved[item1.id],
            item2=saved[item2.id],
            comparison=comparison,
            was_upset=was_upset,
            state=ComparisonState.RESOLVED,
        )
