"""Item store contract and an in-memory implementation.

The comparison core only talks to storage through `ItemStore`. Any backend
works as long as `transaction` gives all-or-nothing semantics over the
rating updates and the comparison insert of one vote.
"""

import asyncio
import itertools
from collections.abc import AsyncIterator, Callable, Iterable, Mapping
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import UTC, datetime
from typing import Any, Protocol

from bestthing.logging import get_logger
from bestthing.matchup.models import Configuration
from bestthing.models import Comparison, Item, ItemFilter, ItemMetrics
from bestthing.settings import SettingsCache

log = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(UTC)


class StoreTransaction(Protocol):
    """Unit of work over a fixed set of items plus comparison inserts."""

    async def get_item(self, item_id: int) -> Item | None:
        """Read an item under the transaction's lock, including staged writes."""
        ...

    async def update_item_rating(
        self,
        item_id: int,
        new_rating: float,
        new_comparison_count: int,
        wins_delta: int,
        losses_delta: int,
        last_compared_at: datetime
    ) -> Item:
        """Stage a rating update and return the item as it will be committed."""
        ...

    async def increment_skip_count(self, item_id: int) -> Item:
        ...

    async def update_item_metrics(self, item_id: int, metrics: ItemMetrics) -> Item:
        ...

    async def append_comparison(
        self,
        item1_id: int,
        item2_id: int,
        winner_id: int | None,
        *,
        user_id: int | None = None,
        session_id: str | None = None,
        was_upset: bool = False,
        rating_difference: float | None = None
    ) -> Comparison:
        """Stage a comparison row."""
        ...


class ItemStore(Protocol):
    """Storage collaborator for the comparison core."""

    async def get_eligible_items(self, item_filter: ItemFilter | None = None) -> list[Item]:
        """Items that have an image, optionally narrowed by a filter."""
        ...

    async def get_item(self, item_id: int) -> Item | None:
        ...

    async def get_recent_comparisons(self, limit: int) -> list[Comparison]:
        """Most recent comparisons, newest first."""
        ...

    async def get_configuration(self) -> Configuration:
        ...

    def transaction(self, *item_ids: int) -> AbstractAsyncContextManager[StoreTransaction]:
        """Lock the given items and open a unit of work.

        Writes become visible only when the block exits cleanly; any
        exception discards them and propagates.
        """
        ...


class InMemoryTransaction:
    """Staged writes for `InMemoryItemStore.transaction`."""

    def __init__(self, store: "InMemoryItemStore", item_ids: Iterable[int]):
        self.store = store
        self.item_ids = frozenset(item_ids)
        self.staged_items: dict[int, Item] = {}
        self.staged_comparisons: list[Comparison] = []

    def _current(self, item_id: int) -> Item | None:
        if item_id not in self.item_ids:
            raise ValueError(f"Item {item_id} is not locked by this transaction")
        if item_id in self.staged_items:
            return self.staged_items[item_id]
        return self.store._items.get(item_id)

    def _require(self, item_id: int) -> Item:
        item = self._current(item_id)
        if item is None:
            raise KeyError(f"Item {item_id} does not exist")
        return item

    def _stage(self, item_id: int, update: dict[str, Any]) -> Item:
        item = self._require(item_id).model_copy(update=update, deep=True)
        self.staged_items[item_id] = item
        return item.model_copy(deep=True)

    async def get_item(self, item_id: int) -> Item | None:
        item = self._current(item_id)
        return item.model_copy(deep=True) if item is not None else None

    async def update_item_rating(
        self,
        item_id: int,
        new_rating: float,
        new_comparison_count: int,
        wins_delta: int,
        losses_delta: int,
        last_compared_at: datetime
    ) -> Item:
        item = self._require(item_id)
        return self._stage(item_id, {
            "elo_rating": new_rating,
            "comparison_count": new_comparison_count,
            "wins": item.wins + wins_delta,
            "losses": item.losses + losses_delta,
            "last_compared_at": last_compared_at,
        })

    async def increment_skip_count(self, item_id: int) -> Item:
        item = self._require(item_id)
        return self._stage(item_id, {"skip_count": item.skip_count + 1})

    async def update_item_metrics(self, item_id: int, metrics: ItemMetrics) -> Item:
        return self._stage(item_id, {"metrics": metrics})

    async def append_comparison(
        self,
        item1_id: int,
        item2_id: int,
        winner_id: int | None,
        *,
        user_id: int | None = None,
        session_id: str | None = None,
        was_upset: bool = False,
        rating_difference: float | None = None
    ) -> Comparison:
        comparison = Comparison(
            id=next(self.store._comparison_ids),
            item1_id=item1_id,
            item2_id=item2_id,
            winner_id=winner_id,
            created_at=self.store.clock(),
            user_id=user_id,
            session_id=session_id,
            was_upset=was_upset,
            rating_difference=rating_difference,
        )
        self.staged_comparisons.append(comparison)
        return comparison.model_copy()

    def commit(self) -> None:
        # No awaits here: the commit is applied in one step
        self.store._items.update(self.staged_items)
        self.store._comparisons.extend(self.staged_comparisons)


class InMemoryItemStore:
    """Process-local ItemStore.

    Each item has its own asyncio lock. A transaction takes the locks of
    its items in id order, so votes on disjoint pairs proceed concurrently
    while votes sharing an item are serialized.
    """

    def __init__(
        self,
        items: Iterable[Item] = (),
        settings: Mapping[str, Any] | None = None,
        clock: Callable[[], datetime] = utcnow,
        environ: Mapping[str, str] | None = None
    ):
        self.clock = clock
        self._items: dict[int, Item] = {}
        self._comparisons: list[Comparison] = []
        self._comparison_ids = itertools.count(1)
        self._locks: dict[int, asyncio.Lock] = {}
        self._settings: dict[str, Any] = dict(settings or {})
        self._settings_cache = SettingsCache(self._load_settings, environ=environ)

        for item in items:
            self.add_item(item)

    async def _load_settings(self) -> Mapping[str, Any]:
        return dict(self._settings)

    def add_item(self, item: Item) -> None:
        self._items[item.id] = item.model_copy(deep=True)

    def remove_item(self, item_id: int) -> None:
        self._items.pop(item_id, None)

    def update_settings(self, **values: Any) -> None:
        self._settings.update(values)
        self._settings_cache.invalidate()

    @property
    def comparisons(self) -> list[Comparison]:
        return [c.model_copy() for c in self._comparisons]

    async def get_eligible_items(self, item_filter: ItemFilter | None = None) -> list[Item]:
        return [
            item.model_copy(deep=True)
            for item in self._items.values()
            if item.is_eligible and (item_filter is None or item_filter.matches(item))
        ]

    async def get_item(self, item_id: int) -> Item | None:
        item = self._items.get(item_id)
        return item.model_copy(deep=True) if item is not None else None

    async def get_all_items(self) -> list[Item]:
        return [item.model_copy(deep=True) for item in self._items.values()]

    async def get_recent_comparisons(self, limit: int) -> list[Comparison]:
        if limit <= 0:
            return []
        newest_first = sorted(
            self._comparisons, key=lambda c: (c.created_at, c.id), reverse=True
        )
        return [c.model_copy() for c in newest_first[:limit]]

    async def get_configuration(self) -> Configuration:
        return await self._settings_cache.get()

    @asynccontextmanager
    async def transaction(self, *item_ids: int) -> AsyncIterator[InMemoryTransaction]:
        ordered = sorted(set(item_ids))
        locks = [self._locks.setdefault(item_id, asyncio.Lock()) for item_id in ordered]

        acquired: list[asyncio.Lock] = []
        try:
            for lock in locks:
                await lock.acquire()
                acquired.append(lock)

            tx = InMemoryTransaction(self, ordered)
            try:
                yield tx
            except BaseException:
                log.warning("transaction_rolled_back", item_ids=ordered)
                raise
            tx.commit()
        finally:
            for lock in reversed(acquired):
                lock.release()
