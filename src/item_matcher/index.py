"""
In-memory candidate index.

Writers build a new mapping under a lock and publish it by swapping the
reference, so snapshots taken by readers never observe a partial write.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Awaitable, Callable, Iterable

from .cache import EmbeddingCache
from .errors import ProviderError
from .models import IndexingResult, Item

logger = logging.getLogger(__name__)

_DEFAULT_MAX_CONCURRENCY = 8


class CandidateIndex:
    """Items eligible for matching, each with a resolved embedding."""

    def __init__(
        self,
        cache: EmbeddingCache,
        *,
        target: str = "candidates",
        max_concurrency: int = _DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        if max_concurrency <= 0:
            raise ValueError("max_concurrency must be > 0")
        self.cache = cache
        self.target = target
        self._max_concurrency = max_concurrency
        self._items: dict[str, Item] = {}
        self._generations: dict[str, int] = {}
        self._counter = 0
        self._rebuilds = 0
        self._removed: set[str] = set()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def get(self, item_id: str) -> Item | None:
        return self._items.get(item_id)

    def snapshot(self) -> tuple[Item, ...]:
        """Point-in-time view of indexed items in insertion order."""
        return tuple(self._items.values())

    async def upsert(self, item: Item) -> Item:
        """
        Resolve *item*'s embedding and make it visible to queries.

        Raises ProviderError if the embedding cannot be computed, or ValueError
        if a precomputed embedding has the wrong dimension; the item (and any
        earlier version of it) is then left out of the index.
        """
        generation = self._next_generation(item.id)
        try:
            indexed = await self._resolve(item)
        except (ProviderError, ValueError) as exc:
            with self._lock:
                if self._generations.get(item.id) == generation:
                    self._publish_without(item.id)
            logger.warning(
                "Could not index %s item %s: %s", self.target, item.id, exc
            )
            raise

        with self._lock:
            if self._generations.get(item.id) != generation:
                # A newer upsert or a removal won the race.
                logger.debug("Dropping stale upsert of %s item %s", self.target, item.id)
                return indexed
            items = dict(self._items)
            items[item.id] = indexed
            self._items = items
        return indexed

    async def upsert_many(self, items: Iterable[Item]) -> IndexingResult:
        """Index *items* concurrently; one failure never aborts the others."""
        outcomes = await self._gather_bounded(self.upsert, items)
        indexed = tuple(item.id for item, result in outcomes if isinstance(result, Item))
        failed = {item.id: result for item, result in outcomes if isinstance(result, str)}
        return IndexingResult(indexed=indexed, failed=failed)

    async def replace_all(self, items: Iterable[Item]) -> IndexingResult:
        """
        Replace the whole index with *items* in a single swap.

        Embeddings are resolved before anything is published, so readers keep
        seeing the previous contents until the new mapping is complete. Items
        that fail to resolve are reported in ``failed`` and left out. Upserts
        and removals that land while the rebuild is running take precedence
        over the rebuilt entries for the same ids.
        """
        with self._lock:
            start = self._counter
            self._rebuilds += 1
        try:
            outcomes = await self._gather_bounded(self._resolve, items)
        except BaseException:
            with self._lock:
                self._end_rebuild()
            raise

        with self._lock:
            items_by_id: dict[str, Item] = {}
            failed: dict[str, str] = {}
            for item, result in outcomes:
                if isinstance(result, Item):
                    items_by_id[item.id] = result
                    failed.pop(item.id, None)
                else:
                    items_by_id.pop(item.id, None)
                    failed[item.id] = result

            touched = {
                item_id
                for item_id, generation in self._generations.items()
                if generation > start
            }
            touched.update(self._removed)
            for item_id in touched:
                current = self._items.get(item_id)
                if current is None:
                    items_by_id.pop(item_id, None)
                else:
                    items_by_id[item_id] = current

            self._counter += 1
            generations = {
                item_id: self._generations[item_id]
                for item_id in touched
                if item_id in self._generations
            }
            for item_id in items_by_id:
                generations.setdefault(item_id, self._counter)
            self._generations = generations
            self._items = items_by_id
            self._end_rebuild()

        for item_id, error in failed.items():
            logger.warning("Could not index %s item %s: %s", self.target, item_id, error)
        rebuilt = {item.id for item, result in outcomes if isinstance(result, Item)}
        indexed = tuple(
            item_id
            for item_id in items_by_id
            if item_id in rebuilt and item_id not in failed
        )
        return IndexingResult(indexed=indexed, failed=failed)

    def remove(self, item_id: str) -> bool:
        """Remove *item_id*; returns False if it was not indexed."""
        with self._lock:
            # Invalidates any upsert of this id still waiting on the provider.
            self._generations.pop(item_id, None)
            if self._rebuilds:
                self._removed.add(item_id)
            return self._publish_without(item_id)

    def clear(self) -> None:
        with self._lock:
            self._generations.clear()
            self._items = {}

    async def _gather_bounded(
        self,
        func: Callable[[Item], Awaitable[Item]],
        items: Iterable[Item],
    ) -> list[tuple[Item, Item | str]]:
        # Pairs each item with func's result, or with the error message when
        # func raised ProviderError or ValueError.
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _run_one(item: Item) -> tuple[Item, Item | str]:
            async with semaphore:
                try:
                    result = await func(item)
                except (ProviderError, ValueError) as exc:
                    return item, str(exc)
            return item, result

        return list(await asyncio.gather(*(_run_one(item) for item in items)))

    async def _resolve(self, item: Item) -> Item:
        if item.embedding is not None:
            if len(item.embedding) != self.cache.backend.dim:
                raise ValueError(
                    f"Item {item.id} embedding has dimension {len(item.embedding)}, "
                    f"expected {self.cache.backend.dim}"
                )
            return item
        vector = await self.cache.get_or_compute(item.description)
        return item.with_embedding(vector)

    def _next_generation(self, item_id: str) -> int:
        with self._lock:
            self._counter += 1
            self._generations[item_id] = self._counter
            return self._counter

    def _end_rebuild(self) -> None:
        # Caller holds self._lock.
        self._rebuilds -= 1
        if not self._rebuilds:
            self._removed.clear()

    def _publish_without(self, item_id: str) -> bool:
        # Caller holds self._lock.
        if item_id not in self._items:
            return False
        items = dict(self._items)
        del items[item_id]
        self._items = items
        return True
