"""
Service facade consumed by the report-management system.

Owns one candidate index per collection and the shared embedding cache.
"""

from __future__ import annotations

import logging
from typing import Iterable

from .cache import EmbeddingCache
from .config import MatcherConfig
from .embeddings import EmbeddingBackend
from .engine import MatchEngine
from .index import CandidateIndex
from .models import IndexingResult, Item, ItemKind, MatchResult

logger = logging.getLogger(__name__)


class MatchingService:
    """Index lost and found reports and answer "find matching items" requests."""

    def __init__(
        self,
        backend: EmbeddingBackend,
        config: MatcherConfig | None = None,
    ) -> None:
        self.config = config or MatcherConfig()
        self.cache = EmbeddingCache(
            backend,
            max_entries=self.config.cache_size,
            ttl_seconds=self.config.cache_ttl,
            timeout=self.config.embed_timeout,
        )
        self.engine = MatchEngine(self.cache, self.config)
        self.indexes: dict[ItemKind, CandidateIndex] = {
            kind: CandidateIndex(self.cache, target=kind.value) for kind in ItemKind
        }

    def index_for(self, collection: ItemKind | str) -> CandidateIndex:
        return self.indexes[ItemKind.parse(collection)]

    async def notify_item_created_or_updated(self, item: Item) -> Item:
        """(Re-)index *item* in the collection matching its kind."""
        # A report whose kind changed must not linger in the other index.
        for kind, index in self.indexes.items():
            if kind is not item.kind:
                index.remove(item.id)
        return await self.indexes[item.kind].upsert(item)

    def notify_item_removed(self, item_id: str) -> bool:
        removed = False
        for index in self.indexes.values():
            removed = index.remove(item_id) or removed
        return removed

    async def find_matches(
        self,
        description: str,
        target_collection: ItemKind | str,
        threshold: float | None = None,
        limit: int | None = None,
        *,
        category: str | None = None,
    ) -> list[MatchResult]:
        """
        Rank reports in *target_collection* against *description*.

        *category*, when given, restricts candidates to that category
        (case-insensitive) before scoring.
        """
        snapshot = self.index_for(target_collection).snapshot()
        if category is not None:
            wanted = category.strip().casefold()
            snapshot = tuple(
                item
                for item in snapshot
                if item.category is not None and item.category.strip().casefold() == wanted
            )
        return await self.engine.match(
            description, snapshot, threshold=threshold, limit=limit
        )

    async def rebuild(self, items: Iterable[Item]) -> IndexingResult:
        """
        Re-index *items* from the authoritative store.

        Each index keeps serving its previous contents until its replacement
        is fully resolved, then switches over in one step.
        """
        by_kind: dict[ItemKind, list[Item]] = {kind: [] for kind in ItemKind}
        for item in items:
            by_kind[item.kind].append(item)

        indexed: list[str] = []
        failed: dict[str, str] = {}
        for kind, index in self.indexes.items():
            result = await index.replace_all(by_kind[kind])
            indexed.extend(result.indexed)
            failed.update(result.failed)
        if failed:
            logger.warning("Rebuild left %d items unindexed", len(failed))
        return IndexingResult(indexed=tuple(indexed), failed=failed)

    def close(self) -> None:
        for index in self.indexes.values():
            index.clear()
        self.cache.clear()
