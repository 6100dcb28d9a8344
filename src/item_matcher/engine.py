"""
Match orchestration: embed the query once, then score a snapshot in-process.
"""

from __future__ import annotations

import logging
from typing import Sequence

from .cache import EmbeddingCache, Vector
from .config import MatcherConfig, validate_limit, validate_threshold
from .errors import InvalidQueryError
from .models import Item, MatchResult
from .scoring import cosine_similarity
from .text import normalize_text

logger = logging.getLogger(__name__)


def score_all(query_vector: Vector, snapshot: Sequence[Item]) -> list[MatchResult]:
    """Score every embedded item in *snapshot* against *query_vector*."""
    results: list[MatchResult] = []
    for item in snapshot:
        if item.embedding is None:
            continue
        results.append(
            MatchResult(item=item, score=cosine_similarity(query_vector, item.embedding))
        )
    return results


def rank_results(
    results: list[MatchResult], *, threshold: float, limit: int | None = None
) -> list[MatchResult]:
    """Drop results below *threshold*, sort and apply *limit*."""
    kept = [result for result in results if result.score >= threshold]
    ordered = sorted(kept, key=lambda result: result.sort_key)
    if limit is not None:
        return ordered[:limit]
    return ordered


class MatchEngine:
    """Find candidates whose descriptions are semantically close to a query."""

    def __init__(
        self,
        cache: EmbeddingCache,
        config: MatcherConfig | None = None,
    ) -> None:
        self.cache = cache
        self.config = config or MatcherConfig()

    async def match(
        self,
        query_text: str,
        snapshot: Sequence[Item],
        threshold: float | None = None,
        limit: int | None = None,
    ) -> list[MatchResult]:
        """
        Return items from *snapshot* scoring at least *threshold*, best first.

        Raises InvalidQueryError for empty queries and ProviderError (or
        EmbeddingTimeoutError) when the query cannot be embedded. An empty
        list means nothing cleared the threshold.
        """
        if not normalize_text(query_text):
            raise InvalidQueryError("Query description is empty.")

        effective_threshold = validate_threshold(
            self.config.threshold if threshold is None else threshold
        )
        effective_limit = self.config.default_limit if limit is None else limit
        if effective_limit is not None:
            validate_limit(effective_limit)

        query_vector = await self.cache.get_or_compute(
            query_text, timeout=self.config.embed_timeout
        )
        ranked = rank_results(
            score_all(query_vector, snapshot),
            threshold=effective_threshold,
            limit=effective_limit,
        )
        logger.debug(
            "Matched query against %d candidates: %d above %.3f",
            len(snapshot),
            len(ranked),
            effective_threshold,
        )
        return ranked
