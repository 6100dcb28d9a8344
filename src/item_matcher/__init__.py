"""
item_matcher - semantic matching for lost and found reports.

Given a free-text description of a lost item, find found reports whose
descriptions are semantically close, using Google GenAI text embeddings
and cosine similarity.

Example usage:
    >>> from item_matcher import EmbeddingProvider, MatchingService
    >>> service = MatchingService(EmbeddingProvider())
    >>> await service.notify_item_created_or_updated(found_item)
    >>> matches = await service.find_matches("lost a leather wallet", "found")
"""

from .cache import CacheEntry, CacheStats, EmbeddingCache
from .config import MatcherConfig
from .embeddings import EmbeddingBackend, EmbeddingProvider
from .engine import MatchEngine, rank_results, score_all
from .errors import (
    EmbeddingTimeoutError,
    InvalidQueryError,
    MatchingError,
    ProviderError,
)
from .index import CandidateIndex
from .models import IndexingResult, Item, ItemKind, ItemPayload, MatchResult
from .scoring import cosine_similarity
from .service import MatchingService
from .text import normalize_text, text_key

__all__ = [
    # Service
    "MatchingService",
    "MatcherConfig",
    # Engine
    "MatchEngine",
    "CandidateIndex",
    "EmbeddingCache",
    "CacheEntry",
    "CacheStats",
    "EmbeddingProvider",
    "EmbeddingBackend",
    "cosine_similarity",
    "score_all",
    "rank_results",
    "normalize_text",
    "text_key",
    # Models
    "Item",
    "ItemKind",
    "ItemPayload",
    "MatchResult",
    "IndexingResult",
    # Errors
    "MatchingError",
    "InvalidQueryError",
    "ProviderError",
    "EmbeddingTimeoutError",
]
