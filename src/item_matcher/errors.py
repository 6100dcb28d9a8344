"""
Error kinds raised by the matching engine.
"""

from __future__ import annotations


class MatchingError(Exception):
    """Base class for matching engine failures."""


class InvalidQueryError(MatchingError, ValueError):
    """Query text is empty or degenerate after normalization."""


class ProviderError(MatchingError):
    """Embedding provider was unreachable, failed, or returned a malformed response."""


class EmbeddingTimeoutError(ProviderError, TimeoutError):
    """Embedding provider call exceeded the configured deadline."""
