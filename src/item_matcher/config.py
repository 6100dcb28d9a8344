"""
Configuration helpers for the matching engine.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


DEFAULT_THRESHOLD = 0.5
DEFAULT_EMBED_TIMEOUT = 10.0
DEFAULT_CACHE_SIZE = 4096

ENV_THRESHOLD = "ITEM_MATCHER_THRESHOLD"
ENV_EMBED_TIMEOUT = "ITEM_MATCHER_EMBED_TIMEOUT"
ENV_CACHE_SIZE = "ITEM_MATCHER_CACHE_SIZE"
ENV_CACHE_TTL = "ITEM_MATCHER_CACHE_TTL"
ENV_DEFAULT_LIMIT = "ITEM_MATCHER_DEFAULT_LIMIT"


@dataclass(frozen=True)
class MatcherConfig:
    """Tunables for threshold, timeouts and cache bounds."""

    threshold: float = DEFAULT_THRESHOLD
    embed_timeout: float | None = DEFAULT_EMBED_TIMEOUT
    cache_size: int = DEFAULT_CACHE_SIZE
    cache_ttl: float | None = None
    default_limit: int | None = None

    def __post_init__(self) -> None:
        validate_threshold(self.threshold)
        if self.embed_timeout is not None and self.embed_timeout <= 0:
            raise ValueError("embed_timeout must be > 0")
        if self.cache_size <= 0:
            raise ValueError("cache_size must be > 0")
        if self.cache_ttl is not None and self.cache_ttl <= 0:
            raise ValueError("cache_ttl must be > 0")
        if self.default_limit is not None:
            validate_limit(self.default_limit)

    @classmethod
    def from_env(cls) -> MatcherConfig:
        """
        Build a config from ITEM_MATCHER_* environment variables.

        Unset variables fall back to the module defaults.
        """
        return cls(
            threshold=_env_float(ENV_THRESHOLD, DEFAULT_THRESHOLD),
            embed_timeout=_env_float(ENV_EMBED_TIMEOUT, DEFAULT_EMBED_TIMEOUT),
            cache_size=_env_int(ENV_CACHE_SIZE, DEFAULT_CACHE_SIZE),
            cache_ttl=_env_float(ENV_CACHE_TTL, None),
            default_limit=_env_int(ENV_DEFAULT_LIMIT, None),
        )


def validate_threshold(threshold: float) -> float:
    if not -1.0 <= threshold <= 1.0:
        raise ValueError(f"threshold must be within [-1, 1], got {threshold!r}")
    return float(threshold)


def validate_limit(limit: int) -> int:
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit!r}")
    return int(limit)


def _env_float(name: str, default: float | None) -> float | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int | None) -> int | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
