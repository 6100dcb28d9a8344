"""
Embedding cache with request coalescing.

Vectors are keyed by the SHA-256 of the normalized text. Concurrent misses
for the same key share a single provider call; failures are never cached.
"""

from __future__ import annotations

import asyncio
import logging
import math
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable

from .config import DEFAULT_CACHE_SIZE
from .embeddings import EmbeddingBackend
from .errors import EmbeddingTimeoutError, ProviderError
from .text import normalize_text, text_key

logger = logging.getLogger(__name__)

Vector = tuple[float, ...]

_UNSET = object()


@dataclass
class CacheEntry:
    key: str
    vector: Vector
    computed_at: float
    hits: int = 0


@dataclass(frozen=True)
class CacheStats:
    entries: int
    hits: int
    misses: int
    provider_calls: int
    evictions: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


class EmbeddingCache:
    """LRU/TTL-bounded memo of text embeddings."""

    def __init__(
        self,
        backend: EmbeddingBackend,
        *,
        max_entries: int = DEFAULT_CACHE_SIZE,
        ttl_seconds: float | None = None,
        timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be > 0")
        self.backend = backend
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self.timeout = timeout
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._inflight: dict[str, asyncio.Task[Vector]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._provider_calls = 0
        self._evictions = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, text: object) -> bool:
        if not isinstance(text, str):
            return False
        key = text_key(normalize_text(text))
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not self._expired(entry)

    async def get_or_compute(self, text: str, *, timeout: object = _UNSET) -> Vector:
        """
        Return the embedding for *text*, calling the provider at most once
        per normalized text across concurrent callers.

        *timeout* bounds how long this caller waits; it defaults to the
        cache-wide timeout. Raises ProviderError or EmbeddingTimeoutError.
        """
        normalized = normalize_text(text)
        if not normalized:
            return (0.0,) * self.backend.dim

        key = text_key(normalized)
        cached = self._lookup(key)
        if cached is not None:
            return cached

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._compute(key, normalized))
            self._inflight[key] = task
            task.add_done_callback(lambda done, key=key: self._finish(key, done))
        else:
            logger.debug("Joining in-flight embedding call for key %s", key[:12])

        wait_for = self.timeout if timeout is _UNSET else timeout
        try:
            # Shielded so a caller giving up does not cancel the shared call.
            return await asyncio.wait_for(asyncio.shield(task), wait_for)  # type: ignore[arg-type]
        except ProviderError:
            raise
        except asyncio.TimeoutError as exc:
            raise EmbeddingTimeoutError(
                f"Embedding provider did not answer within {wait_for}s"
            ) from exc

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                entries=len(self._entries),
                hits=self._hits,
                misses=self._misses,
                provider_calls=self._provider_calls,
                evictions=self._evictions,
            )

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _lookup(self, key: str) -> Vector | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._expired(entry):
                del self._entries[key]
                self._evictions += 1
                entry = None
            if entry is None:
                self._misses += 1
                return None
            entry.hits += 1
            self._hits += 1
            self._entries.move_to_end(key)
            return entry.vector

    async def _compute(self, key: str, normalized: str) -> Vector:
        with self._lock:
            self._provider_calls += 1
        logger.debug("Embedding cache miss for key %s", key[:12])
        try:
            raw = await self.backend.aembed(normalized)
        except ProviderError:
            raise
        except Exception as exc:
            raise ProviderError(f"Embedding provider failed: {exc}") from exc
        vector = tuple(float(v) for v in raw)
        if len(vector) != self.backend.dim or not all(math.isfinite(v) for v in vector):
            raise ProviderError(
                f"Embedding provider returned a malformed vector of length {len(vector)}"
            )
        self._store(key, vector)
        return vector

    def _store(self, key: str, vector: Vector) -> None:
        with self._lock:
            self._entries[key] = CacheEntry(
                key=key, vector=vector, computed_at=self._clock()
            )
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug("Evicted embedding for key %s", evicted[:12])

    def _finish(self, key: str, task: asyncio.Task[Vector]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Embedding for key %s failed: %s", key[:12], exc)

    def _expired(self, entry: CacheEntry) -> bool:
        if self.ttl_seconds is None:
            return False
        return self._clock() - entry.computed_at >= self.ttl_seconds
