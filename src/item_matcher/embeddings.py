"""
Embedding provider for semantic item matching.

Wraps the Google GenAI embedding API for single-text (sync and async) and
batch embedding with configurable model, dimensions, and batch size.
"""

from __future__ import annotations

import logging
import math
import os
from typing import Any, Protocol

from google.genai import Client as GenAIClient

from .errors import ProviderError


_DEFAULT_MODEL = "gemini-embedding-001"
_DEFAULT_DIM = 768
_DEFAULT_BATCH_SIZE = 50
_DEFAULT_TASK_TYPE = "SEMANTIC_SIMILARITY"

logger = logging.getLogger(__name__)


class EmbeddingBackend(Protocol):
    """Anything that turns one text into a fixed-length vector asynchronously."""

    dim: int

    async def aembed(self, text: str) -> list[float]:
        """Embed *text*, raising ProviderError on failure."""


class EmbeddingProvider:
    """Generate text embeddings via Google GenAI."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        dim: int | None = None,
        batch_size: int | None = None,
        task_type: str = _DEFAULT_TASK_TYPE,
        client: Any | None = None,
    ) -> None:
        self.model = model or os.getenv("ITEM_MATCHER_EMBEDDING_MODEL", _DEFAULT_MODEL)
        self.dim = dim or int(os.getenv("ITEM_MATCHER_EMBEDDING_DIM", str(_DEFAULT_DIM)))
        self.batch_size = batch_size or int(
            os.getenv("ITEM_MATCHER_EMBEDDING_BATCH_SIZE", str(_DEFAULT_BATCH_SIZE))
        )
        # Lost and found reports are compared symmetrically, so both sides
        # use the same task type.
        self.task_type = task_type

        if client is not None:
            self._client = client
        else:
            resolved_key = api_key or os.getenv("GOOGLE_API_KEY")
            if resolved_key is None:
                raise ValueError(
                    "GOOGLE_API_KEY not found. "
                    "Provide api_key or set the environment variable."
                )
            self._client = GenAIClient(api_key=resolved_key)

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed a list of texts in batches.

        Returns a list of embedding vectors in the same order as *texts*.
        """
        all_embeddings: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            try:
                result = self._client.models.embed_content(
                    model=self.model,
                    contents=batch,
                    config=self._config(),
                )
            except Exception as exc:
                raise ProviderError(f"Embedding request failed: {exc}") from exc
            all_embeddings.extend(self._vectors(result, expected=len(batch)))
        return all_embeddings

    def embed_query(self, text: str) -> list[float]:
        """Embed a single text synchronously."""
        try:
            result = self._client.models.embed_content(
                model=self.model,
                contents=[text],
                config=self._config(),
            )
        except Exception as exc:
            raise ProviderError(f"Embedding request failed: {exc}") from exc
        return self._vectors(result, expected=1)[0]

    async def aembed(self, text: str) -> list[float]:
        """Embed a single text without blocking the event loop."""
        try:
            result = await self._client.aio.models.embed_content(
                model=self.model,
                contents=[text],
                config=self._config(),
            )
        except Exception as exc:
            logger.debug("Embedding request to %s failed: %s", self.model, exc)
            raise ProviderError(f"Embedding request failed: {exc}") from exc
        return self._vectors(result, expected=1)[0]

    def _config(self) -> dict[str, Any]:
        return {
            "task_type": self.task_type,
            "output_dimensionality": self.dim,
        }

    def _vectors(self, result: Any, *, expected: int) -> list[list[float]]:
        embeddings = getattr(result, "embeddings", None)
        if not embeddings or len(embeddings) != expected:
            got = 0 if not embeddings else len(embeddings)
            raise ProviderError(
                f"Malformed embedding response: expected {expected} vectors, got {got}"
            )
        vectors: list[list[float]] = []
        for emb in embeddings:
            values = getattr(emb, "values", None)
            if values is None or len(values) != self.dim:
                size = 0 if values is None else len(values)
                raise ProviderError(
                    f"Malformed embedding response: expected dimension {self.dim}, got {size}"
                )
            vector = [float(v) for v in values]
            if not all(math.isfinite(v) for v in vector):
                raise ProviderError("Malformed embedding response: non-finite values")
            vectors.append(vector)
        return vectors
