from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

import pytest

from item_matcher.errors import ProviderError
from item_matcher.models import Item, ItemKind


VOCAB: tuple[str, ...] = (
    "leather",
    "wallet",
    "black",
    "brown",
    "red",
    "blue",
    "backpack",
    "cards",
    "lost",
    "phone",
    "keys",
    "umbrella",
    "jacket",
    "passport",
)

BASE_TIME = datetime(2024, 5, 1, 9, 0, 0)


class FakeBackend:
    """Deterministic bag-of-words embedder over VOCAB.

    Words outside the vocabulary are ignored, so a text made only of unknown
    words embeds to the zero vector.
    """

    def __init__(
        self,
        *,
        delay: float = 0.0,
        fail_on: set[str] | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.dim = len(VOCAB)
        self.delay = delay
        self.fail_on = fail_on or set()
        self.gate = gate
        self.calls: list[str] = []

    async def aembed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if text in self.fail_on:
            raise ProviderError(f"provider refused {text!r}")
        words = text.split()
        return [float(words.count(word)) for word in VOCAB]


def make_item(
    item_id: str,
    description: str,
    *,
    kind: ItemKind = ItemKind.FOUND,
    minutes: int = 0,
    category: str | None = None,
    location: str | None = None,
) -> Item:
    return Item(
        id=item_id,
        description=description,
        kind=kind,
        reported_at=BASE_TIME + timedelta(minutes=minutes),
        category=category,
        location=location,
    )


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def wallet_items() -> list[Item]:
    return [
        make_item("F1", "black leather wallet", minutes=0, category="Accessories"),
        make_item("F2", "red backpack", minutes=1, category="Bags"),
        make_item(
            "F3", "brown leather wallet with cards", minutes=2, category="Accessories"
        ),
    ]


# ---------------------------------------------------------------------------
# Google GenAI client fakes
# ---------------------------------------------------------------------------


@dataclass
class FakeEmbedding:
    values: list[float]


@dataclass
class FakeEmbedResult:
    embeddings: list[FakeEmbedding]


class FakeModels:
    """Records calls and returns deterministic embeddings."""

    def __init__(
        self,
        *,
        error: Exception | None = None,
        dim_override: int | None = None,
        values: list[float] | None = None,
    ) -> None:
        self.calls: list[dict[str, Any]] = []
        self.error = error
        self.dim_override = dim_override
        self.values = values

    def embed_content(
        self, *, model: str, contents: list[str], config: dict
    ) -> FakeEmbedResult:
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.error is not None:
            raise self.error
        if self.values is not None:
            return FakeEmbedResult(
                embeddings=[FakeEmbedding(values=list(self.values)) for _ in contents]
            )
        dim = self.dim_override or config.get("output_dimensionality", 768)
        return FakeEmbedResult(
            embeddings=[
                FakeEmbedding(values=[float(i + 1)] * dim) for i in range(len(contents))
            ]
        )


class FakeAsyncModels:
    def __init__(self, models: FakeModels) -> None:
        self._models = models

    async def embed_content(
        self, *, model: str, contents: list[str], config: dict
    ) -> FakeEmbedResult:
        return self._models.embed_content(model=model, contents=contents, config=config)


class FakeAio:
    def __init__(self, models: FakeModels) -> None:
        self.models = FakeAsyncModels(models)


class FakeGenAIClient:
    def __init__(self, **kwargs: Any) -> None:
        self.models = FakeModels(**kwargs)
        self.aio = FakeAio(self.models)
