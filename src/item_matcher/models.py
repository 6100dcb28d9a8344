"""
Data models for indexed items and match results.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable

from pydantic import BaseModel, Field, field_validator


def as_utc(moment: datetime) -> datetime:
    """Return *moment* as an aware UTC datetime; naive values are taken as UTC."""
    if moment.tzinfo is None or moment.utcoffset() is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class ItemKind(str, Enum):
    LOST = "lost"
    FOUND = "found"

    @classmethod
    def parse(cls, value: ItemKind | str) -> ItemKind:
        if isinstance(value, ItemKind):
            return value
        try:
            return cls(value.strip().lower())
        except ValueError as exc:
            raise ValueError(
                f"Unknown collection {value!r}; expected 'lost' or 'found'."
            ) from exc


@dataclass(frozen=True)
class Item:
    """A lost or found report as seen by the matching engine."""

    id: str
    description: str
    kind: ItemKind
    reported_at: datetime
    category: str | None = None
    location: str | None = None
    contact: str | None = None
    embedding: tuple[float, ...] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "reported_at", as_utc(self.reported_at))

    def with_embedding(self, embedding: Iterable[float]) -> Item:
        return replace(self, embedding=tuple(float(v) for v in embedding))

    def with_description(self, description: str) -> Item:
        # A new description invalidates the stored vector.
        return replace(self, description=description, embedding=None)


@dataclass(frozen=True)
class MatchResult:
    """A candidate item with its similarity to the query."""

    item: Item
    score: float

    @property
    def sort_key(self) -> tuple[float, datetime, str]:
        return (-self.score, self.item.reported_at, self.item.id)


@dataclass(frozen=True)
class IndexingResult:
    """Summary output for a bulk indexing run."""

    indexed: tuple[str, ...]
    failed: dict[str, str]

    @property
    def indexed_count(self) -> int:
        return len(self.indexed)

    @property
    def failed_count(self) -> int:
        return len(self.failed)


class ItemPayload(BaseModel):
    """Report record as exported by the item store."""

    id: str = Field(description="Unique report identifier")
    description: str = Field(description="Free-text description of the item")
    kind: ItemKind = Field(description="Collection the report belongs to")
    reported_at: datetime = Field(description="When the report was filed")
    category: str | None = Field(default=None, description="Item category")
    location: str | None = Field(default=None, description="Where it was lost or found")
    contact: str | None = Field(default=None, description="Reporter contact")

    @field_validator("reported_at")
    @classmethod
    def _reported_at_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    def to_item(self) -> Item:
        return Item(
            id=self.id,
            description=self.description,
            kind=self.kind,
            reported_at=self.reported_at,
            category=self.category,
            location=self.location,
            contact=self.contact,
        )
