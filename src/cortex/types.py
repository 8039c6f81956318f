"""Domain records shared by the engine, the operations and the adapters."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone

from cortex.paths import CategoryPath, MemoryPath

MAX_DESCRIPTION_LENGTH = 500


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def estimate_tokens(content: str) -> int:
    """Rough token count: a token per four characters of trimmed text."""
    trimmed = content.strip()
    if not trimmed:
        return 0
    return max(1, math.ceil(len(trimmed) / 4))


@dataclass
class MemoryMetadata:
    created_at: datetime
    updated_at: datetime | None = None
    tags: list[str] = field(default_factory=list)
    source: str = "user"
    citations: list[str] = field(default_factory=list)
    expires_at: datetime | None = None


@dataclass
class Memory:
    """A stored text record."""

    path: MemoryPath
    content: str
    metadata: MemoryMetadata

    def is_expired(self, now: datetime) -> bool:
        if self.metadata.expires_at is None:
            return False
        return as_aware(self.metadata.expires_at) <= as_aware(now)

    def index_entry(self) -> CategoryMemoryEntry:
        return CategoryMemoryEntry(
            path=self.path,
            token_estimate=estimate_tokens(self.content),
            updated_at=self.metadata.updated_at,
        )


@dataclass
class CategoryMemoryEntry:
    path: MemoryPath
    token_estimate: int
    summary: str | None = None
    updated_at: datetime | None = None


@dataclass
class SubcategoryEntry:
    path: CategoryPath
    memory_count: int
    description: str | None = None


@dataclass
class Category:
    """Index of a category's direct children."""

    memories: list[CategoryMemoryEntry] = field(default_factory=list)
    subcategories: list[SubcategoryEntry] = field(default_factory=list)


@dataclass
class ReindexResult:
    warnings: list[str] = field(default_factory=list)


@dataclass
class PrunedMemory:
    path: MemoryPath
    expires_at: datetime


@dataclass
class PruneResult:
    pruned: list[PrunedMemory] = field(default_factory=list)


@dataclass
class RecentMemory:
    path: MemoryPath
    content: str
    updated_at: datetime | None
    token_estimate: int
    tags: list[str] = field(default_factory=list)


@dataclass
class ListedMemory:
    """Index entry joined with the record's expiry."""

    path: MemoryPath
    token_estimate: int
    is_expired: bool
    summary: str | None = None
    expires_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class MemoryListing:
    category: CategoryPath
    memories: list[ListedMemory] = field(default_factory=list)
    subcategories: list[SubcategoryEntry] = field(default_factory=list)


@dataclass
class CreateCategoryResult:
    path: str
    created: bool


@dataclass
class DeleteCategoryResult:
    path: str
    deleted: bool


@dataclass
class SetDescriptionResult:
    path: str
    description: str | None
