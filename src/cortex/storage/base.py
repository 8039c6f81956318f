"""Storage port: the protocols the engine and the operations consume.

The core ships no default implementation. Callers inject a concrete adapter
(see ``cortex.storage.filesystem``) or an adapter factory on ``Cortex``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

from cortex.errors import CategoryError, StorageError
from cortex.paths import CategoryPath, MemoryPath
from cortex.result import Result
from cortex.types import Category, Memory, ReindexResult


@runtime_checkable
class MemoryStorage(Protocol):
    """Record-level access to memories."""

    async def read(self, path: MemoryPath) -> Result[Memory | None, StorageError]:
        """Load a memory, or ``None`` if no record exists at ``path``."""
        ...

    async def write(self, memory: Memory) -> Result[None, StorageError]: ...

    async def remove(self, path: MemoryPath) -> Result[None, StorageError]: ...

    async def move(self, source: MemoryPath, destination: MemoryPath) -> Result[None, StorageError]: ...


@runtime_checkable
class IndexStorage(Protocol):
    """Per-category index files."""

    async def read(self, path: CategoryPath) -> Result[Category | None, StorageError]:
        """Load an index; ``None`` means no index yet (an empty category)."""
        ...

    async def write(self, path: CategoryPath, category: Category) -> Result[None, StorageError]: ...

    async def reindex(self) -> Result[ReindexResult, StorageError]:
        """Rebuild every index in the store from the records on disk."""
        ...

    async def update_after_memory_write(self, memory: Memory) -> Result[None, StorageError]:
        """Upsert the owning category's entry for ``memory``."""
        ...


@runtime_checkable
class CategoryStorage(Protocol):
    """Category containers and the entries parents keep about them."""

    async def exists(self, path: CategoryPath) -> Result[bool, CategoryError]: ...

    async def ensure(self, path: CategoryPath) -> Result[None, CategoryError]: ...

    async def delete(self, path: CategoryPath) -> Result[None, CategoryError]: ...

    async def update_subcategory_description(
        self, path: CategoryPath, description: str | None
    ) -> Result[None, CategoryError]: ...

    async def remove_subcategory_entry(self, path: CategoryPath) -> Result[None, CategoryError]: ...


@runtime_checkable
class StorageAdapter(Protocol):
    """One store's storage, as handed to the operations."""

    @property
    def memories(self) -> MemoryStorage: ...

    @property
    def indexes(self) -> IndexStorage: ...

    @property
    def categories(self) -> CategoryStorage: ...


# Builds the adapter for a store root; injected into ``Cortex``.
AdapterFactory = Callable[[Path], StorageAdapter]


# ── Directory walk surface used by the reindex engine ─────────


@dataclass
class DirectoryListing:
    """Raw on-disk names of a category's direct children."""

    records: list[str] = field(default_factory=list)
    directories: list[str] = field(default_factory=list)


@dataclass
class RecordSummary:
    """What the index needs to know about one record."""

    token_estimate: int
    updated_at: datetime | None = None
    warning: str | None = None


@runtime_checkable
class StorageTree(Protocol):
    """Raw directory access for a full rebuild.

    Names are the on-disk names without the record extension; they are not
    normalized. ``category`` is always a canonical path.
    """

    async def list_children(self, category: CategoryPath) -> Result[DirectoryListing, StorageError]: ...

    async def rename_record(
        self, category: CategoryPath, raw_name: str, slug: str
    ) -> Result[None, StorageError]: ...

    async def rename_directory(
        self, category: CategoryPath, raw_name: str, slug: str
    ) -> Result[None, StorageError]: ...

    async def describe_record(self, path: MemoryPath) -> Result[RecordSummary, StorageError]: ...
