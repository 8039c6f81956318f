"""Navigation clients: cheap handles over a path and a lazily resolved store.

Building a handle never fails. ``get_category`` and ``parent`` are plain
path arithmetic; the path is parsed, and the store resolved, only when an
async operation runs::

    standards = store.root_category().get_category("standards")
    style = standards.get_memory("style")
    result = await style.get()
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from cortex.category import operations as categories
from cortex.errors import CategoryError, MemoryRecordError, StoreError
from cortex.memory import operations as memories
from cortex.memory.operations import UNSET
from cortex.paths import SEPARATOR, CategoryPath, MemoryPath, normalize_path
from cortex.result import Err, Ok, Result
from cortex.storage.base import StorageAdapter
from cortex.types import (
    CategoryMemoryEntry,
    CreateCategoryResult,
    DeleteCategoryResult,
    Memory,
    MemoryListing,
    PruneResult,
    RecentMemory,
    ReindexResult,
    SetDescriptionResult,
    SubcategoryEntry,
)

# Resolves the store's adapter on first use.
AdapterResolver = Callable[[], Result[StorageAdapter, StoreError]]


def _join(base: str, relative: str) -> str:
    relative = relative.lstrip(SEPARATOR)
    if base == SEPARATOR:
        return normalize_path(SEPARATOR + relative)
    return normalize_path(f"{base}{SEPARATOR}{relative}")


class CategoryClient:
    """Handle on one category of one store."""

    def __init__(self, raw_path: str, resolve_adapter: AdapterResolver) -> None:
        self.raw_path = normalize_path(raw_path)
        self._resolve = resolve_adapter

    def __repr__(self) -> str:
        return f"CategoryClient({self.raw_path!r})"

    # ── Navigation (synchronous) ──────────────────────────────

    def get_category(self, relative: str) -> CategoryClient:
        return CategoryClient(_join(self.raw_path, relative), self._resolve)

    def parent(self) -> CategoryClient | None:
        if self.raw_path == SEPARATOR:
            return None
        head = self.raw_path.rsplit(SEPARATOR, 1)[0]
        return CategoryClient(head or SEPARATOR, self._resolve)

    def get_memory(self, slug: str) -> MemoryClient:
        return MemoryClient(_join(self.raw_path, slug), self._resolve)

    def parse_path(self) -> Result[CategoryPath, CategoryError]:
        return CategoryPath.parse(self.raw_path)

    # ── Operations ────────────────────────────────────────────

    def _adapter(self) -> Result[StorageAdapter, CategoryError]:
        parsed = self.parse_path()
        if not parsed.ok:
            return parsed
        resolved = self._resolve()
        if not resolved.ok:
            return Err(
                CategoryError(
                    code="STORE_NOT_FOUND",
                    message=resolved.error.message,
                    path=self.raw_path,
                    cause=resolved.error,
                )
            )
        return resolved

    async def create(self) -> Result[CreateCategoryResult, CategoryError]:
        adapter = self._adapter()
        if not adapter.ok:
            return adapter
        return await categories.create_category(adapter.value, self.raw_path)

    async def delete(self) -> Result[DeleteCategoryResult, CategoryError]:
        adapter = self._adapter()
        if not adapter.ok:
            return adapter
        return await categories.delete_category(adapter.value, self.raw_path)

    async def exists(self) -> Result[bool, CategoryError]:
        adapter = self._adapter()
        if not adapter.ok:
            return adapter
        return await categories.category_exists(adapter.value, self.raw_path)

    async def set_description(self, description: str) -> Result[SetDescriptionResult, CategoryError]:
        adapter = self._adapter()
        if not adapter.ok:
            return adapter
        return await categories.set_description(adapter.value, self.raw_path, description)

    async def list_memories(self, include_expired: bool = False) -> Result[list[CategoryMemoryEntry], CategoryError]:
        adapter = self._adapter()
        if not adapter.ok:
            return adapter
        return await categories.list_memories(adapter.value, self.raw_path, include_expired=include_expired)

    async def list_subcategories(self) -> Result[list[SubcategoryEntry], CategoryError]:
        adapter = self._adapter()
        if not adapter.ok:
            return adapter
        return await categories.list_subcategories(adapter.value, self.raw_path)

    async def reindex(self) -> Result[ReindexResult, CategoryError]:
        """Rebuild every index in the store, not just this subtree."""
        adapter = self._adapter()
        if not adapter.ok:
            return adapter
        return await categories.reindex_store(adapter.value)

    async def prune(self, dry_run: bool = False, now: datetime | None = None) -> Result[PruneResult, CategoryError]:
        """Remove expired memories store-wide."""
        adapter = self._adapter()
        if not adapter.ok:
            return adapter
        return await memories.prune_expired_memories(adapter.value, dry_run=dry_run, now=now)

    async def get_recent(
        self,
        limit: int = memories.DEFAULT_RECENT_LIMIT,
        include_expired: bool = False,
        now: datetime | None = None,
    ) -> Result[list[RecentMemory], CategoryError]:
        adapter = self._adapter()
        if not adapter.ok:
            return adapter
        return await memories.get_recent_memories(
            adapter.value, self.raw_path, limit=limit, include_expired=include_expired, now=now
        )

    async def list_tree(
        self, include_expired: bool = False, now: datetime | None = None
    ) -> Result[MemoryListing, CategoryError]:
        """Memories of this whole subtree; from the root, every category."""
        adapter = self._adapter()
        if not adapter.ok:
            return adapter
        return await memories.list_memory_tree(
            adapter.value, self.raw_path, include_expired=include_expired, now=now
        )


class MemoryClient:
    """Handle on one memory path of one store."""

    def __init__(self, raw_path: str, resolve_adapter: AdapterResolver) -> None:
        self.raw_path = normalize_path(raw_path)
        self._resolve = resolve_adapter

    def __repr__(self) -> str:
        return f"MemoryClient({self.raw_path!r})"

    def parse_path(self) -> Result[MemoryPath, MemoryRecordError]:
        return MemoryPath.parse(self.raw_path)

    def category(self) -> CategoryClient:
        head = self.raw_path.rsplit(SEPARATOR, 1)[0]
        return CategoryClient(head or SEPARATOR, self._resolve)

    def _adapter(self) -> Result[StorageAdapter, MemoryRecordError]:
        parsed = self.parse_path()
        if not parsed.ok:
            return parsed
        resolved = self._resolve()
        if not resolved.ok:
            return Err(
                MemoryRecordError(
                    code="STORE_NOT_FOUND",
                    message=resolved.error.message,
                    path=self.raw_path,
                    cause=resolved.error,
                )
            )
        return resolved

    async def create(
        self,
        content: str,
        *,
        source: str = "user",
        tags: list[str] | None = None,
        citations: list[str] | None = None,
        expires_at: datetime | None = None,
        now: datetime | None = None,
    ) -> Result[Memory, MemoryRecordError]:
        adapter = self._adapter()
        if not adapter.ok:
            return adapter
        return await memories.create_memory(
            adapter.value,
            self.raw_path,
            content,
            source=source,
            tags=tags,
            citations=citations,
            expires_at=expires_at,
            now=now,
        )

    async def get(self, include_expired: bool = False, now: datetime | None = None) -> Result[Memory, MemoryRecordError]:
        adapter = self._adapter()
        if not adapter.ok:
            return adapter
        return await memories.get_memory(adapter.value, self.raw_path, include_expired=include_expired, now=now)

    async def update(
        self,
        *,
        content=UNSET,
        tags=UNSET,
        citations=UNSET,
        expires_at=UNSET,
        now: datetime | None = None,
    ) -> Result[Memory, MemoryRecordError]:
        adapter = self._adapter()
        if not adapter.ok:
            return adapter
        return await memories.update_memory(
            adapter.value,
            self.raw_path,
            content=content,
            tags=tags,
            citations=citations,
            expires_at=expires_at,
            now=now,
        )

    async def delete(self) -> Result[None, MemoryRecordError]:
        adapter = self._adapter()
        if not adapter.ok:
            return adapter
        return await memories.remove_memory(adapter.value, self.raw_path)

    async def exists(self) -> Result[bool, MemoryRecordError]:
        adapter = self._adapter()
        if not adapter.ok:
            return adapter
        return await memories.memory_exists(adapter.value, self.raw_path)

    async def move(self, destination: str) -> Result[MemoryClient, MemoryRecordError]:
        """Move to ``destination`` (a store-relative path); returns its handle."""
        adapter = self._adapter()
        if not adapter.ok:
            return adapter
        moved = await memories.move_memory(adapter.value, self.raw_path, destination)
        if not moved.ok:
            return moved
        return Ok(MemoryClient(str(moved.value), self._resolve))
