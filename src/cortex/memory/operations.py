"""Memory operations: create/get/update/move/remove, prune, recent, listing.

Every mutation persists the record first and then applies the incremental
index update, so a crash in between leaves a record that ``reindex``
recovers. Storage failures are wrapped once as ``STORAGE_ERROR``; the
parse-level codes of a corrupt record pass through unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime

from cortex.category.operations import ensure_category_chain
from cortex.errors import PARSE_ERROR_CODES, CategoryError, MemoryRecordError, StorageError
from cortex.index import engine
from cortex.paths import CategoryPath, MemoryPath
from cortex.result import Err, Ok, Result
from cortex.storage.base import StorageAdapter
from cortex.types import (
    CategoryMemoryEntry,
    ListedMemory,
    Memory,
    MemoryListing,
    MemoryMetadata,
    PrunedMemory,
    PruneResult,
    RecentMemory,
    as_aware,
    estimate_tokens,
    utcnow,
)

logger = logging.getLogger(__name__)

DEFAULT_RECENT_LIMIT = 5


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


# Marks an update field as "not supplied" (distinct from an explicit None).
UNSET = _Unset()


# ── Error helpers ─────────────────────────────────────────────


def _wrap(error: StorageError, path: MemoryPath | str) -> Err:
    if error.code in PARSE_ERROR_CODES:
        return Err(
            MemoryRecordError(
                code=error.code,
                message=error.message,
                path=str(path),
                field=error.field,
                cause=error,
            )
        )
    return Err(
        MemoryRecordError(
            code="STORAGE_ERROR",
            message=f"Storage failure: {error.message}",
            path=str(path),
            cause=error,
        )
    )


def _from_category(error: CategoryError, path: MemoryPath) -> Err:
    return Err(
        MemoryRecordError(
            code="STORAGE_ERROR",
            message=f"Failed to prepare category: {error.message}",
            path=str(path),
            cause=error,
        )
    )


def _not_found(path: MemoryPath) -> Err:
    return Err(MemoryRecordError(code="MEMORY_NOT_FOUND", message=f"Memory not found: {path}", path=str(path)))


def _invalid_input(message: str, path: str, field: str | None = None) -> Err:
    return Err(MemoryRecordError(code="INVALID_INPUT", message=message, path=path, field=field))


def _check_strings(values: list[str] | None, field: str, path: str) -> Err | None:
    if values is None:
        return None
    if not isinstance(values, list) or not all(isinstance(v, str) and v.strip() for v in values):
        return _invalid_input(f"{field} must be a list of non-empty strings.", path, field)
    return None


# ── CRUD ──────────────────────────────────────────────────────


async def create_memory(
    storage: StorageAdapter,
    path: str,
    content: str,
    *,
    source: str = "user",
    tags: list[str] | None = None,
    citations: list[str] | None = None,
    expires_at: datetime | None = None,
    now: datetime | None = None,
) -> Result[Memory, MemoryRecordError]:
    """Create a memory; its category chain is created when missing."""
    parsed = MemoryPath.parse(path)
    if not parsed.ok:
        return parsed
    memory_path = parsed.value

    if not isinstance(content, str):
        return _invalid_input("content must be a string.", path, "content")
    if not isinstance(source, str) or not source.strip():
        return _invalid_input("source must be a non-empty string.", path, "source")
    if expires_at is not None and not isinstance(expires_at, datetime):
        return _invalid_input("expires_at must be a datetime or None.", path, "expires_at")
    for values, field in ((tags, "tags"), (citations, "citations")):
        bad = _check_strings(values, field, path)
        if bad is not None:
            return bad

    existing = await storage.memories.read(memory_path)
    if not existing.ok and existing.error.code not in PARSE_ERROR_CODES:
        return _wrap(existing.error, memory_path)
    if not existing.ok or existing.value is not None:
        return Err(
            MemoryRecordError(
                code="DESTINATION_EXISTS",
                message=f"Memory already exists: {memory_path}",
                path=str(memory_path),
            )
        )

    ensured = await ensure_category_chain(storage, memory_path.category)
    if not ensured.ok:
        return _from_category(ensured.error, memory_path)

    timestamp = now or utcnow()
    memory = Memory(
        path=memory_path,
        content=content,
        metadata=MemoryMetadata(
            created_at=timestamp,
            updated_at=timestamp,
            tags=list(tags or []),
            source=source.strip(),
            citations=list(citations or []),
            expires_at=expires_at,
        ),
    )

    written = await storage.memories.write(memory)
    if not written.ok:
        return _wrap(written.error, memory_path)
    indexed = await storage.indexes.update_after_memory_write(memory)
    if not indexed.ok:
        return _wrap(indexed.error, memory_path)

    logger.info("Created memory %s", memory_path)
    return Ok(memory)


async def get_memory(
    storage: StorageAdapter,
    path: str,
    include_expired: bool = False,
    now: datetime | None = None,
) -> Result[Memory, MemoryRecordError]:
    parsed = MemoryPath.parse(path)
    if not parsed.ok:
        return parsed
    read = await storage.memories.read(parsed.value)
    if not read.ok:
        return _wrap(read.error, parsed.value)
    memory = read.value
    if memory is None:
        return _not_found(parsed.value)
    if not include_expired and memory.is_expired(now or utcnow()):
        return Err(
            MemoryRecordError(
                code="MEMORY_EXPIRED",
                message=f"Memory has expired: {parsed.value}",
                path=str(parsed.value),
            )
        )
    return Ok(memory)


async def memory_exists(storage: StorageAdapter, path: str) -> Result[bool, MemoryRecordError]:
    """True if a record is stored at ``path``, expired or not."""
    parsed = MemoryPath.parse(path)
    if not parsed.ok:
        return parsed
    read = await storage.memories.read(parsed.value)
    if not read.ok:
        if read.error.code in PARSE_ERROR_CODES:
            return Ok(True)
        return _wrap(read.error, parsed.value)
    return Ok(read.value is not None)


async def update_memory(
    storage: StorageAdapter,
    path: str,
    *,
    content=UNSET,
    tags=UNSET,
    citations=UNSET,
    expires_at=UNSET,
    now: datetime | None = None,
) -> Result[Memory, MemoryRecordError]:
    """Change only the supplied fields.

    ``expires_at=None`` clears the expiry; leaving it out keeps it.
    ``updated_at`` is always refreshed.
    """
    parsed = MemoryPath.parse(path)
    if not parsed.ok:
        return parsed
    memory_path = parsed.value

    if all(value is UNSET for value in (content, tags, citations, expires_at)):
        return _invalid_input(
            "No updates provided. Supply content, tags, citations or expires_at.",
            str(memory_path),
        )
    if content is not UNSET and not isinstance(content, str):
        return _invalid_input("content must be a string.", str(memory_path), "content")
    if expires_at is not UNSET and expires_at is not None and not isinstance(expires_at, datetime):
        return _invalid_input("expires_at must be a datetime or None.", str(memory_path), "expires_at")
    for values, field in ((tags, "tags"), (citations, "citations")):
        if values is not UNSET:
            bad = _check_strings(values, field, str(memory_path))
            if bad is not None:
                return bad

    read = await storage.memories.read(memory_path)
    if not read.ok:
        return _wrap(read.error, memory_path)
    if read.value is None:
        return _not_found(memory_path)
    current = read.value

    metadata = replace(current.metadata, updated_at=now or utcnow())
    if tags is not UNSET:
        metadata.tags = list(tags or [])
    if citations is not UNSET:
        metadata.citations = list(citations or [])
    if expires_at is not UNSET:
        metadata.expires_at = expires_at
    updated = Memory(
        path=memory_path,
        content=current.content if content is UNSET else content,
        metadata=metadata,
    )

    written = await storage.memories.write(updated)
    if not written.ok:
        return _wrap(written.error, memory_path)
    indexed = await storage.indexes.update_after_memory_write(updated)
    if not indexed.ok:
        return _wrap(indexed.error, memory_path)

    logger.info("Updated memory %s", memory_path)
    return Ok(updated)


async def move_memory(storage: StorageAdapter, source: str, destination: str) -> Result[MemoryPath, MemoryRecordError]:
    """Move a memory, possibly across categories. Returns the destination path."""
    src = MemoryPath.parse(source)
    if not src.ok:
        return src
    dst = MemoryPath.parse(destination)
    if not dst.ok:
        return dst
    src_path, dst_path = src.value, dst.value

    if src_path == dst_path:
        return Ok(dst_path)

    read = await storage.memories.read(src_path)
    if not read.ok:
        return _wrap(read.error, src_path)
    if read.value is None:
        return _not_found(src_path)

    target = await storage.memories.read(dst_path)
    if not target.ok and target.error.code not in PARSE_ERROR_CODES:
        return _wrap(target.error, dst_path)
    if not target.ok or target.value is not None:
        return Err(
            MemoryRecordError(
                code="DESTINATION_EXISTS",
                message=f"Destination already exists: {dst_path}",
                path=str(dst_path),
            )
        )

    ensured = await ensure_category_chain(storage, dst_path.category)
    if not ensured.ok:
        return _from_category(ensured.error, dst_path)

    moved = await storage.memories.move(src_path, dst_path)
    if not moved.ok:
        return _wrap(moved.error, src_path)
    removed = await engine.apply_memory_removal(storage.indexes, src_path)
    if not removed.ok:
        return _wrap(removed.error, src_path)
    indexed = await storage.indexes.update_after_memory_write(replace(read.value, path=dst_path))
    if not indexed.ok:
        return _wrap(indexed.error, dst_path)

    logger.info("Moved memory %s -> %s", src_path, dst_path)
    return Ok(dst_path)


async def remove_memory(storage: StorageAdapter, path: str) -> Result[None, MemoryRecordError]:
    """Delete a memory. Corrupt records can still be removed."""
    parsed = MemoryPath.parse(path)
    if not parsed.ok:
        return parsed
    memory_path = parsed.value

    read = await storage.memories.read(memory_path)
    if not read.ok and read.error.code not in PARSE_ERROR_CODES:
        return _wrap(read.error, memory_path)
    if read.ok and read.value is None:
        return _not_found(memory_path)

    removed = await storage.memories.remove(memory_path)
    if not removed.ok:
        return _wrap(removed.error, memory_path)
    dropped = await engine.apply_memory_removal(storage.indexes, memory_path)
    if not dropped.ok:
        return _wrap(dropped.error, memory_path)

    logger.info("Removed memory %s", memory_path)
    return Ok(None)


# ── Store-wide scans ──────────────────────────────────────────


def _scan_error(error: StorageError, scope: CategoryPath) -> Err:
    return Err(
        CategoryError(
            code="STORAGE_ERROR",
            message=f"Storage failure: {error.message}",
            path=str(scope),
            cause=error,
        )
    )


async def _collect_entries(
    storage: StorageAdapter, scope: CategoryPath
) -> Result[list[CategoryMemoryEntry], StorageError]:
    """Every memory entry in the indexes at and below ``scope``."""
    entries: list[CategoryMemoryEntry] = []
    visited: set[CategoryPath] = set()
    pending = [scope]
    while pending:
        current = pending.pop()
        if current in visited:
            continue
        visited.add(current)
        read = await storage.indexes.read(current)
        if not read.ok:
            return read
        if read.value is None:
            continue
        entries.extend(read.value.memories)
        pending.extend(sub.path for sub in read.value.subcategories)
    return Ok(entries)


async def _load_for_scan(storage: StorageAdapter, path: MemoryPath) -> Result[Memory | None, StorageError]:
    """Read a memory named by an index; stale or corrupt entries yield None."""
    read = await storage.memories.read(path)
    if not read.ok:
        if read.error.code in PARSE_ERROR_CODES:
            logger.warning("Skipping unreadable memory %s: %s", path, read.error.message)
            return Ok(None)
        return read
    return read


async def prune_expired_memories(
    storage: StorageAdapter,
    dry_run: bool = False,
    now: datetime | None = None,
) -> Result[PruneResult, CategoryError]:
    """Remove every expired memory in the store.

    Store-wide regardless of where it is invoked from. A real run finishes
    with a full reindex; a dry run touches nothing.
    """
    root = CategoryPath.root()
    cutoff = now or utcnow()

    entries = await _collect_entries(storage, root)
    if not entries.ok:
        return _scan_error(entries.error, root)

    expired: list[PrunedMemory] = []
    for entry in entries.value:
        loaded = await _load_for_scan(storage, entry.path)
        if not loaded.ok:
            return _scan_error(loaded.error, root)
        memory = loaded.value
        if memory is not None and memory.is_expired(cutoff):
            expired.append(PrunedMemory(path=memory.path, expires_at=memory.metadata.expires_at))

    if dry_run:
        logger.info("Prune dry run: %d expired memories", len(expired))
        return Ok(PruneResult(pruned=expired))

    for item in expired:
        removed = await storage.memories.remove(item.path)
        if not removed.ok:
            return _scan_error(removed.error, root)
        logger.info("Pruned memory %s (expired %s)", item.path, item.expires_at.isoformat())

    reindexed = await storage.indexes.reindex()
    if not reindexed.ok:
        return _scan_error(reindexed.error, root)
    return Ok(PruneResult(pruned=expired))


async def get_recent_memories(
    storage: StorageAdapter,
    path: str,
    limit: int = DEFAULT_RECENT_LIMIT,
    include_expired: bool = False,
    now: datetime | None = None,
) -> Result[list[RecentMemory], CategoryError]:
    """Most recently updated memories in a category subtree.

    Entries without an ``updated_at`` sort last.
    """
    parsed = CategoryPath.parse(path)
    if not parsed.ok:
        return parsed
    scope = parsed.value
    cutoff = now or utcnow()

    entries = await _collect_entries(storage, scope)
    if not entries.ok:
        return _scan_error(entries.error, scope)

    ordered = sorted(
        entries.value,
        key=lambda e: as_aware(e.updated_at).timestamp() if e.updated_at else float("-inf"),
        reverse=True,
    )

    recent: list[RecentMemory] = []
    for entry in ordered:
        if len(recent) >= limit:
            break
        loaded = await _load_for_scan(storage, entry.path)
        if not loaded.ok:
            return _scan_error(loaded.error, scope)
        memory = loaded.value
        if memory is None:
            continue
        if not include_expired and memory.is_expired(cutoff):
            continue
        recent.append(
            RecentMemory(
                path=memory.path,
                content=memory.content,
                updated_at=memory.metadata.updated_at,
                token_estimate=estimate_tokens(memory.content),
                tags=list(memory.metadata.tags),
            )
        )
    return Ok(recent)


async def list_memory_tree(
    storage: StorageAdapter,
    path: str | None = None,
    include_expired: bool = False,
    now: datetime | None = None,
) -> Result[MemoryListing, CategoryError]:
    """Every memory at and below a category, plus its direct subcategories.

    With no ``path`` the listing covers all top-level categories. Each
    entry is checked against its record for expiry; records that are gone
    or unreadable are left out.
    """
    parsed = CategoryPath.parse(path or "")
    if not parsed.ok:
        return parsed
    scope = parsed.value
    cutoff = now or utcnow()

    entries = await _collect_entries(storage, scope)
    if not entries.ok:
        return _scan_error(entries.error, scope)
    own = await storage.indexes.read(scope)
    if not own.ok:
        return _scan_error(own.error, scope)

    listing = MemoryListing(category=scope)
    if own.value is not None:
        listing.subcategories = list(own.value.subcategories)

    for entry in sorted(entries.value, key=lambda e: str(e.path)):
        loaded = await _load_for_scan(storage, entry.path)
        if not loaded.ok:
            return _scan_error(loaded.error, scope)
        memory = loaded.value
        if memory is None:
            continue
        expired = memory.is_expired(cutoff)
        if expired and not include_expired:
            continue
        listing.memories.append(
            ListedMemory(
                path=entry.path,
                token_estimate=entry.token_estimate,
                is_expired=expired,
                summary=entry.summary,
                expires_at=memory.metadata.expires_at,
                updated_at=entry.updated_at,
            )
        )
    return Ok(listing)
