"""Index consistency engine.

Each category directory carries an index of its *direct* children: one
entry per memory and one per subcategory (with a memory count and an
optional description). Two ways keep it honest:

* incremental edits after every write/remove, touching only the owning
  category's entry set plus the memory counts its ancestors keep;
* a full rebuild (``reindex_store``) that walks the storage tree and
  derives every index from the files actually present.

The engine holds no state between calls; everything durable lives behind
the storage port.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from cortex.errors import StorageError
from cortex.paths import CategoryPath, MemoryPath, is_canonical_slug, normalize_path, slugify
from cortex.result import Err, Ok, Result
from cortex.storage.base import IndexStorage, StorageTree
from cortex.types import (
    Category,
    CategoryMemoryEntry,
    Memory,
    ReindexResult,
    SubcategoryEntry,
)

logger = logging.getLogger(__name__)

# Slug used for on-disk names that normalize to nothing.
UNNAMED = "unnamed"

_KEEP = object()


# ── Pure index edits ──────────────────────────────────────────


def _sorted(category: Category) -> Category:
    return Category(
        memories=sorted(category.memories, key=lambda e: str(e.path)),
        subcategories=sorted(category.subcategories, key=lambda e: str(e.path)),
    )


def with_memory_entry(category: Category, entry: CategoryMemoryEntry) -> Category:
    """Insert or replace the entry for ``entry.path``; siblings untouched."""
    previous = next((e for e in category.memories if e.path == entry.path), None)
    if entry.summary is None and previous is not None and previous.summary:
        entry = replace(entry, summary=previous.summary)
    memories = [e for e in category.memories if e.path != entry.path]
    memories.append(entry)
    return _sorted(Category(memories=memories, subcategories=list(category.subcategories)))


def without_memory_entry(category: Category, path: MemoryPath) -> Category:
    return Category(
        memories=[e for e in category.memories if e.path != path],
        subcategories=list(category.subcategories),
    )


def with_subcategory_entry(
    category: Category,
    path: CategoryPath,
    memory_count: int,
    description=_KEEP,
) -> Category:
    """Insert or replace a subcategory entry.

    The existing description survives unless one is passed explicitly
    (``None`` clears it).
    """
    previous = next((e for e in category.subcategories if e.path == path), None)
    if description is _KEEP:
        description = previous.description if previous else None
    subcategories = [e for e in category.subcategories if e.path != path]
    subcategories.append(SubcategoryEntry(path=path, memory_count=memory_count, description=description))
    return _sorted(Category(memories=list(category.memories), subcategories=subcategories))


def without_subcategory_entry(category: Category, path: CategoryPath) -> Category:
    return Category(
        memories=list(category.memories),
        subcategories=[e for e in category.subcategories if e.path != path],
    )


# ── Incremental maintenance ───────────────────────────────────


async def _load(indexes: IndexStorage, path: CategoryPath) -> Result[Category, StorageError]:
    result = await indexes.read(path)
    if not result.ok:
        return result
    return Ok(result.value or Category())


async def _refresh_ancestors(
    indexes: IndexStorage, path: CategoryPath, memory_count: int
) -> Result[None, StorageError]:
    """Walk up from ``path``, upserting each level's entry in its parent."""
    child, count = path, memory_count
    while child.parent is not None:
        parent = child.parent
        loaded = await _load(indexes, parent)
        if not loaded.ok:
            return loaded
        updated = with_subcategory_entry(loaded.value, child, count)
        written = await indexes.write(parent, updated)
        if not written.ok:
            return written
        child, count = parent, len(updated.memories)
    return Ok(None)


async def apply_memory_write(indexes: IndexStorage, memory: Memory) -> Result[None, StorageError]:
    """Upsert ``memory``'s entry in its category and refresh ancestor counts."""
    category = memory.path.category
    loaded = await _load(indexes, category)
    if not loaded.ok:
        return loaded
    updated = with_memory_entry(loaded.value, memory.index_entry())
    written = await indexes.write(category, updated)
    if not written.ok:
        return written
    return await _refresh_ancestors(indexes, category, len(updated.memories))


async def apply_memory_removal(indexes: IndexStorage, path: MemoryPath) -> Result[None, StorageError]:
    """Drop ``path``'s entry from its category and refresh ancestor counts."""
    read = await indexes.read(path.category)
    if not read.ok:
        return read
    if read.value is None:
        return Ok(None)
    updated = without_memory_entry(read.value, path)
    written = await indexes.write(path.category, updated)
    if not written.ok:
        return written
    return await _refresh_ancestors(indexes, path.category, len(updated.memories))


async def register_subcategory(indexes: IndexStorage, path: CategoryPath) -> Result[None, StorageError]:
    """Make every ancestor index list its child on the way to ``path``."""
    if path.is_root:
        return Ok(None)
    loaded = await _load(indexes, path)
    if not loaded.ok:
        return loaded
    return await _refresh_ancestors(indexes, path, len(loaded.value.memories))


async def set_subcategory_description(
    indexes: IndexStorage, path: CategoryPath, description: str | None
) -> Result[None, StorageError]:
    """Store ``description`` on ``path``'s entry in its parent index."""
    parent = path.parent
    if parent is None:
        return Ok(None)
    own = await _load(indexes, path)
    if not own.ok:
        return own
    loaded = await _load(indexes, parent)
    if not loaded.ok:
        return loaded
    existing = next((e for e in loaded.value.subcategories if e.path == path), None)
    count = existing.memory_count if existing else len(own.value.memories)
    updated = with_subcategory_entry(loaded.value, path, count, description=description)
    return await indexes.write(parent, updated)


async def drop_subcategory_entry(indexes: IndexStorage, path: CategoryPath) -> Result[None, StorageError]:
    parent = path.parent
    if parent is None:
        return Ok(None)
    read = await indexes.read(parent)
    if not read.ok:
        return read
    if read.value is None:
        return Ok(None)
    return await indexes.write(parent, without_subcategory_entry(read.value, path))


# ── Full rebuild ──────────────────────────────────────────────


@dataclass
class NamePlan:
    """Where an on-disk name lands in the index."""

    raw: str
    slug: str

    @property
    def renamed(self) -> bool:
        return self.raw != self.slug


def _display(category: CategoryPath, name: str) -> str:
    return f"{category}/{name}" if not category.is_root else name


def plan_names(category: CategoryPath, raw_names: list[str]) -> tuple[list[NamePlan], list[str]]:
    """Assign a unique slug to each raw name in one directory.

    Names that are already canonical claim their slug first, in sorted
    order, so an existing ``foo-2`` keeps its name. The rest follow in
    sorted order; a taken slug gets the first free ``-2``, ``-3``, ...
    suffix. Names that normalize to nothing become ``unnamed``.
    """
    claimed: set[str] = set()
    plans: list[NamePlan] = []
    warnings: list[str] = []

    for name in sorted(n for n in raw_names if is_canonical_slug(n)):
        claimed.add(name)
        plans.append(NamePlan(raw=name, slug=name))

    for name in sorted(n for n in raw_names if not is_canonical_slug(n)):
        base = slugify(name)
        empty = not base
        if empty:
            base = UNNAMED
        slug = base
        counter = 2
        while slug in claimed:
            slug = f"{base}-{counter}"
            counter += 1
        claimed.add(slug)
        plans.append(NamePlan(raw=name, slug=slug))

        if empty:
            warnings.append(
                f"Empty slug: {_display(category, name)} normalizes to nothing, "
                f"indexed as {_display(category, slug)}"
            )
        elif slug != base:
            warnings.append(f"Collision: {_display(category, name)} indexed as {_display(category, slug)}")

    return plans, warnings


async def _rebuild(
    tree: StorageTree,
    indexes: IndexStorage,
    category: CategoryPath,
    warnings: list[str],
) -> Result[int, StorageError]:
    """Rebuild ``category`` and everything below it; returns its memory count."""
    listing = await tree.list_children(category)
    if not listing.ok:
        return listing

    previous = await indexes.read(category)
    if not previous.ok:
        warnings.append(
            f"Discarded unreadable index for '{normalize_path(str(category))}': {previous.error.message}"
        )
        old = Category()
    else:
        old = previous.value or Category()
    descriptions = {e.path: e.description for e in old.subcategories if e.description}
    summaries = {e.path: e.summary for e in old.memories if e.summary}

    rebuilt = Category()

    record_plans, record_warnings = plan_names(category, listing.value.records)
    warnings.extend(record_warnings)
    for plan in record_plans:
        if category.is_root:
            warnings.append(f"Skipped: {plan.raw} (memories must live inside a category)")
            continue
        if plan.renamed:
            moved = await tree.rename_record(category, plan.raw, plan.slug)
            if not moved.ok:
                return moved
        path = MemoryPath.of(category, plan.slug)
        described = await tree.describe_record(path)
        if not described.ok:
            return described
        if described.value.warning:
            warnings.append(described.value.warning)
        rebuilt.memories.append(
            CategoryMemoryEntry(
                path=path,
                token_estimate=described.value.token_estimate,
                summary=summaries.get(path),
                updated_at=described.value.updated_at,
            )
        )

    dir_plans, dir_warnings = plan_names(category, listing.value.directories)
    warnings.extend(dir_warnings)
    for plan in dir_plans:
        if plan.renamed:
            moved = await tree.rename_directory(category, plan.raw, plan.slug)
            if not moved.ok:
                return moved
        child = category.child(plan.slug)
        counted = await _rebuild(tree, indexes, child, warnings)
        if not counted.ok:
            return counted
        rebuilt.subcategories.append(
            SubcategoryEntry(path=child, memory_count=counted.value, description=descriptions.get(child))
        )

    written = await indexes.write(category, _sorted(rebuilt))
    if not written.ok:
        return written
    return Ok(len(rebuilt.memories))


async def reindex_store(tree: StorageTree, indexes: IndexStorage) -> Result[ReindexResult, StorageError]:
    """Rebuild every index in the store from ground truth.

    Visits every directory once (O(total files)); there is no partial mode.
    Warnings from all levels are returned together.
    """
    warnings: list[str] = []
    result = await _rebuild(tree, indexes, CategoryPath.root(), warnings)
    if not result.ok:
        logger.error("Reindex failed: %s", result.error.message)
        return Err(result.error)
    for warning in warnings:
        logger.warning("Reindex: %s", warning)
    logger.info("Reindex complete (%d warnings)", len(warnings))
    return Ok(ReindexResult(warnings=warnings))
