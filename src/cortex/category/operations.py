"""Category operations over an injected storage adapter.

All functions take the raw path string a caller supplied and parse it
first, so an invalid path always surfaces as ``INVALID_PATH`` before any
storage is touched.
"""

from __future__ import annotations

import logging

from cortex.errors import CategoryError, StorageError
from cortex.paths import CategoryPath, normalize_path
from cortex.result import Err, Ok, Result
from cortex.storage.base import StorageAdapter
from cortex.types import (
    MAX_DESCRIPTION_LENGTH,
    Category,
    CategoryMemoryEntry,
    CreateCategoryResult,
    DeleteCategoryResult,
    ReindexResult,
    SetDescriptionResult,
    SubcategoryEntry,
)

logger = logging.getLogger(__name__)


def _storage_error(error: StorageError, path: CategoryPath | str) -> Err:
    return Err(
        CategoryError(
            code="STORAGE_ERROR",
            message=f"Storage failure: {error.message}",
            path=str(path),
            cause=error,
        )
    )


async def _read_index(storage: StorageAdapter, path: CategoryPath) -> Result[Category, CategoryError]:
    read = await storage.indexes.read(path)
    if not read.ok:
        return _storage_error(read.error, path)
    return Ok(read.value or Category())


async def category_exists(storage: StorageAdapter, path: str) -> Result[bool, CategoryError]:
    parsed = CategoryPath.parse(path)
    if not parsed.ok:
        return parsed
    return await storage.categories.exists(parsed.value)


async def ensure_category_chain(storage: StorageAdapter, path: CategoryPath) -> Result[bool, CategoryError]:
    """Create ``path`` and any missing ancestors. Returns True if ``path`` was new."""
    exists = await storage.categories.exists(path)
    if not exists.ok:
        return exists
    if exists.value:
        return Ok(False)

    for ancestor in path.ancestors():
        found = await storage.categories.exists(ancestor)
        if not found.ok:
            return found
        if not found.value:
            ensured = await storage.categories.ensure(ancestor)
            if not ensured.ok:
                return ensured

    ensured = await storage.categories.ensure(path)
    if not ensured.ok:
        return ensured
    return Ok(True)


async def create_category(storage: StorageAdapter, path: str) -> Result[CreateCategoryResult, CategoryError]:
    """Create a category and its missing parents. Idempotent."""
    parsed = CategoryPath.parse(path)
    if not parsed.ok:
        return parsed
    category = parsed.value
    if category.is_root:
        return Err(CategoryError(code="INVALID_PATH", message="Cannot create the root category.", path=path))

    created = await ensure_category_chain(storage, category)
    if not created.ok:
        return created
    if created.value:
        logger.info("Created category %s", category)
    return Ok(CreateCategoryResult(path=str(category), created=created.value))


async def delete_category(storage: StorageAdapter, path: str) -> Result[DeleteCategoryResult, CategoryError]:
    """Recursively delete a category below the top level."""
    parsed = CategoryPath.parse(path)
    if not parsed.ok:
        return parsed
    category = parsed.value
    if category.depth <= 1:
        return Err(
            CategoryError(
                code="ROOT_CATEGORY_REJECTED",
                message=f"Cannot delete top-level category '{normalize_path(str(category))}'.",
                path=path,
            )
        )

    exists = await storage.categories.exists(category)
    if not exists.ok:
        return exists
    if not exists.value:
        return Err(
            CategoryError(
                code="CATEGORY_NOT_FOUND",
                message=f"Category not found: {category}",
                path=str(category),
            )
        )

    deleted = await storage.categories.delete(category)
    if not deleted.ok:
        return deleted
    dropped = await storage.categories.remove_subcategory_entry(category)
    if not dropped.ok:
        return dropped

    logger.info("Deleted category %s", category)
    return Ok(DeleteCategoryResult(path=str(category), deleted=True))


async def set_description(
    storage: StorageAdapter, path: str, description: str
) -> Result[SetDescriptionResult, CategoryError]:
    """Set or clear (empty text) the description kept in the parent index."""
    parsed = CategoryPath.parse(path)
    if not parsed.ok:
        return parsed
    category = parsed.value

    text = (description or "").strip()
    if len(text) > MAX_DESCRIPTION_LENGTH:
        return Err(
            CategoryError(
                code="DESCRIPTION_TOO_LONG",
                message=f"Description exceeds {MAX_DESCRIPTION_LENGTH} characters ({len(text)}).",
                path=str(category),
            )
        )
    if category.is_root:
        return Err(
            CategoryError(
                code="ROOT_CATEGORY_REJECTED",
                message="The root category has no parent index to hold a description.",
                path=path,
            )
        )

    exists = await storage.categories.exists(category)
    if not exists.ok:
        return exists
    if not exists.value:
        return Err(
            CategoryError(
                code="CATEGORY_NOT_FOUND",
                message=f"Category not found: {category}",
                path=str(category),
            )
        )

    value = text or None
    updated = await storage.categories.update_subcategory_description(category, value)
    if not updated.ok:
        return updated
    logger.info("%s description of %s", "Set" if value else "Cleared", category)
    return Ok(SetDescriptionResult(path=str(category), description=value))


async def list_memories(
    storage: StorageAdapter, path: str, include_expired: bool = False
) -> Result[list[CategoryMemoryEntry], CategoryError]:
    """Direct memory entries of a category.

    ``include_expired`` is accepted for symmetry with ``get``; index entries
    carry no expiry, so it has no effect.
    """
    parsed = CategoryPath.parse(path)
    if not parsed.ok:
        return parsed
    index = await _read_index(storage, parsed.value)
    if not index.ok:
        return index
    return Ok(list(index.value.memories))


async def list_subcategories(storage: StorageAdapter, path: str) -> Result[list[SubcategoryEntry], CategoryError]:
    parsed = CategoryPath.parse(path)
    if not parsed.ok:
        return parsed
    index = await _read_index(storage, parsed.value)
    if not index.ok:
        return index
    return Ok(list(index.value.subcategories))


async def reindex_store(storage: StorageAdapter) -> Result[ReindexResult, CategoryError]:
    """Store-wide rebuild; reachable from any category."""
    result = await storage.indexes.reindex()
    if not result.ok:
        return _storage_error(result.error, "/")
    return result
