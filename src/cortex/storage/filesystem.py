"""Filesystem storage adapter.

Layout under a store root::

    <root>/
      index.yaml                  # lists top-level categories
      standards/
        index.yaml
        style.md                  # memory standards/style
        typescript/
          index.yaml
          strict-mode.md

Blocking file I/O runs through ``asyncio.to_thread``. There is no locking:
one writer per store, last write wins.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
from pathlib import Path

from cortex.errors import CategoryError, StorageError
from cortex.index import engine
from cortex.paths import CategoryPath, MemoryPath
from cortex.result import Err, Ok, Result
from cortex.storage.base import DirectoryListing, RecordSummary
from cortex.storage.serialization import parse_index, parse_memory, serialize_index, serialize_memory
from cortex.types import Category, Memory, ReindexResult, estimate_tokens

logger = logging.getLogger(__name__)

MEMORY_EXTENSION = ".md"
INDEX_FILE = "index.yaml"


def _io_error(code: str, action: str, target: Path, e: OSError) -> Err:
    return Err(StorageError(code=code, message=f"Failed to {action} {target}: {e}", path=str(target), cause=e))


def _encoding_error(code: str, target: Path, e: UnicodeDecodeError) -> Err:
    return Err(StorageError(code=code, message=f"{target} is not valid UTF-8: {e.reason}", path=str(target), cause=e))


def _as_category_error(result: Result, path: CategoryPath) -> Result[None, CategoryError]:
    if result.ok:
        return Ok(None)
    return Err(
        CategoryError(
            code="STORAGE_ERROR",
            message=result.error.message,
            path=str(path),
            cause=result.error,
        )
    )


class FilesystemMemoryStorage:
    def __init__(self, adapter: FilesystemStorageAdapter) -> None:
        self._adapter = adapter

    async def read(self, path: MemoryPath) -> Result[Memory | None, StorageError]:
        file = self._adapter.memory_file(path)
        try:
            text = await asyncio.to_thread(_read_if_exists, file)
        except UnicodeDecodeError as e:
            return _encoding_error("INVALID_FRONTMATTER", file, e)
        except OSError as e:
            return _io_error("IO_READ_ERROR", "read memory", file, e)
        if text is None:
            return Ok(None)
        return parse_memory(path, text)

    async def write(self, memory: Memory) -> Result[None, StorageError]:
        file = self._adapter.memory_file(memory.path)
        try:
            await asyncio.to_thread(_write_text, file, serialize_memory(memory))
        except OSError as e:
            return _io_error("IO_WRITE_ERROR", "write memory", file, e)
        logger.debug("Wrote memory file %s", file)
        return Ok(None)

    async def remove(self, path: MemoryPath) -> Result[None, StorageError]:
        file = self._adapter.memory_file(path)
        try:
            await asyncio.to_thread(file.unlink, True)
        except OSError as e:
            return _io_error("IO_WRITE_ERROR", "remove memory", file, e)
        return Ok(None)

    async def move(self, source: MemoryPath, destination: MemoryPath) -> Result[None, StorageError]:
        src = self._adapter.memory_file(source)
        dst = self._adapter.memory_file(destination)
        try:
            await asyncio.to_thread(_rename, src, dst)
        except OSError as e:
            return _io_error("IO_WRITE_ERROR", "move memory", src, e)
        return Ok(None)


class FilesystemIndexStorage:
    def __init__(self, adapter: FilesystemStorageAdapter) -> None:
        self._adapter = adapter

    async def read(self, path: CategoryPath) -> Result[Category | None, StorageError]:
        file = self._adapter.index_file(path)
        try:
            text = await asyncio.to_thread(_read_if_exists, file)
        except UnicodeDecodeError as e:
            return _encoding_error("INDEX_ERROR", file, e)
        except OSError as e:
            return _io_error("IO_READ_ERROR", "read index", file, e)
        if text is None:
            return Ok(None)
        return parse_index(text, str(file), owner=path)

    async def write(self, path: CategoryPath, category: Category) -> Result[None, StorageError]:
        file = self._adapter.index_file(path)
        try:
            await asyncio.to_thread(_write_text, file, serialize_index(category))
        except OSError as e:
            return _io_error("IO_WRITE_ERROR", "write index", file, e)
        return Ok(None)

    async def reindex(self) -> Result[ReindexResult, StorageError]:
        return await engine.reindex_store(self._adapter.tree, self)

    async def update_after_memory_write(self, memory: Memory) -> Result[None, StorageError]:
        return await engine.apply_memory_write(self, memory)


class FilesystemCategoryStorage:
    def __init__(self, adapter: FilesystemStorageAdapter) -> None:
        self._adapter = adapter

    async def exists(self, path: CategoryPath) -> Result[bool, CategoryError]:
        if path.is_root:
            return Ok(True)
        directory = self._adapter.category_dir(path)
        return Ok(await asyncio.to_thread(directory.is_dir))

    async def ensure(self, path: CategoryPath) -> Result[None, CategoryError]:
        directory = self._adapter.category_dir(path)
        try:
            await asyncio.to_thread(directory.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            return Err(
                CategoryError(
                    code="STORAGE_ERROR",
                    message=f"Failed to create {directory}: {e}",
                    path=str(path),
                    cause=e,
                )
            )
        registered = await engine.register_subcategory(self._adapter.indexes, path)
        return _as_category_error(registered, path)

    async def delete(self, path: CategoryPath) -> Result[None, CategoryError]:
        directory = self._adapter.category_dir(path)
        try:
            await asyncio.to_thread(shutil.rmtree, directory, ignore_errors=False)
        except FileNotFoundError:
            return Ok(None)
        except OSError as e:
            return Err(
                CategoryError(
                    code="STORAGE_ERROR",
                    message=f"Failed to delete {directory}: {e}",
                    path=str(path),
                    cause=e,
                )
            )
        return Ok(None)

    async def update_subcategory_description(
        self, path: CategoryPath, description: str | None
    ) -> Result[None, CategoryError]:
        updated = await engine.set_subcategory_description(self._adapter.indexes, path, description)
        return _as_category_error(updated, path)

    async def remove_subcategory_entry(self, path: CategoryPath) -> Result[None, CategoryError]:
        dropped = await engine.drop_subcategory_entry(self._adapter.indexes, path)
        return _as_category_error(dropped, path)


class FilesystemStorageTree:
    """Raw directory walk used by reindex."""

    def __init__(self, adapter: FilesystemStorageAdapter) -> None:
        self._adapter = adapter

    async def list_children(self, category: CategoryPath) -> Result[DirectoryListing, StorageError]:
        directory = self._adapter.category_dir(category)
        try:
            return Ok(await asyncio.to_thread(_list_directory, directory))
        except OSError as e:
            return _io_error("IO_READ_ERROR", "list", directory, e)

    async def rename_record(self, category: CategoryPath, raw_name: str, slug: str) -> Result[None, StorageError]:
        directory = self._adapter.category_dir(category)
        src = directory / f"{raw_name}{MEMORY_EXTENSION}"
        try:
            await asyncio.to_thread(_rename, src, directory / f"{slug}{MEMORY_EXTENSION}")
        except OSError as e:
            return _io_error("IO_WRITE_ERROR", "rename", src, e)
        logger.info("Renamed %s -> %s%s", src, slug, MEMORY_EXTENSION)
        return Ok(None)

    async def rename_directory(self, category: CategoryPath, raw_name: str, slug: str) -> Result[None, StorageError]:
        directory = self._adapter.category_dir(category)
        src = directory / raw_name
        try:
            await asyncio.to_thread(_rename, src, directory / slug)
        except OSError as e:
            return _io_error("IO_WRITE_ERROR", "rename", src, e)
        logger.info("Renamed %s -> %s", src, slug)
        return Ok(None)

    async def describe_record(self, path: MemoryPath) -> Result[RecordSummary, StorageError]:
        file = self._adapter.memory_file(path)
        try:
            raw = await asyncio.to_thread(file.read_bytes)
        except OSError as e:
            return _io_error("IO_READ_ERROR", "read memory", file, e)

        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            return Ok(
                RecordSummary(
                    token_estimate=estimate_tokens(raw.decode("utf-8", errors="replace")),
                    warning=f"Unparseable: {path} (not valid UTF-8)",
                )
            )
        parsed = parse_memory(path, text)
        if not parsed.ok:
            return Ok(
                RecordSummary(
                    token_estimate=estimate_tokens(text),
                    warning=f"Unparseable: {path} ({parsed.error.code}: {parsed.error.message})",
                )
            )
        memory = parsed.value
        return Ok(RecordSummary(token_estimate=estimate_tokens(memory.content), updated_at=memory.metadata.updated_at))


class FilesystemStorageAdapter:
    """Storage adapter over one store root directory."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root).expanduser()
        self._memories = FilesystemMemoryStorage(self)
        self._indexes = FilesystemIndexStorage(self)
        self._categories = FilesystemCategoryStorage(self)
        self._tree = FilesystemStorageTree(self)

    def __repr__(self) -> str:
        return f"FilesystemStorageAdapter({str(self.root)!r})"

    @property
    def memories(self) -> FilesystemMemoryStorage:
        return self._memories

    @property
    def indexes(self) -> FilesystemIndexStorage:
        return self._indexes

    @property
    def categories(self) -> FilesystemCategoryStorage:
        return self._categories

    @property
    def tree(self) -> FilesystemStorageTree:
        return self._tree

    # ── Path mapping ──────────────────────────────────────────

    def category_dir(self, path: CategoryPath) -> Path:
        return self.root.joinpath(*path.segments)

    def memory_file(self, path: MemoryPath) -> Path:
        return self.category_dir(path.category) / f"{path.slug}{MEMORY_EXTENSION}"

    def index_file(self, path: CategoryPath) -> Path:
        return self.category_dir(path) / INDEX_FILE


# ── Blocking helpers (run in worker threads) ──────────────────


def _read_if_exists(file: Path) -> str | None:
    if not file.is_file():
        return None
    return file.read_text(encoding="utf-8")


def _write_text(file: Path, text: str) -> None:
    file.parent.mkdir(parents=True, exist_ok=True)
    file.write_text(text, encoding="utf-8")


def _rename(src: Path, dst: Path) -> None:
    dst.parent.mkdir(parents=True, exist_ok=True)
    src.rename(dst)


def _list_directory(directory: Path) -> DirectoryListing:
    listing = DirectoryListing()
    if not directory.is_dir():
        return listing
    for entry in directory.iterdir():
        if entry.name.startswith("."):
            continue
        if entry.is_dir():
            listing.directories.append(entry.name)
        elif entry.is_file() and entry.suffix == MEMORY_EXTENSION:
            listing.records.append(entry.stem)
    return listing
