"""On-disk formats for the filesystem adapter.

Memories are markdown with YAML frontmatter::

    ---
    created_at: '2026-01-01T00:00:00+00:00'
    updated_at: '2026-01-01T00:00:00+00:00'
    tags: [style]
    source: user
    ---

    Prefer explicit return types.

Indexes are plain YAML (``index.yaml``) with ``memories`` and
``subcategories`` lists, keys in snake_case.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timezone
from typing import Any

import frontmatter
import yaml

from cortex.errors import StorageError
from cortex.paths import CategoryPath, MemoryPath
from cortex.result import Err, Ok, Result
from cortex.types import (
    Category,
    CategoryMemoryEntry,
    Memory,
    MemoryMetadata,
    SubcategoryEntry,
    as_aware,
)

logger = logging.getLogger(__name__)

_TIMESTAMP_FIELDS = ("created_at", "updated_at", "expires_at")

# Same boundary rule as python-frontmatter's YAML handler.
_DELIMITER = re.compile(r"^-{3,}[ \t]*\r?$", re.MULTILINE)


# ── Timestamps ────────────────────────────────────────────────


def format_timestamp(value: datetime) -> str:
    return as_aware(value).isoformat()


def parse_timestamp(value: Any) -> datetime | None:
    """Accept a datetime (YAML may already have parsed it) or an ISO string.

    Returns None when the value is not a usable timestamp.
    """
    if isinstance(value, datetime):
        return as_aware(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return as_aware(datetime.fromisoformat(text))
    except ValueError:
        return None


# ── Memory files ──────────────────────────────────────────────


def _field_error(code: str, field: str, message: str) -> Err:
    return Err(StorageError(code=code, message=message, field=field))


def serialize_memory(memory: Memory) -> str:
    meta = memory.metadata
    data: dict[str, Any] = {
        "created_at": format_timestamp(meta.created_at),
        "updated_at": format_timestamp(meta.updated_at or meta.created_at),
        "tags": list(meta.tags),
        "source": meta.source,
    }
    if meta.expires_at is not None:
        data["expires_at"] = format_timestamp(meta.expires_at)
    # Omitted when empty to keep files clean
    if meta.citations:
        data["citations"] = list(meta.citations)

    # The body is written verbatim after one blank separator line
    header = frontmatter.dumps(frontmatter.Post("", **data), sort_keys=False)
    return f"{header}\n\n{memory.content}"


def _strip_line_break(text: str) -> str:
    if text.startswith("\r\n"):
        return text[2:]
    if text.startswith("\n"):
        return text[1:]
    return text


def _body(text: str) -> str:
    """Everything after the closing delimiter, minus one blank separator line.

    ``frontmatter.loads`` strips the body, which would lose leading
    indentation and trailing newlines.
    """
    start = text.find("\n")
    closing = _DELIMITER.search(text, start + 1) if start != -1 else None
    if closing is None:
        return ""
    return _strip_line_break(_strip_line_break(text[closing.end():]))


def _parse_metadata(data: dict[str, Any]) -> Result[MemoryMetadata, StorageError]:
    stamps: dict[str, datetime | None] = {}
    for name in _TIMESTAMP_FIELDS:
        if name not in data or data[name] is None:
            if name == "expires_at":
                stamps[name] = None
                continue
            return _field_error("MISSING_FIELD", name, f"Missing required field '{name}'.")
        parsed = parse_timestamp(data[name])
        if parsed is None:
            return _field_error("INVALID_TIMESTAMP", name, f"Invalid timestamp in '{name}'.")
        stamps[name] = parsed

    tags = data.get("tags")
    if tags is None:
        tags = []
    if not isinstance(tags, list) or not all(isinstance(t, str) and t.strip() for t in tags):
        return _field_error("INVALID_TAGS", "tags", "Tags must be a list of non-empty strings.")

    if "source" not in data:
        return _field_error("MISSING_FIELD", "source", "Missing required field 'source'.")
    source = data["source"]
    if not isinstance(source, str) or not source.strip():
        return _field_error("INVALID_SOURCE", "source", "Source must be a non-empty string.")

    citations = data.get("citations")
    if citations is None:
        citations = []
    if not isinstance(citations, list) or not all(isinstance(c, str) and c for c in citations):
        return _field_error("INVALID_CITATIONS", "citations", "Citations must be a list of non-empty strings.")

    return Ok(
        MemoryMetadata(
            created_at=stamps["created_at"],
            updated_at=stamps["updated_at"],
            tags=list(tags),
            source=source.strip(),
            citations=list(citations),
            expires_at=stamps["expires_at"],
        )
    )


def parse_memory(path: MemoryPath, text: str) -> Result[Memory, StorageError]:
    """Parse a memory file; failures carry the parse-level error codes."""
    if not frontmatter.checks(text):
        return Err(
            StorageError(
                code="MISSING_FRONTMATTER",
                message="Memory file must start with '---' frontmatter.",
                path=str(path),
            )
        )
    try:
        post = frontmatter.loads(text)
    except (yaml.YAMLError, ValueError, TypeError) as e:
        return Err(
            StorageError(
                code="INVALID_FRONTMATTER",
                message="Invalid YAML frontmatter.",
                path=str(path),
                cause=e,
            )
        )

    meta = _parse_metadata(dict(post.metadata))
    if not meta.ok:
        meta.error.path = str(path)
        return meta
    return Ok(Memory(path=path, content=_body(text), metadata=meta.value))


# ── Index files ───────────────────────────────────────────────


def serialize_index(category: Category) -> str:
    memories = []
    for entry in category.memories:
        item: dict[str, Any] = {"path": str(entry.path), "token_estimate": entry.token_estimate}
        if entry.summary:
            item["summary"] = entry.summary
        if entry.updated_at is not None:
            item["updated_at"] = format_timestamp(entry.updated_at)
        memories.append(item)

    subcategories = []
    for entry in category.subcategories:
        item = {"path": str(entry.path), "memory_count": entry.memory_count}
        if entry.description:
            item["description"] = entry.description
        subcategories.append(item)

    return yaml.safe_dump(
        {"memories": memories, "subcategories": subcategories},
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )


def _index_error(message: str, location: str, cause: Any = None) -> Err:
    return Err(StorageError(code="INDEX_ERROR", message=message, path=location, cause=cause))


def parse_index(text: str, location: str, owner: CategoryPath | None = None) -> Result[Category, StorageError]:
    """Parse an ``index.yaml`` body. ``location`` is only used in errors.

    With ``owner`` set, entries that are not direct children of that
    category are dropped with a warning; an index naming itself or an
    ancestor would otherwise send tree walks in circles.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        return _index_error(f"Invalid index YAML at {location}.", location, e)

    if data is None:
        return Ok(Category())
    if not isinstance(data, dict):
        return _index_error(f"Index at {location} must be a mapping.", location)

    category = Category()
    for item in data.get("memories") or []:
        if not isinstance(item, dict) or "path" not in item:
            return _index_error(f"Malformed memory entry in {location}.", location)
        path = MemoryPath.parse(str(item["path"]))
        if not path.ok:
            return _index_error(f"Invalid memory path '{item['path']}' in {location}.", location, path.error)
        if owner is not None and path.value.category != owner:
            logger.warning("Ignoring foreign memory entry %s in %s", path.value, location)
            continue
        try:
            tokens = int(item.get("token_estimate", 0))
        except (TypeError, ValueError) as e:
            return _index_error(f"Invalid token estimate in {location}.", location, e)
        category.memories.append(
            CategoryMemoryEntry(
                path=path.value,
                token_estimate=tokens,
                summary=item.get("summary") or None,
                updated_at=parse_timestamp(item.get("updated_at")),
            )
        )

    for item in data.get("subcategories") or []:
        if not isinstance(item, dict) or "path" not in item:
            return _index_error(f"Malformed subcategory entry in {location}.", location)
        path = CategoryPath.parse(str(item["path"]))
        if not path.ok or path.value.is_root:
            return _index_error(f"Invalid subcategory path '{item['path']}' in {location}.", location)
        if owner is not None and path.value.parent != owner:
            logger.warning("Ignoring foreign subcategory entry %s in %s", path.value, location)
            continue
        try:
            count = int(item.get("memory_count", 0))
        except (TypeError, ValueError) as e:
            return _index_error(f"Invalid memory count in {location}.", location, e)
        category.subcategories.append(
            SubcategoryEntry(path=path.value, memory_count=count, description=item.get("description") or None)
        )

    return Ok(category)
