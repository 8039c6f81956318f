"""Tagged error records returned inside ``Err`` results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

# Codes for corrupted memory files. Recoverable by the caller (fix or remove
# the file), never by the engine.
ParseErrorCode = Literal[
    "MISSING_FRONTMATTER",
    "INVALID_FRONTMATTER",
    "MISSING_FIELD",
    "INVALID_TIMESTAMP",
    "INVALID_TAGS",
    "INVALID_SOURCE",
    "INVALID_CITATIONS",
]

PARSE_ERROR_CODES: frozenset[str] = frozenset(
    {
        "MISSING_FRONTMATTER",
        "INVALID_FRONTMATTER",
        "MISSING_FIELD",
        "INVALID_TIMESTAMP",
        "INVALID_TAGS",
        "INVALID_SOURCE",
        "INVALID_CITATIONS",
    }
)

StorageErrorCode = Literal["IO_READ_ERROR", "IO_WRITE_ERROR", "INDEX_ERROR"] | ParseErrorCode

CategoryErrorCode = Literal[
    "INVALID_PATH",
    "CATEGORY_NOT_FOUND",
    "ROOT_CATEGORY_REJECTED",
    "DESCRIPTION_TOO_LONG",
    "STORAGE_ERROR",
    "NOT_IMPLEMENTED",
    "STORE_NOT_FOUND",
]

MemoryErrorCode = (
    Literal[
        "INVALID_PATH",
        "MEMORY_NOT_FOUND",
        "MEMORY_EXPIRED",
        "DESTINATION_EXISTS",
        "INVALID_INPUT",
        "STORAGE_ERROR",
        "STORE_NOT_FOUND",
    ]
    | ParseErrorCode
)

StoreErrorCode = Literal[
    "STORE_NOT_FOUND",
    "STORE_ALREADY_EXISTS",
    "INVALID_STORE_NAME",
    "STORE_CREATE_FAILED",
    "STORE_INDEX_FAILED",
]


@dataclass
class StorageError:
    """Failure reported by a storage adapter."""

    code: StorageErrorCode
    message: str
    path: str | None = None
    field: str | None = None
    cause: Any = None


@dataclass
class CategoryError:
    """Failure of a category operation."""

    code: CategoryErrorCode
    message: str
    path: str | None = None
    cause: Any = None


@dataclass
class MemoryRecordError:
    """Failure of a memory operation."""

    code: MemoryErrorCode
    message: str
    path: str | None = None
    field: str | None = None
    cause: Any = None


@dataclass
class StoreError:
    """Failure resolving or editing the store registry."""

    code: StoreErrorCode
    message: str
    store: str | None = None
    cause: Any = None
