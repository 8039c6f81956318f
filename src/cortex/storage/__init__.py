"""Storage port and the bundled filesystem adapter."""

from cortex.storage.base import (
    AdapterFactory,
    CategoryStorage,
    DirectoryListing,
    IndexStorage,
    MemoryStorage,
    RecordSummary,
    StorageAdapter,
    StorageTree,
)

__all__ = [
    "AdapterFactory",
    "CategoryStorage",
    "DirectoryListing",
    "IndexStorage",
    "MemoryStorage",
    "RecordSummary",
    "StorageAdapter",
    "StorageTree",
]
