"""Cortex: a hierarchical store of short text memories.

Memories live in nested categories; each category keeps an index of its
direct children so listings never scan the tree.

    cortex.paths      slugs, category and memory paths
    cortex.storage    storage port + filesystem adapter
    cortex.index      index consistency engine and reindex
    cortex.category   category operations
    cortex.memory     memory operations, prune, recent
    cortex.clients    navigation handles
    cortex.stores     store registry (``Cortex``)
"""

from cortex.clients import CategoryClient, MemoryClient
from cortex.config import CortexConfig, StoreDefinition, load_config
from cortex.result import Err, Ok, Result
from cortex.storage.filesystem import FilesystemStorageAdapter
from cortex.stores import AdapterCache, Cortex, StoreClient

__all__ = [
    "AdapterCache",
    "CategoryClient",
    "Cortex",
    "CortexConfig",
    "Err",
    "FilesystemStorageAdapter",
    "MemoryClient",
    "Ok",
    "Result",
    "StoreClient",
    "StoreDefinition",
    "load_config",
]
