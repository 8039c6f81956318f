"""Memory records: markdown files with YAML frontmatter, one per slug.

Layout inside a store:
    <store>/
    ├── index.yaml                     # Top-level categories
    └── standards/
        ├── index.yaml                 # Direct memories + subcategories
        ├── style.md                   # Memory "standards/style"
        └── typescript/
            └── strict-mode.md

Expired memories stay on disk until ``prune`` removes them.
"""

from cortex.memory.operations import (
    UNSET,
    create_memory,
    get_memory,
    get_recent_memories,
    list_memory_tree,
    memory_exists,
    move_memory,
    prune_expired_memories,
    remove_memory,
    update_memory,
)

__all__ = [
    "UNSET",
    "create_memory",
    "get_memory",
    "get_recent_memories",
    "list_memory_tree",
    "memory_exists",
    "move_memory",
    "prune_expired_memories",
    "remove_memory",
    "update_memory",
]
