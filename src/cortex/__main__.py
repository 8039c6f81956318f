"""Entry point: python -m cortex [init|reindex|prune|stores] [store] [--dry-run] [--global]

- "init":    Create a configured store and seed its default categories
- "reindex": Rebuild every index of a store from the files on disk
- "prune":   Remove expired memories (``--dry-run`` only lists them)
- "stores":  List configured stores
"""

from __future__ import annotations

import asyncio
import logging
import sys

from cortex.category.templates import TEMPLATES
from cortex.config import CortexConfig, load_config
from cortex.storage.filesystem import FilesystemStorageAdapter
from cortex.stores import Cortex, StoreClient


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _report_error(error) -> int:
    print(f"Error [{error.code}]: {error.message}", file=sys.stderr)
    return 1


async def _run_reindex(store: StoreClient) -> int:
    result = await store.root_category().reindex()
    if not result.ok:
        return _report_error(result.error)
    for warning in result.value.warnings:
        print(f"warning: {warning}")
    print(f"Reindexed store '{store.name}' ({len(result.value.warnings)} warnings)")
    return 0


async def _run_prune(store: StoreClient, dry_run: bool) -> int:
    result = await store.root_category().prune(dry_run=dry_run)
    if not result.ok:
        return _report_error(result.error)
    verb = "Would prune" if dry_run else "Pruned"
    for item in result.value.pruned:
        print(f"{verb} {item.path} (expired {item.expires_at.isoformat()})")
    print(f"{verb} {len(result.value.pruned)} memories from store '{store.name}'")
    return 0


async def _run_init(config: CortexConfig, name: str, template: str) -> int:
    definition = config.stores.get(name)
    if definition is None:
        print(f"Error [STORE_NOT_FOUND]: Store '{name}' is not configured.", file=sys.stderr)
        return 1
    cortex = Cortex({}, FilesystemStorageAdapter)
    result = await cortex.initialize_store(
        name, definition.path, definition.description, categories=TEMPLATES[template]
    )
    if not result.ok:
        return _report_error(result.error)
    print(f"Initialized store '{name}' at {definition.path} ({template} categories)")
    return 0


def _run_stores(config: CortexConfig) -> int:
    cortex = Cortex.from_config(config, FilesystemStorageAdapter)
    for name, definition in cortex.list_stores().items():
        marker = "*" if name == config.default_store else " "
        line = f"{marker} {name}  {definition.path}"
        if definition.description:
            line += f"  {definition.description}"
        print(line)
    return 0


def _usage() -> None:
    print("Usage: python -m cortex [init|reindex|prune|stores] [store] [--dry-run] [--global]")
    print("  init     Create a store with default categories (--global for the personal layout)")
    print("  reindex  Rebuild all indexes of a store")
    print("  prune    Remove expired memories (--dry-run to preview)")
    print("  stores   List configured stores")


def main(argv: list[str] | None = None) -> None:
    args = list(sys.argv[1:] if argv is None else argv)
    dry_run = "--dry-run" in args
    template = "global" if "--global" in args else "project"
    args = [a for a in args if a not in ("--dry-run", "--global")]
    cmd = args[0] if args else None

    if cmd not in ("init", "reindex", "prune", "stores"):
        _usage()
        sys.exit(1)

    config = load_config()
    _setup_logging(config.log_level)

    if cmd == "stores":
        code = _run_stores(config)
    elif cmd == "init":
        code = asyncio.run(_run_init(config, args[1] if len(args) > 1 else config.default_store, template))
    else:
        cortex = Cortex.from_config(config, FilesystemStorageAdapter)
        store = cortex.get_store(args[1] if len(args) > 1 else config.default_store)
        if cmd == "reindex":
            code = asyncio.run(_run_reindex(store))
        else:
            code = asyncio.run(_run_prune(store, dry_run))

    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
