"""Store registry and the root ``Cortex`` handle."""

from __future__ import annotations

import asyncio
import logging
import re
from functools import partial
from pathlib import Path

from cortex.category.operations import create_category, set_description
from cortex.category.templates import CategoryTemplate, walk_template
from cortex.clients import CategoryClient
from cortex.config import CortexConfig, StoreDefinition
from cortex.errors import StoreError
from cortex.paths import SEPARATOR, CategoryPath
from cortex.result import Err, Ok, Result
from cortex.storage.base import AdapterFactory, StorageAdapter
from cortex.types import Category

logger = logging.getLogger(__name__)

_STORE_NAME = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def is_valid_store_name(name: str) -> bool:
    return bool(_STORE_NAME.match(name))


def _index_failure(name: str, message: str, cause) -> Err:
    return Err(StoreError(code="STORE_INDEX_FAILED", message=f"{message}: {cause.message}", store=name, cause=cause))


class AdapterCache:
    """One adapter per store name, built on first use.

    Entries are never evicted or invalidated: removing or re-pointing a
    store in the registry does not affect an adapter already built.
    """

    def __init__(self, factory: AdapterFactory) -> None:
        self._factory = factory
        self._adapters: dict[str, StorageAdapter] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._adapters

    def __len__(self) -> int:
        return len(self._adapters)

    def peek(self, name: str) -> StorageAdapter | None:
        return self._adapters.get(name)

    def get(self, name: str, definition: StoreDefinition) -> StorageAdapter:
        adapter = self._adapters.get(name)
        if adapter is None:
            adapter = self._factory(definition.path)
            self._adapters[name] = adapter
            logger.debug("Opened store %s at %s", name, definition.path)
        return adapter


class Cortex:
    """Root handle: a store registry plus the adapter cache."""

    def __init__(self, registry: dict[str, StoreDefinition], adapter_factory: AdapterFactory) -> None:
        self._registry = dict(registry)
        self.adapters = AdapterCache(adapter_factory)

    @classmethod
    def from_config(cls, config: CortexConfig, adapter_factory: AdapterFactory) -> Cortex:
        return cls(config.stores, adapter_factory)

    def resolve(self, name: str) -> Result[StorageAdapter, StoreError]:
        cached = self.adapters.peek(name)
        if cached is not None:
            return Ok(cached)
        definition = self._registry.get(name)
        if definition is None:
            return Err(StoreError(code="STORE_NOT_FOUND", message=f"Store '{name}' is not registered.", store=name))
        return Ok(self.adapters.get(name, definition))

    def get_store(self, name: str) -> StoreClient:
        """Never fails; an unknown name surfaces on first use."""
        return StoreClient(name, partial(self.resolve, name))

    def list_stores(self) -> dict[str, StoreDefinition]:
        return dict(sorted(self._registry.items()))

    def has_store(self, name: str) -> bool:
        return name in self._registry

    def _check_new_name(self, name: str) -> Err | None:
        if not is_valid_store_name(name):
            return Err(
                StoreError(
                    code="INVALID_STORE_NAME",
                    message=f"Store name '{name}' must be lowercase letters, digits and single hyphens.",
                    store=name,
                )
            )
        if name in self._registry:
            return Err(StoreError(code="STORE_ALREADY_EXISTS", message=f"Store '{name}' already exists.", store=name))
        return None

    def add_store(self, name: str, path: Path | str, description: str | None = None) -> Result[StoreDefinition, StoreError]:
        invalid = self._check_new_name(name)
        if invalid is not None:
            return invalid
        definition = StoreDefinition(path=Path(path).expanduser(), description=description)
        self._registry[name] = definition
        logger.info("Registered store %s at %s", name, definition.path)
        return Ok(definition)

    async def initialize_store(
        self,
        name: str,
        path: Path | str,
        description: str | None = None,
        categories: CategoryTemplate | None = None,
    ) -> Result[StoreClient, StoreError]:
        """Create a store directory, register it and seed its categories.

        The root index is always written. Each template category is created
        with its description; a failure part way leaves the store registered
        with the categories made so far.
        """
        invalid = self._check_new_name(name)
        if invalid is not None:
            return invalid
        root = Path(path).expanduser()
        try:
            await asyncio.to_thread(root.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            return Err(
                StoreError(
                    code="STORE_CREATE_FAILED",
                    message=f"Failed to create store directory {root}: {e}",
                    store=name,
                    cause=e,
                )
            )
        added = self.add_store(name, root, description)
        if not added.ok:
            return added
        adapter = self.resolve(name)
        if not adapter.ok:
            return adapter
        storage = adapter.value

        existing = await storage.indexes.read(CategoryPath.root())
        if existing.ok and existing.value is None:
            existing = await storage.indexes.write(CategoryPath.root(), Category())
        if not existing.ok:
            return _index_failure(name, f"Failed to write root index at {root}", existing.error)

        for category, text in walk_template(categories or {}):
            created = await create_category(storage, category)
            if not created.ok:
                return _index_failure(name, f"Failed to create category '{category}'", created.error)
            if text:
                described = await set_description(storage, category, text)
                if not described.ok:
                    return _index_failure(name, f"Failed to describe category '{category}'", described.error)

        logger.info("Initialized store %s at %s", name, root)
        return Ok(self.get_store(name))

    def remove_store(self, name: str) -> Result[None, StoreError]:
        if name not in self._registry:
            return Err(StoreError(code="STORE_NOT_FOUND", message=f"Store '{name}' is not registered.", store=name))
        del self._registry[name]
        logger.info("Unregistered store %s", name)
        return Ok(None)


class StoreClient:
    """Handle on one named store."""

    def __init__(self, name: str, resolve_adapter) -> None:
        self.name = name
        self._resolve = resolve_adapter

    def __repr__(self) -> str:
        return f"StoreClient({self.name!r})"

    def resolve(self) -> Result[StorageAdapter, StoreError]:
        return self._resolve()

    def root_category(self) -> CategoryClient:
        return CategoryClient(SEPARATOR, self._resolve)

    def get_category(self, path: str) -> CategoryClient:
        return self.root_category().get_category(path)
