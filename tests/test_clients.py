"""Tests for navigation clients, the store registry and store initialization."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from cortex.category.templates import GLOBAL_STORE_CATEGORIES, PROJECT_STORE_CATEGORIES, walk_template
from cortex.clients import CategoryClient, MemoryClient
from cortex.config import CortexConfig, StoreDefinition
from cortex.storage.filesystem import FilesystemStorageAdapter
from cortex.stores import AdapterCache, Cortex, is_valid_store_name

NOW = datetime(2026, 6, 1, tzinfo=timezone.utc)


class CountingFactory:
    def __init__(self) -> None:
        self.calls: list[Path] = []

    def __call__(self, root: Path) -> FilesystemStorageAdapter:
        self.calls.append(root)
        return FilesystemStorageAdapter(root)


@pytest.fixture
def factory() -> CountingFactory:
    return CountingFactory()


@pytest.fixture
def cortex(tmp_path: Path, factory: CountingFactory) -> Cortex:
    return Cortex({"main": StoreDefinition(path=tmp_path / "main")}, factory)


def _unreachable():
    raise AssertionError("adapter should not be resolved")


class TestNavigation:
    def test_get_category_collapses_separators(self, cortex: Cortex):
        root = cortex.get_store("main").root_category()
        assert root.get_category("///foo").raw_path == "/foo"

    def test_nested_navigation(self):
        root = CategoryClient("/", _unreachable)
        child = root.get_category("a").get_category("/b/")
        assert child.raw_path == "/a/b"
        assert child.get_memory("note").raw_path == "/a/b/note"

    def test_parent_chain(self):
        client = CategoryClient("a/b/c", _unreachable)
        seen = []
        while client is not None:
            seen.append(client.raw_path)
            client = client.parent()
        assert seen == ["/a/b/c", "/a/b", "/a", "/"]

    def test_construction_never_fails(self):
        client = CategoryClient("/!!!", _unreachable)
        assert client.raw_path == "/!!!"
        assert client.parse_path().error.code == "INVALID_PATH"

    def test_memory_client_category(self):
        memory = MemoryClient("a/b/note", _unreachable)
        assert memory.category().raw_path == "/a/b"


class TestLazyValidation:
    @pytest.mark.asyncio
    async def test_invalid_path_before_store_lookup(self):
        client = CategoryClient("/!!!", _unreachable)
        result = await client.create()
        assert result.error.code == "INVALID_PATH"

    @pytest.mark.asyncio
    async def test_unknown_store_fails_at_first_use(self, cortex: Cortex):
        store = cortex.get_store("missing")
        category = store.get_category("a")
        assert (await category.exists()).error.code == "STORE_NOT_FOUND"
        memory = category.get_memory("x")
        assert (await memory.get()).error.code == "STORE_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_invalid_memory_path(self, cortex: Cortex):
        memory = MemoryClient("/lonely", cortex.get_store("main").resolve)
        assert (await memory.get()).error.code == "INVALID_PATH"


class TestCategoryClient:
    @pytest.mark.asyncio
    async def test_lifecycle(self, cortex: Cortex):
        standards = cortex.get_store("main").get_category("standards")
        assert (await standards.create()).value.created is True
        assert (await standards.exists()).value is True

        described = await standards.set_description("Team rules")
        assert described.value.description == "Team rules"
        root = standards.parent()
        subs = await root.list_subcategories()
        assert [(str(e.path), e.description) for e in subs.value] == [("standards", "Team rules")]

        cleared = await standards.set_description("")
        assert cleared.value.description is None

        ts = standards.get_category("typescript")
        await ts.create()
        assert (await ts.delete()).value.deleted is True
        assert (await standards.delete()).error.code == "ROOT_CATEGORY_REJECTED"

    @pytest.mark.asyncio
    async def test_prune_and_recent(self, cortex: Cortex):
        store = cortex.get_store("main")
        style = store.get_category("standards").get_memory("style")
        await style.create("old", expires_at=NOW - timedelta(days=1), now=NOW - timedelta(days=2))
        fresh = store.get_category("notes").get_memory("fresh")
        await fresh.create("new", now=NOW)

        recent = await store.root_category().get_recent(now=NOW)
        assert [str(r.path) for r in recent.value] == ["notes/fresh"]

        # Prune is store-wide even from a nested handle
        pruned = await store.get_category("notes").prune(now=NOW)
        assert [str(p.path) for p in pruned.value.pruned] == ["standards/style"]
        assert (await style.get(include_expired=True)).error.code == "MEMORY_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_reindex_from_any_category(self, cortex: Cortex, tmp_path: Path):
        await cortex.get_store("main").get_category("a/b").get_memory("x").create("content")
        result = await cortex.get_store("main").get_category("a/b").reindex()
        assert result.ok
        listing = await cortex.get_store("main").get_category("a/b").list_memories()
        assert [str(e.path) for e in listing.value] == ["a/b/x"]

    @pytest.mark.asyncio
    async def test_list_tree(self, cortex: Cortex):
        store = cortex.get_store("main")
        await store.get_category("standards/ts").get_memory("strict").create("x", now=NOW)
        await store.get_category("notes").get_memory("old").create(
            "y", expires_at=NOW - timedelta(days=1), now=NOW - timedelta(days=2)
        )

        everything = await store.root_category().list_tree(now=NOW)
        assert [str(m.path) for m in everything.value.memories] == ["standards/ts/strict"]
        assert [str(s.path) for s in everything.value.subcategories] == ["notes", "standards"]

        scoped = await store.get_category("standards").list_tree(include_expired=True, now=NOW)
        assert [str(m.path) for m in scoped.value.memories] == ["standards/ts/strict"]

        with_expired = await store.root_category().list_tree(include_expired=True, now=NOW)
        assert [(str(m.path), m.is_expired) for m in with_expired.value.memories] == [
            ("notes/old", True),
            ("standards/ts/strict", False),
        ]


class TestMemoryClient:
    @pytest.mark.asyncio
    async def test_crud(self, cortex: Cortex):
        memory = cortex.get_store("main").get_category("a").get_memory("note")
        assert (await memory.exists()).value is False
        assert (await memory.create("hello", tags=["t"])).ok
        assert (await memory.exists()).value is True

        updated = await memory.update(content="hello again")
        assert updated.value.content == "hello again"
        assert updated.value.metadata.tags == ["t"]

        assert (await memory.update()).error.code == "INVALID_INPUT"

        moved = await memory.move("b/renamed")
        assert moved.ok
        assert moved.value.raw_path == "/b/renamed"
        assert (await moved.value.get()).value.content == "hello again"
        assert (await memory.get()).error.code == "MEMORY_NOT_FOUND"

        assert (await moved.value.delete()).ok
        assert (await moved.value.exists()).value is False


class TestRegistry:
    def test_store_names(self):
        assert is_valid_store_name("my-store-2")
        assert not is_valid_store_name("My Store")
        assert not is_valid_store_name("trailing-")
        assert not is_valid_store_name("")

    def test_add_and_remove(self, cortex: Cortex, tmp_path: Path):
        added = cortex.add_store("work", tmp_path / "work", "Work notes")
        assert added.ok
        assert cortex.has_store("work")
        assert list(cortex.list_stores()) == ["main", "work"]

        assert cortex.add_store("work", tmp_path / "x").error.code == "STORE_ALREADY_EXISTS"
        assert cortex.add_store("Bad Name", tmp_path / "x").error.code == "INVALID_STORE_NAME"

        assert cortex.remove_store("work").ok
        assert not cortex.has_store("work")
        assert cortex.remove_store("work").error.code == "STORE_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_adapter_created_once(self, cortex: Cortex, factory: CountingFactory):
        store = cortex.get_store("main")
        assert factory.calls == []
        await store.get_category("a").create()
        await store.get_category("b").create()
        await cortex.get_store("main").root_category().list_subcategories()
        assert len(factory.calls) == 1

    @pytest.mark.asyncio
    async def test_cache_not_invalidated(self, cortex: Cortex, factory: CountingFactory):
        await cortex.get_store("main").get_category("a").create()
        cortex.remove_store("main")
        # The cached adapter still serves the removed store
        assert (await cortex.get_store("main").get_category("a").exists()).value is True
        assert len(factory.calls) == 1

    def test_from_config(self, tmp_path: Path, factory: CountingFactory):
        config = CortexConfig(stores={"default": StoreDefinition(path=tmp_path)})
        cortex = Cortex.from_config(config, factory)
        assert cortex.has_store("default")
        assert isinstance(cortex.adapters, AdapterCache)
        assert len(cortex.adapters) == 0


class TestInitializeStore:
    @pytest.mark.asyncio
    async def test_seeds_template(self, cortex: Cortex, tmp_path: Path):
        result = await cortex.initialize_store(
            "project", tmp_path / "project", "Project notes", categories=PROJECT_STORE_CATEGORIES
        )
        assert result.ok
        assert result.value.name == "project"
        assert cortex.list_stores()["project"].description == "Project notes"
        assert (tmp_path / "project" / "index.yaml").is_file()

        root = result.value.root_category()
        subs = (await root.list_subcategories()).value
        assert [str(e.path) for e in subs] == ["admin", "decisions", "standards", "standup", "tasks"]
        assert subs[0].description == "Meta category for managing the memory store"

        nested = (await result.value.get_category("standards").list_subcategories()).value
        assert [str(e.path) for e in nested] == ["standards/coding"]
        assert nested[0].description.startswith("Coding standards")

    @pytest.mark.asyncio
    async def test_without_categories(self, cortex: Cortex, tmp_path: Path):
        result = await cortex.initialize_store("empty", tmp_path / "empty")
        assert result.ok
        assert (tmp_path / "empty" / "index.yaml").is_file()
        assert (await result.value.root_category().list_subcategories()).value == []

    @pytest.mark.asyncio
    async def test_rejects_bad_or_taken_names(self, cortex: Cortex, tmp_path: Path):
        bad = await cortex.initialize_store("Bad Name", tmp_path / "bad")
        assert bad.error.code == "INVALID_STORE_NAME"
        assert not (tmp_path / "bad").exists()

        taken = await cortex.initialize_store("main", tmp_path / "other")
        assert taken.error.code == "STORE_ALREADY_EXISTS"
        assert not (tmp_path / "other").exists()

    @pytest.mark.asyncio
    async def test_directory_failure(self, cortex: Cortex, tmp_path: Path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory", encoding="utf-8")
        result = await cortex.initialize_store("blocked", blocker / "store")
        assert result.error.code == "STORE_CREATE_FAILED"
        assert not cortex.has_store("blocked")

    def test_template_walk_order(self):
        walked = list(walk_template(GLOBAL_STORE_CATEGORIES))
        paths = [path for path, _ in walked]
        assert paths == ["admin", "human", "human/profile", "human/preferences", "agents", "agents/persona"]
        assert all(description for _, description in walked)
