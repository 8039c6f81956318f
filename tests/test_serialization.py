"""Tests for memory and index file formats."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from cortex.paths import CategoryPath, MemoryPath
from cortex.storage.serialization import (
    parse_index,
    parse_memory,
    parse_timestamp,
    serialize_index,
    serialize_memory,
)
from cortex.types import Category, CategoryMemoryEntry, Memory, MemoryMetadata, SubcategoryEntry

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)
PATH = MemoryPath.parse("standards/style").value


def _memory(**meta) -> Memory:
    return Memory(
        path=PATH,
        content="Prefer explicit return types.",
        metadata=MemoryMetadata(created_at=T0, updated_at=T0, **meta),
    )


class TestTimestamps:
    def test_zulu_suffix(self):
        assert parse_timestamp("2026-01-01T00:00:00Z") == T0

    def test_naive_is_utc(self):
        assert parse_timestamp("2026-01-01T00:00:00") == T0
        assert parse_timestamp(datetime(2026, 1, 1)) == T0

    def test_invalid(self):
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp(42) is None


class TestMemoryFormat:
    def test_serialize_layout(self):
        text = serialize_memory(_memory(tags=["style"]))
        assert text.startswith("---\n")
        assert "created_at:" in text
        assert "source: user" in text
        assert "citations" not in text
        assert "expires_at" not in text
        assert text.rstrip().endswith("Prefer explicit return types.")

    def test_parse_serialized(self):
        original = _memory(
            tags=["style", "ts"],
            citations=["docs/style.md"],
            expires_at=datetime(2027, 1, 1, tzinfo=timezone.utc),
        )
        result = parse_memory(PATH, serialize_memory(original))
        assert result.ok
        memory = result.value
        assert memory.content == original.content
        assert memory.metadata.tags == ["style", "ts"]
        assert memory.metadata.citations == ["docs/style.md"]
        assert memory.metadata.expires_at == datetime(2027, 1, 1, tzinfo=timezone.utc)
        assert memory.metadata.created_at == T0

    def test_accepts_unquoted_yaml_timestamps(self):
        text = "---\ncreated_at: 2026-01-01T00:00:00Z\nupdated_at: 2026-01-01T00:00:00Z\ntags: []\nsource: user\n---\n\nBody\n"
        result = parse_memory(PATH, text)
        assert result.ok
        assert result.value.metadata.updated_at == T0

    def test_null_tags_become_empty(self):
        text = "---\ncreated_at: '2026-01-01T00:00:00+00:00'\nupdated_at: '2026-01-01T00:00:00+00:00'\ntags:\nsource: user\n---\nBody\n"
        result = parse_memory(PATH, text)
        assert result.ok
        assert result.value.metadata.tags == []

    @pytest.mark.parametrize(
        "content",
        ["    indented code\n\ntrailing\n\n", "\nleading blank line", "", "--- not a delimiter ---\n---\nafter"],
    )
    def test_body_round_trips_exactly(self, content: str):
        original = Memory(path=PATH, content=content, metadata=MemoryMetadata(created_at=T0, updated_at=T0))
        assert parse_memory(PATH, serialize_memory(original)).value.content == content

    def test_hand_written_body_without_blank_line(self):
        text = "---\ncreated_at: '2026-01-01'\nupdated_at: '2026-01-01'\ntags: []\nsource: user\n---\nBody\n"
        assert parse_memory(PATH, text).value.content == "Body\n"

    def test_crlf_line_endings(self):
        text = "---\r\ncreated_at: '2026-01-01'\r\nupdated_at: '2026-01-01'\r\ntags: []\r\nsource: user\r\n---\r\n\r\nBody\r\n"
        assert parse_memory(PATH, text).value.content == "Body\r\n"

    @pytest.mark.parametrize(
        "text, code, field",
        [
            ("just some text", "MISSING_FRONTMATTER", None),
            ("---\ncreated_at: [unclosed\n---\nBody", "INVALID_FRONTMATTER", None),
            ("---\nupdated_at: '2026-01-01'\ntags: []\nsource: user\n---\nBody", "MISSING_FIELD", "created_at"),
            (
                "---\ncreated_at: nope\nupdated_at: '2026-01-01'\ntags: []\nsource: user\n---\nBody",
                "INVALID_TIMESTAMP",
                "created_at",
            ),
            (
                "---\ncreated_at: '2026-01-01'\nupdated_at: '2026-01-01'\ntags: oops\nsource: user\n---\nBody",
                "INVALID_TAGS",
                "tags",
            ),
            (
                "---\ncreated_at: '2026-01-01'\nupdated_at: '2026-01-01'\ntags: []\nsource: ''\n---\nBody",
                "INVALID_SOURCE",
                "source",
            ),
            (
                "---\ncreated_at: '2026-01-01'\nupdated_at: '2026-01-01'\ntags: []\nsource: user\ncitations: ['']\n---\nBody",
                "INVALID_CITATIONS",
                "citations",
            ),
        ],
    )
    def test_parse_errors(self, text: str, code: str, field: str | None):
        result = parse_memory(PATH, text)
        assert not result.ok
        assert result.error.code == code
        assert result.error.field == field
        assert result.error.path == "standards/style"


class TestIndexFormat:
    def test_serialize_keys(self):
        category = Category(
            memories=[CategoryMemoryEntry(path=PATH, token_estimate=7, updated_at=T0)],
            subcategories=[
                SubcategoryEntry(path=CategoryPath(("standards", "typescript")), memory_count=2, description="TS")
            ],
        )
        text = serialize_index(category)
        assert "token_estimate: 7" in text
        assert "memory_count: 2" in text
        assert "description: TS" in text
        assert "path: standards/style" in text

    def test_parse_serialized(self):
        category = Category(
            memories=[CategoryMemoryEntry(path=PATH, token_estimate=7, summary="Types", updated_at=T0)],
            subcategories=[SubcategoryEntry(path=CategoryPath(("standards", "typescript")), memory_count=2)],
        )
        result = parse_index(serialize_index(category), "index.yaml")
        assert result.ok
        assert result.value == category

    def test_empty_file(self):
        result = parse_index("", "index.yaml")
        assert result.ok
        assert result.value == Category()

    def test_not_a_mapping(self):
        result = parse_index("- a\n- b\n", "index.yaml")
        assert not result.ok
        assert result.error.code == "INDEX_ERROR"

    def test_bad_yaml(self):
        result = parse_index("memories: [unclosed", "index.yaml")
        assert not result.ok
        assert result.error.code == "INDEX_ERROR"

    def test_bad_entry_path(self):
        result = parse_index("memories:\n  - path: lonely\n    token_estimate: 1\n", "index.yaml")
        assert not result.ok
        assert result.error.code == "INDEX_ERROR"

    def test_owner_drops_foreign_entries(self):
        text = (
            "memories:\n"
            "- {path: standards/style, token_estimate: 1}\n"
            "- {path: notes/todo, token_estimate: 1}\n"
            "subcategories:\n"
            "- {path: standards, memory_count: 1}\n"
            "- {path: standards/typescript, memory_count: 0}\n"
        )
        owner = CategoryPath(("standards",))
        result = parse_index(text, "standards/index.yaml", owner=owner)
        assert result.ok
        assert [str(e.path) for e in result.value.memories] == ["standards/style"]
        assert [str(e.path) for e in result.value.subcategories] == ["standards/typescript"]

        unchecked = parse_index(text, "index.yaml")
        assert len(unchecked.value.memories) == 2
        assert len(unchecked.value.subcategories) == 2
