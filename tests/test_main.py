"""Tests for the maintenance entry point."""

from __future__ import annotations

from pathlib import Path

import pytest

from cortex.__main__ import main

RECORD = """---
created_at: '2026-01-01T00:00:00+00:00'
updated_at: '2026-01-01T00:00:00+00:00'
tags: []
source: user
expires_at: '2026-01-02T00:00:00+00:00'
---

Expired note
"""


@pytest.fixture
def store(tmp_path: Path, monkeypatch) -> Path:
    root = tmp_path / "store"
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setenv("CORTEX_STORE_PATH", str(root))
    monkeypatch.delenv("CORTEX_DEFAULT_STORE", raising=False)
    monkeypatch.setenv("CORTEX_LOG_LEVEL", "WARNING")
    (root / "notes").mkdir(parents=True)
    (root / "notes" / "Old Note.md").write_text(RECORD, encoding="utf-8")
    return root


class TestMain:
    def test_usage(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main([])
        assert exc.value.code == 1
        assert "Usage" in capsys.readouterr().out

    def test_reindex(self, store: Path, capsys):
        main(["reindex"])
        out = capsys.readouterr().out
        assert "Reindexed store 'default'" in out
        assert (store / "notes" / "old-note.md").is_file()
        assert (store / "notes" / "index.yaml").is_file()

    def test_prune_dry_run_then_real(self, store: Path, capsys):
        main(["reindex"])
        main(["prune", "--dry-run"])
        out = capsys.readouterr().out
        assert "Would prune notes/old-note" in out
        assert (store / "notes" / "old-note.md").is_file()

        main(["prune", "default"])
        out = capsys.readouterr().out
        assert "Pruned notes/old-note" in out
        assert not (store / "notes" / "old-note.md").exists()

    def test_unknown_store(self, store: Path, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["reindex", "nope"])
        assert exc.value.code == 1
        assert "STORE_NOT_FOUND" in capsys.readouterr().err

    def test_stores(self, store: Path, capsys):
        main(["stores"])
        out = capsys.readouterr().out
        assert "* default" in out
        assert str(store) in out

    def test_init_seeds_categories(self, tmp_path: Path, monkeypatch, capsys):
        root = tmp_path / "fresh"
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        monkeypatch.setenv("CORTEX_STORE_PATH", str(root))
        monkeypatch.delenv("CORTEX_DEFAULT_STORE", raising=False)
        monkeypatch.setenv("CORTEX_LOG_LEVEL", "WARNING")

        main(["init", "--global"])
        assert "Initialized store 'default'" in capsys.readouterr().out
        assert (root / "index.yaml").is_file()
        assert (root / "human" / "profile").is_dir()
        assert (root / "agents" / "persona").is_dir()

    def test_init_unknown_store(self, store: Path, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["init", "nope"])
        assert exc.value.code == 1
        assert "STORE_NOT_FOUND" in capsys.readouterr().err
