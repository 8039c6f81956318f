"""Configuration loading from environment variables and cortex.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

_CONFIG_FILENAME = "cortex.toml"
_DEFAULT_STORE = "default"


def _default_store_path() -> Path:
    return Path.home() / ".cortex" / "memory"


def _user_config_dir() -> Path:
    return Path.home() / ".config" / "cortex"


@dataclass
class StoreDefinition:
    """Where a named store lives."""

    path: Path
    description: str | None = None


@dataclass
class CortexConfig:
    """Top-level Cortex configuration."""

    stores: dict[str, StoreDefinition] = field(default_factory=dict)
    default_store: str = _DEFAULT_STORE
    log_level: str = "INFO"
    config_dir: Path | None = None


def _find_config(config_path: Path | None) -> Path | None:
    if config_path:
        return config_path if config_path.exists() else None
    # Search current dir and ~/.config/cortex/
    for candidate in [Path.cwd() / _CONFIG_FILENAME, _user_config_dir() / _CONFIG_FILENAME]:
        if candidate.exists():
            return candidate
    return None


def _store_path(raw: str, base: Path | None) -> Path:
    path = Path(raw).expanduser()
    if not path.is_absolute() and base is not None:
        path = base / path
    return path


def load_config(config_path: Path | None = None) -> CortexConfig:
    """Load configuration from environment variables and optional cortex.toml.

    Priority: environment variables > cortex.toml > defaults.
    Relative store paths resolve against the config file's directory.
    """
    file_data: dict = {}
    source = _find_config(config_path)
    if source is not None:
        file_data = tomllib.loads(source.read_text())
    config_dir = source.parent if source is not None else None

    stores: dict[str, StoreDefinition] = {}
    for name, store_data in file_data.get("stores", {}).items():
        if not isinstance(store_data, dict) or "path" not in store_data:
            raise ValueError(f"Store '{name}' in {source} needs a 'path'")
        stores[name] = StoreDefinition(
            path=_store_path(str(store_data["path"]), config_dir),
            description=store_data.get("description"),
        )

    default_store = os.getenv("CORTEX_DEFAULT_STORE", file_data.get("default_store", _DEFAULT_STORE))

    env_path = os.getenv("CORTEX_STORE_PATH")
    if env_path:
        existing = stores.get(default_store)
        stores[default_store] = StoreDefinition(
            path=_store_path(env_path, None),
            description=existing.description if existing else None,
        )
    elif not stores:
        stores[default_store] = StoreDefinition(path=_default_store_path())

    return CortexConfig(
        stores=stores,
        default_store=default_store,
        log_level=os.getenv("CORTEX_LOG_LEVEL", file_data.get("log_level", "INFO")),
        config_dir=config_dir,
    )
