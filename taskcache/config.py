"""Configuration for taskcache.

Storage Structure
-----------------
~/.taskcache/                 # or $TASKCACHE_HOME
├── config.yaml               # CacheConfig overrides (non-default values only)
└── store/                    # FileKVStore: one JSON record per cache key

Nothing in the library reads configuration from globals. ``CacheConfig`` is
loaded once by the entry point (the CLI, or the embedding application) and
passed into the caches, the scheduler users and the resolver.
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from taskcache.atomic import atomic_write_yaml
from taskcache.errors import StorageFailure

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.yaml"
STORE_DIRNAME = "store"


def get_home() -> Path:
    """Return the taskcache home directory (``$TASKCACHE_HOME`` or ``~/.taskcache``)."""
    if env_home := os.environ.get("TASKCACHE_HOME"):
        return Path(env_home).expanduser()
    return Path.home() / ".taskcache"


def get_store_dir(home: Path | None = None) -> Path:
    return (home or get_home()) / STORE_DIRNAME


@dataclass
class CacheConfig:
    """Tunable constants for the local cache and remote naming."""

    # Remote folder that new task documents are created in
    folder: str = "todos"

    # Quiescence windows for debounced persistence
    draft_debounce_ms: int = 500
    chat_debounce_ms: int = 500

    # Checkpoints kept per task; oldest evicted first
    checkpoint_cap: int = 20

    # Restored entities older than this are dropped (0 = never expire)
    draft_expiry_hours: int = 24
    chat_expiry_hours: int = 24

    # Collision resolver gives up past this suffix
    max_collision_suffix: int = 1000

    # Stale-sha retries when updating an existing document
    update_max_retries: int = 3

    @classmethod
    def load(cls, home: Path | None = None) -> "CacheConfig":
        """Load config from ``<home>/config.yaml``.

        Missing file means defaults. Unknown keys are ignored, and so is a
        file that fails to parse (logged).
        """
        config_path = (home or get_home()) / CONFIG_FILENAME
        if not config_path.exists():
            return cls()

        try:
            with open(config_path, encoding="utf-8") as f:
                overrides = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Ignoring unreadable config {config_path}: {e}")
            return cls()

        if not isinstance(overrides, dict):
            logger.warning(f"Ignoring malformed config {config_path}")
            return cls()

        # Only apply known fields
        valid_fields = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in overrides.items() if k in valid_fields})

    def save(self, home: Path | None = None) -> Path:
        """Write non-default values to ``<home>/config.yaml``.

        Raises:
            StorageFailure: if the file could not be written
        """
        config_path = (home or get_home()) / CONFIG_FILENAME

        defaults = CacheConfig()
        data = {k: v for k, v in self.to_dict().items() if getattr(defaults, k) != v}
        if not data:
            data = {"_version": 1}  # Explicitly saved, all defaults

        result = atomic_write_yaml(config_path, data)
        if result.is_err():
            raise StorageFailure(f"Failed to save config: {result.unwrap_err().message}")
        return config_path

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def with_value(self, key: str, raw: str) -> "CacheConfig":
        """Return a copy with ``key`` set from a string (CLI input).

        Raises:
            KeyError: unknown key
            ValueError: value does not convert to the field's type
        """
        current = self.to_dict()
        if key not in current:
            raise KeyError(key)
        if isinstance(current[key], int):
            value: Any = int(raw)
            if value < 0:
                raise ValueError(f"{key} must be >= 0")
        else:
            value = raw.strip().strip("/")
            if not value:
                raise ValueError(f"{key} must not be empty")
        current[key] = value
        return CacheConfig(**current)
