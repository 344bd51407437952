"""Persistent key/value store adapters.

A store maps string keys to serialized string values, synchronously. Every
operation may raise ``StorageFailure``; the caches are the failure boundary
and never let it escape to their callers.

Implementations:
- ``FileKVStore``: one file per key in a directory, atomic writes
- ``MemoryKVStore``: process-local dict with an optional byte quota
"""

import logging
from pathlib import Path
from typing import Protocol
from urllib.parse import quote, unquote

from taskcache.atomic import atomic_write_text
from taskcache.errors import StorageFailure

logger = logging.getLogger(__name__)

# Longest encoded filename accepted; most filesystems stop at 255 bytes
MAX_FILENAME_LENGTH = 240

RECORD_SUFFIX = ".json"


class KVStore(Protocol):
    def read(self, key: str) -> str | None:
        ...

    def write(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...

    def keys(self, prefix: str = "") -> list[str]:
        ...


class MemoryKVStore:
    """In-process store. ``quota_bytes`` mimics a size-limited medium."""

    def __init__(self, quota_bytes: int | None = None):
        self._data: dict[str, str] = {}
        self.quota_bytes = quota_bytes

    def read(self, key: str) -> str | None:
        return self._data.get(key)

    def write(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            used = sum(len(k) + len(v) for k, v in self._data.items() if k != key)
            if used + len(key) + len(value) > self.quota_bytes:
                raise StorageFailure("Storage quota exceeded", key=key)
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))

    def __len__(self) -> int:
        return len(self._data)


class FileKVStore:
    """Directory-backed store; each key is a percent-encoded filename."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def _path_for(self, key: str) -> Path:
        name = quote(key, safe="") + RECORD_SUFFIX
        if len(name) > MAX_FILENAME_LENGTH:
            raise StorageFailure(f"Key too long for file store ({len(name)} chars)", key=key)
        return self.root / name

    def read(self, key: str) -> str | None:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageFailure(f"Failed to read {path.name}: {e}", key=key) from e

    def write(self, key: str, value: str) -> None:
        result = atomic_write_text(self._path_for(key), value, mode=0o600)
        if result.is_err():
            raise StorageFailure(result.unwrap_err().message, key=key)

    def remove(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageFailure(f"Failed to remove {path.name}: {e}", key=key) from e

    def keys(self, prefix: str = "") -> list[str]:
        if not self.root.exists():
            return []
        try:
            names = [p.name for p in self.root.iterdir()]
        except OSError as e:
            raise StorageFailure(f"Failed to list {self.root}: {e}") from e

        found = []
        for name in names:
            # Skip in-flight temp files from atomic writes
            if name.startswith(".") or not name.endswith(RECORD_SUFFIX):
                continue
            key = unquote(name[: -len(RECORD_SUFFIX)])
            if key.startswith(prefix):
                found.append(key)
        return sorted(found)
