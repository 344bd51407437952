"""Error types for taskcache.

Two styles live here:

- ``Result`` (``Ok``/``Err``) with a structured ``CacheError`` for low-level
  helpers that report failure as a value (see ``taskcache.atomic``).
- An exception taxonomy for the cache and remote boundaries:

  ``StorageFailure``
      Local medium unavailable, over quota, or corrupt. Always recoverable:
      caches catch it, log it, and carry on with empty state.
  ``RemoteProbeFailure``
      A metadata read failed for a reason other than "not found". Fatal to
      the creation attempt in progress.
  ``RemoteWriteFailure``
      A create/update/delete failed. ``RemoteConflict`` is the stale-sha case.
  ``CollisionLimitExceeded``
      The collision resolver ran past its suffix cap.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class CacheError:
    """Structured error record carried by ``Err``."""

    code: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful result."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_err(self):
        raise ValueError("Called unwrap_err() on an Ok result")


@dataclass(frozen=True)
class Err(Generic[E]):
    """Failed result."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self):
        raise ValueError(f"Called unwrap() on an Err result: {self.error}")

    def unwrap_err(self) -> E:
        return self.error


Result = Union[Ok[T], Err[E]]


def format_error(error: CacheError | Exception) -> str:
    """Render an error for terminal output."""
    if isinstance(error, CacheError):
        return f"[{error.code}] {error.message}"
    return f"{type(error).__name__}: {error}"


# =============================================================================
# Exceptions
# =============================================================================


class TaskCacheError(Exception):
    """Base class for all taskcache exceptions."""


class StorageFailure(TaskCacheError):
    """The local key/value medium failed (quota, permissions, corruption)."""

    def __init__(self, message: str, key: str | None = None):
        super().__init__(message)
        self.key = key


class RemoteProbeFailure(TaskCacheError):
    """A remote metadata read failed for a reason other than absence."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Could not check {path}: {reason}")
        self.path = path
        self.reason = reason


class RemoteWriteFailure(TaskCacheError):
    """A remote create, update or delete failed."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Could not write {path}: {reason}")
        self.path = path
        self.reason = reason


class RemoteConflict(RemoteWriteFailure):
    """The sha supplied with an update no longer matches the remote file."""


class CollisionLimitExceeded(TaskCacheError):
    """No free path was found within the configured suffix cap."""

    def __init__(self, base_path: str, limit: int):
        super().__init__(f"No free filename for {base_path} after {limit} attempts")
        self.base_path = base_path
        self.limit = limit
