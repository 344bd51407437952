"""Shared fixtures for taskcache tests."""

import pytest

from taskcache.config import CacheConfig
from taskcache.errors import StorageFailure
from taskcache.scheduler import PersistenceScheduler
from taskcache.store import MemoryKVStore


class FakeClock:
    """Settable replacement for time.time."""

    def __init__(self, now: float = 1_750_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingStore(MemoryKVStore):
    """MemoryKVStore that remembers every write."""

    def __init__(self):
        super().__init__()
        self.writes: list[tuple[str, str]] = []

    def write(self, key: str, value: str) -> None:
        self.writes.append((key, value))
        super().write(key, value)


class FailingStore:
    """Store whose every operation raises StorageFailure."""

    def read(self, key: str):
        raise StorageFailure("medium unavailable", key=key)

    def write(self, key: str, value: str) -> None:
        raise StorageFailure("Storage quota exceeded", key=key)

    def remove(self, key: str) -> None:
        raise StorageFailure("medium unavailable", key=key)

    def keys(self, prefix: str = ""):
        raise StorageFailure("medium unavailable")


@pytest.fixture
def config() -> CacheConfig:
    """Defaults with short debounce windows so timer tests stay fast."""
    return CacheConfig(draft_debounce_ms=20, chat_debounce_ms=20)


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def scheduler(store) -> PersistenceScheduler:
    return PersistenceScheduler(store)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def failing_store() -> FailingStore:
    return FailingStore()
