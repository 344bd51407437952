"""Debounced persistence scheduler.

Coalesces bursts of mutations into one store write per quiescence window::

    scheduler.schedule(key, producer, window_ms=500)

Each call for a key cancels the previous pending write for that key and arms
a fresh timer. When the timer fires, ``producer()`` is called (at flush
time, not at schedule time, so the value is always the latest) and its
result is written to the store. A ``None`` result skips the write.

Explicit actions that must win over a delayed write (save, discard, task
switch) call ``cancel`` first, so a timer can never resurrect content that
was just cleared.

Timers run on the asyncio event loop that is current when ``schedule`` is
called. Flush failures are logged and swallowed: the cache is best-effort.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

from taskcache.errors import StorageFailure
from taskcache.store import KVStore

logger = logging.getLogger(__name__)

Producer = Callable[[], "str | None"]


@dataclass
class _PendingWrite:
    producer: Producer
    handle: asyncio.TimerHandle


class PersistenceScheduler:
    """Owns one pending timer per key."""

    def __init__(self, store: KVStore):
        self.store = store
        self._pending: dict[str, _PendingWrite] = {}

    def schedule(self, key: str, producer: Producer, window_ms: int) -> None:
        """Arm (or re-arm) the write for ``key``.

        Raises:
            RuntimeError: no running event loop
        """
        loop = asyncio.get_running_loop()
        self.cancel(key)
        handle = loop.call_later(max(window_ms, 0) / 1000, self._fire, key)
        self._pending[key] = _PendingWrite(producer=producer, handle=handle)

    def cancel(self, key: str) -> bool:
        """Drop the pending write for ``key``. Returns True if one existed."""
        entry = self._pending.pop(key, None)
        if entry is None:
            return False
        entry.handle.cancel()
        logger.debug(f"Cancelled pending write: {key}")
        return True

    def cancel_prefix(self, prefix: str) -> int:
        """Cancel every pending write whose key starts with ``prefix``."""
        keys = [k for k in self._pending if k.startswith(prefix)]
        for key in keys:
            self.cancel(key)
        return len(keys)

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    def pending_keys(self) -> list[str]:
        return sorted(self._pending)

    def flush(self, key: str) -> bool:
        """Write the pending value for ``key`` now. Returns True if written."""
        entry = self._pending.pop(key, None)
        if entry is None:
            return False
        entry.handle.cancel()
        return self._write(key, entry.producer)

    def flush_all(self) -> int:
        """Write every pending value now (e.g. on shutdown)."""
        return sum(1 for key in list(self._pending) if self.flush(key))

    def _fire(self, key: str) -> None:
        entry = self._pending.pop(key, None)
        if entry is not None:
            self._write(key, entry.producer)

    def _write(self, key: str, producer: Producer) -> bool:
        try:
            value = producer()
        except Exception as e:
            logger.error(f"Producer for {key} failed, skipping write: {e}")
            return False

        if value is None:
            logger.debug(f"Producer for {key} returned nothing, skipping write")
            return False

        try:
            self.store.write(key, value)
        except StorageFailure as e:
            logger.warning(f"Deferred write failed for {key}: {e}")
            return False

        logger.debug(f"Flushed {key}")
        return True
