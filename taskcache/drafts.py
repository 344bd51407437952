"""Draft cache: the latest unsaved edit/view content per task document.

Lifecycle per (task identity, path)::

    NoDraft --edit--> Dirty --debounced persists--> Dirty --save/discard--> NoDraft

Only dirty drafts are ever persisted; there is no "clean" stored state.
``save`` is debounced through the scheduler, while ``clear`` (after a save to
the remote, or a discard) cancels any pending write and removes the record
immediately.

Nothing here raises to the caller: storage failures and corrupt records are
logged and reported as "no draft".
"""

import logging
import time
from collections.abc import Callable
from dataclasses import replace

from taskcache import keys
from taskcache.codec import decode_record, encode_record
from taskcache.config import CacheConfig
from taskcache.errors import StorageFailure
from taskcache.models import Draft
from taskcache.scheduler import PersistenceScheduler
from taskcache.store import KVStore

logger = logging.getLogger(__name__)


class DraftCache:
    def __init__(
        self,
        store: KVStore,
        scheduler: PersistenceScheduler,
        config: CacheConfig,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.scheduler = scheduler
        self.config = config
        self._clock = clock
        # Latest draft handed to save() per key, consumed at flush time
        self._latest: dict[str, Draft] = {}

    def restore(self, task_identity: str, path: str) -> Draft | None:
        """Read the stored draft for this task, or None."""
        key = keys.draft_key(task_identity, path)
        try:
            raw = self.store.read(key)
        except StorageFailure as e:
            logger.warning(f"Failed to read draft for {path}: {e}")
            return None

        data = decode_record(keys.DRAFT, raw)
        if data is None:
            return None

        try:
            draft = Draft.from_dict(data)
        except ValueError as e:
            logger.warning(f"Discarding malformed draft for {path}: {e}")
            return None

        if draft.task_identity != task_identity or draft.path != path:
            logger.info(f"Draft under {key} belongs to {draft.path}, ignoring")
            return None

        if not draft.dirty:
            return None

        if self._expired(draft.timestamp):
            hours = (self._clock() - draft.timestamp) / 3600
            logger.info(f"Draft for {path} expired ({hours:.0f} hours old)")
            self._remove(key)
            return None

        logger.info(f"Draft restored for {path}")
        return draft

    def save(self, draft: Draft) -> None:
        """Stage ``draft`` for a debounced write. Clean drafts are ignored."""
        if not draft.dirty:
            logger.debug(f"Not persisting clean draft for {draft.path}")
            return

        key = keys.draft_key(draft.task_identity, draft.path)
        self._latest[key] = draft
        self.scheduler.schedule(key, lambda: self._produce(key), self.config.draft_debounce_ms)

    def save_now(self, draft: Draft) -> bool:
        """Write ``draft`` synchronously, superseding any pending write."""
        if not draft.dirty:
            return False

        key = keys.draft_key(draft.task_identity, draft.path)
        self.scheduler.cancel(key)
        self._latest.pop(key, None)
        try:
            self.store.write(key, self._encode(draft))
        except StorageFailure as e:
            logger.warning(f"Failed to save draft for {draft.path}: {e}")
            return False
        return True

    def clear(self, task_identity: str, path: str) -> None:
        """Drop the draft now, including any pending debounced write."""
        key = keys.draft_key(task_identity, path)
        self.cancel_pending(task_identity, path)
        self._remove(key)
        logger.debug(f"Cleared draft for {path}")

    def cancel_pending(self, task_identity: str, path: str) -> bool:
        """Forget a pending write without touching storage."""
        key = keys.draft_key(task_identity, path)
        self._latest.pop(key, None)
        return self.scheduler.cancel(key)

    def stored_keys(self) -> list[str]:
        try:
            return self.store.keys(keys.prefix_for(keys.DRAFT))
        except StorageFailure as e:
            logger.warning(f"Failed to list drafts: {e}")
            return []

    def _produce(self, key: str) -> str | None:
        draft = self._latest.pop(key, None)
        if draft is None:
            return None
        return self._encode(draft)

    def _encode(self, draft: Draft) -> str:
        return encode_record(keys.DRAFT, replace(draft, timestamp=self._clock()).to_dict())

    def _expired(self, timestamp: float) -> bool:
        if self.config.draft_expiry_hours <= 0:
            return False
        return self._clock() - timestamp > self.config.draft_expiry_hours * 3600

    def _remove(self, key: str) -> None:
        try:
            self.store.remove(key)
        except StorageFailure as e:
            logger.warning(f"Failed to remove {key}: {e}")
