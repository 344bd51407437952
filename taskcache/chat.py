"""Chat session cache: assistant transcript and panel state per task document.

Mirrors the draft cache contract: ``restore`` never raises, ``save`` is
debounced, ``clear`` is immediate and cancels any pending write. Clearing a
session also wipes the task's checkpoint log, since the transcript is what
references those checkpoints.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import replace

from taskcache import keys
from taskcache.checkpoints import CheckpointLog
from taskcache.codec import decode_record, encode_record
from taskcache.config import CacheConfig
from taskcache.errors import StorageFailure
from taskcache.models import ChatSession
from taskcache.scheduler import PersistenceScheduler
from taskcache.store import KVStore

logger = logging.getLogger(__name__)


class ChatSessionCache:
    def __init__(
        self,
        store: KVStore,
        scheduler: PersistenceScheduler,
        config: CacheConfig,
        checkpoints: CheckpointLog | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.scheduler = scheduler
        self.config = config
        self.checkpoints = checkpoints
        self._clock = clock
        self._latest: dict[str, ChatSession] = {}

    def restore(self, task_identity: str, path: str) -> ChatSession | None:
        key = keys.chat_key(task_identity, path)
        try:
            raw = self.store.read(key)
        except StorageFailure as e:
            logger.warning(f"Failed to read chat session for {path}: {e}")
            return None

        data = decode_record(keys.CHAT, raw)
        if data is None:
            return None

        try:
            session = ChatSession.from_dict(data)
        except ValueError as e:
            logger.warning(f"Discarding malformed chat session for {path}: {e}")
            return None

        if session.task_identity != task_identity or session.path != path:
            logger.info(f"Chat session under {key} belongs to {session.path}, ignoring")
            return None

        expiry_hours = self.config.chat_expiry_hours
        if expiry_hours > 0 and self._clock() - session.timestamp > expiry_hours * 3600:
            logger.info(f"Chat session for {path} expired")
            self._remove(key)
            return None

        logger.info(f"Chat session restored for {path}")
        return session

    def save(self, session: ChatSession) -> None:
        """Stage ``session`` for a debounced write."""
        key = keys.chat_key(session.task_identity, session.path)
        self._latest[key] = session
        self.scheduler.schedule(key, lambda: self._produce(key), self.config.chat_debounce_ms)

    def clear(self, task_identity: str, path: str) -> None:
        """Drop the session and the task's checkpoints now."""
        key = keys.chat_key(task_identity, path)
        self.cancel_pending(task_identity, path)
        self._remove(key)
        if self.checkpoints is not None:
            self.checkpoints.clear(task_identity)
        logger.debug(f"Chat session cleared for {path}")

    def cancel_pending(self, task_identity: str, path: str) -> bool:
        key = keys.chat_key(task_identity, path)
        self._latest.pop(key, None)
        return self.scheduler.cancel(key)

    def _produce(self, key: str) -> str | None:
        session = self._latest.pop(key, None)
        if session is None:
            return None
        stamped = replace(session, timestamp=self._clock())
        return encode_record(keys.CHAT, stamped.to_dict())

    def _remove(self, key: str) -> None:
        try:
            self.store.remove(key)
        except StorageFailure as e:
            logger.warning(f"Failed to remove {key}: {e}")
