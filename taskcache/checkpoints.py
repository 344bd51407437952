"""Checkpoint log: capped, ordered content snapshots per task.

A checkpoint is appended right before an AI-driven edit is applied, so the
pre-edit content can be restored. The list is stored oldest-first under
``checkpoints:{task_identity}`` and shown newest-first. When it grows past
``checkpoint_cap`` the oldest entries are evicted.

Appends are written synchronously. A failed append is logged and swallowed:
losing an undo point must never block the edit it was guarding.
"""

from __future__ import annotations

import itertools
import logging
import secrets
import time
from collections.abc import Callable

from taskcache import keys
from taskcache.codec import decode_record, encode_record
from taskcache.config import CacheConfig
from taskcache.errors import StorageFailure
from taskcache.models import Checkpoint, utc_now_iso
from taskcache.store import KVStore
from taskcache.types import CheckpointId, TaskIdentity

logger = logging.getLogger(__name__)

_counter = itertools.count(1)

# Requests longer than this are shortened in the description
DESCRIPTION_MAX_CHARS = 40


def generate_checkpoint_id() -> CheckpointId:
    """Return an id unique within this process (and very likely across them)."""
    ms = int(time.time() * 1000)
    return CheckpointId(f"checkpoint_{ms}_{next(_counter)}_{secrets.token_hex(3)}")


def describe_request(message: str) -> str:
    """Checkpoint description for the request that triggered it."""
    message = message.strip()
    if len(message) > DESCRIPTION_MAX_CHARS:
        message = message[:DESCRIPTION_MAX_CHARS] + "..."
    return f"Before: {message}"


class CheckpointLog:
    def __init__(
        self,
        store: KVStore,
        config: CacheConfig,
        id_factory: Callable[[], CheckpointId] = generate_checkpoint_id,
    ):
        self.store = store
        self.config = config
        self._id_factory = id_factory

    def append(
        self,
        task_identity: str,
        content: str,
        description: str,
        chat_message: str = "",
    ) -> CheckpointId | None:
        """Record a snapshot. Returns its id, or None if it could not be stored."""
        checkpoint = Checkpoint(
            id=self._id_factory(),
            task_identity=TaskIdentity(task_identity),
            content=content,
            description=description,
            timestamp=utc_now_iso(),
            chat_message=chat_message,
        )

        entries = self._load(task_identity) + [checkpoint]
        cap = self.config.checkpoint_cap
        if cap > 0 and len(entries) > cap:
            evicted = len(entries) - cap
            entries = entries[evicted:]
            logger.debug(f"Evicted {evicted} oldest checkpoint(s) for {task_identity}")

        try:
            self.store.write(
                keys.checkpoint_key(task_identity),
                encode_record(keys.CHECKPOINTS, [c.to_dict() for c in entries]),
            )
        except StorageFailure as e:
            logger.warning(f"Failed to save checkpoint for {task_identity}: {e}")
            return None

        return checkpoint.id

    def list(self, task_identity: str) -> list[Checkpoint]:
        """Checkpoints for the task, most recent first."""
        return list(reversed(self._load(task_identity)))

    def get(self, task_identity: str, checkpoint_id: str) -> Checkpoint | None:
        """Look up one checkpoint. Evicted or unknown ids return None."""
        for checkpoint in self._load(task_identity):
            if checkpoint.id == checkpoint_id:
                return checkpoint
        return None

    def clear(self, task_identity: str) -> None:
        try:
            self.store.remove(keys.checkpoint_key(task_identity))
        except StorageFailure as e:
            logger.warning(f"Failed to clear checkpoints for {task_identity}: {e}")

    def _load(self, task_identity: str) -> list[Checkpoint]:
        """Stored checkpoints, oldest first. Empty on any failure."""
        try:
            raw = self.store.read(keys.checkpoint_key(task_identity))
        except StorageFailure as e:
            logger.warning(f"Failed to read checkpoints for {task_identity}: {e}")
            return []

        data = decode_record(keys.CHECKPOINTS, raw)
        if data is None:
            return []
        if not isinstance(data, list):
            logger.warning(f"Discarding malformed checkpoint list for {task_identity}")
            return []

        checkpoints = []
        for item in data:
            try:
                checkpoints.append(Checkpoint.from_dict(item))
            except ValueError as e:
                logger.warning(f"Skipping malformed checkpoint for {task_identity}: {e}")
        return checkpoints
