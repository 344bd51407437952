"""Filename collision resolution against the remote store.

Probes ``base``, then ``base-1``, ``base-2``, … (suffixes always derived from
the original base) and returns the first path the remote reports as absent.
A probe that fails for any reason other than absence aborts the resolution:
an unverifiable path is never treated as free.
"""

import logging

from taskcache.errors import CollisionLimitExceeded, RemoteProbeFailure, RemoteWriteFailure, TaskCacheError
from taskcache.models import RemoteFile
from taskcache.naming import candidate_path
from taskcache.remote import RemoteStore
from taskcache.types import DocumentPath

logger = logging.getLogger(__name__)

DEFAULT_MAX_SUFFIX = 1000


class CollisionResolver:
    def __init__(self, remote: RemoteStore, max_suffix: int = DEFAULT_MAX_SUFFIX):
        self.remote = remote
        self.max_suffix = max_suffix

    async def resolve(self, base_path: str) -> DocumentPath:
        """First free candidate for ``base_path``.

        Raises:
            RemoteProbeFailure: a probe failed for a reason other than absence
            CollisionLimitExceeded: every candidate up to ``max_suffix`` is taken
        """
        for attempt in range(self.max_suffix + 1):
            candidate = candidate_path(base_path, attempt)
            try:
                existing = await self.remote.get_metadata(candidate)
            except TaskCacheError:
                raise
            except Exception as e:
                raise RemoteProbeFailure(candidate, str(e)) from e
            if existing is None:
                if attempt:
                    logger.info(f"{base_path} taken, using {candidate}")
                return candidate
            logger.debug(f"Collision on {candidate}")

        raise CollisionLimitExceeded(base_path, self.max_suffix)

    async def create(self, base_path: str, content: str, message: str) -> RemoteFile:
        """Resolve a free path and create the file there.

        The create is a single write with no sha, which stores treat as
        create-only: a path claimed by someone else between the probe and the
        write surfaces as ``RemoteConflict``.
        """
        path = await self.resolve(base_path)
        try:
            return await self.remote.create_or_update(path, content, message)
        except TaskCacheError:
            raise
        except Exception as e:
            raise RemoteWriteFailure(path, str(e)) from e
