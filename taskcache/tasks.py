"""Task document operations on top of a remote store.

Creation and renaming go through the collision resolver, so a new document
never overwrites an existing one. Updates carry the remote sha and are
retried on conflict with a freshly fetched sha.
"""

from __future__ import annotations

import datetime
import logging
import posixpath

from taskcache.config import CacheConfig
from taskcache.errors import RemoteConflict, RemoteWriteFailure
from taskcache.models import RemoteFile
from taskcache.naming import date_stamp_of, task_path
from taskcache.remote import RemoteStore
from taskcache.resolver import CollisionResolver

logger = logging.getLogger(__name__)


class TaskService:
    def __init__(self, remote: RemoteStore, resolver: CollisionResolver, config: CacheConfig):
        self.remote = remote
        self.resolver = resolver
        self.config = config

    async def create_task(
        self,
        title: str,
        content: str,
        *,
        date: datetime.date | str | None = None,
        message: str | None = None,
    ) -> RemoteFile:
        base = task_path(self.config.folder, title, date)
        created = await self.resolver.create(base, content, message or f'feat: Add new todo for "{title}"')
        logger.info(f"Created task {created.path}")
        return created

    async def update_task(
        self,
        path: str,
        content: str,
        message: str,
        sha: str | None = None,
    ) -> RemoteFile:
        """Write ``content`` to an existing path.

        Without a sha the current one is fetched first. On a sha conflict the
        sha is refetched and the write retried, up to ``update_max_retries``
        times; the last conflict propagates.
        """
        if sha is None:
            sha = await self._current_sha(path)

        retries = self.config.update_max_retries
        for attempt in range(retries + 1):
            try:
                return await self.remote.create_or_update(path, content, message, sha)
            except RemoteConflict:
                if attempt == retries:
                    raise
                logger.warning(f"Conflict updating {path}, retrying ({attempt + 1}/{retries})")
                sha = await self._current_sha(path)

        raise AssertionError("unreachable")

    async def rename_task(
        self,
        path: str,
        new_title: str,
        content: str,
        message: str | None = None,
    ) -> RemoteFile:
        """Move a task to the path for ``new_title``, keeping its date stamp.

        The new file is created before the old one is deleted. When the title
        maps to the same path, this is a plain update.
        """
        folder = posixpath.dirname(path)
        new_base = task_path(folder, new_title, date_stamp_of(path))
        if new_base == path:
            return await self.update_task(path, content, message or f'docs: Update title to "{new_title}"')

        created = await self.resolver.create(new_base, content, message or f'docs: Rename task to "{new_title}"')
        try:
            await self.remote.delete(path, f'docs: Remove old file after renaming to "{new_title}"')
        except RemoteWriteFailure:
            logger.error(f"Renamed {path} to {created.path} but could not delete the old file")
            raise
        logger.info(f"Renamed {path} to {created.path}")
        return created

    async def list_tasks(self) -> list[str]:
        """Markdown documents in the configured folder."""
        paths = await self.remote.list(self.config.folder)
        return [p for p in paths if p.endswith(".md")]

    async def _current_sha(self, path: str) -> str | None:
        meta = await self.remote.get_metadata(path)
        return meta.sha if meta else None
