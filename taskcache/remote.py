"""Remote document store contract.

The remote version-control host is treated as a key/value document store.
Anything that implements ``RemoteStore`` can back the resolver and the task
service; ``InMemoryRemoteStore`` is the reference implementation, and
``taskcache.git.GitRemoteStore`` works against a local git checkout.

Error contract:
- ``get_metadata`` returns None when the path does not exist and raises
  ``RemoteProbeFailure`` for anything else. "Could not check" is never
  reported as "absent".
- ``create_or_update`` and ``delete`` raise ``RemoteWriteFailure``;
  ``RemoteConflict`` when a supplied sha is stale, or when no sha is
  supplied for a path that already exists (a sha-less write only creates).
"""

from __future__ import annotations

import hashlib
import logging
from typing import Protocol

from taskcache.errors import RemoteConflict, RemoteWriteFailure
from taskcache.models import RemoteFile
from taskcache.types import DocumentPath

logger = logging.getLogger(__name__)


class RemoteStore(Protocol):
    async def get_metadata(self, path: str) -> RemoteFile | None:
        ...

    async def create_or_update(
        self,
        path: str,
        content: str,
        message: str,
        sha: str | None = None,
    ) -> RemoteFile:
        ...

    async def list(self, folder: str) -> list[str]:
        ...

    async def delete(self, path: str, message: str) -> None:
        ...


def blob_sha(content: str) -> str:
    """Git blob hash of ``content``; the same id git and GitHub report."""
    data = content.encode("utf-8")
    return hashlib.sha1(b"blob %d\0" % len(data) + data).hexdigest()  # noqa: S324


class InMemoryRemoteStore:
    """Dict-backed remote, with a commit log for inspection."""

    def __init__(self, files: dict[str, str] | None = None):
        self.files: dict[str, str] = dict(files or {})
        self.commits: list[tuple[str, str]] = []  # (message, path)

    async def get_metadata(self, path: str) -> RemoteFile | None:
        if path not in self.files:
            return None
        return RemoteFile(path=DocumentPath(path), sha=blob_sha(self.files[path]))

    async def create_or_update(
        self,
        path: str,
        content: str,
        message: str,
        sha: str | None = None,
    ) -> RemoteFile:
        if sha is not None:
            if path not in self.files:
                raise RemoteWriteFailure(path, "sha supplied for a file that does not exist")
            current = blob_sha(self.files[path])
            if current != sha:
                raise RemoteConflict(path, f"sha {sha[:7]} does not match {current[:7]}")
        elif path in self.files:
            raise RemoteConflict(path, "file already exists and no sha was supplied")

        self.files[path] = content
        self.commits.append((message, path))
        logger.debug(f"Wrote {path}: {message}")
        return RemoteFile(path=DocumentPath(path), sha=blob_sha(content))

    async def list(self, folder: str) -> list[str]:
        prefix = folder.rstrip("/") + "/"
        return sorted(p for p in self.files if p.startswith(prefix) and "/" not in p[len(prefix) :])

    async def delete(self, path: str, message: str) -> None:
        if path not in self.files:
            raise RemoteWriteFailure(path, "file does not exist")
        del self.files[path]
        self.commits.append((message, path))
