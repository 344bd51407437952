"""Git checkout as a remote document store.

The committed tree at HEAD is the "remote": a path exists when HEAD tracks
it, and its sha is the blob id git reports. Writes stage a single file and
commit it with ``--no-verify``. Nothing is ever pushed.

Git runs through the CLI in a worker thread so the event loop stays free.
Operations on one store are serialized; git's index lock would reject
overlapping commits anyway.
"""

from __future__ import annotations

import asyncio
import logging
import posixpath
import subprocess
from pathlib import Path

from taskcache.errors import RemoteConflict, RemoteProbeFailure, RemoteWriteFailure
from taskcache.models import RemoteFile
from taskcache.remote import blob_sha
from taskcache.types import DocumentPath

logger = logging.getLogger(__name__)


def _run_git(args: list[str], cwd: Path | None = None) -> str | None:
    """Run a git command and return stdout, or None on failure."""
    try:
        result = subprocess.run(
            ["git", *args],  # noqa: S603, S607
            capture_output=True,
            text=True,
            timeout=5,
            cwd=cwd,
        )
        if result.returncode == 0:
            return result.stdout.strip()
        logger.debug(f"git {args[0]} exited {result.returncode}: {result.stderr.strip()}")
        return None
    except (subprocess.TimeoutExpired, FileNotFoundError, OSError) as e:
        logger.debug(f"Git command failed: {e}")
        return None


def is_git_repo(path: Path | None = None) -> bool:
    """Check if path is inside a git repository."""
    return _run_git(["rev-parse", "--git-dir"], cwd=path) is not None


def has_commits(path: Path | None = None) -> bool:
    return _run_git(["rev-parse", "--verify", "--quiet", "HEAD"], cwd=path) is not None


def normalize_path(path: str) -> str:
    """Repository-relative POSIX path, or ValueError if it escapes the checkout."""
    normalized = posixpath.normpath(path.strip())
    if normalized in ("", ".") or normalized.startswith("/") or normalized.split("/")[0] == "..":
        raise ValueError(f"Not a repository-relative path: {path!r}")
    return normalized


class GitRemoteStore:
    def __init__(self, repo_path: Path):
        self.repo_path = Path(repo_path)
        self._lock = asyncio.Lock()

    async def get_metadata(self, path: str) -> RemoteFile | None:
        async with self._lock:
            return await asyncio.to_thread(self._get_metadata, path)

    async def create_or_update(
        self,
        path: str,
        content: str,
        message: str,
        sha: str | None = None,
    ) -> RemoteFile:
        async with self._lock:
            return await asyncio.to_thread(self._create_or_update, path, content, message, sha)

    async def list(self, folder: str) -> list[str]:
        async with self._lock:
            return await asyncio.to_thread(self._list, folder)

    async def delete(self, path: str, message: str) -> None:
        async with self._lock:
            await asyncio.to_thread(self._delete, path, message)

    # ------------------------------------------------------------------
    # Blocking implementations
    # ------------------------------------------------------------------

    def _get_metadata(self, path: str) -> RemoteFile | None:
        try:
            relative = normalize_path(path)
        except ValueError as e:
            raise RemoteProbeFailure(path, str(e)) from e

        if not is_git_repo(self.repo_path):
            raise RemoteProbeFailure(path, f"{self.repo_path} is not a git repository")
        if not has_commits(self.repo_path):
            return None

        entry = _run_git(["ls-tree", "HEAD", "--", relative], cwd=self.repo_path)
        if entry is None:
            raise RemoteProbeFailure(path, "git ls-tree failed")
        if not entry:
            return None

        # "<mode> <type> <sha>\t<path>"
        meta, _, _ = entry.partition("\t")
        fields = meta.split()
        if len(fields) != 3 or fields[1] != "blob":
            raise RemoteProbeFailure(path, f"not a file: {entry}")
        return RemoteFile(path=DocumentPath(relative), sha=fields[2])

    def _create_or_update(
        self,
        path: str,
        content: str,
        message: str,
        sha: str | None,
    ) -> RemoteFile:
        try:
            current = self._get_metadata(path)
        except RemoteProbeFailure as e:
            raise RemoteWriteFailure(path, e.reason) from e

        relative = normalize_path(path)
        if sha is not None:
            if current is None:
                raise RemoteWriteFailure(path, "sha supplied for a file that does not exist")
            if current.sha != sha:
                raise RemoteConflict(path, f"sha {sha[:7]} does not match {current.sha[:7]}")
        elif current is not None:
            raise RemoteConflict(path, "file already exists and no sha was supplied")

        file_path = self.repo_path / relative
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(content, encoding="utf-8", newline="")
        except OSError as e:
            raise RemoteWriteFailure(path, str(e)) from e

        if _run_git(["add", "--", relative], cwd=self.repo_path) is None:
            raise RemoteWriteFailure(path, "git add failed")
        self._commit(relative, message)

        return RemoteFile(path=DocumentPath(relative), sha=blob_sha(content))

    def _list(self, folder: str) -> list[str]:
        if not is_git_repo(self.repo_path):
            raise RemoteProbeFailure(folder, f"{self.repo_path} is not a git repository")
        if not has_commits(self.repo_path):
            return []

        prefix = folder.strip("/")
        args = ["ls-tree", "--name-only", "HEAD"]
        if prefix:
            args += ["--", prefix + "/"]
        output = _run_git(args, cwd=self.repo_path)
        if output is None:
            raise RemoteProbeFailure(folder, "git ls-tree failed")
        return sorted(line for line in output.splitlines() if line)

    def _delete(self, path: str, message: str) -> None:
        try:
            current = self._get_metadata(path)
        except RemoteProbeFailure as e:
            raise RemoteWriteFailure(path, e.reason) from e
        if current is None:
            raise RemoteWriteFailure(path, "file does not exist")

        if _run_git(["rm", "-q", "--", current.path], cwd=self.repo_path) is None:
            raise RemoteWriteFailure(path, "git rm failed")
        self._commit(current.path, message)

    def _commit(self, relative: str, message: str) -> None:
        result = _run_git(["commit", "-q", "-m", message, "--no-verify", "--", relative], cwd=self.repo_path)
        if result is not None:
            logger.debug(f"Committed {relative}: {message}")
            return

        # Unchanged content leaves nothing to commit
        status = _run_git(["status", "--porcelain", "--", relative], cwd=self.repo_path)
        if status == "":
            logger.debug(f"{relative} unchanged, no commit needed")
            return
        raise RemoteWriteFailure(relative, "git commit failed")
