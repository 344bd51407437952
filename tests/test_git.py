"""Tests for taskcache.git module.

Uses real git repositories in temp directories; skipped when git is not
available.
"""

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from taskcache.errors import RemoteConflict, RemoteProbeFailure, RemoteWriteFailure
from taskcache.git import GitRemoteStore, _run_git, is_git_repo, normalize_path
from taskcache.remote import blob_sha

pytestmark = pytest.mark.asyncio


def _init_git_repo(path: Path) -> bool:
    """Initialize a git repo with one commit at the given path."""
    try:
        subprocess.run(["git", "init"], cwd=path, capture_output=True, check=True)
        subprocess.run(["git", "config", "user.email", "test@test.com"], cwd=path, capture_output=True)
        subprocess.run(["git", "config", "user.name", "Test User"], cwd=path, capture_output=True)
        subprocess.run(["git", "config", "core.autocrlf", "false"], cwd=path, capture_output=True)
        (path / "README.md").write_text("Test repo")
        subprocess.run(["git", "add", "."], cwd=path, capture_output=True)
        subprocess.run(["git", "commit", "-m", "Initial commit"], cwd=path, capture_output=True, check=True)
        return True
    except (subprocess.CalledProcessError, FileNotFoundError):
        return False


def _log(path: Path) -> list[str]:
    out = subprocess.run(["git", "log", "--format=%s"], cwd=path, capture_output=True, text=True, check=True)
    return out.stdout.splitlines()


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    if not _init_git_repo(tmp_path):
        pytest.skip("git not available")
    return tmp_path


class TestHelpers:
    """Tests for module-level helpers."""

    async def test_run_git_returns_none_when_git_missing(self, tmp_path: Path):
        """_run_git returns None when git is not installed."""
        with patch("taskcache.git.subprocess.run", side_effect=FileNotFoundError("git")):
            assert _run_git(["status"], cwd=tmp_path) is None

    async def test_is_git_repo(self, git_repo: Path, tmp_path_factory):
        """is_git_repo tells repositories from plain directories."""
        assert is_git_repo(git_repo) is True
        assert is_git_repo(tmp_path_factory.mktemp("plain")) is False

    async def test_normalize_path(self):
        """normalize_path rejects empty, absolute and escaping paths."""
        assert normalize_path("todos//a.md") == "todos/a.md"
        assert normalize_path("./todos/a.md") == "todos/a.md"
        for bad in ("", "/etc/passwd", "../outside.md", "todos/../../x"):
            with pytest.raises(ValueError):
                normalize_path(bad)


class TestGetMetadata:
    """Tests for GitRemoteStore.get_metadata()."""

    async def test_absent_file(self, git_repo: Path):
        """An unknown path has no metadata."""
        assert await GitRemoteStore(git_repo).get_metadata("todos/a.md") is None

    async def test_tracked_file(self, git_repo: Path):
        """A committed file reports its blob sha."""
        meta = await GitRemoteStore(git_repo).get_metadata("README.md")
        assert meta.path == "README.md"
        assert meta.sha == blob_sha("Test repo")

    async def test_untracked_file_is_absent(self, git_repo: Path):
        """Uncommitted files count as absent."""
        (git_repo / "scratch.md").write_text("not committed")
        assert await GitRemoteStore(git_repo).get_metadata("scratch.md") is None

    async def test_not_a_repo_is_probe_failure(self, tmp_path: Path):
        """Probing outside a repository raises RemoteProbeFailure."""
        with pytest.raises(RemoteProbeFailure):
            await GitRemoteStore(tmp_path).get_metadata("todos/a.md")

    async def test_directory_is_probe_failure(self, git_repo: Path):
        """Probing a directory raises RemoteProbeFailure."""
        store = GitRemoteStore(git_repo)
        await store.create_or_update("todos/a.md", "x", "add")
        with pytest.raises(RemoteProbeFailure):
            await store.get_metadata("todos")

    async def test_escaping_path_is_probe_failure(self, git_repo: Path):
        """Paths leaving the repository raise RemoteProbeFailure."""
        with pytest.raises(RemoteProbeFailure):
            await GitRemoteStore(git_repo).get_metadata("../elsewhere.md")


class TestCreateOrUpdate:
    """Tests for GitRemoteStore.create_or_update()."""

    async def test_create_commits_file(self, git_repo: Path):
        """A create writes and commits the file."""
        store = GitRemoteStore(git_repo)

        created = await store.create_or_update("todos/2025-07-09-test.md", "# Test\n", "feat: Add new todo")

        assert (git_repo / "todos/2025-07-09-test.md").read_text() == "# Test\n"
        assert created.sha == blob_sha("# Test\n")
        assert (await store.get_metadata("todos/2025-07-09-test.md")).sha == created.sha
        assert _log(git_repo)[0] == "feat: Add new todo"

    async def test_commit_only_touches_target(self, git_repo: Path):
        """Unrelated working-tree changes stay uncommitted."""
        (git_repo / "README.md").write_text("local edit")
        store = GitRemoteStore(git_repo)

        await store.create_or_update("todos/a.md", "a", "add a")

        assert (await store.get_metadata("README.md")).sha == blob_sha("Test repo")

    async def test_update_with_sha(self, git_repo: Path):
        """An update with the current sha commits the new content."""
        store = GitRemoteStore(git_repo)
        first = await store.create_or_update("todos/a.md", "v1", "add")

        second = await store.create_or_update("todos/a.md", "v2", "update", sha=first.sha)

        assert second.sha == blob_sha("v2")
        assert _log(git_repo)[:2] == ["update", "add"]

    async def test_stale_sha_conflicts(self, git_repo: Path):
        """A stale sha raises RemoteConflict and leaves the file."""
        store = GitRemoteStore(git_repo)
        first = await store.create_or_update("todos/a.md", "v1", "add")
        await store.create_or_update("todos/a.md", "v2", "update", sha=first.sha)

        with pytest.raises(RemoteConflict):
            await store.create_or_update("todos/a.md", "v3", "late update", sha=first.sha)
        assert (git_repo / "todos/a.md").read_text() == "v2"

    async def test_sha_for_missing_file(self, git_repo: Path):
        """A sha for a missing file raises RemoteWriteFailure."""
        with pytest.raises(RemoteWriteFailure):
            await GitRemoteStore(git_repo).create_or_update("todos/a.md", "v", "m", sha=blob_sha("x"))

    async def test_create_without_sha_never_overwrites(self, git_repo: Path):
        """A sha-less write to a committed file conflicts."""
        store = GitRemoteStore(git_repo)
        await store.create_or_update("todos/a.md", "v1", "add")

        with pytest.raises(RemoteConflict):
            await store.create_or_update("todos/a.md", "v2", "add again")
        assert (git_repo / "todos/a.md").read_text() == "v1"

    async def test_unchanged_content_is_not_an_error(self, git_repo: Path):
        """Rewriting identical content makes no commit."""
        store = GitRemoteStore(git_repo)
        first = await store.create_or_update("todos/a.md", "same", "add")
        again = await store.create_or_update("todos/a.md", "same", "noop", sha=first.sha)
        assert again.sha == first.sha
        assert "noop" not in _log(git_repo)

    async def test_not_a_repo(self, tmp_path: Path):
        """Writing outside a repository raises RemoteWriteFailure."""
        with pytest.raises(RemoteWriteFailure):
            await GitRemoteStore(tmp_path).create_or_update("todos/a.md", "v", "m")


class TestListAndDelete:
    """Tests for GitRemoteStore.list() and delete()."""

    async def test_list_committed_children(self, git_repo: Path):
        """list() returns the folder's committed entries."""
        store = GitRemoteStore(git_repo)
        await store.create_or_update("todos/b.md", "b", "add b")
        await store.create_or_update("todos/a.md", "a", "add a")
        await store.create_or_update("todos/archive/old.md", "old", "archive")

        assert await store.list("todos") == ["todos/a.md", "todos/archive", "todos/b.md"]

    async def test_list_missing_folder(self, git_repo: Path):
        """A missing folder lists as empty."""
        assert await GitRemoteStore(git_repo).list("todos") == []

    async def test_delete(self, git_repo: Path):
        """delete() removes and commits."""
        store = GitRemoteStore(git_repo)
        await store.create_or_update("todos/a.md", "a", "add a")

        await store.delete("todos/a.md", "docs: remove")

        assert await store.get_metadata("todos/a.md") is None
        assert not (git_repo / "todos/a.md").exists()
        assert _log(git_repo)[0] == "docs: remove"

    async def test_delete_missing(self, git_repo: Path):
        """Deleting a missing file raises RemoteWriteFailure."""
        with pytest.raises(RemoteWriteFailure):
            await GitRemoteStore(git_repo).delete("todos/a.md", "remove")
