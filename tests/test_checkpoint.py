"""Tests for taskcache.checkpoints module."""

import json
import re

from taskcache import keys
from taskcache.checkpoints import CheckpointLog, describe_request, generate_checkpoint_id
from taskcache.config import CacheConfig

TASK = "3f2a9c"


class TestGenerateCheckpointId:
    """Tests for generate_checkpoint_id()."""

    def test_format(self):
        """Ids look like checkpoint_<seconds>_<counter>_<hex>."""
        assert re.fullmatch(r"checkpoint_\d+_\d+_[0-9a-f]{6}", generate_checkpoint_id())

    def test_unique_within_process(self):
        """Ids generated back to back differ."""
        ids = {generate_checkpoint_id() for _ in range(1000)}
        assert len(ids) == 1000


class TestDescribeRequest:
    """Tests for describe_request()."""

    def test_short_message(self):
        """Short requests are described in full."""
        assert describe_request("add a deadline") == "Before: add a deadline"

    def test_long_message_truncated(self):
        """Long requests are cut with an ellipsis."""
        message = "x" * 60
        assert describe_request(message) == "Before: " + "x" * 40 + "..."


class TestAppendAndList:
    """Tests for append() and list()."""

    def test_list_newest_first(self, store):
        """list() returns the newest checkpoint first."""
        log = CheckpointLog(store, CacheConfig())
        for i in range(3):
            log.append(TASK, f"content {i}", f"desc {i}")

        assert [c.content for c in log.list(TASK)] == ["content 2", "content 1", "content 0"]

    def test_append_is_synchronous(self, store):
        """append() writes without waiting for a timer."""
        log = CheckpointLog(store, CacheConfig())
        log.append(TASK, "c", "d")
        assert store.read(keys.checkpoint_key(TASK)) is not None

    def test_append_returns_id(self, store):
        """append() returns the new checkpoint's id."""
        log = CheckpointLog(store, CacheConfig(), id_factory=lambda: "cp-fixed")
        assert log.append(TASK, "c", "d", chat_message="make it shorter") == "cp-fixed"
        (cp,) = log.list(TASK)
        assert cp.chat_message == "make it shorter"
        assert cp.task_identity == TASK

    def test_cap_evicts_oldest(self, store):
        """21 appends against a cap of 20 keep the 20 most recent."""
        log = CheckpointLog(store, CacheConfig())
        for i in range(21):
            log.append(TASK, f"content {i}", "d")

        entries = log.list(TASK)
        assert len(entries) == 20
        assert entries[0].content == "content 20"
        assert entries[-1].content == "content 1"

    def test_custom_cap(self, store):
        """The configured cap is honoured."""
        log = CheckpointLog(store, CacheConfig(checkpoint_cap=2))
        for i in range(5):
            log.append(TASK, str(i), "d")
        assert [c.content for c in log.list(TASK)] == ["4", "3"]

    def test_tasks_are_isolated(self, store):
        """Checkpoints of one task never show up for another."""
        log = CheckpointLog(store, CacheConfig())
        log.append("task-a", "a", "d")
        log.append("task-b", "b", "d")
        assert [c.content for c in log.list("task-a")] == ["a"]

    def test_storage_failure_returns_none(self, failing_store):
        """A failed write returns None instead of raising."""
        log = CheckpointLog(failing_store, CacheConfig())
        assert log.append(TASK, "c", "d") is None
        assert log.list(TASK) == []


class TestGet:
    """Tests for get()."""

    def test_finds_checkpoint(self, store):
        """get() returns a stored checkpoint."""
        log = CheckpointLog(store, CacheConfig())
        checkpoint_id = log.append(TASK, "snapshot", "d")
        assert log.get(TASK, checkpoint_id).content == "snapshot"

    def test_evicted_id_is_a_miss(self, store):
        """get() on an evicted id returns None."""
        log = CheckpointLog(store, CacheConfig(checkpoint_cap=1))
        first = log.append(TASK, "one", "d")
        log.append(TASK, "two", "d")
        assert log.get(TASK, first) is None

    def test_unknown_id_is_a_miss(self, store):
        """get() on an unknown id returns None."""
        assert CheckpointLog(store, CacheConfig()).get(TASK, "checkpoint_0_0_000000") is None


class TestClearAndCorruption:
    """Tests for clear() and tolerance of bad records."""

    def test_clear(self, store):
        """clear() removes every checkpoint of the task."""
        log = CheckpointLog(store, CacheConfig())
        log.append(TASK, "c", "d")
        log.clear(TASK)
        assert log.list(TASK) == []

    def test_corrupt_record_reads_as_empty(self, store):
        """A corrupt log reads as no checkpoints."""
        store.write(keys.checkpoint_key(TASK), "garbage")
        log = CheckpointLog(store, CacheConfig())
        assert log.list(TASK) == []
        # And appending starts a fresh list
        log.append(TASK, "c", "d")
        assert len(log.list(TASK)) == 1

    def test_malformed_items_skipped(self, store):
        """Malformed entries are skipped, valid ones kept."""
        log = CheckpointLog(store, CacheConfig())
        log.append(TASK, "good", "d")
        envelope = json.loads(store.read(keys.checkpoint_key(TASK)))
        envelope["data"].append({"id": 42})
        store.write(keys.checkpoint_key(TASK), json.dumps(envelope))

        assert [c.content for c in log.list(TASK)] == ["good"]
