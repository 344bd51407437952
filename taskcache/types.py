"""Branded identifier types.

These are plain strings at runtime. The NewType wrappers keep a task identity
from being passed where a document path is expected.
"""

from typing import NewType

# Content hash of the remote document at load time; the cache partition key.
TaskIdentity = NewType("TaskIdentity", str)

# Location of a task document in the remote store, e.g. "todos/2025-07-09-test123.md".
DocumentPath = NewType("DocumentPath", str)

CheckpointId = NewType("CheckpointId", str)
