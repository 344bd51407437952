"""taskcache: local-first drafts, checkpoints and chat sessions for remote task documents."""

__version__ = "0.3.0"

# Branded types for type-safe IDs
from taskcache.types import CheckpointId, DocumentPath, TaskIdentity

__all__ = [
    "__version__",
    "CheckpointId",
    "DocumentPath",
    "TaskIdentity",
]
