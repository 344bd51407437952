"""Cache entities: drafts, checkpoints and chat sessions.

All entities are frozen. Updating one means building a new instance with
``dataclasses.replace``; the caches store whatever instance they were last
given (last writer wins).

``from_dict`` raises ``ValueError`` on malformed input. The caches turn that
into "absent".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from taskcache.types import CheckpointId, DocumentPath, TaskIdentity

ROLES = ("user", "assistant")


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _require_str(data: dict, name: str) -> str:
    value = data.get(name)
    if not isinstance(value, str):
        raise ValueError(f"'{name}' must be a string")
    return value


def _require_number(data: dict, name: str) -> float:
    value = data.get(name)
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{name}' must be a number")
    return float(value)


@dataclass(frozen=True)
class Draft:
    """Unsaved edit/view content for one task document.

    ``timestamp`` is the Unix time of the last persist, used for expiry.
    """

    task_identity: TaskIdentity
    path: DocumentPath
    edit_content: str
    view_content: str
    dirty: bool = True
    timestamp: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_identity": self.task_identity,
            "path": self.path,
            "edit_content": self.edit_content,
            "view_content": self.view_content,
            "dirty": self.dirty,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Draft:
        if not isinstance(data, dict):
            raise ValueError("Draft data must be a dictionary")
        dirty = data.get("dirty")
        if not isinstance(dirty, bool):
            raise ValueError("'dirty' must be a boolean")
        return cls(
            task_identity=TaskIdentity(_require_str(data, "task_identity")),
            path=DocumentPath(_require_str(data, "path")),
            edit_content=_require_str(data, "edit_content"),
            view_content=_require_str(data, "view_content"),
            dirty=dirty,
            timestamp=_require_number(data, "timestamp"),
        )


@dataclass(frozen=True)
class Checkpoint:
    """Content snapshot taken right before an AI-driven edit."""

    id: CheckpointId
    task_identity: TaskIdentity
    content: str
    description: str
    timestamp: str  # ISO 8601, UTC
    chat_message: str = ""  # The request that led to the edit

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "task_identity": self.task_identity,
            "content": self.content,
            "description": self.description,
            "timestamp": self.timestamp,
            "chat_message": self.chat_message,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Checkpoint:
        if not isinstance(data, dict):
            raise ValueError("Checkpoint data must be a dictionary")
        return cls(
            id=CheckpointId(_require_str(data, "id")),
            task_identity=TaskIdentity(_require_str(data, "task_identity")),
            content=_require_str(data, "content"),
            description=_require_str(data, "description"),
            timestamp=_require_str(data, "timestamp"),
            chat_message=data.get("chat_message") or "",
        )


@dataclass(frozen=True)
class ChatMessage:
    """One transcript turn.

    ``checkpoint_id`` may point at a checkpoint that has since been evicted;
    lookups must treat that as a miss.
    """

    role: str  # "user" | "assistant"
    content: str
    timestamp: str
    checkpoint_id: CheckpointId | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp,
        }
        if self.checkpoint_id:
            data["checkpoint_id"] = self.checkpoint_id
        return data

    @classmethod
    def from_dict(cls, data: Any) -> ChatMessage:
        if not isinstance(data, dict):
            raise ValueError("Chat message must be a dictionary")
        role = _require_str(data, "role")
        if role not in ROLES:
            raise ValueError(f"Unknown chat role: {role!r}")
        checkpoint_id = data.get("checkpoint_id")
        return cls(
            role=role,
            content=_require_str(data, "content"),
            timestamp=_require_str(data, "timestamp"),
            checkpoint_id=CheckpointId(checkpoint_id) if isinstance(checkpoint_id, str) else None,
        )


@dataclass(frozen=True)
class ChatSession:
    """Assistant transcript and panel state for one task document."""

    task_identity: TaskIdentity
    path: DocumentPath
    transcript: tuple[ChatMessage, ...] = ()
    is_expanded: bool = False
    timestamp: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_identity": self.task_identity,
            "path": self.path,
            "transcript": [m.to_dict() for m in self.transcript],
            "is_expanded": self.is_expanded,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Any) -> ChatSession:
        if not isinstance(data, dict):
            raise ValueError("Chat session data must be a dictionary")
        transcript = data.get("transcript", [])
        if not isinstance(transcript, list):
            raise ValueError("'transcript' must be a list")
        return cls(
            task_identity=TaskIdentity(_require_str(data, "task_identity")),
            path=DocumentPath(_require_str(data, "path")),
            transcript=tuple(ChatMessage.from_dict(m) for m in transcript),
            is_expanded=bool(data.get("is_expanded", False)),
            timestamp=_require_number(data, "timestamp"),
        )


@dataclass(frozen=True)
class RemoteFile:
    """Metadata of a document in the remote store.

    ``sha`` is the content identity; a task's ``TaskIdentity`` is derived
    from it.
    """

    path: DocumentPath
    sha: str
    extra: dict[str, Any] = field(default_factory=dict)
