"""Assistant conversation state around an opaque AI edit call.

For every request the session:

1. appends the user turn to the transcript,
2. snapshots the current content into the checkpoint log,
3. awaits ``ask(message, content, history)`` for the new content,
4. appends an assistant turn that references the checkpoint.

The transcript and the panel's expanded flag are persisted through the
debounced chat session cache. ``switch_task`` resets and restores in one
synchronous step, so a previous task's transcript is never visible after a
switch.
"""

import logging
from collections.abc import Awaitable, Callable

from taskcache import keys
from taskcache.chat import ChatSessionCache
from taskcache.checkpoints import CheckpointLog, describe_request
from taskcache.models import ChatMessage, ChatSession, Checkpoint, utc_now_iso
from taskcache.types import DocumentPath, TaskIdentity

logger = logging.getLogger(__name__)

# (message, current content, prior turns as {"role", "content"}) -> new content
AskCallable = Callable[[str, str, list[dict[str, str]]], Awaitable[str]]

UPDATED_REPLY = "Task updated successfully"
ERROR_REPLY = "Sorry, I encountered an error processing your request."


class AssistantSession:
    def __init__(self, chats: ChatSessionCache, checkpoints: CheckpointLog, ask: AskCallable):
        self.chats = chats
        self.checkpoints = checkpoints
        self.ask = ask

        self.task_identity: TaskIdentity | None = None
        self.path: DocumentPath | None = None
        self.transcript: list[ChatMessage] = []
        self.is_expanded = False

    def switch_task(self, task_identity: str, path: str) -> bool:
        """Make (task_identity, path) the active task. Returns True if a session was restored."""
        if self.task_identity is not None and self.path is not None:
            if (self.task_identity, self.path) != (task_identity, path):
                self.chats.cancel_pending(self.task_identity, self.path)
            else:
                # Reselecting the active task: persist pending turns before reading them back
                self.chats.scheduler.flush(keys.chat_key(task_identity, path))

        session = self.chats.restore(task_identity, path)

        self.task_identity = TaskIdentity(task_identity)
        self.path = DocumentPath(path)
        self.transcript = list(session.transcript) if session else []
        self.is_expanded = session.is_expanded if session else False
        return session is not None

    async def send(self, message: str, current_content: str) -> str | None:
        """Run one assistant request. Returns the new content, or None on failure."""
        self._require_task()
        text = message.strip()
        if not text:
            return None

        task_identity, path = self.task_identity, self.path
        history = [{"role": m.role, "content": m.content} for m in self.transcript]

        self.transcript.append(ChatMessage(role="user", content=text, timestamp=utc_now_iso()))
        self._persist()

        # Snapshot before the edit lands; a failed append must not block it
        checkpoint_id = self.checkpoints.append(
            task_identity,
            current_content,
            describe_request(text),
            chat_message=text,
        )

        try:
            updated = await self.ask(text, current_content, history)
        except Exception as e:
            logger.error(f"Assistant request failed for {path}: {e}")
            if (self.task_identity, self.path) == (task_identity, path):
                self.transcript.append(
                    ChatMessage(role="assistant", content=ERROR_REPLY, timestamp=utc_now_iso())
                )
                self._persist()
            return None

        if (self.task_identity, self.path) != (task_identity, path):
            logger.info(f"Task switched while waiting on the assistant; dropping reply for {path}")
            return None

        self.transcript.append(
            ChatMessage(
                role="assistant",
                content=UPDATED_REPLY,
                timestamp=utc_now_iso(),
                checkpoint_id=checkpoint_id,
            )
        )
        self._persist()
        return updated

    def toggle_expanded(self) -> bool:
        self._require_task()
        self.is_expanded = not self.is_expanded
        self._persist()
        return self.is_expanded

    def list_checkpoints(self) -> list[Checkpoint]:
        self._require_task()
        return self.checkpoints.list(self.task_identity)

    def checkpoint_for(self, message: ChatMessage) -> Checkpoint | None:
        """Checkpoint referenced by ``message``; None if absent or evicted."""
        self._require_task()
        if not message.checkpoint_id:
            return None
        return self.checkpoints.get(self.task_identity, message.checkpoint_id)

    def clear(self) -> None:
        """Forget the transcript and the task's checkpoints."""
        self._require_task()
        self.chats.clear(self.task_identity, self.path)
        if self.chats.checkpoints is not self.checkpoints:
            self.checkpoints.clear(self.task_identity)
        self.transcript = []

    def _persist(self) -> None:
        self.chats.save(
            ChatSession(
                task_identity=self.task_identity,
                path=self.path,
                transcript=tuple(self.transcript),
                is_expanded=self.is_expanded,
            )
        )

    def _require_task(self) -> None:
        if self.task_identity is None or self.path is None:
            raise RuntimeError("No active task")
