"""Editing session for one task document at a time.

Holds the three content snapshots of a session:

- ``content``: last version saved to (or loaded from) the remote
- ``edit_content``: the raw text being edited
- ``view_content``: the rendered view's text, which checkbox clicks mutate

and keeps the draft cache in step with them. Any mutation that leaves the
session dirty stages a debounced draft write; a mutation that makes it clean
again removes the stored draft.

Checkbox toggling differs by mode. In edit mode a toggle only stages a draft.
In view mode it is pushed to ``on_save`` immediately, and once that
succeeds any stored or pending draft is dropped.
Both behaviours are intentional and covered by tests.
"""

import logging
from collections.abc import Awaitable, Callable

from taskcache import keys
from taskcache.checkboxes import CheckboxCoordinate, scan_checkboxes, toggle_checkbox
from taskcache.drafts import DraftCache
from taskcache.models import Draft
from taskcache.types import DocumentPath, TaskIdentity

logger = logging.getLogger(__name__)

SaveCallback = Callable[[str], Awaitable[None]]


class EditorSession:
    def __init__(self, drafts: DraftCache, on_save: SaveCallback):
        self.drafts = drafts
        self.on_save = on_save

        self.task_identity: TaskIdentity | None = None
        self.path: DocumentPath | None = None
        self.content = ""
        self.edit_content = ""
        self.view_content = ""
        self.is_edit_mode = False
        self.draft_restored = False

        self._coordinates: tuple[CheckboxCoordinate, ...] = ()
        self._coordinates_for: tuple[bool, str] | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def dirty(self) -> bool:
        return self.edit_content != self.content or self.view_content != self.content

    @property
    def active_content(self) -> str:
        return self.edit_content if self.is_edit_mode else self.view_content

    def checkbox_coordinates(self) -> tuple[CheckboxCoordinate, ...]:
        """Checkboxes of the active content, rescanned on any content/mode change."""
        current = (self.is_edit_mode, self.active_content)
        if self._coordinates_for != current:
            self._coordinates = scan_checkboxes(self.active_content)
            self._coordinates_for = current
        return self._coordinates

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load(self, task_identity: str, path: str, content: str) -> bool:
        """Switch to a task document.

        Cancels the previous document's pending draft write (or flushes it when
        the same document is reloaded), then restores a stored draft (entering
        edit mode) or starts clean.
        Returns True if a draft was restored.
        """
        if self.task_identity is not None and self.path is not None:
            if (self.task_identity, self.path) != (task_identity, path):
                self.drafts.cancel_pending(self.task_identity, self.path)
            else:
                # Reloading the same document: land the pending write before reading it back
                self.drafts.scheduler.flush(keys.draft_key(task_identity, path))

        self.task_identity = TaskIdentity(task_identity)
        self.path = DocumentPath(path)
        self.content = content

        draft = self.drafts.restore(task_identity, path)
        if draft is not None:
            self.edit_content = draft.edit_content
            self.view_content = draft.view_content
            self.is_edit_mode = True
            self.draft_restored = True
            return True

        self.edit_content = content
        self.view_content = content
        self.is_edit_mode = False
        self.draft_restored = False
        return False

    async def save(self) -> str:
        """Push the active content to the remote, then drop the draft.

        If ``on_save`` raises, the draft is written immediately so the edit
        survives, and the error propagates.
        """
        self._require_loaded()
        to_save = self.active_content

        try:
            await self.on_save(to_save)
        except Exception:
            if self.dirty:
                self.drafts.save_now(self._snapshot())
            raise

        self.drafts.clear(self.task_identity, self.path)
        self.content = to_save
        self.edit_content = to_save
        self.view_content = to_save
        self.is_edit_mode = False
        self.draft_restored = False
        logger.info(f"Saved {self.path}")
        return to_save

    def discard(self) -> None:
        """Throw away local changes and the stored draft."""
        self._require_loaded()
        self.drafts.clear(self.task_identity, self.path)
        self.edit_content = self.content
        self.view_content = self.content
        self.is_edit_mode = False
        self.draft_restored = False

    def flush(self) -> bool:
        """Write a pending draft now instead of waiting for the debounce window."""
        if self.task_identity is None or self.path is None:
            return False
        return self.drafts.scheduler.flush(keys.draft_key(self.task_identity, self.path))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def edit(self, text: str) -> None:
        self._require_loaded()
        self.is_edit_mode = True
        self.edit_content = text
        self._stage()

    def toggle_mode(self) -> None:
        """Switch between edit and view, carrying the active text across."""
        self._require_loaded()
        if self.is_edit_mode:
            self.view_content = self.edit_content
        else:
            self.edit_content = self.view_content
        self.is_edit_mode = not self.is_edit_mode
        self._stage()

    async def toggle_checkbox(self, index: int) -> str:
        """Flip checkbox ``index`` of the active content and return the new text.

        Raises:
            IndexError: no such checkbox
        """
        self._require_loaded()
        updated = toggle_checkbox(self.active_content, self.checkbox_coordinates(), index)

        if self.is_edit_mode:
            self.edit_content = updated
            self._stage()
        else:
            await self.on_save(updated)
            self.drafts.clear(self.task_identity, self.path)
            self.content = updated
            self.edit_content = updated
            self.view_content = updated
            self.draft_restored = False
        return updated

    def apply_external_update(self, text: str) -> None:
        """Apply content produced elsewhere (the assistant) as a local edit."""
        self._require_loaded()
        if self.is_edit_mode:
            self.edit_content = text
        else:
            self.is_edit_mode = True
            self.edit_content = text
            self.view_content = text
        self._stage()

    def restore_content(self, text: str) -> None:
        """Replace the active content with a checkpoint snapshot; saving stays manual."""
        self._require_loaded()
        if self.is_edit_mode:
            self.edit_content = text
        else:
            self.view_content = text
        self._stage()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _snapshot(self) -> Draft:
        return Draft(
            task_identity=self.task_identity,
            path=self.path,
            edit_content=self.edit_content,
            view_content=self.view_content,
            dirty=self.dirty,
        )

    def _stage(self) -> None:
        if self.dirty:
            self.drafts.save(self._snapshot())
        else:
            self.drafts.clear(self.task_identity, self.path)

    def _require_loaded(self) -> None:
        if self.task_identity is None or self.path is None:
            raise RuntimeError("No task document loaded")
