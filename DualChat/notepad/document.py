"""
NotepadDocument - versioned shared notepad with undo/redo.

The document is an immutable value: every edit produces a new document.
History is a tuple of snapshots with a cursor; applying after an undo prunes
the forward history (branch-and-prune), undo/redo only move the cursor.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional, Sequence

from ..infrastructure.errors import NotepadValidationError
from .actions import NotepadAction

DEFAULT_NOTEPAD_CONTENT = (
    "This is the shared notepad.\n"
    "Both participants can edit and use it during the discussion."
)


@dataclass
class ApplyResult:
    """Result of applying a batch of actions."""
    document: "NotepadDocument"
    errors: list[str] = field(default_factory=list)
    applied: int = 0
    changed: bool = False


@dataclass(frozen=True)
class NotepadDocument:
    """Immutable notepad state: `content == history[cursor]`."""
    history: tuple[str, ...]
    cursor: int = 0
    last_updated_by: Optional[str] = None
    initial_content: str = DEFAULT_NOTEPAD_CONTENT

    def __post_init__(self):
        if not self.history:
            raise ValueError("NotepadDocument history must not be empty")
        if not 0 <= self.cursor < len(self.history):
            raise ValueError(f"cursor {self.cursor} outside history of {len(self.history)}")

    @classmethod
    def initial(cls, content: str = DEFAULT_NOTEPAD_CONTENT) -> "NotepadDocument":
        return cls(history=(content,), cursor=0, initial_content=content)

    @property
    def content(self) -> str:
        return self.history[self.cursor]

    @property
    def can_undo(self) -> bool:
        return self.cursor > 0

    @property
    def can_redo(self) -> bool:
        return self.cursor < len(self.history) - 1

    def _commit(self, content: str, actor: Optional[str]) -> "NotepadDocument":
        history = self.history[: self.cursor + 1] + (content,)
        return replace(self, history=history, cursor=len(history) - 1, last_updated_by=actor)

    def apply(self, actions: Sequence[NotepadAction], actor: Optional[str] = None) -> ApplyResult:
        """
        Apply actions in order to a working copy.

        Failing actions are recorded and skipped. A history entry is committed
        only if at least one action succeeded and the content actually changed.
        """
        working = self.content
        errors: list[str] = []
        applied = 0

        for index, action in enumerate(actions):
            try:
                working = action.apply(working, index)
            except NotepadValidationError as e:
                errors.append(e.message)
                continue
            applied += 1

        if applied and working != self.content:
            return ApplyResult(document=self._commit(working, actor), errors=errors, applied=applied, changed=True)
        return ApplyResult(document=self, errors=errors, applied=applied)

    def undo(self) -> tuple["NotepadDocument", bool]:
        if not self.can_undo:
            return self, False
        return replace(self, cursor=self.cursor - 1, last_updated_by=None), True

    def redo(self) -> tuple["NotepadDocument", bool]:
        if not self.can_redo:
            return self, False
        return replace(self, cursor=self.cursor + 1, last_updated_by=None), True

    def clear(self) -> "NotepadDocument":
        """Commit the initial template as a new undoable entry."""
        if self.content == self.initial_content:
            return self
        return self._commit(self.initial_content, None)


def format_for_prompt(content: str) -> str:
    """Render content with 1-based line numbers ("3: text")."""
    if not content.strip():
        return ""
    return "\n".join(f"{i}: {line}" for i, line in enumerate(content.split("\n"), start=1))


class Notepad:
    """Mutable holder of the current NotepadDocument for one session."""

    def __init__(self, initial_content: str = DEFAULT_NOTEPAD_CONTENT):
        self._document = NotepadDocument.initial(initial_content)

    @property
    def document(self) -> NotepadDocument:
        return self._document

    @property
    def content(self) -> str:
        return self._document.content

    @property
    def last_updated_by(self) -> Optional[str]:
        return self._document.last_updated_by

    @property
    def can_undo(self) -> bool:
        return self._document.can_undo

    @property
    def can_redo(self) -> bool:
        return self._document.can_redo

    def apply(self, actions: Sequence[NotepadAction], actor: Optional[str] = None) -> ApplyResult:
        result = self._document.apply(actions, actor)
        self._document = result.document
        return result

    def undo(self) -> bool:
        self._document, moved = self._document.undo()
        return moved

    def redo(self) -> bool:
        self._document, moved = self._document.redo()
        return moved

    def clear(self) -> None:
        self._document = self._document.clear()


__all__ = [
    "DEFAULT_NOTEPAD_CONTENT",
    "ApplyResult",
    "NotepadDocument",
    "Notepad",
    "format_for_prompt",
]
