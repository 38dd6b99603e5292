"""
Notepad actions - typed edits the personas can request through markup.

Each action is a frozen dataclass with a `name` (the markup tag it came from)
and an `apply(content, index)` that returns the new content or raises
NotepadValidationError. Line numbers are 1-based against content.split("\\n").
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from ..infrastructure.errors import NotepadValidationError


def _split(content: str) -> list[str]:
    return content.split("\n")


def _out_of_range(index: int, name: str, line: int, total: int) -> NotepadValidationError:
    return NotepadValidationError(
        f'Action {index + 1} ("{name}") failed: line {line} out of range (total lines: {total})',
        action_index=index,
        action_name=name,
    )


@dataclass(frozen=True)
class ReplaceAll:
    """Replace the whole document."""
    content: str
    name = "replace-all"

    def apply(self, content: str, index: int = 0) -> str:
        return self.content


@dataclass(frozen=True)
class Append:
    """Append text to the end, joined by a newline unless one is already at the boundary."""
    content: str
    name = "append"

    def apply(self, content: str, index: int = 0) -> str:
        if content and self.content and not content.endswith("\n") and not self.content.startswith("\n"):
            return f"{content}\n{self.content}"
        return content + self.content


@dataclass(frozen=True)
class Prepend:
    """Prepend text to the start, joined by a newline unless one is already at the boundary."""
    content: str
    name = "prepend"

    def apply(self, content: str, index: int = 0) -> str:
        if content and self.content and not self.content.endswith("\n") and not content.startswith("\n"):
            return f"{self.content}\n{content}"
        return self.content + content


@dataclass(frozen=True)
class InsertAfterLine:
    """Insert text after `line`; line 0 inserts at the top."""
    line: int
    content: str
    name = "insert"

    def apply(self, content: str, index: int = 0) -> str:
        lines = _split(content)
        if self.line < 0 or self.line > len(lines):
            raise _out_of_range(index, self.name, self.line, len(lines))
        lines.insert(self.line, self.content)
        return "\n".join(lines)


@dataclass(frozen=True)
class ReplaceLine:
    line: int
    content: str
    name = "replace"

    def apply(self, content: str, index: int = 0) -> str:
        lines = _split(content)
        if self.line < 1 or self.line > len(lines):
            raise _out_of_range(index, self.name, self.line, len(lines))
        lines[self.line - 1] = self.content
        return "\n".join(lines)


@dataclass(frozen=True)
class DeleteLine:
    line: int
    name = "delete"

    def apply(self, content: str, index: int = 0) -> str:
        lines = _split(content)
        if self.line < 1 or self.line > len(lines):
            raise _out_of_range(index, self.name, self.line, len(lines))
        del lines[self.line - 1]
        return "\n".join(lines)


@dataclass(frozen=True)
class SearchReplace:
    """Literal substring replacement. A `find` that is absent changes nothing."""
    find: str
    replace_with: str
    replace_all: bool = False
    name = "search-replace"

    def apply(self, content: str, index: int = 0) -> str:
        if not self.find:
            raise NotepadValidationError(
                f'Action {index + 1} ("{self.name}") failed: "find" must not be empty',
                action_index=index,
                action_name=self.name,
            )
        if self.replace_all:
            return content.replace(self.find, self.replace_with)
        return content.replace(self.find, self.replace_with, 1)


NotepadAction = Union[
    ReplaceAll,
    Append,
    Prepend,
    InsertAfterLine,
    ReplaceLine,
    DeleteLine,
    SearchReplace,
]


__all__ = [
    "ReplaceAll",
    "Append",
    "Prepend",
    "InsertAfterLine",
    "ReplaceLine",
    "DeleteLine",
    "SearchReplace",
    "NotepadAction",
]
