"""
Shared notepad: markup parser, typed actions and the versioned document.
"""

from .actions import (
    ReplaceAll,
    Append,
    Prepend,
    InsertAfterLine,
    ReplaceLine,
    DeleteLine,
    SearchReplace,
    NotepadAction,
)
from .parser import DISCUSSION_COMPLETE_TAG, ParseResult, parse_response
from .document import (
    DEFAULT_NOTEPAD_CONTENT,
    ApplyResult,
    NotepadDocument,
    Notepad,
    format_for_prompt,
)

__all__ = [
    "ReplaceAll",
    "Append",
    "Prepend",
    "InsertAfterLine",
    "ReplaceLine",
    "DeleteLine",
    "SearchReplace",
    "NotepadAction",
    "DISCUSSION_COMPLETE_TAG",
    "ParseResult",
    "parse_response",
    "DEFAULT_NOTEPAD_CONTENT",
    "ApplyResult",
    "NotepadDocument",
    "Notepad",
    "format_for_prompt",
]
