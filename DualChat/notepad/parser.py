"""
Notepad markup parser.

Turns a raw model response into:
- the spoken text (everything outside well-formed notepad tags)
- an ordered list of NotepadAction values
- the termination signal (trailing <DISCUSSION_COMPLETE> sentinel)
- parse errors for malformed tags

The scanner works left to right and resumes after each consumed tag span, so
tags nested inside another tag's content are plain content. Malformed tags are
left in the spoken text and reported; they never fail a step.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

from .actions import (
    Append,
    DeleteLine,
    InsertAfterLine,
    NotepadAction,
    Prepend,
    ReplaceAll,
    ReplaceLine,
    SearchReplace,
)

DISCUSSION_COMPLETE_TAG = "<DISCUSSION_COMPLETE>"

CONTENT_TAGS = {"replace-all", "append", "prepend", "insert", "replace"}
ATTRIBUTE_TAGS = {"delete", "search-replace"}

_OPEN_TAG = re.compile(
    r'<np-([a-z]+(?:-[a-z]+)*)((?:\s+\w+\s*=\s*"[^"]*")*)\s*(/?)>',
    re.IGNORECASE,
)
_ATTRIBUTE = re.compile(r'(\w+)\s*=\s*"([^"]*)"')
_INTEGER = re.compile(r"^[+-]?\d+$")


@dataclass
class ParseResult:
    """Outcome of parsing one model response."""
    spoken_text: str
    actions: list[NotepadAction] = field(default_factory=list)
    termination_signal: bool = False
    errors: list[str] = field(default_factory=list)


def _closing_tag(name: str) -> re.Pattern:
    return re.compile(rf"</np-{re.escape(name)}\s*>", re.IGNORECASE)


def _line_attr(name: str, attrs: dict[str, str]) -> int:
    if "line" not in attrs:
        raise ValueError(f'<np-{name}> is missing required attribute "line"')
    value = attrs["line"].strip()
    if not _INTEGER.match(value):
        raise ValueError(f'<np-{name}> has invalid "line" value "{attrs["line"]}"')
    return int(value)


def _build_action(name: str, attrs: dict[str, str], content: Optional[str]) -> NotepadAction:
    """Build the typed action for a tag. Raises ValueError for bad attributes."""
    if name == "replace-all":
        return ReplaceAll(content or "")
    if name == "append":
        return Append(content or "")
    if name == "prepend":
        return Prepend(content or "")
    if name == "insert":
        return InsertAfterLine(_line_attr(name, attrs), content or "")
    if name == "replace":
        return ReplaceLine(_line_attr(name, attrs), content or "")
    if name == "delete":
        return DeleteLine(_line_attr(name, attrs))

    # search-replace
    for required in ("find", "with"):
        if required not in attrs:
            raise ValueError(f'<np-search-replace> is missing required attribute "{required}"')
    all_value = attrs.get("all", "false").strip().lower()
    if all_value not in ("true", "false"):
        raise ValueError(f'<np-search-replace> has invalid "all" value "{attrs["all"]}"')
    return SearchReplace(attrs["find"], attrs["with"], replace_all=all_value == "true")


def _placeholder(action_count: int, signaled: bool, has_errors: bool) -> str:
    if action_count and signaled:
        return f"(AI modified the notepad ({action_count} actions) and suggested ending the discussion)"
    if action_count:
        return f"(AI modified the notepad ({action_count} actions))"
    if signaled:
        return "(AI suggested ending the discussion)"
    if not has_errors:
        return "(AI provided no additional text reply)"
    return ""


def parse_response(raw: str) -> ParseResult:
    """
    Parse a raw model response into spoken text, notepad actions and the
    termination signal.

    Args:
        raw: Model output, possibly containing <np-*> tags

    Returns:
        ParseResult with spoken_text, actions, termination_signal and errors
    """
    spoken_parts: list[str] = []
    actions: list[NotepadAction] = []
    errors: list[str] = []
    pos = 0

    while True:
        match = _OPEN_TAG.search(raw, pos)
        if match is None:
            break

        name = match.group(1).lower()
        attrs = dict(_ATTRIBUTE.findall(match.group(2)))
        self_closing = match.group(3) == "/"
        span_end = match.end()
        content: Optional[str] = None

        if name in CONTENT_TAGS:
            closing = None if self_closing else _closing_tag(name).search(raw, match.end())
            if closing is None:
                errors.append(f"Unclosed <np-{name}> tag: its text was kept in the reply")
                spoken_parts.append(raw[pos:match.end()])
                pos = match.end()
                continue
            content = raw[match.end():closing.start()].strip()
            span_end = closing.end()
        elif name in ATTRIBUTE_TAGS:
            if not self_closing:
                # A matching closing tag swallows whatever it encloses, unless another tag starts first
                closing = _closing_tag(name).search(raw, match.end())
                if closing is not None and not _OPEN_TAG.search(raw[match.end():closing.start()]):
                    span_end = closing.end()
        else:
            # Not a notepad tag we know: literal text
            spoken_parts.append(raw[pos:match.end()])
            pos = match.end()
            continue

        try:
            action = _build_action(name, attrs, content)
        except ValueError as e:
            errors.append(str(e))
            spoken_parts.append(raw[pos:span_end])
        else:
            actions.append(action)
            spoken_parts.append(raw[pos:match.start()])
        pos = span_end

    spoken_parts.append(raw[pos:])
    spoken = "".join(spoken_parts).strip()

    signaled = False
    if spoken.endswith(DISCUSSION_COMPLETE_TAG):
        signaled = True
        spoken = spoken[: -len(DISCUSSION_COMPLETE_TAG)].strip()

    if not spoken:
        spoken = _placeholder(len(actions), signaled, bool(errors))

    return ParseResult(
        spoken_text=spoken,
        actions=actions,
        termination_signal=signaled,
        errors=errors,
    )


__all__ = [
    "DISCUSSION_COMPLETE_TAG",
    "ParseResult",
    "parse_response",
]
