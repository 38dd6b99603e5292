"""
RunLog: append-only event log for one DualChat session.

Provides:
- Event types for session, step, notepad and checkpoint activity
- RunLog for in-memory storage with optional JSONL streaming
- Simple query helpers
"""

from __future__ import annotations

from abc import ABC
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union, get_args
import json

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Types of events in the run log."""

    # Session lifecycle
    SESSION_STARTED = "session_started"
    SESSION_COMPLETED = "session_completed"
    SESSION_CANCELLED = "session_cancelled"
    SESSION_FAILED = "session_failed"

    # Step events
    STEP_STARTED = "step_started"
    STEP_RETRY = "step_retry"
    STEP_COMPLETED = "step_completed"
    STEP_FAILED = "step_failed"

    # Discussion / notepad
    NOTEPAD_UPDATED = "notepad_updated"
    DISCUSSION_ENDED = "discussion_ended"

    # Recovery
    CHECKPOINT_SAVED = "checkpoint_saved"
    MANUAL_RETRY = "manual_retry"


class Event(BaseModel, ABC):
    """Base class for all events."""

    event_type: EventType = Field(..., description="Type of event")
    timestamp: datetime = Field(default_factory=datetime.now, description="When event occurred")
    session_id: str = Field(default="", description="Session this event belongs to")
    sequence: int = Field(default=0, description="Sequence number within session")

    model_config = {"extra": "forbid"}


class SessionStartedEvent(Event):
    event_type: EventType = EventType.SESSION_STARTED
    query: str = Field(..., description="User query")
    discussion: dict[str, Any] = Field(default_factory=dict, description="Discussion policy")
    has_image: bool = False


class SessionCompletedEvent(Event):
    event_type: EventType = EventType.SESSION_COMPLETED
    completed_turns: int = Field(..., description="Discussion turns completed")
    duration_ms: float = 0.0


class SessionCancelledEvent(Event):
    event_type: EventType = EventType.SESSION_CANCELLED
    step_id: Optional[str] = Field(default=None, description="Step active when cancelled")


class SessionFailedEvent(Event):
    event_type: EventType = EventType.SESSION_FAILED
    error: str = Field(..., description="Error message")


class StepStartedEvent(Event):
    event_type: EventType = EventType.STEP_STARTED
    step_id: str
    speaker: str
    model: str
    prompt_chars: int = 0


class StepRetryEvent(Event):
    """A transient failure is being retried."""
    event_type: EventType = EventType.STEP_RETRY
    step_id: str
    attempt: int = Field(..., description="Attempt that failed")
    max_attempts: int
    reason: str


class StepCompletedEvent(Event):
    event_type: EventType = EventType.STEP_COMPLETED
    step_id: str
    speaker: str
    duration_ms: float = 0.0
    termination_signal: bool = False
    action_count: int = 0


class StepFailedEvent(Event):
    """Automatic retries ran out."""
    event_type: EventType = EventType.STEP_FAILED
    step_id: str
    attempts: int
    error: str


class NotepadUpdatedEvent(Event):
    event_type: EventType = EventType.NOTEPAD_UPDATED
    step_id: str
    actor: str
    applied: int = 0
    errors: list[str] = Field(default_factory=list)


class DiscussionEndedEvent(Event):
    event_type: EventType = EventType.DISCUSSION_ENDED
    reason: str = Field(..., description="fixed_turns or mutual_agreement")
    turns: int = 0


class CheckpointSavedEvent(Event):
    event_type: EventType = EventType.CHECKPOINT_SAVED
    checkpoint_id: str
    step_id: str
    checkpoint_path: Optional[str] = Field(default=None, description="Path to checkpoint file")


class ManualRetryEvent(Event):
    event_type: EventType = EventType.MANUAL_RETRY
    checkpoint_id: str
    step_id: str


# Union of all event types
AnyEvent = Union[
    SessionStartedEvent,
    SessionCompletedEvent,
    SessionCancelledEvent,
    SessionFailedEvent,
    StepStartedEvent,
    StepRetryEvent,
    StepCompletedEvent,
    StepFailedEvent,
    NotepadUpdatedEvent,
    DiscussionEndedEvent,
    CheckpointSavedEvent,
    ManualRetryEvent,
]


_EVENT_CLASSES: dict[EventType, type[Event]] = {
    cls.model_fields["event_type"].default: cls for cls in get_args(AnyEvent)
}


def parse_event(data: dict[str, Any]) -> AnyEvent:
    """Rebuild a typed event from its JSON form."""
    return _EVENT_CLASSES[EventType(data["event_type"])].model_validate(data)


class RunLog:
    """
    Ordered events of one session.

    With an output directory, every event is also appended to
    `<output_dir>/<session_id>.jsonl` as it happens, so a crashed run still
    leaves a readable trail. `RunLog.load` reads such a file back.
    """

    def __init__(self, session_id: str, output_dir: Optional[Path] = None):
        self.session_id = session_id
        self.events: list[AnyEvent] = []
        self.output_file: Optional[Path] = Path(output_dir) / f"{session_id}.jsonl" if output_dir else None

    def append(self, event: AnyEvent) -> None:
        event.session_id = self.session_id
        event.sequence = len(self.events) + 1
        self.events.append(event)
        if self.output_file is not None:
            self.output_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.output_file, "a") as f:
                f.write(event.model_dump_json() + "\n")

    @classmethod
    def load(cls, path: Path) -> "RunLog":
        """Read a JSONL file written by a previous run; the result does not stream."""
        path = Path(path)
        log = cls(path.stem)
        with open(path) as f:
            log.events = [parse_event(json.loads(line)) for line in f if line.strip()]
        return log

    # === Queries ===

    def query_by_type(self, event_type: EventType) -> list[AnyEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def for_step(self, step_id: str) -> list[AnyEvent]:
        """Events that name `step_id`, in order."""
        return [e for e in self.events if getattr(e, "step_id", None) == step_id]

    def latest(self, n: int = 10) -> list[AnyEvent]:
        return self.events[-n:]

    def summary(self) -> dict[str, Any]:
        counts: dict[str, int] = {}
        for event in self.events:
            counts[event.event_type.value] = counts.get(event.event_type.value, 0) + 1
        ended = self.query_by_type(EventType.DISCUSSION_ENDED)
        return {
            "session_id": self.session_id,
            "event_count": len(self.events),
            "event_types": counts,
            "retries": counts.get(EventType.STEP_RETRY.value, 0),
            "end_reason": ended[-1].reason if ended else None,
        }
