"""
DualChat Runtime.

Core execution components:
- models: speakers, step references, transcript records, notices, policy
- StepExecutor: one model call with retry, parsing and notepad application
- TurnOrchestrator: the two-persona turn protocol
- Checkpoint: resumable snapshot of a failed step
- RunLog: append-only event log
"""

from .models import (
    Speaker,
    TurnPurpose,
    StepPhase,
    StepRef,
    TurnRecord,
    NoticeLevel,
    Notice,
    DiscussionMode,
    DiscussionPolicy,
    SessionStatus,
)
from .cancellation import CancellationToken
from .checkpoint import Checkpoint
from .runlog import (
    EventType,
    Event,
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
    RunLog,
)
from .executor import StepRequest, ParsedStepResult, StepExecutor
from .orchestrator import OrchestratorState, TurnOrchestrator, next_step

__all__ = [
    # Models
    "Speaker",
    "TurnPurpose",
    "StepPhase",
    "StepRef",
    "TurnRecord",
    "NoticeLevel",
    "Notice",
    "DiscussionMode",
    "DiscussionPolicy",
    "SessionStatus",
    # Cancellation / checkpoint
    "CancellationToken",
    "Checkpoint",
    # RunLog
    "EventType",
    "Event",
    "SessionStartedEvent",
    "SessionCompletedEvent",
    "SessionCancelledEvent",
    "SessionFailedEvent",
    "StepStartedEvent",
    "StepRetryEvent",
    "StepCompletedEvent",
    "StepFailedEvent",
    "NotepadUpdatedEvent",
    "DiscussionEndedEvent",
    "CheckpointSavedEvent",
    "ManualRetryEvent",
    "RunLog",
    # Execution
    "StepRequest",
    "ParsedStepResult",
    "StepExecutor",
    "OrchestratorState",
    "TurnOrchestrator",
    "next_step",
]
