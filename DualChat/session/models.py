"""
Session - one user query's lifecycle.

Owned exclusively by the SessionController; replaced on the next submission
or on an explicit clear.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..llm_backends.base import ImagePayload
from ..notepad import Notepad
from ..runtime.cancellation import CancellationToken
from ..runtime.checkpoint import Checkpoint
from ..runtime.models import DiscussionPolicy, Notice, SessionStatus, StepPhase, TurnRecord
from ..utils import get_current_timestamp


def _session_id() -> str:
    return f"{get_current_timestamp()}_{uuid.uuid4().hex[:6]}"


@dataclass
class Session:
    query: str
    policy: DiscussionPolicy
    notepad: Notepad
    image: Optional[ImagePayload] = None
    id: str = field(default_factory=_session_id)
    transcript: list[TurnRecord] = field(default_factory=list)
    token: CancellationToken = field(default_factory=CancellationToken)
    status: SessionStatus = SessionStatus.RUNNING
    pending_checkpoint: Optional[Checkpoint] = None
    notices: list[Notice] = field(default_factory=list)
    error: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.now)
    ended_at: Optional[datetime] = None

    @property
    def completed_turn_count(self) -> int:
        """Last discussion turn reached plus one; 0 without any creative reply."""
        turns = [
            r.step.turn for r in self.transcript
            if r.step.phase in (StepPhase.CREATIVE_REPLY, StepPhase.LOGICAL_REPLY)
        ]
        if not any(r.step.phase == StepPhase.CREATIVE_REPLY for r in self.transcript):
            return 0
        return max(turns) + 1

    @property
    def final_answer(self) -> Optional[TurnRecord]:
        for record in reversed(self.transcript):
            if record.step.phase == StepPhase.SYNTHESIS:
                return record
        return None

    @property
    def is_resting(self) -> bool:
        return self.status != SessionStatus.RUNNING


__all__ = ["Session", "SessionStatus"]
