"""
Runtime data models for a DualChat session.

- Speaker / TurnPurpose: who said something and to what end
- StepRef: a stable reference to one step of the turn protocol
- TurnRecord: one attributed utterance in the transcript
- Notice: advisory system message shown next to the dialogue
- DiscussionPolicy: how the discussion loop ends
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class Speaker(str, Enum):
    LOGICAL = "logical"
    CREATIVE = "creative"
    SYNTHESIZER = "synthesizer"

    @property
    def persona(self) -> "Speaker":
        """Persona whose model and system prompt serve this speaker."""
        return Speaker.LOGICAL if self is Speaker.SYNTHESIZER else self


class TurnPurpose(str, Enum):
    TO_PARTNER = "to_partner"
    REPLY_TO_PARTNER = "reply_to_partner"
    FINAL_ANSWER = "final_answer"


class StepPhase(str, Enum):
    INITIAL = "initial"
    CREATIVE_REPLY = "creative_reply"
    LOGICAL_REPLY = "logical_reply"
    SYNTHESIS = "synthesis"


class StepRef(BaseModel):
    """Reference to one step: phase plus discussion turn index."""
    model_config = {"extra": "forbid", "frozen": True}

    phase: StepPhase
    turn: int = 0

    @classmethod
    def initial(cls) -> "StepRef":
        return cls(phase=StepPhase.INITIAL)

    @classmethod
    def creative_reply(cls, turn: int) -> "StepRef":
        return cls(phase=StepPhase.CREATIVE_REPLY, turn=turn)

    @classmethod
    def logical_reply(cls, turn: int) -> "StepRef":
        return cls(phase=StepPhase.LOGICAL_REPLY, turn=turn)

    @classmethod
    def synthesis(cls) -> "StepRef":
        return cls(phase=StepPhase.SYNTHESIS)

    @property
    def identifier(self) -> str:
        if self.phase == StepPhase.INITIAL:
            return "logical-initial"
        if self.phase == StepPhase.CREATIVE_REPLY:
            return f"creative-reply-turn-{self.turn}"
        if self.phase == StepPhase.LOGICAL_REPLY:
            return f"logical-reply-turn-{self.turn}"
        return "synthesis"

    @property
    def speaker(self) -> Speaker:
        if self.phase == StepPhase.CREATIVE_REPLY:
            return Speaker.CREATIVE
        if self.phase == StepPhase.SYNTHESIS:
            return Speaker.SYNTHESIZER
        return Speaker.LOGICAL

    @property
    def purpose(self) -> TurnPurpose:
        if self.phase == StepPhase.INITIAL:
            return TurnPurpose.TO_PARTNER
        if self.phase == StepPhase.SYNTHESIS:
            return TurnPurpose.FINAL_ANSWER
        return TurnPurpose.REPLY_TO_PARTNER

    def __str__(self) -> str:
        return self.identifier


class TurnRecord(BaseModel):
    """One attributed utterance. Frozen once created."""
    model_config = {"extra": "forbid", "frozen": True}

    speaker: Speaker
    purpose: TurnPurpose
    text: str = Field(..., description="Spoken text with notepad markup stripped")
    duration_ms: float = 0.0
    termination_signal: bool = False
    step: StepRef
    timestamp: datetime = Field(default_factory=datetime.now)


class NoticeLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Notice(BaseModel):
    """Advisory system message (retries, notepad errors, ending suggestions)."""
    model_config = {"extra": "forbid", "frozen": True}

    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    level: NoticeLevel = NoticeLevel.INFO
    text: str
    step_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)


class DiscussionMode(str, Enum):
    FIXED_TURNS = "fixed"
    AI_DRIVEN = "ai-driven"


class DiscussionPolicy(BaseModel):
    """How the discussion loop terminates."""
    model_config = {"extra": "forbid", "frozen": True}

    mode: DiscussionMode = DiscussionMode.AI_DRIVEN
    fixed_turns: int = Field(2, description="Discussion turns in fixed mode, clamped to >= 1")

    @field_validator("fixed_turns", mode="before")
    @classmethod
    def _clamp_turns(cls, v):
        return max(int(v), 1)

    @classmethod
    def fixed(cls, turns: int) -> "DiscussionPolicy":
        return cls(mode=DiscussionMode.FIXED_TURNS, fixed_turns=turns)

    @classmethod
    def ai_driven(cls) -> "DiscussionPolicy":
        return cls(mode=DiscussionMode.AI_DRIVEN)

    @property
    def label(self) -> str:
        if self.mode == DiscussionMode.FIXED_TURNS:
            return f"fixed turns ({self.fixed_turns})"
        return "AI-driven"


class SessionStatus(str, Enum):
    RUNNING = "running"
    DONE = "done"
    CANCELLED = "cancelled"
    AWAITING_MANUAL_RETRY = "awaiting_manual_retry"
    FAILED = "failed"  # credential errors only
