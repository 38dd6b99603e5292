"""
Checkpoint - resumable snapshot of a step whose automatic retries ran out.

Holds everything needed to re-execute exactly that step and continue the
session without consulting ambient settings.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from ..llm_backends.base import ImagePayload
from .models import DiscussionPolicy, Speaker, StepRef, TurnPurpose, TurnRecord


class Checkpoint(BaseModel):
    """Failure snapshot for one step."""

    checkpoint_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    step: StepRef
    speaker: Speaker
    purpose: TurnPurpose

    # Exact request that failed
    prompt: str = Field(..., description="Prompt that was sent")
    model_ref: str
    system_instruction: Optional[str] = None
    image: Optional[ImagePayload] = None

    # Resume context
    user_query: str
    discussion: DiscussionPolicy
    transcript: list[TurnRecord] = Field(default_factory=list)
    turn_index: int = 0
    partner_signaled_stop: bool = Field(
        default=False, description="Termination signal of the other speaker just before this step"
    )

    error_message: str = ""
    error_notice_id: Optional[str] = None
    attempts: int = 0
    created_at: datetime = Field(default_factory=datetime.now)

    model_config = {"extra": "forbid", "protected_namespaces": ()}

    @property
    def step_identifier(self) -> str:
        return self.step.identifier

    def to_json(self) -> str:
        return self.model_dump_json(indent=2)

    @classmethod
    def from_json(cls, data: str) -> "Checkpoint":
        return cls.model_validate_json(data)

    def save(self, directory: Path) -> Path:
        """Write `<checkpoint_id>.json` under directory."""
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{self.checkpoint_id}.json"
        path.write_text(self.to_json())
        return path

    @classmethod
    def load(cls, path: Path) -> "Checkpoint":
        return cls.from_json(Path(path).read_text())
