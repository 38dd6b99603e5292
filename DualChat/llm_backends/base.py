from __future__ import annotations

import base64
import mimetypes
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Literal, Optional, TypedDict

from pydantic import BaseModel, Field


MessageRole = Literal["system", "user", "assistant"]

SUPPORTED_IMAGE_TYPES = {"image/png", "image/jpeg", "image/gif", "image/webp"}


class ChatMessage(TypedDict):
    role: MessageRole
    content: object


class CompletionErrorKind(str, Enum):
    """Classification of a failed completion call."""
    CREDENTIAL_MISSING = "credential_missing"
    CREDENTIAL_INVALID = "credential_invalid"
    OTHER = "other"


class ImagePayload(BaseModel):
    """An inline image attached to every step of a session."""
    model_config = {"extra": "forbid"}

    mime_type: str = Field(..., description="e.g. image/png")
    data: str = Field(..., description="Base64-encoded bytes")


@dataclass(frozen=True)
class CompletionResult:
    """
    Outcome of one completion call.

    `error_kind` is None on success. Backends return error results instead of
    raising for HTTP-level failures.
    """
    text: str
    duration_ms: float
    error_kind: Optional[CompletionErrorKind] = None
    error_message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    @classmethod
    def failure(
        cls,
        kind: CompletionErrorKind,
        message: str,
        duration_ms: float = 0.0,
    ) -> "CompletionResult":
        return cls(text="", duration_ms=duration_ms, error_kind=kind, error_message=message)


class CompletionService(ABC):
    """
    Abstract interface for all completion providers.
    """

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        model: str,
        system_instruction: Optional[str] = None,
        image: Optional[ImagePayload] = None,
    ) -> CompletionResult:
        ...

    async def aclose(self) -> None:
        """Release network resources, if any."""
        return None


def image_to_payload(path: str | Path) -> ImagePayload:
    """
    Read an image file into an ImagePayload.

    Raises:
        ValueError: file missing or not PNG/JPEG/GIF/WebP
    """
    path = Path(path)
    if not path.is_file():
        raise ValueError(f"Image not found: {path}")
    mime_type, _ = mimetypes.guess_type(path.name)
    if mime_type not in SUPPORTED_IMAGE_TYPES:
        raise ValueError(f"Unsupported image type for {path.name}: {mime_type or 'unknown'}")
    data = base64.b64encode(path.read_bytes()).decode("ascii")
    return ImagePayload(mime_type=mime_type, data=data)
