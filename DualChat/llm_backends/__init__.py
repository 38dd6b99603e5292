from __future__ import annotations

from typing import TYPE_CHECKING

from .base import (
    ChatMessage,
    CompletionErrorKind,
    CompletionResult,
    CompletionService,
    ImagePayload,
    image_to_payload,
)
from .gemini_backend import DEFAULT_GEMINI_BASE_URL, GeminiBackend
from .openai_backend import DEFAULT_OPENAI_BASE_URL, OpenAICompatibleBackend

if TYPE_CHECKING:
    from ..config import DualChatConfig


def build_completion_service(config: "DualChatConfig") -> CompletionService:
    """Build the backend named by config.backend.provider."""
    backend = config.backend
    if backend.provider == "openai":
        return OpenAICompatibleBackend(
            base_url=backend.base_url or DEFAULT_OPENAI_BASE_URL,
            api_key_env=backend.key_env,
            timeout_seconds=backend.timeout_seconds,
        )
    if backend.provider == "gemini":
        budgets = {
            m.name: m.thinking_budget
            for m in config.models.values()
            if m.thinking_budget is not None
        }
        return GeminiBackend(
            base_url=backend.base_url or DEFAULT_GEMINI_BASE_URL,
            api_key_env=backend.key_env,
            timeout_seconds=backend.timeout_seconds,
            thinking_budgets=budgets,
        )
    raise ValueError(f"Unknown backend provider: {backend.provider}")


__all__ = [
    "ChatMessage",
    "CompletionErrorKind",
    "CompletionResult",
    "CompletionService",
    "ImagePayload",
    "image_to_payload",
    "GeminiBackend",
    "OpenAICompatibleBackend",
    "build_completion_service",
]
