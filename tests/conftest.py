"""Shared fixtures: a scripted Completion Service and a test configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

import pytest

from DualChat.config import DualChatConfig
from DualChat.llm_backends.base import (
    CompletionErrorKind,
    CompletionResult,
    CompletionService,
    ImagePayload,
)
from DualChat.utils.timing import TimingCollector

ScriptItem = Union[str, CompletionResult, Exception]

ENV_OVERRIDES = (
    "DUALCHAT_CONFIG",
    "DUALCHAT_PROVIDER",
    "DUALCHAT_LOGICAL_MODEL",
    "DUALCHAT_CREATIVE_MODEL",
    "DUALCHAT_DISCUSSION_MODE",
    "DUALCHAT_FIXED_TURNS",
    "DUALCHAT_TIMING",
)


def fail(message: str = "HTTP 503: overloaded") -> CompletionResult:
    return CompletionResult.failure(CompletionErrorKind.OTHER, message)


@dataclass
class Call:
    prompt: str
    model: str
    system_instruction: Optional[str]
    image: Optional[ImagePayload]


@dataclass
class ScriptedCompletionService(CompletionService):
    """
    Replays a script of responses in call order.

    Items may be raw text, a CompletionResult, or an exception to raise.
    Once the script runs out every call answers `default`.
    """
    script: list[ScriptItem] = field(default_factory=list)
    default: str = "Let us keep going."
    calls: list[Call] = field(default_factory=list)
    on_call: Optional[object] = None

    async def generate(self, prompt, model, system_instruction=None, image=None):
        self.calls.append(Call(prompt, model, system_instruction, image))
        if self.on_call is not None:
            self.on_call(len(self.calls))
        item = self.script.pop(0) if self.script else self.default
        if isinstance(item, Exception):
            raise item
        if isinstance(item, CompletionResult):
            return item
        return CompletionResult(text=item, duration_ms=5.0)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    TimingCollector.reset()
    yield
    TimingCollector.reset()


@pytest.fixture
def config(tmp_path) -> DualChatConfig:
    return DualChatConfig(
        config_path=tmp_path / "missing.yaml",
        data={
            "models": {
                "logical": {"name": "model-l"},
                "creative": {"name": "model-c", "supports_system_instruction": False},
            },
            "discussion": {"mode": "ai-driven", "fixed_turns": 2},
            "retry": {"max_auto_retries": 2, "retry_delay_base_seconds": 0},
        },
    )


@pytest.fixture
def service() -> ScriptedCompletionService:
    return ScriptedCompletionService()
