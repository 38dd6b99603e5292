"""
DualChat Configuration System.

Single source of truth for:
- Completion backend selection and credentials lookup
- Model per persona
- Discussion policy defaults
- Retry policy
- Persona display names and system prompt overrides
- Notepad template

Loads from dualchat_config.yaml (if present) with sensible defaults.
Lookup order: explicit path, $DUALCHAT_CONFIG, repository root.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Optional
from pathlib import Path
import logging
import os

import yaml

from ..notepad import DEFAULT_NOTEPAD_CONTENT
from ..runtime.models import DiscussionMode, DiscussionPolicy, Speaker
from ..utils import console

logger = logging.getLogger("dualchat.config")

DEFAULT_CONFIG_NAME = "dualchat_config.yaml"

# Retry constants
MAX_AUTO_RETRIES = 2
RETRY_DELAY_BASE_SECONDS = 1.0


@dataclass
class BackendConfig:
    """Completion backend settings."""
    provider: str = "gemini"  # gemini, openai
    base_url: Optional[str] = None
    api_key_env: Optional[str] = None
    timeout_seconds: float = 180.0

    @property
    def key_env(self) -> str:
        if self.api_key_env:
            return self.api_key_env
        return "OPENAI_API_KEY" if self.provider == "openai" else "GEMINI_API_KEY"


@dataclass
class ModelConfig:
    """Model used by one persona."""
    name: str
    supports_system_instruction: bool = True
    thinking_budget: Optional[int] = None


@dataclass
class DiscussionConfig:
    mode: str = DiscussionMode.AI_DRIVEN.value
    fixed_turns: int = 2

    def to_policy(self) -> DiscussionPolicy:
        return DiscussionPolicy(mode=DiscussionMode(self.mode), fixed_turns=self.fixed_turns)


@dataclass
class RetryConfig:
    max_auto_retries: int = MAX_AUTO_RETRIES
    retry_delay_base_seconds: float = RETRY_DELAY_BASE_SECONDS

    @property
    def max_attempts(self) -> int:
        return 1 + self.max_auto_retries


@dataclass
class PersonaConfig:
    """Display names and optional system prompt overrides."""
    logical_name: str = "Cognito"
    creative_name: str = "Muse"
    logical_system_prompt: Optional[str] = None
    creative_system_prompt: Optional[str] = None

    def display_name(self, speaker: Speaker) -> str:
        return self.creative_name if speaker.persona == Speaker.CREATIVE else self.logical_name


class DualChatConfig:
    """
    Unified configuration for DualChat.

    Loads from dualchat_config.yaml if available, otherwise uses defaults.
    Environment variables override file values.
    """

    def __init__(self, config_path: Optional[Path] = None, data: Optional[dict] = None):
        self.config_path = self._resolve_path(config_path)

        if data is None:
            if self.config_path.exists():
                with open(self.config_path) as f:
                    data = yaml.safe_load(f) or {}
                console.info(f"Loaded config from {self.config_path}")
            else:
                data = {}
                console.debug(f"No config file at {self.config_path}, using defaults")

        self.backend = self._parse_backend(data.get("backend", {}))
        self.models = self._parse_models(data.get("models", {}))
        self.discussion = self._parse_discussion(data.get("discussion", {}))
        self.retry = self._parse_retry(data.get("retry", {}))
        self.personas = self._parse_personas(data.get("personas", {}))
        self.notepad_initial_content: str = (data.get("notepad") or {}).get(
            "initial_content", DEFAULT_NOTEPAD_CONTENT
        )

        self._apply_env_overrides()
        self._raw_config = data

    @staticmethod
    def _resolve_path(config_path: Optional[Path]) -> Path:
        if config_path is not None:
            return Path(config_path)
        env_path = os.getenv("DUALCHAT_CONFIG")
        if env_path:
            return Path(env_path)
        return Path(__file__).parent.parent.parent / DEFAULT_CONFIG_NAME

    def _parse_backend(self, data: dict) -> BackendConfig:
        return BackendConfig(
            provider=data.get("provider", "gemini"),
            base_url=data.get("base_url"),
            api_key_env=data.get("api_key_env"),
            timeout_seconds=float(data.get("timeout_seconds", 180.0)),
        )

    def _parse_models(self, data: dict) -> dict[Speaker, ModelConfig]:
        defaults = {
            Speaker.LOGICAL: ModelConfig(name="gemini-2.5-flash", thinking_budget=24576),
            Speaker.CREATIVE: ModelConfig(name="gemini-2.5-flash", thinking_budget=24576),
        }
        for speaker in defaults:
            entry = data.get(speaker.value)
            if not entry:
                continue
            if isinstance(entry, str):
                entry = {"name": entry}
            defaults[speaker] = ModelConfig(
                name=entry.get("name", defaults[speaker].name),
                supports_system_instruction=entry.get("supports_system_instruction", True),
                thinking_budget=entry.get("thinking_budget"),
            )
        return defaults

    def _parse_discussion(self, data: dict) -> DiscussionConfig:
        return DiscussionConfig(
            mode=data.get("mode", DiscussionMode.AI_DRIVEN.value),
            fixed_turns=max(int(data.get("fixed_turns", 2)), 1),
        )

    def _parse_retry(self, data: dict) -> RetryConfig:
        return RetryConfig(
            max_auto_retries=max(int(data.get("max_auto_retries", MAX_AUTO_RETRIES)), 0),
            retry_delay_base_seconds=float(
                data.get("retry_delay_base_seconds", RETRY_DELAY_BASE_SECONDS)
            ),
        )

    def _parse_personas(self, data: dict) -> PersonaConfig:
        return PersonaConfig(
            logical_name=data.get("logical_name", "Cognito"),
            creative_name=data.get("creative_name", "Muse"),
            logical_system_prompt=data.get("logical_system_prompt"),
            creative_system_prompt=data.get("creative_system_prompt"),
        )

    def _apply_env_overrides(self) -> None:
        provider = os.getenv("DUALCHAT_PROVIDER")
        if provider:
            self.backend.provider = provider
        logical_model = os.getenv("DUALCHAT_LOGICAL_MODEL")
        if logical_model:
            self.models[Speaker.LOGICAL].name = logical_model
        creative_model = os.getenv("DUALCHAT_CREATIVE_MODEL")
        if creative_model:
            self.models[Speaker.CREATIVE].name = creative_model
        mode = os.getenv("DUALCHAT_DISCUSSION_MODE")
        if mode:
            self.discussion.mode = mode
        turns = os.getenv("DUALCHAT_FIXED_TURNS")
        if turns:
            try:
                self.discussion.fixed_turns = max(int(turns), 1)
            except ValueError:
                logger.warning("Ignoring non-integer DUALCHAT_FIXED_TURNS=%r", turns)

        if self.backend.provider not in ("gemini", "openai"):
            raise ValueError(f"Unknown backend provider: {self.backend.provider}")
        # Raises ValueError for an unknown mode
        DiscussionMode(self.discussion.mode)

    def model_for(self, speaker: Speaker) -> ModelConfig:
        return self.models[speaker.persona]

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "backend": asdict(self.backend),
            "models": {speaker.value: asdict(m) for speaker, m in self.models.items()},
            "discussion": asdict(self.discussion),
            "retry": asdict(self.retry),
            "personas": asdict(self.personas),
            "notepad": {"initial_content": self.notepad_initial_content},
        }


# Global singleton instance
_config: Optional[DualChatConfig] = None


def get_config(config_path: Optional[Path] = None) -> DualChatConfig:
    """Get or initialize the global configuration."""
    global _config
    if _config is None:
        _config = DualChatConfig(config_path)
    return _config


def reload_config(config_path: Optional[Path] = None) -> DualChatConfig:
    """Reload configuration."""
    global _config
    _config = DualChatConfig(config_path)
    return _config
