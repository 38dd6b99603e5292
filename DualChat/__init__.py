"""
DualChat: two-persona AI discussion with a shared notepad.

A logical persona and a creative persona discuss the user's query, edit a
shared notepad through inline markup, and finish with a synthesized answer
placed in the notepad.

Architecture:
- notepad/: markup parser, typed actions, versioned document with undo/redo
- llm_backends/: Completion Service backends (Gemini, OpenAI-compatible)
- runtime/: step executor, turn orchestrator, checkpoints, run log
- session/: Session record and SessionController facade
- agents/: persona prompts
- config/: YAML configuration

Quick Start:
    from DualChat import run_dualchat

    session = await run_dualchat("Compare B-trees and LSM trees")
    print(session.notepad.content)
"""

__version__ = "0.1.0"

# Notepad
from .notepad import Notepad, NotepadDocument, parse_response

# Runtime
from .runtime import (
    Checkpoint,
    DiscussionMode,
    DiscussionPolicy,
    SessionStatus,
    StepExecutor,
    TurnOrchestrator,
)

# Session
from .session import Session, SessionController, run_dualchat

# Backends and configuration
from .llm_backends import CompletionService, build_completion_service, image_to_payload
from .config import DualChatConfig, get_config

# Console utilities
from .utils import console

__all__ = [
    "__version__",
    "Notepad",
    "NotepadDocument",
    "parse_response",
    "Checkpoint",
    "DiscussionMode",
    "DiscussionPolicy",
    "SessionStatus",
    "StepExecutor",
    "TurnOrchestrator",
    "Session",
    "SessionController",
    "run_dualchat",
    "CompletionService",
    "build_completion_service",
    "image_to_payload",
    "DualChatConfig",
    "get_config",
    "console",
]
