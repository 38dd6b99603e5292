"""
DualChat error taxonomy.

Every DualChatError carries an ErrorCategory that tells the caller what to do:
- FATAL: stop the session (missing or rejected credentials, busy controller)
- DEGRADED: keep going and tell the user (a notepad action was rejected)
- RECOVERABLE: retry automatically, then suspend on a Checkpoint

UserCancellation sits outside the hierarchy: it ends a session cleanly.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from ..utils import console

if TYPE_CHECKING:
    from ..runtime.checkpoint import Checkpoint


class ErrorCategory(Enum):
    FATAL = "fatal"
    DEGRADED = "degraded"
    RECOVERABLE = "recoverable"


class DualChatError(Exception):
    """Base exception; subclasses pin `category`."""

    category = ErrorCategory.FATAL

    def __init__(
        self,
        message: str,
        context: Optional[dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.original_error = original_error

    def __str__(self) -> str:
        text = f"[{self.category.value.upper()}] {self.message}"
        if self.original_error is not None:
            text += f"\nCause: {self.original_error}"
        return text


class FatalError(DualChatError):
    category = ErrorCategory.FATAL


class DegradedError(DualChatError):
    category = ErrorCategory.DEGRADED


class RecoverableError(DualChatError):
    category = ErrorCategory.RECOVERABLE


class CredentialError(FatalError):
    """The Completion Service reported a missing or rejected credential."""

    def __init__(self, message: str, kind: str, step_identifier: Optional[str] = None):
        super().__init__(message, context={"kind": kind, "step": step_identifier})
        self.kind = kind
        self.step_identifier = step_identifier

    def __str__(self) -> str:
        # Shown to the user verbatim
        return self.message


class TransientStepError(RecoverableError):
    """One failed completion attempt; retried while attempts remain."""

    def __init__(self, message: str, step_identifier: str, attempt: int, max_attempts: int):
        super().__init__(
            message,
            context={"step": step_identifier, "attempt": attempt, "max_attempts": max_attempts},
        )
        self.step_identifier = step_identifier
        self.attempt = attempt
        self.max_attempts = max_attempts

    @property
    def retryable(self) -> bool:
        return self.attempt < self.max_attempts


class ExhaustedStepError(RecoverableError):
    """Automatic retries ran out; the session suspends on `checkpoint`."""

    def __init__(self, checkpoint: "Checkpoint", original_error: Optional[Exception] = None):
        super().__init__(
            f"Step '{checkpoint.step.identifier}' failed after {checkpoint.attempts} attempt(s): "
            f"{checkpoint.error_message}",
            context={"step": checkpoint.step.identifier, "attempts": checkpoint.attempts},
            original_error=original_error,
        )
        self.checkpoint = checkpoint


ExecutorFailure = ExhaustedStepError


class NotepadValidationError(DegradedError):
    """A single notepad action could not be applied."""

    def __init__(self, message: str, action_index: int, action_name: str):
        super().__init__(message, context={"action_index": action_index, "action": action_name})
        self.action_index = action_index
        self.action_name = action_name


class SessionBusyError(FatalError):
    """A run was requested while another one is in progress."""

    def __init__(self, message: str = "A session is already running"):
        super().__init__(message)


class UserCancellation(Exception):
    """Cooperative cancellation was observed; never checkpointed."""

    def __init__(self, message: str = "Cancelled by user"):
        super().__init__(message)


def handle_error(error: DualChatError, action_name: str = "operation") -> bool:
    """
    Print `error` according to its category.

    Returns:
        True when the caller may carry on, False when it should stop
    """
    if error.category == ErrorCategory.DEGRADED:
        console.warning(f"Problem in {action_name}: {error.message}")
        return True
    if error.category == ErrorCategory.RECOVERABLE:
        console.warning(f"{action_name} can be retried: {error.message}")
        return False
    console.error(f"{action_name} stopped: {error.message}")
    return False
