"""
DualChat Infrastructure Layer.

Error categories shared by the notepad engine, the step executor and the
session controller.
"""

from .errors import (
    ErrorCategory,
    DualChatError,
    FatalError,
    DegradedError,
    RecoverableError,
    CredentialError,
    TransientStepError,
    ExhaustedStepError,
    ExecutorFailure,
    NotepadValidationError,
    SessionBusyError,
    UserCancellation,
    handle_error,
)

__all__ = [
    "ErrorCategory",
    "DualChatError",
    "FatalError",
    "DegradedError",
    "RecoverableError",
    "CredentialError",
    "TransientStepError",
    "ExhaustedStepError",
    "ExecutorFailure",
    "NotepadValidationError",
    "SessionBusyError",
    "UserCancellation",
    "handle_error",
]
