"""
Session lifecycle: the Session record and the SessionController facade.
"""

from .models import Session, SessionStatus
from .controller import SessionController, run_dualchat

__all__ = [
    "Session",
    "SessionStatus",
    "SessionController",
    "run_dualchat",
]
