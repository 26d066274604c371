"""Services layer for LiveLingo application logic."""

from .callbacks import AssistantListener, SessionCallbacks
from .session_manager import SessionManager
from .orchestrator import Orchestrator

__all__ = [
    "AssistantListener",
    "SessionCallbacks",
    "SessionManager",
    "Orchestrator",
]
