"""Session-related data models."""

from dataclasses import dataclass
from enum import Enum


class SessionState(Enum):
    """Lifecycle of one streaming connection."""
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class SessionStatus:
    """Mutable per-session state owned by a SessionManager."""
    state: SessionState = SessionState.IDLE
    retry_count: int = 0
    backoff_delay: float = 1.0
    disconnect_notified: bool = False
