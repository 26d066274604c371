"""Listener interfaces between the session layer and the application."""

from abc import ABC, abstractmethod


class SessionCallbacks(ABC):
    """Events raised by a SessionManager."""

    @abstractmethod
    def on_connect(self) -> None:
        pass

    @abstractmethod
    def on_transcription(self, text: str) -> None:
        pass

    @abstractmethod
    def on_translation(self, text: str) -> None:
        pass

    @abstractmethod
    def on_error(self, error: Exception) -> None:
        pass

    @abstractmethod
    def on_disconnect(self, reason: str) -> None:
        pass


class AssistantListener(SessionCallbacks):
    """Everything the application layer receives from an Orchestrator."""

    @abstractmethod
    def on_level(self, level: float) -> None:
        """Audio level as a percentage in [0, 100]."""
        pass
