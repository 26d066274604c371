"""Abstract base classes for live speech transports."""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Dict

from ..models.audio import EncodedChunk


class LiveConnection(ABC):
    """One open streaming connection to the live speech service."""

    @abstractmethod
    async def send_audio(self, chunk: EncodedChunk) -> None:
        """Send one encoded PCM chunk.

        Raises:
            TransportError: If the send fails
        """
        pass

    @abstractmethod
    async def send_audio_stream_end(self) -> None:
        """Signal that no more audio will follow."""
        pass

    @abstractmethod
    async def send_text(self, text: str) -> None:
        """Send a complete user turn on the content channel."""
        pass

    @abstractmethod
    def receive(self) -> AsyncIterator[Dict[str, Any]]:
        """Yield inbound messages as plain dictionaries until the connection ends.

        Raises:
            TransportError: If the connection fails while receiving
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the connection."""
        pass


class AbstractLiveTransport(ABC):
    """Factory for live connections."""

    @abstractmethod
    async def connect(self) -> LiveConnection:
        """Open a new connection.

        Raises:
            SessionConnectionError: If this attempt failed
        """
        pass
