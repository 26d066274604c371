"""Conversation history models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class MessageType(Enum):
    TRANSCRIPTION = "transcription"
    TRANSLATION = "translation"


@dataclass(frozen=True)
class ConversationMessage:
    """One entry of the conversation history. Never mutated after creation."""
    type: MessageType
    text: str
    language: str
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "text": self.text,
            "language": self.language,
            "timestamp": self.timestamp.isoformat(),
        }
