"""Data models for the LiveLingo application."""

from .audio import AudioDevice, AudioStats, CaptureConstraints, EncodedChunk
from .session import SessionState, SessionStatus
from .transcription import (
    InboundEvent,
    InboundKind,
    TranscriptSegment,
    TranslationRequest,
)
from .conversation import ConversationMessage, MessageType

__all__ = [
    "AudioDevice",
    "AudioStats",
    "CaptureConstraints",
    "EncodedChunk",
    "SessionState",
    "SessionStatus",
    "InboundEvent",
    "InboundKind",
    "TranscriptSegment",
    "TranslationRequest",
    "ConversationMessage",
    "MessageType",
]
