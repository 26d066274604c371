"""Transcription-related data models."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class InboundKind(Enum):
    """Classification of one inbound live-service message."""
    TRANSCRIPTION = "transcription"
    TRANSLATION = "translation"
    TURN_COMPLETE = "turn_complete"
    ERROR = "error"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class InboundEvent:
    """A classified inbound message."""
    kind: InboundKind
    text: Optional[str] = None


@dataclass
class TranscriptSegment:
    """A piece of transcribed speech."""
    text: str
    is_final: bool = True
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class TranslationRequest:
    """A prompt asking for the translation of one segment with trailing context."""
    prompt: str
    segment: str
    context: List[str] = field(default_factory=list)
