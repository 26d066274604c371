"""Live transcription and translation module for LiveLingo."""

from .base import AbstractLiveTransport, LiveConnection
from .context_window import ContextWindow
from .history import ConversationHistory
from .messages import classify_message
from .publisher import ConversationPublisher
from .rest_translator import GeminiRestTranslator

__all__ = [
    "AbstractLiveTransport",
    "LiveConnection",
    "ContextWindow",
    "ConversationHistory",
    "classify_message",
    "ConversationPublisher",
    "GeminiRestTranslator",
]
