"""In-memory conversation history fed from a pub/sub topic."""

import logging
import threading
from typing import Any, Dict, List

from pubsub import pub

from ..models.conversation import ConversationMessage, MessageType

logger = logging.getLogger(__name__)


class ConversationHistory:
    """Ordered list of transcription and translation messages."""

    def __init__(self, topic: str):
        """Subscribe to ``topic`` and start collecting messages.

        Args:
            topic: Topic carrying ConversationMessage objects
        """
        self.topic = topic
        self.messages: List[ConversationMessage] = []
        self.lock = threading.RLock()

        pub.subscribe(self._on_message, topic)
        logger.info(f"ConversationHistory subscribed to {topic}")

    def _on_message(self, message: ConversationMessage) -> None:
        with self.lock:
            self.messages.append(message)

    def get_messages(self) -> List[ConversationMessage]:
        with self.lock:
            return list(self.messages)

    def get_transcript(self, message_type: MessageType = MessageType.TRANSCRIPTION) -> str:
        """Space-joined text of all messages of one type."""
        with self.lock:
            return " ".join(m.text for m in self.messages if m.type == message_type)

    def get_summary(self) -> Dict[str, Any]:
        with self.lock:
            return {
                "count": len(self.messages),
                "transcriptions": sum(1 for m in self.messages if m.type == MessageType.TRANSCRIPTION),
                "translations": sum(1 for m in self.messages if m.type == MessageType.TRANSLATION),
            }

    def __len__(self) -> int:
        with self.lock:
            return len(self.messages)

    def shutdown(self) -> None:
        """Stop listening for new messages."""
        try:
            pub.unsubscribe(self._on_message, self.topic)
        except Exception as e:
            logger.warning(f"Error during unsubscribe: {e}")
