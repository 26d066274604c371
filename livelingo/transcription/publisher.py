"""Conversation message publisher for pub/sub event publishing."""

import logging
from typing import Callable
from pubsub import pub
from ..models.conversation import ConversationMessage

logger = logging.getLogger(__name__)


class ConversationPublisher:
    """Publishes conversation messages using pubsub.pub."""

    def __init__(self, topic: str):
        """Initialize conversation publisher.

        Args:
            topic: Pub/sub topic name for conversation messages
        """
        self.topic = topic
        logger.info(f"ConversationPublisher initialized with topic: {topic}")

    def publish_message(self, message: ConversationMessage) -> None:
        """Publish a conversation message to the pub/sub topic.

        Args:
            message: ConversationMessage to publish
        """
        pub.sendMessage(self.topic, message=message)
        logger.debug(f"Published {message.type.value} message ({len(message.text)} chars)")

    def get_callback(self) -> Callable[[ConversationMessage], None]:
        return self.publish_message
