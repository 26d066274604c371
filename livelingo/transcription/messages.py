"""Classification of inbound live-service messages."""

from collections.abc import Mapping
from typing import Any

from ..errors import MessageParseError
from ..models.transcription import InboundEvent, InboundKind


def _error_text(error: Any) -> str:
    if isinstance(error, Mapping):
        return str(error.get('message') or error)
    return str(error)


def classify_message(message: Any) -> InboundEvent:
    """Classify one inbound message into exactly one kind.

    Precedence when several fields are present: error, input transcription,
    model text, turn completion. Messages with none of these are UNKNOWN.

    Raises:
        MessageParseError: If the message does not have the expected shape
    """
    if not isinstance(message, Mapping):
        raise MessageParseError(f"Expected a mapping, got {type(message).__name__}")

    server_content = message.get('server_content')
    if server_content is None:
        server_content = {}
    if not isinstance(server_content, Mapping):
        raise MessageParseError("server_content is not a mapping")

    error = message.get('error') or server_content.get('error')
    if error:
        return InboundEvent(InboundKind.ERROR, _error_text(error))

    transcription = server_content.get('input_transcription')
    if transcription is not None:
        if not isinstance(transcription, Mapping):
            raise MessageParseError("input_transcription is not a mapping")
        text = transcription.get('text')
        if text is not None and not isinstance(text, str):
            raise MessageParseError("input_transcription.text is not a string")
        if text:
            return InboundEvent(InboundKind.TRANSCRIPTION, text)

    model_turn = server_content.get('model_turn')
    if model_turn is not None:
        if not isinstance(model_turn, Mapping):
            raise MessageParseError("model_turn is not a mapping")
        parts = model_turn.get('parts') or []
        if not isinstance(parts, (list, tuple)):
            raise MessageParseError("model_turn.parts is not a list")
        texts = [part['text'] for part in parts
                 if isinstance(part, Mapping) and isinstance(part.get('text'), str)]
        text = ''.join(texts)
        if text:
            return InboundEvent(InboundKind.TRANSLATION, text)

    if server_content.get('turn_complete'):
        return InboundEvent(InboundKind.TURN_COMPLETE)

    return InboundEvent(InboundKind.UNKNOWN)
