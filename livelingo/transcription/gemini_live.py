"""Gemini Live transport backed by the google-genai SDK."""

import asyncio
import base64
import contextlib
import logging
from typing import Any, AsyncIterator, Dict, Optional

from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, WebSocketException

from .base import AbstractLiveTransport, LiveConnection
from ..errors import SessionConnectionError, TransportError
from ..models.audio import EncodedChunk

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.0-flash-live-001"


def default_system_instruction(source_language: str, target_language: str) -> str:
    return (
        "You are a real-time meeting transcription assistant. Your primary role is to:\n"
        f"1. Provide accurate real-time transcription of spoken {source_language}\n"
        f"2. Provide contextual translation to {target_language} when requested\n"
        "3. Maintain conversation context for better translation accuracy\n"
        "4. Be responsive and efficient with low latency\n\n"
        f"Language pairs: {source_language} <-> {target_language}"
    )


class GeminiLiveConnection(LiveConnection):
    """An open Gemini Live session."""

    def __init__(self, session, exit_stack: contextlib.AsyncExitStack, mime_type: str):
        self.session = session
        self.exit_stack = exit_stack
        self.mime_type = mime_type

    async def send_audio(self, chunk: EncodedChunk) -> None:
        blob = types.Blob(data=base64.b64decode(chunk.data), mime_type=self.mime_type)
        try:
            await self.session.send_realtime_input(audio=blob)
        except (WebSocketException, genai_errors.APIError, OSError) as e:
            raise TransportError(f"Failed to send audio chunk {chunk.sequence_number}: {e}") from e

    async def send_audio_stream_end(self) -> None:
        try:
            await self.session.send_realtime_input(audio_stream_end=True)
        except (WebSocketException, genai_errors.APIError, OSError) as e:
            raise TransportError(f"Failed to send audio stream end: {e}") from e

    async def send_text(self, text: str) -> None:
        content = types.Content(role="user", parts=[types.Part(text=text)])
        try:
            await self.session.send_client_content(turns=content, turn_complete=True)
        except (WebSocketException, genai_errors.APIError, OSError) as e:
            raise TransportError(f"Failed to send client content: {e}") from e

    async def receive(self) -> AsyncIterator[Dict[str, Any]]:
        # session.receive() ends after each completed turn, so keep re-entering it
        while True:
            try:
                async for message in self.session.receive():
                    yield message.model_dump(exclude_none=True)
            except ConnectionClosedOK:
                logger.info("Live session closed by server")
                return
            except (ConnectionClosed, WebSocketException, genai_errors.APIError, OSError) as e:
                raise TransportError(f"Live session receive failed: {e}") from e
            except ValueError as e:
                # Unparseable frame; it has been consumed, carry on with the next one
                logger.warning(f"Skipping unparseable live message: {e}")

    async def close(self) -> None:
        await self.exit_stack.aclose()


class GeminiLiveTransport(AbstractLiveTransport):
    """Opens Gemini Live sessions with text responses and input transcription."""

    def __init__(self,
                 api_key: str,
                 model: str = DEFAULT_MODEL,
                 sample_rate: int = 16000,
                 system_instruction: Optional[str] = None,
                 connect_timeout: float = 10.0,
                 client: Optional[genai.Client] = None):
        """Initialize the transport.

        Args:
            api_key: Gemini API key
            model: Live model name
            sample_rate: PCM sample rate announced in the audio mime type
            system_instruction: Instruction sent when the session opens
            connect_timeout: Seconds allowed for one connect attempt
            client: Pre-built genai client (tests)
        """
        if not api_key and client is None:
            raise ValueError("Gemini API key is required - cannot initialize without credentials")
        self.client = client or genai.Client(api_key=api_key)
        self.model = model
        self.mime_type = f"audio/pcm;rate={sample_rate}"
        self.system_instruction = system_instruction
        self.connect_timeout = connect_timeout

    def build_config(self) -> types.LiveConnectConfig:
        config = types.LiveConnectConfig(
            response_modalities=[types.Modality.TEXT],
            input_audio_transcription=types.AudioTranscriptionConfig(),
        )
        if self.system_instruction:
            config.system_instruction = types.Content(parts=[types.Part(text=self.system_instruction)])
        return config

    async def connect(self) -> LiveConnection:
        logger.info(f"Connecting to Gemini Live model {self.model}")
        exit_stack = contextlib.AsyncExitStack()
        try:
            session = await asyncio.wait_for(
                exit_stack.enter_async_context(
                    self.client.aio.live.connect(model=self.model, config=self.build_config())
                ),
                timeout=self.connect_timeout,
            )
        except (WebSocketException, genai_errors.APIError, OSError, asyncio.TimeoutError) as e:
            await exit_stack.aclose()
            raise SessionConnectionError(f"Gemini Live connect failed: {e}") from e
        except BaseException:
            # Cancelled by disconnect, or an unexpected failure
            await exit_stack.aclose()
            raise

        logger.info("Gemini Live session opened")
        return GeminiLiveConnection(session, exit_stack, self.mime_type)
