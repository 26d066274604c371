"""Session manager owning one streaming connection to the live speech service."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from ..errors import MessageParseError, ServiceError, SessionConnectionError, StartupError, TransportError
from ..models.audio import EncodedChunk
from ..models.session import SessionState, SessionStatus
from ..models.transcription import InboundKind, TranslationRequest
from ..transcription.base import AbstractLiveTransport, LiveConnection
from ..transcription.messages import classify_message
from .callbacks import SessionCallbacks

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 1.0


class SessionManager:
    """Connects with retry and backoff, sends audio and prompts, demultiplexes replies.

    State machine: IDLE -> CONNECTING -> CONNECTED -> CLOSING -> CLOSED.
    An unexpected close fires ``on_disconnect`` once; there is no automatic
    reconnect.
    """

    def __init__(self,
                 transport: AbstractLiveTransport,
                 max_retries: int = MAX_RETRIES,
                 initial_backoff: float = INITIAL_BACKOFF_SECONDS,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        """Initialize session manager.

        Args:
            transport: Factory for live connections
            max_retries: Retries after the first failed connect attempt
            initial_backoff: First backoff delay in seconds, doubled per retry
            sleep: Coroutine used for backoff waits
        """
        self.transport = transport
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.sleep = sleep

        self.status = SessionStatus(backoff_delay=initial_backoff)
        self.callbacks: Optional[SessionCallbacks] = None
        self.connection: Optional[LiveConnection] = None
        self.connect_task: Optional[asyncio.Future] = None
        self.receive_task: Optional[asyncio.Future] = None

    @property
    def state(self) -> SessionState:
        return self.status.state

    def is_active(self) -> bool:
        return self.status.state == SessionState.CONNECTED and self.connection is not None

    def get_session_state(self) -> Dict[str, Any]:
        return {
            "state": self.status.state.value,
            "is_connected": self.status.state == SessionState.CONNECTED,
            "has_connection": self.connection is not None,
            "retry_count": self.status.retry_count,
            "backoff_delay": self.status.backoff_delay,
        }

    async def initialize(self, callbacks: SessionCallbacks) -> bool:
        """Connect, retrying with exponential backoff.

        Returns:
            True once connected, False if ``disconnect`` cancelled the attempt

        Raises:
            StartupError: If every attempt failed or connect raised an unexpected
                error (also reported via ``on_error``)
        """
        if self.connect_task is not None and not self.connect_task.done():
            logger.warning("Connect already in progress, joining the pending attempt")
            return await asyncio.shield(self.connect_task)
        if self.is_active():
            logger.warning("Session already connected")
            return True

        self.callbacks = callbacks
        self.status = SessionStatus(backoff_delay=self.initial_backoff)
        task = asyncio.ensure_future(self._connect_with_retry())
        self.connect_task = task

        try:
            return await task
        except asyncio.CancelledError:
            if task.cancelled() and self.status.state in (SessionState.CLOSING, SessionState.CLOSED):
                logger.info("Connect attempt cancelled by disconnect")
                return False
            self.status.state = SessionState.CLOSED
            raise

    async def _connect_with_retry(self) -> bool:
        self.status.state = SessionState.CONNECTING
        while True:
            try:
                connection = await self.transport.connect()
                break
            except SessionConnectionError as e:
                attempt = self.status.retry_count + 1
                logger.error(f"Failed to connect to live service (attempt {attempt}): {e}")
                if self.status.retry_count >= self.max_retries:
                    self.status.state = SessionState.CLOSED
                    error = StartupError(f"Failed to connect after {self.max_retries} retries: {e}")
                    self._notify("on_error", error)
                    raise error from e

                self.status.retry_count += 1
                delay = self.status.backoff_delay
                logger.info(f"Retrying connection in {delay:.1f}s...")
                await self.sleep(delay)
                self.status.backoff_delay *= 2
            except Exception as e:
                # Not a connection failure, so no retry
                logger.error(f"Unexpected error connecting to live service: {e}", exc_info=True)
                self.status.state = SessionState.CLOSED
                error = StartupError(f"Failed to connect: {e}")
                self._notify("on_error", error)
                raise error from e

        self.connection = connection
        self.status.state = SessionState.CONNECTED
        self.status.retry_count = 0
        self.status.backoff_delay = self.initial_backoff
        self.status.disconnect_notified = False
        self.receive_task = asyncio.ensure_future(self._receive_loop(connection))

        logger.info("Live session connected")
        self._notify("on_connect")
        return True

    async def _receive_loop(self, connection: LiveConnection) -> None:
        """Process inbound messages in arrival order until the connection ends."""
        try:
            async for message in connection.receive():
                self._dispatch(message)
        except TransportError as e:
            if self.status.state == SessionState.CONNECTED:
                logger.error(f"Live session error: {e}")
                self._handle_unexpected_close(str(e))
            return
        except Exception as e:
            if self.status.state == SessionState.CONNECTED:
                logger.error(f"Unexpected error while receiving: {e}", exc_info=True)
                self._handle_unexpected_close(f"Receive failed: {e}")
            return

        if self.status.state == SessionState.CONNECTED:
            self._handle_unexpected_close("Connection closed by server")

    def _dispatch(self, message: Any) -> None:
        try:
            event = classify_message(message)
        except MessageParseError as e:
            logger.warning(f"Ignoring malformed message: {e}")
            return

        if event.kind == InboundKind.TRANSCRIPTION:
            logger.debug(f"Received transcription: {event.text}")
            self._notify("on_transcription", event.text)
        elif event.kind == InboundKind.TRANSLATION:
            logger.debug(f"Received model response: {event.text}")
            self._notify("on_translation", event.text)
        elif event.kind == InboundKind.TURN_COMPLETE:
            logger.debug("Turn completed")
        elif event.kind == InboundKind.ERROR:
            logger.error(f"Server content error: {event.text}")
            self._notify("on_error", ServiceError(event.text))
        else:
            logger.debug(f"Ignoring unclassified message with keys: {sorted(message)}")

    def _handle_unexpected_close(self, reason: str) -> None:
        if self.status.disconnect_notified:
            return
        self.status.disconnect_notified = True
        self.status.state = SessionState.CLOSED
        logger.warning(f"Live session closed unexpectedly: {reason}")
        self._notify("on_disconnect", reason)

    def _notify(self, name: str, *args) -> None:
        if self.callbacks is None:
            return
        try:
            getattr(self.callbacks, name)(*args)
        except Exception as e:
            logger.error(f"Unhandled exception in {name} callback: {e}", exc_info=True)

    async def send_audio(self, chunk: EncodedChunk) -> bool:
        """Forward one encoded chunk. Returns False if it was not sent."""
        if not self.is_active():
            logger.warning("Session not connected, cannot send audio data")
            return False
        try:
            await self.connection.send_audio(chunk)
            return True
        except TransportError as e:
            logger.error(f"Error sending audio data: {e}")
            return False

    async def send_translation_request(self, request: TranslationRequest) -> bool:
        """Send a translation prompt on the content channel."""
        if not self.is_active():
            logger.warning("Session not connected, cannot send translation request")
            return False
        try:
            await self.connection.send_text(request.prompt)
            return True
        except TransportError as e:
            logger.error(f"Error sending translation request: {e}")
            return False

    async def send_end_of_stream(self) -> None:
        """Best-effort end-of-audio signal."""
        if not self.is_active():
            return
        try:
            await self.connection.send_audio_stream_end()
        except TransportError as e:
            logger.warning(f"Audio stream end signal not sent (session may already be closed): {e}")

    async def disconnect(self) -> None:
        """Close the connection and reset retry state. Safe to call repeatedly."""
        pending = [task for task in (self.connect_task, self.receive_task)
                   if task is not None and not task.done()]
        if (self.status.state in (SessionState.IDLE, SessionState.CLOSED)
                and self.connection is None and not pending):
            return

        self.status.state = SessionState.CLOSING
        current = asyncio.current_task()
        for task in pending:
            if task is not current:
                task.cancel()
        others = [task for task in pending if task is not current]
        if others:
            await asyncio.gather(*others, return_exceptions=True)

        connection, self.connection = self.connection, None
        if connection is not None:
            try:
                await connection.close()
            except Exception as e:
                logger.error(f"Error closing session: {e}")

        self.connect_task = None
        self.receive_task = None
        self.status = SessionStatus(state=SessionState.CLOSED, backoff_delay=self.initial_backoff)
        logger.info("Live session disconnected")
