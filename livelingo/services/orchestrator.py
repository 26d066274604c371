"""Orchestrator wiring capture, encoding, the live session and translation together."""

import asyncio
import itertools
import logging
from typing import Any, Awaitable, Callable, List, Optional, Set

from ..audio.capture import AudioCapture
from ..audio.channel import ChunkChannel
from ..audio.encoder import FrameEncoder
from ..config import LiveLingoConfig
from ..errors import CaptureError, StartupError, TransportError
from ..models.conversation import ConversationMessage, MessageType
from ..models.transcription import TranslationRequest
from ..transcription.base import AbstractLiveTransport
from ..transcription.context_window import ContextWindow
from ..transcription.history import ConversationHistory
from ..transcription.publisher import ConversationPublisher
from ..transcription.rest_translator import GeminiRestTranslator
from .callbacks import AssistantListener, SessionCallbacks
from .session_manager import SessionManager

logger = logging.getLogger(__name__)

_instance_ids = itertools.count(1)


class _SessionBridge(SessionCallbacks):
    """Routes SessionManager events for one recording session back to the orchestrator."""

    def __init__(self, orchestrator: "Orchestrator", generation: int):
        self.orchestrator = orchestrator
        self.generation = generation

    def on_connect(self) -> None:
        self.orchestrator._on_connect(self.generation)

    def on_transcription(self, text: str) -> None:
        self.orchestrator._on_transcription(self.generation, text)

    def on_translation(self, text: str) -> None:
        self.orchestrator._deliver_translation(self.generation, text)

    def on_error(self, error: Exception) -> None:
        self.orchestrator._on_error(self.generation, error)

    def on_disconnect(self, reason: str) -> None:
        self.orchestrator._on_disconnect(self.generation, reason)


class Orchestrator:
    """Runs one recording session at a time.

    Outbound: AudioCapture -> FrameEncoder -> ChunkChannel -> SessionManager.
    Inbound: SessionManager events -> ContextWindow -> translation dispatch ->
    listener. Capture, encoder, channel, session manager and context window
    are created on ``start`` and discarded on ``stop``. Results that arrive
    for a stopped session are dropped.
    """

    def __init__(self,
                 transport: AbstractLiveTransport,
                 listener: AssistantListener,
                 config: Optional[LiveLingoConfig] = None,
                 translator: Optional[GeminiRestTranslator] = None,
                 capture_factory: Optional[Callable[[], AudioCapture]] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        """Initialize the orchestrator.

        Args:
            transport: Live speech transport
            listener: Application-facing event listener
            config: Application configuration (defaults when None)
            translator: REST translator; when given, prompts go over HTTPS
                        instead of the live session's content channel
            capture_factory: Builds the AudioCapture for each session
            sleep: Coroutine used for connect backoff waits
        """
        self.transport = transport
        self.listener = listener
        self.config = config or LiveLingoConfig()
        self.translator = translator
        self.capture_factory = capture_factory or self._create_capture
        self.sleep = sleep

        self.source_language = self.config.get('translation.source_language', 'English')
        self.target_language = self.config.get('translation.target_language', 'Japanese')

        topic = f"conversation.session{next(_instance_ids)}"
        self.publisher = ConversationPublisher(topic)
        self.history = ConversationHistory(topic)

        self.is_recording = False
        self.generation = 0
        self.loop: Optional[asyncio.AbstractEventLoop] = None

        # Per-session components
        self.capture: Optional[AudioCapture] = None
        self.encoder: Optional[FrameEncoder] = None
        self.channel: Optional[ChunkChannel] = None
        self.session_manager: Optional[SessionManager] = None
        self.context_window: Optional[ContextWindow] = None
        self.pump_task: Optional[asyncio.Future] = None
        self.pending_tasks: Set[asyncio.Future] = set()
        self.stop_task: Optional[asyncio.Future] = None

    def _create_capture(self) -> AudioCapture:
        return AudioCapture(
            sample_rate=self.config.get('audio.sample_rate', 16000),
            block_size=self.config.get('audio.block_size', 128),
            level_interval=self.config.get('audio.level_interval_seconds', 1.0 / 60.0),
            echo_cancellation=self.config.get('audio.echo_cancellation', True),
            noise_suppression=self.config.get('audio.noise_suppression', True),
            auto_gain_control=self.config.get('audio.auto_gain_control', True),
        )

    def _create_components(self) -> None:
        self.capture = self.capture_factory()
        self.channel = ChunkChannel(self.loop, maxsize=self.config.get('encoder.channel_size', 64))
        self.encoder = FrameEncoder(
            on_chunk=self.channel.put_threadsafe,
            silence_threshold=self.config.get('encoder.silence_threshold', 0.01),
            flush_threshold=self.config.get('encoder.flush_threshold', 2048),
            min_flush_samples=self.config.get('encoder.min_flush_samples', 512),
            max_chunk_bytes=self.config.get('encoder.max_chunk_bytes', 1024 * 1024),
        )
        self.session_manager = SessionManager(
            self.transport,
            max_retries=self.config.get('session.max_retries', 3),
            initial_backoff=self.config.get('session.initial_backoff_seconds', 1.0),
            sleep=self.sleep,
        )
        self.context_window = ContextWindow(
            capacity=self.config.get('translation.context_size', 3),
            length_threshold=self.config.get('translation.min_length', 15),
            source_language=self.source_language,
            target_language=self.target_language,
        )

    def is_active(self, generation: int) -> bool:
        return self.is_recording and generation == self.generation

    async def start(self, device_id: Optional[int] = None) -> bool:
        """Start a recording session.

        Returns:
            True once audio is streaming to a connected session
        """
        if self.is_recording:
            logger.warning("Session already running")
            return False

        self.is_recording = True
        self.generation += 1
        generation = self.generation
        self.loop = asyncio.get_running_loop()
        self._create_components()
        logger.info(f"Starting session {generation}")

        try:
            self.capture.initialize(device_id)
        except CaptureError as e:
            logger.error(f"Failed to initialize audio: {e}")
            self._notify_listener("on_error", e)
            await self.stop()
            return False

        session_manager = self.session_manager
        try:
            connected = await session_manager.initialize(_SessionBridge(self, generation))
        except StartupError as e:
            logger.error(f"Failed to start session: {e}")
            if self.is_active(generation):
                await self.stop()
            return False

        return connected and self.is_active(generation)

    def _on_connect(self, generation: int) -> None:
        if not self.is_active(generation):
            return
        logger.info("Connected - starting audio stream")
        self.pump_task = asyncio.ensure_future(self._pump_audio(self.channel, self.session_manager))
        try:
            self.capture.start_processing(self.encoder.process, self._level_from_thread(generation))
        except CaptureError as e:
            self._on_error(generation, e)
            return
        self._notify_listener("on_connect")

    async def _pump_audio(self, channel: ChunkChannel, session_manager: SessionManager) -> None:
        """Forward encoded chunks in production order."""
        async for chunk in channel:
            await session_manager.send_audio(chunk)

    def _level_from_thread(self, generation: int) -> Callable[[float], None]:
        loop = self.loop

        def on_level(level: float) -> None:
            try:
                loop.call_soon_threadsafe(self._deliver_level, generation, level)
            except RuntimeError:
                pass  # loop closed

        return on_level

    def _deliver_level(self, generation: int, level: float) -> None:
        if self.is_active(generation):
            self._notify_listener("on_level", level)

    def _on_transcription(self, generation: int, text: str) -> None:
        if not self.is_active(generation):
            logger.debug("Discarding transcription for inactive session")
            return
        self._notify_listener("on_transcription", text)
        self._record(MessageType.TRANSCRIPTION, text, self.source_language)

        request = self.context_window.process(text)
        if request is not None:
            self._dispatch_translation(generation, request)

    def _dispatch_translation(self, generation: int, request: TranslationRequest) -> None:
        if self.translator is not None:
            task = asyncio.ensure_future(self._translate_rest(generation, request))
        else:
            task = asyncio.ensure_future(self.session_manager.send_translation_request(request))
        self.pending_tasks.add(task)
        task.add_done_callback(self.pending_tasks.discard)

    async def _translate_rest(self, generation: int, request: TranslationRequest) -> None:
        try:
            text = await self.translator.translate(request)
        except TransportError as e:
            logger.error(f"Translation failed: {e}")
            return
        if text:
            self._deliver_translation(generation, text)

    def _deliver_translation(self, generation: int, text: str) -> None:
        if not self.is_active(generation):
            logger.debug("Discarding translation for inactive session")
            return
        self._notify_listener("on_translation", text)
        self._record(MessageType.TRANSLATION, text, self.target_language)

    def _on_error(self, generation: int, error: Exception) -> None:
        if not self.is_active(generation):
            logger.debug(f"Discarding error for inactive session: {error}")
            return
        self._notify_listener("on_error", error)
        if getattr(error, "fatal", False):
            logger.error(f"Fatal error, stopping session: {error}")
            self._schedule_stop(generation)

    def _on_disconnect(self, generation: int, reason: str) -> None:
        if not self.is_active(generation):
            return
        self._notify_listener("on_disconnect", reason)
        logger.warning("Connection lost, session must be restarted")
        self._schedule_stop(generation)

    def _schedule_stop(self, generation: int) -> None:
        async def stop_generation():
            if generation == self.generation:
                await self.stop()

        self.stop_task = asyncio.ensure_future(stop_generation())

    def _record(self, message_type: MessageType, text: str, language: str) -> None:
        if not text or len(text.strip()) < 2:
            return
        self.publisher.publish_message(
            ConversationMessage(type=message_type, text=text, language=language)
        )

    def _notify_listener(self, name: str, *args) -> None:
        try:
            getattr(self.listener, name)(*args)
        except Exception as e:
            logger.error(f"Unhandled exception in listener {name}: {e}", exc_info=True)

    async def stop(self) -> None:
        """Stop the current session. Safe to call repeatedly.

        The microphone is released and the session marked inactive before
        anything is awaited. Buffered audio is abandoned.
        """
        if not self.is_recording and self.session_manager is None:
            return
        self.is_recording = False
        logger.info("Stopping session...")

        capture, self.capture = self.capture, None
        encoder, self.encoder = self.encoder, None
        channel, self.channel = self.channel, None
        session_manager, self.session_manager = self.session_manager, None
        self.context_window = None

        if capture is not None:
            capture.stop()
        if encoder is not None:
            encoder.reset()
        if channel is not None:
            channel.close()

        current = asyncio.current_task()
        tasks: List[asyncio.Future] = [t for t in [self.pump_task, *self.pending_tasks]
                                       if t is not None and t is not current and not t.done()]
        self.pump_task = None
        self.pending_tasks = set()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        if session_manager is not None:
            await session_manager.send_end_of_stream()
            await session_manager.disconnect()

        logger.info("Session stopped")

    def get_history(self) -> List[ConversationMessage]:
        return self.history.get_messages()

    def close(self) -> None:
        """Release the history subscription."""
        self.history.shutdown()
