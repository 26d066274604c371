"""Pytest configuration and fixtures for LiveLingo tests."""

import asyncio
import logging
from typing import List, Optional
from unittest.mock import Mock, patch

import numpy as np
import pytest

from livelingo.errors import SessionConnectionError, TransportError
from livelingo.services.callbacks import AssistantListener
from livelingo.transcription.base import AbstractLiveTransport, LiveConnection


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

_END = object()


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast isolated tests")
    config.addinivalue_line("markers", "integration: tests wiring several components together")


async def settle(rounds: int = 20) -> None:
    """Let pending callbacks and tasks on the running loop make progress."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeConnection(LiveConnection):
    """In-memory live connection recording everything sent to it."""

    def __init__(self):
        self.sent_audio = []
        self.sent_text: List[str] = []
        self.stream_ended = False
        self.close_count = 0
        self.fail_sends = False
        self.fail_close = False
        self._queue: Optional[asyncio.Queue] = None

    @property
    def queue(self) -> asyncio.Queue:
        if self._queue is None:
            self._queue = asyncio.Queue()
        return self._queue

    def push(self, message) -> None:
        self.queue.put_nowait(message)

    def end(self) -> None:
        self.queue.put_nowait(_END)

    def fail(self, error: Exception) -> None:
        self.queue.put_nowait(error)

    async def send_audio(self, chunk) -> None:
        if self.fail_sends:
            raise TransportError("send failed")
        self.sent_audio.append(chunk)

    async def send_audio_stream_end(self) -> None:
        if self.fail_sends:
            raise TransportError("already closed")
        self.stream_ended = True

    async def send_text(self, text: str) -> None:
        if self.fail_sends:
            raise TransportError("send failed")
        self.sent_text.append(text)

    async def receive(self):
        while True:
            item = await self.queue.get()
            if item is _END:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def close(self) -> None:
        self.close_count += 1
        if self.fail_close:
            raise RuntimeError("close failed")


class FakeTransport(AbstractLiveTransport):
    """Transport failing the first ``failures`` connect attempts."""

    def __init__(self, failures: int = 0, gate: Optional[asyncio.Event] = None):
        self.failures = failures
        self.gate = gate
        self.attempts = 0
        self.connections: List[FakeConnection] = []

    @property
    def connection(self) -> Optional[FakeConnection]:
        return self.connections[-1] if self.connections else None

    async def connect(self) -> LiveConnection:
        self.attempts += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.attempts <= self.failures:
            raise SessionConnectionError(f"attempt {self.attempts} refused")
        connection = FakeConnection()
        self.connections.append(connection)
        return connection


class RecordingListener(AssistantListener):
    """Listener that remembers every event it receives."""

    def __init__(self):
        self.connects = 0
        self.transcriptions: List[str] = []
        self.translations: List[str] = []
        self.errors: List[Exception] = []
        self.disconnects: List[str] = []
        self.levels: List[float] = []

    def on_connect(self) -> None:
        self.connects += 1

    def on_transcription(self, text: str) -> None:
        self.transcriptions.append(text)

    def on_translation(self, text: str) -> None:
        self.translations.append(text)

    def on_error(self, error: Exception) -> None:
        self.errors.append(error)

    def on_disconnect(self, reason: str) -> None:
        self.disconnects.append(reason)

    def on_level(self, level: float) -> None:
        self.levels.append(level)


class RecordingSleep:
    """Backoff sleep that records the requested delays and returns immediately."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        mock_stream.is_active.return_value = True
        mock_stream.start_stream.return_value = None
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        devices = [
            {'index': 0, 'name': 'Built-in Microphone', 'maxInputChannels': 1},
            {'index': 1, 'name': 'Speakers', 'maxInputChannels': 0},
            {'index': 2, 'name': '', 'maxInputChannels': 2},
        ]
        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None
        mock_pyaudio_instance.get_device_count.return_value = len(devices)
        mock_pyaudio_instance.get_device_info_by_index.side_effect = lambda i: devices[i]
        mock_pyaudio_instance.get_default_input_device_info.return_value = devices[0]

        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream,
        }


@pytest.fixture
def audio_test_data():
    """Generate float sample blocks for testing."""
    def generate_audio(pattern="sine", samples=128, amplitude=0.5, sample_rate=16000):
        """Generate one block of normalized float samples.

        Args:
            pattern: Type of audio pattern ('sine', 'noise', 'silence')
            samples: Number of samples
            amplitude: Peak amplitude
            sample_rate: Sample rate in Hz

        Returns:
            np.ndarray of float32 samples
        """
        if pattern == "sine":
            t = np.arange(samples) / sample_rate
            data = amplitude * np.sin(2 * np.pi * 440 * t)
        elif pattern == "noise":
            data = np.random.uniform(-amplitude, amplitude, samples)
        elif pattern == "silence":
            data = np.zeros(samples)
        else:
            raise ValueError(f"Unknown pattern: {pattern}")
        return data.astype(np.float32)

    return generate_audio
