"""Microphone capture on a PortAudio callback with a separate level-monitoring thread."""

import logging
import threading
from collections import deque
from threading import Thread, Event
from typing import Callable, List, Optional

import numpy as np
import pyaudio

from ..errors import CaptureError
from ..models.audio import AudioDevice, AudioStats, CaptureConstraints
from .level import LevelMeter, FFT_SIZE

logger = logging.getLogger(__name__)

SAMPLE_RATE = 16000
BLOCK_SIZE = 128
LEVEL_INTERVAL_SECONDS = 1.0 / 60.0


class AudioCapture:
    """Mono microphone capture delivering fixed-size float sample blocks.

    ``start_processing`` registers a frame callback that PortAudio invokes on
    its own real-time thread, and starts a level thread that reports a
    normalized level at a fixed cadence independent of the block cadence.
    """

    def __init__(
        self,
        sample_rate: int = SAMPLE_RATE,
        block_size: int = BLOCK_SIZE,
        level_interval: float = LEVEL_INTERVAL_SECONDS,
        echo_cancellation: bool = True,
        noise_suppression: bool = True,
        auto_gain_control: bool = True,
    ):
        """Initialize audio capture with specified parameters.

        Args:
            sample_rate: Audio sample rate (16kHz is what the live service expects)
            block_size: Samples per callback block
            level_interval: Seconds between level reports
            echo_cancellation: Request echo cancellation from the host
            noise_suppression: Request noise suppression from the host
            auto_gain_control: Request automatic gain control from the host
        """
        self.sample_rate = sample_rate
        self.block_size = block_size
        self.level_interval = level_interval
        self.constraints = CaptureConstraints(
            sample_rate=sample_rate,
            echo_cancellation=echo_cancellation,
            noise_suppression=noise_suppression,
            auto_gain_control=auto_gain_control,
        )

        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream = None
        self.is_processing = False

        self.on_frame: Optional[Callable[[np.ndarray], None]] = None
        self.on_level: Optional[Callable[[float], None]] = None

        # Latest samples for the level meter, written by the audio thread
        self.recent_samples = deque(maxlen=FFT_SIZE)
        self.samples_lock = threading.Lock()
        self.level_meter = LevelMeter()
        self.level_thread: Optional[Thread] = None
        self.stop_event = Event()

        self.total_blocks = 0
        self.overflow_count = 0

    @staticmethod
    def list_input_devices() -> List[AudioDevice]:
        """Enumerate input-capable devices."""
        instance = pyaudio.PyAudio()
        try:
            devices = []
            for index in range(instance.get_device_count()):
                info = instance.get_device_info_by_index(index)
                if int(info.get('maxInputChannels', 0)) < 1:
                    continue
                label = info.get('name') or f"Microphone {len(devices) + 1}"
                devices.append(AudioDevice(device_id=int(info.get('index', index)), label=label))
            return devices
        finally:
            instance.terminate()

    def initialize(self, device_id: Optional[int] = None) -> bool:
        """Acquire a mono input stream at the fixed sample rate.

        The stream is opened but not started until ``start_processing``.

        Raises:
            CaptureError: If there is no input device or it cannot be opened
        """
        if self.stream is not None:
            logger.warning("Audio capture already initialized")
            return True

        self.constraints.device_id = device_id
        self.stop_event.clear()
        self.pyaudio_instance = pyaudio.PyAudio()

        try:
            if device_id is None:
                self.pyaudio_instance.get_default_input_device_info()
            else:
                info = self.pyaudio_instance.get_device_info_by_index(device_id)
                if int(info.get('maxInputChannels', 0)) < 1:
                    raise CaptureError(f"Device {device_id} has no input channels")

            # PortAudio has no switches for host DSP; these are requested only
            logger.debug(f"Capture constraints: {self.constraints}")

            self.stream = self.pyaudio_instance.open(
                format=pyaudio.paFloat32,
                channels=self.constraints.channel_count,
                rate=self.sample_rate,
                input=True,
                input_device_index=device_id,
                frames_per_buffer=self.block_size,
                stream_callback=self._audio_callback,
                start=False,
            )
        except CaptureError:
            self._release()
            raise
        except (IOError, OSError, ValueError) as e:
            self._release()
            raise CaptureError(f"Unable to open audio input: {e}") from e

        logger.info(f"Audio input opened: {self.sample_rate}Hz mono, "
                    f"{self.block_size} samples/block, device={device_id}")
        return True

    def start_processing(self,
                         on_frame: Callable[[np.ndarray], None],
                         on_level: Optional[Callable[[float], None]] = None) -> None:
        """Start delivering sample blocks to ``on_frame`` and levels to ``on_level``."""
        if self.stream is None:
            raise CaptureError("Audio not initialized")
        if self.is_processing:
            logger.warning("Audio processing already running")
            return

        self.on_frame = on_frame
        self.on_level = on_level
        self.total_blocks = 0
        self.overflow_count = 0
        self.level_meter.reset()
        self.is_processing = True

        if on_level:
            self.level_thread = Thread(target=self._monitor_levels, daemon=True)
            self.level_thread.name = "AudioLevelThread"
            self.level_thread.start()

        self.stream.start_stream()
        logger.info("Audio processing started")

    def _audio_callback(self, in_data, frame_count, time_info, status_flags):
        """PortAudio callback: runs on the host's real-time audio thread."""
        if not self.is_processing or not in_data:
            return (None, pyaudio.paContinue)

        if status_flags & pyaudio.paInputOverflow:
            self.overflow_count += 1
            logger.debug("Audio input overflow")

        samples = np.frombuffer(in_data, dtype=np.float32)
        self.total_blocks += 1
        with self.samples_lock:
            self.recent_samples.extend(samples)

        try:
            if self.on_frame:
                self.on_frame(samples)
        except Exception as e:
            # Never let a processing failure kill the audio stream
            logger.error(f"Audio frame processing error: {e}", exc_info=True)

        return (None, pyaudio.paContinue)

    def _monitor_levels(self) -> None:
        """Level thread: report the current level every ``level_interval`` seconds."""
        while not self.stop_event.wait(self.level_interval):
            if not self.is_processing:
                break
            with self.samples_lock:
                samples = np.array(self.recent_samples, dtype=np.float32)
            level = self.level_meter.measure(samples)
            try:
                if self.on_level:
                    self.on_level(level)
            except Exception as e:
                logger.error(f"Audio level callback error: {e}", exc_info=True)

    def stop(self) -> None:
        """Release the device and detach callbacks. Safe to call repeatedly."""
        was_active = self.is_processing or self.stream is not None
        self.is_processing = False
        self.stop_event.set()
        self.on_frame = None
        self.on_level = None

        if self.level_thread and self.level_thread is not threading.current_thread():
            self.level_thread.join(timeout=1.0)
            if self.level_thread.is_alive():
                logger.warning("Level thread did not stop cleanly")
        self.level_thread = None

        self._release()
        with self.samples_lock:
            self.recent_samples.clear()

        if was_active:
            logger.info(f"Audio capture stopped. Total blocks: {self.total_blocks}")

    def _release(self) -> None:
        stream, self.stream = self.stream, None
        instance, self.pyaudio_instance = self.pyaudio_instance, None
        if stream is not None:
            try:
                if stream.is_active():
                    stream.stop_stream()
                stream.close()
            except (IOError, OSError) as e:
                logger.warning(f"Error closing audio stream: {e}")
        if instance is not None:
            instance.terminate()

    def get_stats(self) -> AudioStats:
        """Get current capture statistics."""
        return AudioStats(
            is_processing=self.is_processing,
            sample_rate=self.sample_rate,
            block_size=self.block_size,
            total_blocks=self.total_blocks,
            overflow_count=self.overflow_count,
        )

    def __del__(self):
        """Ensure resources are cleaned up on deletion."""
        if self.stream is not None:
            self.stop()
