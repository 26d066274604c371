"""Audio-related data models."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class AudioDevice:
    """An audio input device reported by the host."""
    device_id: int
    label: str


@dataclass
class CaptureConstraints:
    """Constraints requested when acquiring the microphone stream."""
    device_id: Optional[int] = None
    channel_count: int = 1
    sample_rate: int = 16000
    echo_cancellation: bool = True
    noise_suppression: bool = True
    auto_gain_control: bool = True


@dataclass
class AudioStats:
    """Audio capture statistics."""
    is_processing: bool
    sample_rate: int
    block_size: int
    total_blocks: int
    overflow_count: int


@dataclass(frozen=True)
class EncodedChunk:
    """A flushed batch of 16-bit little-endian PCM, base64 encoded for transport."""
    data: str
    sample_count: int
    byte_length: int
    sequence_number: int
    timestamp: float  # Unix timestamp when the batch was flushed
