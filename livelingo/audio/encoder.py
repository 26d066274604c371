"""Float sample to 16-bit PCM batching encoder."""

import base64
import time
import logging
from typing import Callable, List, Optional

import numpy as np

from ..errors import EncodingError
from ..models.audio import EncodedChunk

logger = logging.getLogger(__name__)

SILENCE_THRESHOLD = 0.01
FLUSH_THRESHOLD = 2048
MIN_FLUSH_SAMPLES = 512
MAX_CHUNK_BYTES = 1024 * 1024


def float_to_pcm16(samples: np.ndarray) -> np.ndarray:
    """Convert normalized float samples to int16.

    Samples are clamped to [-1, 1] and scaled by 0x8000 when negative and
    0x7FFF otherwise. The cast truncates toward zero. NaN becomes 0.
    """
    values = np.nan_to_num(np.asarray(samples, dtype=np.float64), nan=0.0)
    clamped = np.clip(values, -1.0, 1.0)
    scaled = np.where(clamped < 0, clamped * 0x8000, clamped * 0x7FFF)
    return scaled.astype(np.int16)


def encode_pcm16(pcm: np.ndarray) -> str:
    """Encode int16 samples as little-endian bytes wrapped in base64."""
    return base64.b64encode(pcm.astype('<i2').tobytes()).decode('ascii')


def validate_chunk(data: str, max_bytes: int = MAX_CHUNK_BYTES) -> int:
    """Check that base64 chunk data decodes to 1..max_bytes bytes.

    Returns:
        Decoded byte length

    Raises:
        EncodingError: If the data is not valid base64 or out of bounds
    """
    try:
        decoded = base64.b64decode(data, validate=True)
    except (ValueError, TypeError) as e:
        raise EncodingError(f"Invalid base64 audio data: {e}") from e

    if len(decoded) == 0:
        raise EncodingError("Empty audio data after decoding")
    if len(decoded) > max_bytes:
        raise EncodingError(f"Audio data too large: {len(decoded)} bytes (limit {max_bytes})")
    return len(decoded)


class FrameEncoder:
    """Accumulates float sample blocks and emits base64 PCM batches.

    A batch is flushed when the buffer holds at least ``flush_threshold``
    samples, or when the current block contains audio above the silence
    threshold and the buffer holds at least ``min_flush_samples`` samples.
    Runs on the audio callback thread.
    """

    def __init__(self,
                 on_chunk: Optional[Callable[[EncodedChunk], None]] = None,
                 silence_threshold: float = SILENCE_THRESHOLD,
                 flush_threshold: int = FLUSH_THRESHOLD,
                 min_flush_samples: int = MIN_FLUSH_SAMPLES,
                 max_chunk_bytes: int = MAX_CHUNK_BYTES):
        self.on_chunk = on_chunk
        self.silence_threshold = silence_threshold
        self.flush_threshold = flush_threshold
        self.min_flush_samples = min_flush_samples
        self.max_chunk_bytes = max_chunk_bytes

        self.buffer: List[np.ndarray] = []
        self.buffered_samples = 0
        self.sequence_number = 0
        self.dropped_chunks = 0

    def has_audio(self, samples: np.ndarray) -> bool:
        """True if any sample magnitude exceeds the silence threshold."""
        if len(samples) == 0:
            return False
        return bool(np.any(np.abs(samples) > self.silence_threshold))

    def process(self, samples: np.ndarray) -> Optional[EncodedChunk]:
        """Consume one sample block, flushing a chunk if a threshold is met.

        Returns:
            The emitted chunk, or None if nothing was flushed
        """
        samples = np.asarray(samples)
        if samples.size == 0:
            return None

        has_audio = self.has_audio(samples)
        self.buffer.append(float_to_pcm16(samples.ravel()))
        self.buffered_samples += samples.size

        should_flush_full = self.buffered_samples >= self.flush_threshold
        should_flush_audio = has_audio and self.buffered_samples >= self.min_flush_samples
        if not (should_flush_full or should_flush_audio):
            return None

        return self.flush()

    def flush(self) -> Optional[EncodedChunk]:
        """Encode and emit whatever is buffered, then clear the buffer."""
        if not self.buffer:
            return None

        pcm = np.concatenate(self.buffer)
        sample_count = self.buffered_samples
        self.reset()

        data = encode_pcm16(pcm)
        try:
            byte_length = validate_chunk(data, self.max_chunk_bytes)
        except EncodingError as e:
            self.dropped_chunks += 1
            logger.warning(f"Dropping audio chunk: {e}")
            return None

        self.sequence_number += 1
        chunk = EncodedChunk(
            data=data,
            sample_count=sample_count,
            byte_length=byte_length,
            sequence_number=self.sequence_number,
            timestamp=time.time(),
        )
        logger.debug(f"Flushed chunk {chunk.sequence_number}: {sample_count} samples")

        if self.on_chunk:
            self.on_chunk(chunk)
        return chunk

    def reset(self) -> None:
        """Abandon any buffered samples."""
        self.buffer = []
        self.buffered_samples = 0
