"""Audio capture and encoding module."""

from .capture import AudioCapture
from .channel import ChunkChannel
from .encoder import FrameEncoder
from .level import LevelMeter

__all__ = [
    'AudioCapture',
    'ChunkChannel',
    'FrameEncoder',
    'LevelMeter',
]
