"""Frequency-domain audio level metering."""

import numpy as np
from scipy.signal import get_window

FFT_SIZE = 256
SMOOTHING = 0.8
MIN_DECIBELS = -100.0
MAX_DECIBELS = -30.0


class LevelMeter:
    """Analyser-style level meter.

    Windows the latest ``fft_size`` samples, smooths the spectrum magnitude
    over time, maps each bin to a byte between ``min_decibels`` and
    ``max_decibels`` and reports the mean byte value as a percentage.
    """

    def __init__(self,
                 fft_size: int = FFT_SIZE,
                 smoothing: float = SMOOTHING,
                 min_decibels: float = MIN_DECIBELS,
                 max_decibels: float = MAX_DECIBELS):
        if fft_size <= 0 or fft_size % 2:
            raise ValueError("fft_size must be a positive even number")
        if not 0.0 <= smoothing < 1.0:
            raise ValueError("smoothing must be in [0, 1)")

        self.fft_size = fft_size
        self.smoothing = smoothing
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels
        self.window = get_window("blackman", fft_size)
        self.previous = np.zeros(fft_size // 2)

    def byte_frequency_data(self, samples: np.ndarray) -> np.ndarray:
        """Smoothed spectrum as bytes in [0, 255], one per frequency bin."""
        block = np.zeros(self.fft_size)
        samples = np.asarray(samples, dtype=np.float64)[-self.fft_size:]
        if samples.size:
            block[-samples.size:] = samples

        spectrum = np.abs(np.fft.rfft(block * self.window))[:self.fft_size // 2] / self.fft_size
        smoothed = self.smoothing * self.previous + (1.0 - self.smoothing) * spectrum
        self.previous = smoothed

        with np.errstate(divide='ignore'):
            decibels = 20.0 * np.log10(smoothed)
        scaled = 255.0 * (decibels - self.min_decibels) / (self.max_decibels - self.min_decibels)
        return np.clip(np.nan_to_num(scaled, nan=0.0, neginf=0.0), 0, 255).astype(np.uint8)

    def measure(self, samples: np.ndarray) -> float:
        """Audio level of the latest samples as a percentage in [0, 100]."""
        data = self.byte_frequency_data(samples)
        return float(data.mean() / 255.0 * 100.0)

    def reset(self) -> None:
        self.previous = np.zeros(self.fft_size // 2)
