# core/spectral.py
# Windowing + FFT magnitude. Bounded, deterministic, no I/O.
from __future__ import annotations

import numpy as np

from core.errors import InsufficientSamples


class FrameWindower:
    """
    Slices/pads a raw sample buffer to the transform size and applies a Hann taper.

    The taper spans the samples actually taken (``min(len, fft_size)``); the rest
    of the transform frame is zero padding.
    """

    def __init__(self, frame_size: int, fft_size: int):
        if fft_size < frame_size:
            raise ValueError("fft_size must be >= frame_size")
        self.frame_size = frame_size
        self.fft_size = fft_size

    def apply(self, samples: np.ndarray) -> np.ndarray:
        samples = np.asarray(samples, dtype=np.float64)
        if samples.shape[0] < self.frame_size:
            raise InsufficientSamples(
                f"Need at least {self.frame_size} samples, got {samples.shape[0]}"
            )
        n = min(samples.shape[0], self.fft_size)
        # np.hanning(n)[i] == 0.5 * (1 - cos(2*pi*i / (n - 1)))
        out = np.zeros(self.fft_size, dtype=np.float64)
        out[:n] = samples[:n] * np.hanning(n)
        return out


class SpectralAnalyzer:
    def __init__(self, fft_size: int):
        self.fft_size = fft_size

    def magnitude_spectrum(self, frame: np.ndarray) -> np.ndarray:
        """Full-length |FFT| of a real frame (``sqrt(re**2 + im**2)`` per bin)."""
        frame = np.asarray(frame, dtype=np.float64)
        if frame.shape[0] != self.fft_size:
            raise InsufficientSamples(
                f"Expected a frame of {self.fft_size} samples, got {frame.shape[0]}"
            )
        return np.abs(np.fft.fft(frame))
