# core/features.py
# Band energies, spectral centroid and energy-flux beat detection.
from __future__ import annotations

import logging
import time
from collections import deque
from typing import Callable, Deque, Tuple

import numpy as np

from core.config import SessionConfig
from core.models import DISPLAY_SAMPLES, AudioFrame, FeatureFrame
from core.spectral import FrameWindower, SpectralAnalyzer

_LOG = logging.getLogger(__name__)

BEAT_SENSITIVITY = 1.3
BEAT_FLOOR = 0.1


class BeatDetector:
    """
    Energy-flux beat detector with an instance-owned rolling history.

    The very first call only seeds the history and never reports a beat.
    Later calls compare against the mean of the history *before* the new value
    is appended.
    """

    def __init__(self, history_size: int = 43):
        if history_size <= 0:
            raise ValueError("history_size must be > 0")
        self._history: Deque[float] = deque(maxlen=history_size)

    @property
    def history(self) -> Tuple[float, ...]:
        return tuple(self._history)

    def detect(self, total_energy: float) -> bool:
        if not self._history:
            self._history.append(total_energy)
            return False

        avg = sum(self._history) / len(self._history)
        threshold = BEAT_SENSITIVITY * avg
        is_beat = total_energy > threshold and total_energy > BEAT_FLOOR

        self._history.append(total_energy)  # deque evicts the oldest at maxlen
        return is_beat

    def reset(self) -> None:
        self._history.clear()


class FeatureExtractor:
    """Turns raw sample buffers into immutable FeatureFrames. Not thread-safe; one per session."""

    BANDS = {
        "bass": (20.0, 250.0),
        "mid": (250.0, 2000.0),
        "high": (2000.0, 8000.0),
    }

    def __init__(self, config: SessionConfig, clock: Callable[[], float] = time.monotonic):
        self.config = config
        self.windower = FrameWindower(config.buffer_size, config.fft_size)
        self.analyzer = SpectralAnalyzer(config.fft_size)
        self.beats = BeatDetector(config.beat_history_size)
        self._clock = clock

    def band_energy(self, spectrum: np.ndarray, low_freq: float, high_freq: float) -> float:
        bin_width = self.config.bin_width
        low_bin = int(low_freq / bin_width)
        high_bin = min(int(high_freq / bin_width), len(spectrum) - 1)
        if low_bin >= high_bin:
            return 0.0
        band = spectrum[low_bin:high_bin]
        return float(np.mean(band * band))

    def spectral_centroid(self, spectrum: np.ndarray) -> float:
        """
        Magnitude-weighted mean frequency over bins 0..n/2 only. Weighting the
        full mirrored spectrum instead drags every centroid towards sample_rate / 2.
        """
        half = spectrum[: len(spectrum) // 2 + 1]
        total = float(np.sum(half))
        if total <= 0.0:
            return 0.0
        freqs = np.arange(len(half)) * self.config.bin_width
        return float(np.sum(half * freqs) / total)

    def analyze(self, samples: np.ndarray) -> FeatureFrame:
        windowed = self.windower.apply(samples)
        spectrum = self.analyzer.magnitude_spectrum(windowed)

        bass = self.band_energy(spectrum, *self.BANDS["bass"])
        mid = self.band_energy(spectrum, *self.BANDS["mid"])
        high = self.band_energy(spectrum, *self.BANDS["high"])
        total = bass + mid + high

        centroid = self.spectral_centroid(spectrum)
        is_beat = self.beats.detect(total)
        if is_beat:
            _LOG.debug("Beat detected (energy=%.3f)", total)

        return FeatureFrame(
            timestamp=self._clock(),
            energy=total,
            bass_energy=bass,
            mid_energy=mid,
            high_energy=high,
            spectral_centroid=centroid,
            is_beat=is_beat,
            tempo=None,
            samples=tuple(float(s) for s in np.asarray(samples)[:DISPLAY_SAMPLES]),
        )

    def extract(self, frame: AudioFrame) -> FeatureFrame:
        if frame.sample_rate != self.config.sample_rate:
            _LOG.warning(
                "Frame sample rate %d differs from session rate %d",
                frame.sample_rate,
                self.config.sample_rate,
            )
        return self.analyze(frame.samples)
