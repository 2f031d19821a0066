"""Shared fixtures: small, fast session configs and synthetic signals."""

import threading

import numpy as np
import pytest

from core.config import SessionConfig
from core.models import FeatureFrame

TEST_SR = 8000
TEST_BUFFER = 256


@pytest.fixture
def config():
    return SessionConfig(
        sample_rate=TEST_SR,
        buffer_size=TEST_BUFFER,
        fft_size=TEST_BUFFER,
        light_count=10,
        update_interval_ms=0,
        query_timeout_ms=1000,
    )


@pytest.fixture
def sine():
    """Factory: a buffer of a pure sine at `freq` Hz."""

    def make(freq, amplitude=0.5, n=TEST_BUFFER, sr=TEST_SR):
        t = np.arange(n) / sr
        return amplitude * np.sin(2 * np.pi * freq * t)

    return make


@pytest.fixture
def frame():
    """Factory for FeatureFrames with sensible defaults."""

    def make(**overrides):
        values = dict(
            timestamp=1.0,
            energy=0.6,
            bass_energy=0.9,
            mid_energy=0.4,
            high_energy=0.1,
            spectral_centroid=1000.0,
            is_beat=False,
        )
        values.update(overrides)
        return FeatureFrame(**values)

    return make


class RecordingSink:
    """Collects everything a dispatcher hands it."""

    def __init__(self):
        self.frames = []
        self.lights = []
        self.ended = 0
        self.got_frame = threading.Event()

    def on_frame(self, frame, lights):
        self.frames.append(frame)
        self.lights.append(lights)
        self.got_frame.set()

    def on_end(self):
        self.ended += 1


@pytest.fixture
def recording_sink():
    return RecordingSink()
