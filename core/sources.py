# core/sources.py
# Pull-based sample sources: audio files and a synthetic test signal.
from __future__ import annotations

import logging
import math
import time
from pathlib import Path
from typing import Union

import numpy as np
import soundfile as sf

from core.audio_pipeline import SampleSource
from core.config import SessionConfig
from core.errors import AcquisitionFailure

_LOG = logging.getLogger(__name__)


def probe_sample_rate(path: Union[str, Path]) -> int:
    """Sample rate of an audio file, so the session can be configured to match."""
    try:
        return int(sf.info(str(path)).samplerate)
    except (RuntimeError, OSError) as e:
        raise AcquisitionFailure(f"Cannot read audio file {path}: {e}") from e


class WavFileSource(SampleSource):
    """
    Reads an uncompressed audio file (WAV/AIFF/FLAC via libsndfile) in
    buffer-sized mono chunks. The incomplete trailing chunk is dropped.

    realtime=True paces chunks at the file's own rate, like live capture.
    """

    name = "WavFileSource"

    def __init__(self, path: Union[str, Path], config: SessionConfig, realtime: bool = False):
        super().__init__(config.sample_rate, config.buffer_size)
        self.path = Path(path)
        self.realtime = realtime

    def _acquire(self) -> None:
        try:
            handle = sf.SoundFile(str(self.path))
        except (RuntimeError, OSError) as e:
            raise AcquisitionFailure(f"Cannot open audio file {self.path}: {e}") from e

        with handle:
            if handle.samplerate != self.sample_rate:
                raise AcquisitionFailure(
                    f"{self.path.name} is {handle.samplerate} Hz, session expects {self.sample_rate} Hz"
                )
            _LOG.info("Loading audio file: %s (%d frames)", self.path, handle.frames)

            period = self.buffer_size / self.sample_rate
            next_t = time.monotonic()
            blocks = handle.blocks(blocksize=self.buffer_size, dtype="float64", always_2d=True)
            while self._run_event.is_set():
                try:
                    block = next(blocks)
                except StopIteration:
                    break
                except (RuntimeError, OSError) as e:
                    raise AcquisitionFailure(f"Corrupt audio file {self.path}: {e}") from e
                if block.shape[0] < self.buffer_size:
                    break
                self._emit(block.mean(axis=1))

                if self.realtime:
                    next_t += period
                    if not self._sleep(next_t - time.monotonic()):
                        break


class SyntheticSource(SampleSource):
    """
    Generated test audio: swept bass/mid/high sines with a 1.5x amplitude
    pulse for the first 100 ms of every 500 ms. Output is scaled by 1/1.5 so
    samples stay inside [-1, 1].
    """

    name = "SyntheticSource"

    def __init__(self, config: SessionConfig, duration: float = 30.0, paced: bool = True):
        super().__init__(config.sample_rate, config.buffer_size)
        self.duration = duration
        self.paced = paced
        self.updates_per_second = max(1, config.sample_rate // config.buffer_size)

    @property
    def total_chunks(self) -> int:
        return int(self.duration * self.updates_per_second)

    def chunk(self, tick: int) -> np.ndarray:
        """The `tick`-th chunk of the test signal (pure)."""
        t = tick / self.updates_per_second
        bass_freq = 60.0 + 20.0 * math.sin(t * 0.5)
        mid_freq = 440.0 + 100.0 * math.sin(t * 0.8)
        high_freq = 2000.0 + 500.0 * math.sin(t * 1.2)

        n = self.buffer_size
        times = (tick * n + np.arange(n)) / self.sample_rate
        signal = (
            0.5 * np.sin(2 * np.pi * bass_freq * times)
            + 0.3 * np.sin(2 * np.pi * mid_freq * times)
            + 0.2 * np.sin(2 * np.pi * high_freq * times)
        )
        beat_amp = np.where(times % 0.5 < 0.1, 1.5, 1.0)
        return signal * beat_amp / 1.5

    def _acquire(self) -> None:
        _LOG.info("Generating test audio for %.1f seconds", self.duration)
        period = 1.0 / self.updates_per_second
        next_t = time.monotonic()
        for tick in range(self.total_chunks):
            if not self._run_event.is_set():
                break
            self._emit(self.chunk(tick))
            if self.paced:
                next_t += period
                if not self._sleep(next_t - time.monotonic()):
                    break
