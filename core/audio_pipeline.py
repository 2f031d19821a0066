# core/audio_pipeline.py
# Sample sources: one acquisition thread per source, fixed-size mono chunks out.
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

import numpy as np

from core.errors import AcquisitionFailure
from core.models import AudioFrame

try:
    import sounddevice as sd
    from sounddevice import PortAudioError
except Exception:  # PortAudio missing raises OSError at import time
    sd = None
    PortAudioError = Exception

_LOG = logging.getLogger(__name__)

ChunkCallback = Callable[[AudioFrame], None]
EndCallback = Callable[[Optional[BaseException]], None]


class SampleSource:
    """
    Base for every sample producer.

    - start(on_chunk, on_end) runs acquisition on a daemon thread.
    - on_chunk gets one AudioFrame of `buffer_size` mono samples per read.
    - on_end(error) fires exactly once: None on a clean end or stop,
      AcquisitionFailure when the device/file broke.
    """

    name = "SampleSource"

    def __init__(self, sample_rate: int, buffer_size: int):
        self.sample_rate = sample_rate
        self.buffer_size = buffer_size

        self._on_chunk: Optional[ChunkCallback] = None
        self._on_end: Optional[EndCallback] = None
        self._run_event = threading.Event()
        self._ended = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last_err: Optional[BaseException] = None
        self.chunks = 0

    # ---------- Public API ----------

    def start(self, on_chunk: ChunkCallback, on_end: Optional[EndCallback] = None) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._on_chunk = on_chunk
        self._on_end = on_end
        self._ended.clear()
        self._run_event.set()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()

    def stop(self, join: bool = True, timeout: float = 2.0) -> None:
        self._run_event.clear()
        if join and self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the stream to end; True if it did."""
        return self._ended.wait(timeout)

    def running(self) -> bool:
        return self._run_event.is_set()

    def last_error(self) -> Optional[BaseException]:
        return self._last_err

    # ---------- For subclasses ----------

    def _acquire(self) -> None:
        raise NotImplementedError

    def _emit(self, samples: np.ndarray) -> None:
        self.chunks += 1
        if self._on_chunk is None:
            raise RuntimeError("source not started")
        self._on_chunk(AudioFrame(samples, self.sample_rate))

    def _sleep(self, seconds: float) -> bool:
        """Sleep unless stopped first. Returns False when the source was stopped."""
        if seconds <= 0:
            return self._run_event.is_set()
        end = time.monotonic() + seconds
        while self._run_event.is_set():
            left = end - time.monotonic()
            if left <= 0:
                return True
            time.sleep(min(left, 0.01))
        return False

    # ---------- Internal ----------

    def _run(self) -> None:
        err: Optional[BaseException] = None
        try:
            self._acquire()
        except AcquisitionFailure as e:
            err = e
            _LOG.error("%s: %s", self.name, e)
        except Exception as e:
            # Analysis preconditions etc. Fail fast, but only this stream.
            err = e
            _LOG.exception("%s stopped on an internal error", self.name)
        finally:
            self._run_event.clear()
            self._last_err = err
            if self._on_end is not None:
                try:
                    self._on_end(err)
                except Exception:
                    _LOG.exception("%s end-of-stream handler failed", self.name)
            self._ended.set()


class AudioPipeline(SampleSource):
    """
    Live capture via sounddevice (push-based).
    - Callback-driven, blocksize == buffer_size so each callback is one chunk.
    - Multi-channel input is averaged down to mono.
    """

    name = "AudioPipeline"

    def __init__(
        self,
        samplerate: int = 44100,
        blocksize: int = 2048,
        channels: int = 1,
        device: Optional[int | str] = None,
    ):
        if channels not in (1, 2):
            raise ValueError("AudioPipeline supports 1 or 2 channels only.")
        super().__init__(samplerate, blocksize)
        self.channels = channels
        self.device = device
        self._callback_err: Optional[BaseException] = None

    def _acquire(self) -> None:
        if sd is None:
            raise AcquisitionFailure("sounddevice is not available in this environment.")
        try:
            with sd.InputStream(
                device=self.device,
                channels=self.channels,
                samplerate=self.sample_rate,
                blocksize=self.buffer_size,
                dtype="float32",
                callback=self._sd_callback,
            ):
                _LOG.info("Capturing from device %s at %d Hz", self.device, self.sample_rate)
                while self._run_event.is_set() and self._callback_err is None:
                    time.sleep(0.01)
        except PortAudioError as e:
            raise AcquisitionFailure(f"Audio device error: {e}") from e
        if self._callback_err is not None:
            raise self._callback_err

    def _sd_callback(self, indata, frames, time_info, status):
        if status:
            _LOG.debug("Input status: %s", status)
        # Shape: (blocksize, channels)
        if self.channels == 1:
            mono = indata[:, 0].astype(np.float64)
        else:
            mono = indata.mean(axis=1, dtype=np.float64)
        try:
            self._emit(mono)
        except Exception as e:
            # Surface it on the acquisition thread, not inside PortAudio's
            self._callback_err = e
            raise sd.CallbackAbort from e
