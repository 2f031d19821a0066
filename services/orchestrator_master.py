# services/orchestrator_master.py
# Session orchestrator: source -> features -> throttle -> engine -> sinks.
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Iterable, Optional

from core.audio_pipeline import SampleSource
from core.config import SessionConfig
from core.features import FeatureExtractor
from core.models import AudioFrame, FeatureFrame, Lights
from core.patterns import Pattern, Spectrum
from services.pattern_engine import PatternEngine
from services.sink_dispatcher import FeatureSink, SinkDispatcher
from services.throttle import LatestValueThrottle

_LOG = logging.getLogger(__name__)


class OrchestratorMaster:
    """
    One session: owns the feature extractor (and its beat history), the
    pattern engine, the throttle and the sink dispatcher.

    Feature extraction runs synchronously on the source's thread. Frames reach
    the engine at most once per update interval; each update is followed by a
    state query whose answer goes to the sinks. When the stream ends, cleanly or
    on AcquisitionFailure, the session winds itself down and sinks get on_end.
    """

    def __init__(
        self,
        config: SessionConfig,
        source: SampleSource,
        *,
        pattern: Optional[Pattern] = None,
        sinks: Iterable[FeatureSink] = (),
        normalize: bool = True,
        log_every: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.source = source
        self.normalize = normalize

        self.extractor = FeatureExtractor(config, clock=clock)
        self.engine = PatternEngine(config.light_count, query_timeout=config.query_timeout, clock=clock)
        self.dispatcher = SinkDispatcher(sinks)
        self.throttle: LatestValueThrottle[FeatureFrame] = LatestValueThrottle(
            config.update_interval, self._deliver, name="FrameThrottle"
        )
        self.engine.set_pattern(pattern if pattern is not None else Spectrum())

        self.frames_analyzed = 0
        self.beats = 0
        self.error: Optional[BaseException] = None
        self._done = threading.Event()
        self._stop_guard = threading.Lock()
        self._stopped = False
        self._closed = threading.Event()
        self._last_log = 0.0
        self._log_every = float(log_every)

    # ---------- Control ----------

    def start(self) -> None:
        _LOG.info(
            "Starting session: %d lights, %d Hz, buffer %d, fft %d, update every %d ms",
            self.config.light_count,
            self.config.sample_rate,
            self.config.buffer_size,
            self.config.fft_size,
            self.config.update_interval_ms,
        )
        self.source.start(self._on_audio_frame, self._on_source_end)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the audio stream ended and the session wound down; True if it did."""
        return self._done.wait(timeout)

    def run(self) -> None:
        try:
            self.start()
            while not self.wait(0.2):
                pass
        except KeyboardInterrupt:
            _LOG.info("Interrupted")
        finally:
            self.stop()

    def stop(self) -> None:
        """Stop acquisition, cancel the throttle, drain the engine, close sinks. Idempotent."""
        self.source.stop()
        self._shutdown()
        self._done.set()

    def _shutdown(self) -> None:
        with self._stop_guard:
            first = not self._stopped
            self._stopped = True
        if not first:
            # Another thread is winding down; wait for it to finish
            self._closed.wait(timeout=10.0)
            return
        try:
            _LOG.info("Shutting down...")
            self.throttle.stop()
            self.engine.stop(drain=True)
            self.dispatcher.close()
            _LOG.info(
                "Shutdown complete (%d frames analyzed, %d delivered, %d dropped)",
                self.frames_analyzed,
                self.throttle.delivered,
                self.throttle.dropped,
            )
        finally:
            self._closed.set()

    def __enter__(self) -> "OrchestratorMaster":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # ---------- Engine passthrough ----------

    def set_pattern(self, pattern: Pattern) -> None:
        self.engine.set_pattern(pattern)

    def set_global_brightness(self, value: float) -> None:
        self.engine.set_global_brightness(value)

    def snapshot(self) -> Lights:
        return self.engine.get_state()

    def add_sink(self, sink: FeatureSink) -> None:
        self.dispatcher.add(sink)

    # ---------- Callbacks ----------

    # Runs on the source thread
    def _on_audio_frame(self, frame: AudioFrame) -> None:
        features = self.extractor.extract(frame)
        self.frames_analyzed += 1
        if features.is_beat:
            self.beats += 1
        self._maybe_log(features)
        self.throttle.offer(features)

    # Runs on the throttle thread
    def _deliver(self, features: FeatureFrame) -> None:
        if self.normalize:
            features = features.normalized()
        self.engine.update_from_audio(features)
        lights = self.engine.get_state()
        self.dispatcher.publish(features, lights)

    # Runs on the source thread; the wind-down joins threads, so it gets its own
    def _on_source_end(self, error: Optional[BaseException]) -> None:
        if error is not None:
            self.error = error
            _LOG.error("Audio stream ended with error: %s", error)
        else:
            _LOG.info("Audio stream completed")
        threading.Thread(target=self._finish, name="SessionShutdown", daemon=True).start()

    def _finish(self) -> None:
        self._shutdown()
        self._done.set()

    def _maybe_log(self, features: FeatureFrame) -> None:
        now = features.timestamp
        if now - self._last_log >= self._log_every:
            self._last_log = now
            _LOG.info(
                "[AUDIO] E=%.3f bass=%.3f mid=%.3f high=%.3f centroid=%.0fHz beats=%d",
                features.energy,
                features.bass_energy,
                features.mid_energy,
                features.high_energy,
                features.spectral_centroid,
                self.beats,
            )
