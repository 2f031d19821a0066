# services/sink_dispatcher.py
from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Iterable, List, Protocol, Tuple

from core.models import FeatureFrame, Lights

_LOG = logging.getLogger(__name__)

_END = object()


class FeatureSink(Protocol):
    """Passive observer of committed frames. `on_end()` is optional."""

    def on_frame(self, frame: FeatureFrame, lights: Lights) -> None:
        ...


class SinkDispatcher:
    """
    Fans committed (frame, lights) pairs out to sinks on a worker thread.

    - publish() never blocks; when the queue is full the pair is dropped.
    - close() drains the queue, then calls on_end() on every sink once; a sink
      stuck past the close timeout forfeits the frames still queued.
    """

    def __init__(self, sinks: Iterable[FeatureSink] = (), *, maxsize: int = 8):
        self._sinks: List[FeatureSink] = list(sinks)
        self._q: "queue.Queue[object]" = queue.Queue(maxsize=maxsize)
        self._closed = False
        self._guard = threading.Lock()
        self._abandon = threading.Event()
        self._published = 0
        self._dropped = 0

        self._thread = threading.Thread(target=self._run, name="SinkDispatcher", daemon=True)
        self._thread.start()

    @property
    def published(self) -> int:
        return self._published

    @property
    def dropped(self) -> int:
        return self._dropped

    def add(self, sink: FeatureSink) -> None:
        with self._guard:
            self._sinks.append(sink)

    def publish(self, frame: FeatureFrame, lights: Lights) -> bool:
        if self._closed:
            return False
        try:
            self._q.put_nowait((frame, lights))
        except queue.Full:
            self._dropped += 1
            _LOG.debug("Sink queue full, dropping frame %.3f", frame.timestamp)
            return False
        self._published += 1
        return True

    def close(self, timeout: float = 2.0) -> None:
        """
        Drain, then call on_end() on every sink. Bounded by `timeout`: if a sink
        is stuck and the queue stays full, pending frames are abandoned.
        """
        with self._guard:
            if self._closed:
                return
            self._closed = True
        deadline = time.monotonic() + timeout
        try:
            self._q.put(_END, timeout=timeout)
        except queue.Full:
            _LOG.warning("Sink queue still full after %.1fs, abandoning %d frames", timeout, self._q.qsize())
            self._abandon.set()
        self._thread.join(timeout=max(0.0, deadline - time.monotonic()))
        if self._thread.is_alive():
            _LOG.warning("Sink dispatcher did not finish within %.1fs", timeout)

    def _snapshot_sinks(self) -> Tuple[FeatureSink, ...]:
        with self._guard:
            return tuple(self._sinks)

    def _run(self) -> None:
        while not self._abandon.is_set():
            try:
                item = self._q.get(timeout=0.1)
            except queue.Empty:
                continue
            if item is _END:
                break
            frame, lights = item
            for sink in self._snapshot_sinks():
                try:
                    sink.on_frame(frame, lights)
                except Exception:
                    _LOG.exception("Sink %s failed on frame", type(sink).__name__)

        for sink in self._snapshot_sinks():
            on_end = getattr(sink, "on_end", None)
            if on_end is None:
                continue
            try:
                on_end()
            except Exception:
                _LOG.exception("Sink %s failed on end of stream", type(sink).__name__)
