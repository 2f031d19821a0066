# services/pattern_engine.py
#
# Single-owner pattern engine. All mutations and queries go through one FIFO
# mailbox drained by one worker thread, so EngineState never needs a lock.

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Union

from core.errors import EngineQueryTimeout, PatternFunctionFault
from core.models import FeatureFrame, Lights
from core.patterns import Pattern, pattern_name, render_pattern
from core.state.engine_state import EngineState
from core.state.snapshot_cache import SnapshotCache

_LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpdateFromAudio:
    frame: FeatureFrame


@dataclass(frozen=True)
class SetPattern:
    pattern: Pattern


@dataclass(frozen=True)
class SetGlobalBrightness:
    value: float


@dataclass(frozen=True)
class GetState:
    reply: "queue.Queue[Lights]"


Command = Union[UpdateFromAudio, SetPattern, SetGlobalBrightness, GetState]

_STOP = object()


class PatternEngine:
    """
    Owns the active pattern, global brightness and the committed light vector.

    - update_from_audio / set_pattern / set_global_brightness enqueue and return.
    - get_state is request/response over the same queue with a bounded wait.
    - A failing pattern never kills the loop; the previous lights stay committed.
    """

    def __init__(
        self,
        light_count: int,
        *,
        query_timeout: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
        name: str = "PatternEngine",
    ):
        if light_count <= 0:
            raise ValueError("light_count must be > 0")
        self.light_count = light_count
        self.query_timeout = float(query_timeout)
        self._clock = clock

        self._state = EngineState.initial(light_count, clock())
        self._cache = SnapshotCache.for_lights(light_count)
        self._faults = 0

        self._q: "queue.Queue[object]" = queue.Queue()
        self._accepting = True
        self._submit_guard = threading.Lock()

        self._thread = threading.Thread(target=self._loop, name=name, daemon=True)
        self._thread.start()
        _LOG.info("Pattern engine initialized with %d lights", light_count)

    # ---------- Public API ----------

    @property
    def state(self) -> EngineState:
        """Last committed state (immutable, safe to read from any thread)."""
        return self._state

    @property
    def faults(self) -> int:
        return self._faults

    @property
    def cache(self) -> SnapshotCache:
        return self._cache

    def is_running(self) -> bool:
        return self._accepting and self._thread.is_alive()

    def update_from_audio(self, frame: FeatureFrame) -> bool:
        return self._submit(UpdateFromAudio(frame))

    def set_pattern(self, pattern: Pattern) -> bool:
        return self._submit(SetPattern(pattern))

    def set_global_brightness(self, value: float) -> bool:
        return self._submit(SetGlobalBrightness(float(value)))

    def query_state(self, timeout: Optional[float] = None) -> Lights:
        """Ask the engine for its lights; raises EngineQueryTimeout if it does not answer in time."""
        if threading.current_thread() is self._thread or not self.is_running():
            return self._state.lights

        wait = self.query_timeout if timeout is None else timeout
        reply: "queue.Queue[Lights]" = queue.Queue(maxsize=1)
        t0 = time.monotonic()
        if not self._submit(GetState(reply)):
            return self._state.lights
        try:
            lights = reply.get(timeout=wait)
        except queue.Empty:
            raise EngineQueryTimeout(f"No state reply within {wait:.3f}s") from None
        now = time.monotonic()
        self._cache.update(lights, now, now - t0)
        return lights

    def get_state(self, timeout: Optional[float] = None) -> Lights:
        """Like query_state, but a timeout yields the last known snapshot (all-off if none yet)."""
        try:
            return self.query_state(timeout)
        except EngineQueryTimeout as e:
            lights = self._cache.record_timeout()
            _LOG.warning("%s; serving last known snapshot", e)
            return lights

    def stop(self, drain: bool = True, timeout: float = 2.0) -> None:
        """
        Stop accepting commands and end the loop.
        drain=True lets every queued command run first; drain=False discards them.
        """
        with self._submit_guard:
            if not self._accepting:
                return
            self._accepting = False
            if not drain:
                self._discard_pending()
            self._q.put(_STOP)

        if self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                _LOG.warning("Pattern engine did not stop within %.1fs", timeout)
        _LOG.info("Pattern engine stopped")

    def __enter__(self) -> "PatternEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # ---------- Internal ----------

    def _submit(self, cmd: Command) -> bool:
        with self._submit_guard:
            if not self._accepting:
                _LOG.warning("Pattern engine stopped; dropping %s", type(cmd).__name__)
                return False
            self._q.put(cmd)
            return True

    def _discard_pending(self) -> None:
        while True:
            try:
                cmd = self._q.get_nowait()
            except queue.Empty:
                return
            if isinstance(cmd, GetState):
                # Answer rather than leave the caller waiting out its timeout
                cmd.reply.put_nowait(self._state.lights)

    def _loop(self) -> None:
        while True:
            cmd = self._q.get()
            if cmd is _STOP:
                break
            try:
                self._handle(cmd)
            except Exception:
                _LOG.exception("Command %s failed", type(cmd).__name__)

    def _handle(self, cmd: object) -> None:
        if isinstance(cmd, UpdateFromAudio):
            self._apply_frame(cmd.frame)
        elif isinstance(cmd, SetPattern):
            _LOG.info("Setting light pattern to: %s", pattern_name(cmd.pattern))
            self._state = self._state.with_pattern(cmd.pattern)
        elif isinstance(cmd, SetGlobalBrightness):
            self._state = self._state.with_brightness(cmd.value)
            _LOG.info("Setting global brightness to: %.2f", self._state.brightness)
        elif isinstance(cmd, GetState):
            cmd.reply.put_nowait(self._state.lights)
        else:
            _LOG.warning("Unknown command %r", cmd)

    def _apply_frame(self, frame: FeatureFrame) -> None:
        state = self._state
        now = self._clock()
        try:
            rendered = render_pattern(state.pattern, frame, state.light_count, now)
            lights = tuple(light.scaled(state.brightness) for light in rendered)
        except Exception as e:
            self._faults += 1
            fault = e if isinstance(e, PatternFunctionFault) else PatternFunctionFault(str(e))
            _LOG.warning(
                "Pattern %s failed, keeping previous lights: %s",
                pattern_name(state.pattern),
                fault,
                exc_info=not isinstance(e, PatternFunctionFault),
            )
            return

        # Single reference swap: readers see the old or the new vector, never a mix
        self._state = state.with_lights(lights, now)
        _LOG.debug("Updated lights from audio: %s", frame)
