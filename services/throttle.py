# services/throttle.py
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Generic, Optional, TypeVar

_LOG = logging.getLogger(__name__)

T = TypeVar("T")


class LatestValueThrottle(Generic[T]):
    """
    Delivers at most one item per interval, always the newest one.

    Items offered while one is already pending replace it (and count as dropped);
    nothing is ever buffered beyond that single slot.
    """

    def __init__(
        self,
        interval: float,
        deliver: Callable[[T], None],
        *,
        clock: Callable[[], float] = time.monotonic,
        name: str = "LatestValueThrottle",
    ):
        if interval < 0:
            raise ValueError("interval must be >= 0")
        self.interval = float(interval)
        self._deliver = deliver
        self._clock = clock

        self._cond = threading.Condition()
        self._pending: Optional[T] = None
        self._has_pending = False
        self._next_due = 0.0
        self._stopped = False
        self._delivered = 0
        self._dropped = 0

        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    @property
    def delivered(self) -> int:
        return self._delivered

    @property
    def dropped(self) -> int:
        return self._dropped

    def offer(self, item: T) -> None:
        with self._cond:
            if self._stopped:
                return
            if self._has_pending:
                self._dropped += 1
            self._pending = item
            self._has_pending = True
            self._cond.notify()

    def stop(self, timeout: float = 2.0) -> None:
        """Cancel the timer and discard whatever is pending. Waits for an in-flight delivery."""
        with self._cond:
            if self._stopped:
                return
            self._stopped = True
            if self._has_pending:
                self._dropped += 1
            self._pending = None
            self._has_pending = False
            self._cond.notify_all()
        if self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)

    def _run(self) -> None:
        while True:
            with self._cond:
                while not self._has_pending and not self._stopped:
                    self._cond.wait()
                if self._stopped:
                    return
                wait = self._next_due - self._clock()
                if wait > 0:
                    # Newer offers may land while we wait; loop picks the latest
                    self._cond.wait(timeout=wait)
                    continue
                item = self._pending
                self._pending = None
                self._has_pending = False
                self._next_due = self._clock() + self.interval

            try:
                self._deliver(item)
                self._delivered += 1
            except Exception:
                _LOG.exception("Throttled delivery failed")
