# devices/remote/dmx_gateway.py
from __future__ import annotations

import logging
import threading
import time
from typing import List, Optional

import requests

_LOG = logging.getLogger(__name__)

DMX_CHANNELS = 512


class DMXUniverse:
    """
    Shared, thread-safe DMX universe with a single TX thread.
    Writers call write_region(); the worker POSTs the merged frame to an
    HTTP DMX gateway at a steady fps, only when something changed.
    """

    def __init__(
        self,
        host: str = "192.168.1.151",
        port: int = 9090,
        universe: int = 0,
        fps: int = 30,
        timeout: float = 0.5,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = f"http://{host}:{port}"
        self.universe = int(universe)
        self.timeout = timeout
        self._session = session if session is not None else requests.Session()

        self._frame: List[int] = [0] * DMX_CHANNELS
        self._lock = threading.Lock()
        self._dirty = False
        self.frames_sent = 0
        self.errors = 0

        self._running = True
        self._tick = 1.0 / float(max(1, fps))
        self._thread = threading.Thread(target=self._worker, name="DMXUniverse", daemon=True)
        self._thread.start()

    # --- public API ---
    def write_region(self, start_1_based: int, values: List[int]) -> None:
        """Write a contiguous slice (1-based DMX address)."""
        start = max(1, int(start_1_based)) - 1
        end = min(DMX_CHANNELS, start + len(values))
        vals = [max(0, min(255, int(v))) for v in values]
        with self._lock:
            self._frame[start:end] = vals[: end - start]
            self._dirty = True

    def frame(self) -> List[int]:
        with self._lock:
            return list(self._frame)

    def blackout(self) -> None:
        with self._lock:
            self._frame = [0] * DMX_CHANNELS
            self._dirty = True

    def stop(self, flush: bool = True) -> None:
        self._running = False
        self._thread.join(timeout=1.0)
        if flush:
            self._send_pending()
        self._session.close()

    # --- internal ---
    def _send_pending(self) -> None:
        with self._lock:
            if not self._dirty:
                return
            payload = {
                "u": self.universe,
                "d": ",".join(str(x) for x in self._frame),
            }
            self._dirty = False
        try:
            r = self._session.post(f"{self.base_url}/set_dmx", data=payload, timeout=self.timeout)
        except requests.RequestException as e:
            self.errors += 1
            _LOG.warning("DMX send error: %s", e)
            return
        if r.status_code != 200:
            self.errors += 1
            _LOG.warning("DMX gateway answered HTTP %s: %s", r.status_code, r.text[:200])
            return
        self.frames_sent += 1

    def _worker(self) -> None:
        while self._running:
            t0 = time.monotonic()
            self._send_pending()
            # pace
            dt = time.monotonic() - t0
            time.sleep(max(0.0, self._tick - dt))
