# core/state/snapshot_cache.py
from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Deque

from core.models import Lights, all_off


@dataclass
class SnapshotCache:
    """
    Last light vector a client successfully read from the engine; not a bus.
    Served as the fallback answer when a state query times out.
    """

    lights: Lights = ()
    updated_at: float = 0.0
    timeouts: int = 0
    # Short history of query round-trip times (seconds)
    latencies: Deque[float] = field(default_factory=lambda: deque(maxlen=32))
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @classmethod
    def for_lights(cls, light_count: int) -> "SnapshotCache":
        return cls(lights=all_off(light_count))

    def update(self, lights: Lights, now: float, latency: float) -> None:
        with self._lock:
            self.lights = lights
            self.updated_at = now
            self.latencies.append(latency)

    def record_timeout(self) -> Lights:
        with self._lock:
            self.timeouts += 1
            return self.lights
