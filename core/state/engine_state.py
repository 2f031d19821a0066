# core/state/engine_state.py
from __future__ import annotations

from dataclasses import dataclass, replace

from core.models import Lights, all_off, clamp01
from core.patterns import Off, Pattern


@dataclass(frozen=True)
class EngineState:
    """
    Everything the pattern engine owns. Replaced wholesale on every command,
    so a reader holding a reference always sees one consistent state.
    """

    pattern: Pattern
    brightness: float
    lights: Lights
    last_update: float

    @classmethod
    def initial(cls, light_count: int, now: float) -> "EngineState":
        return cls(pattern=Off(), brightness=1.0, lights=all_off(light_count), last_update=now)

    @property
    def light_count(self) -> int:
        return len(self.lights)

    def with_pattern(self, pattern: Pattern) -> "EngineState":
        return replace(self, pattern=pattern)

    def with_brightness(self, value: float) -> "EngineState":
        return replace(self, brightness=clamp01(value))

    def with_lights(self, lights: Lights, now: float) -> "EngineState":
        return replace(self, lights=lights, last_update=now)
