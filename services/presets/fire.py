# services/presets/fire.py
# Bass-driven "fire" effect, built on the Custom pattern hook.

from __future__ import annotations

import math

from core.models import RED, YELLOW, FeatureFrame, LightState, Lights, clamp01
from core.patterns import Custom


def _flicker(index: int, timestamp: float) -> float:
    # Deterministic pseudo-noise in [0, 0.3): same frame -> same flicker
    x = math.sin(index * 12.9898 + timestamp * 78.233) * 43758.5453
    return (x - math.floor(x)) * 0.3


def fire_lights(frame: FeatureFrame, light_count: int) -> Lights:
    """Red base, turning yellow as bass intensity climbs past 0.7; dims towards the tip."""
    out = []
    for i in range(light_count):
        position = i / light_count
        intensity = clamp01(frame.bass_energy + _flicker(i, frame.timestamp))
        if intensity > 0.7:
            color = RED.blend(YELLOW, (intensity - 0.7) / 0.3)
        else:
            color = RED
        out.append(LightState(i, color, intensity * (1.0 - position * 0.3)))
    return tuple(out)


def fire_pattern() -> Custom:
    return Custom(fire_lights, name="fire")
