# core/patterns.py
#
# Closed set of light patterns. Each one is a pure mapping
# (FeatureFrame, light_count[, now]) -> tuple[LightState, ...].
# `now` is a monotonic clock reading; only Wave uses it.

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Sequence, Union

from core.errors import PatternFunctionFault
from core.models import (
    BLACK,
    BLUE,
    GREEN,
    RED,
    WHITE,
    Color,
    FeatureFrame,
    LightState,
    Lights,
    clamp01,
)

CENTROID_MAX_HZ = 4000.0
BEAT_IDLE_LEVEL = 0.3
WAVE_SPEED = 5.0

# Zone edges for Spectrum, as fractions of the strip
ZONE_MID = 0.33
ZONE_HIGH = 0.66

PatternFn = Callable[[FeatureFrame, int], Sequence[LightState]]


@dataclass(frozen=True)
class Off:
    pass


@dataclass(frozen=True)
class Solid:
    color: Color


@dataclass(frozen=True)
class Spectrum:
    pass


@dataclass(frozen=True)
class Energy:
    pass


@dataclass(frozen=True)
class Beat:
    pass


@dataclass(frozen=True)
class Wave:
    pass


@dataclass(frozen=True)
class Custom:
    fn: PatternFn
    name: str = "custom"


Pattern = Union[Off, Solid, Spectrum, Energy, Beat, Wave, Custom]


def pattern_name(pattern: Pattern) -> str:
    if isinstance(pattern, Custom):
        return pattern.name
    return type(pattern).__name__.lower()


# ----------------------------------------------------------------------
# Variants
# ----------------------------------------------------------------------

def _uniform(light_count: int, color: Color, intensity: float) -> Lights:
    return tuple(LightState(i, color, intensity) for i in range(light_count))


def _spectrum(frame: FeatureFrame, light_count: int) -> Lights:
    out = []
    for i in range(light_count):
        # zone chosen by the light's centre, so 10 lights split 3/4/3
        position = (i + 0.5) / light_count
        if position < ZONE_MID:
            color, level = RED, frame.bass_energy
        elif position < ZONE_HIGH:
            color, level = GREEN, frame.mid_energy
        else:
            color, level = BLUE, frame.high_energy
        out.append(LightState(i, color, clamp01(level)))
    return tuple(out)


def _energy(frame: FeatureFrame, light_count: int) -> Lights:
    hue = clamp01(frame.spectral_centroid / CENTROID_MAX_HZ)
    return _uniform(light_count, RED.blend(BLUE, hue), clamp01(frame.energy))


def _beat(frame: FeatureFrame, light_count: int) -> Lights:
    if frame.is_beat:
        return _uniform(light_count, WHITE, 1.0)
    level = clamp01(frame.energy * BEAT_IDLE_LEVEL)
    return tuple(
        LightState(i, RED.blend(BLUE, i / light_count), level) for i in range(light_count)
    )


def _wave(frame: FeatureFrame, light_count: int, now: float) -> Lights:
    energy = clamp01(frame.energy)
    bass_color = RED.brightness(clamp01(frame.bass_energy))
    mid_color = GREEN.brightness(clamp01(frame.mid_energy))
    high_color = BLUE.brightness(clamp01(frame.high_energy))

    out = []
    for i in range(light_count):
        position = i / light_count
        wave = math.sin(position * 2 * math.pi + now * energy * WAVE_SPEED)
        intensity = clamp01((wave + 1) / 2 * energy)
        if position < 0.5:
            color = bass_color.blend(mid_color, position * 2)
        else:
            color = mid_color.blend(high_color, (position - 0.5) * 2)
        out.append(LightState(i, color, intensity))
    return tuple(out)


def _custom(pattern: Custom, frame: FeatureFrame, light_count: int) -> Lights:
    result = tuple(pattern.fn(frame, light_count))
    if len(result) != light_count:
        raise PatternFunctionFault(
            f"Pattern {pattern.name!r} returned {len(result)} lights, expected {light_count}"
        )
    for expected, light in enumerate(result):
        if not isinstance(light, LightState) or light.index != expected:
            raise PatternFunctionFault(
                f"Pattern {pattern.name!r} returned a malformed light at position {expected}"
            )
    return result


def render_pattern(pattern: Pattern, frame: FeatureFrame, light_count: int, now: float = 0.0) -> Lights:
    """Evaluate `pattern` for one feature frame."""
    if isinstance(pattern, Off):
        return _uniform(light_count, BLACK, 0.0)
    if isinstance(pattern, Solid):
        return _uniform(light_count, pattern.color, 1.0)
    if isinstance(pattern, Spectrum):
        return _spectrum(frame, light_count)
    if isinstance(pattern, Energy):
        return _energy(frame, light_count)
    if isinstance(pattern, Beat):
        return _beat(frame, light_count)
    if isinstance(pattern, Wave):
        return _wave(frame, light_count, now)
    if isinstance(pattern, Custom):
        return _custom(pattern, frame, light_count)
    raise TypeError(f"Unknown pattern: {pattern!r}")
