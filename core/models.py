# core/models.py
# Immutable value types shared by the analysis side and the pattern engine.
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

import numpy as np

DISPLAY_SAMPLES = 100


def _clamp_u8(x: float) -> int:
    return 0 if x < 0 else 255 if x > 255 else int(x)


def clamp01(x: float) -> float:
    return 0.0 if x < 0.0 else 1.0 if x > 1.0 else float(x)


@dataclass(frozen=True)
class Color:
    red: int
    green: int
    blue: int

    def __post_init__(self) -> None:
        for name in ("red", "green", "blue"):
            v = getattr(self, name)
            if not 0 <= v <= 255:
                raise ValueError(f"{name} must be 0..255, got {v!r}")

    def brightness(self, factor: float) -> "Color":
        if not 0.0 <= factor <= 1.0:
            raise ValueError(f"brightness factor must be 0.0..1.0, got {factor!r}")
        return Color(int(self.red * factor), int(self.green * factor), int(self.blue * factor))

    def blend(self, other: "Color", ratio: float) -> "Color":
        """Linear mix towards `other`; ratio 0 keeps self, 1 gives other."""
        return Color(
            _clamp_u8(self.red * (1 - ratio) + other.red * ratio),
            _clamp_u8(self.green * (1 - ratio) + other.green * ratio),
            _clamp_u8(self.blue * (1 - ratio) + other.blue * ratio),
        )

    def as_tuple(self) -> Tuple[int, int, int]:
        return self.red, self.green, self.blue

    def __str__(self) -> str:
        return f"RGB({self.red:3d}, {self.green:3d}, {self.blue:3d})"


RED = Color(255, 0, 0)
GREEN = Color(0, 255, 0)
BLUE = Color(0, 0, 255)
YELLOW = Color(255, 255, 0)
CYAN = Color(0, 255, 255)
MAGENTA = Color(255, 0, 255)
WHITE = Color(255, 255, 255)
BLACK = Color(0, 0, 0)


@dataclass(frozen=True)
class LightState:
    index: int
    color: Color
    intensity: float

    def __post_init__(self) -> None:
        if self.index < 0:
            raise ValueError(f"light index must be >= 0, got {self.index!r}")
        if not 0.0 <= self.intensity <= 1.0:
            raise ValueError(f"intensity must be 0.0..1.0, got {self.intensity!r}")

    @property
    def actual_color(self) -> Color:
        """Color as emitted, i.e. scaled by intensity."""
        return self.color.brightness(self.intensity)

    def scaled(self, factor: float) -> "LightState":
        return replace(self, intensity=clamp01(self.intensity * factor))


Lights = Tuple[LightState, ...]


def all_off(light_count: int) -> Lights:
    return tuple(LightState(i, BLACK, 0.0) for i in range(light_count))


@dataclass(frozen=True)
class AudioFrame:
    """One chunk from a sample source: mono samples in [-1, 1]."""

    samples: np.ndarray
    sample_rate: int

    def __post_init__(self) -> None:
        arr = np.asarray(self.samples, dtype=np.float64)
        if arr.ndim != 1:
            raise ValueError("AudioFrame expects mono (1-D) samples.")
        if arr is self.samples:
            arr = arr.copy()
        arr.flags.writeable = False
        object.__setattr__(self, "samples", arr)

    @property
    def frame_size(self) -> int:
        return int(self.samples.shape[0])


@dataclass(frozen=True)
class FeatureFrame:
    timestamp: float
    energy: float
    bass_energy: float
    mid_energy: float
    high_energy: float
    spectral_centroid: float
    is_beat: bool
    tempo: Optional[float] = None       # never estimated here
    samples: Tuple[float, ...] = field(default=(), repr=False)

    def normalized(self) -> "FeatureFrame":
        """Bands rescaled by the loudest band; total energy capped at 1."""
        peak = max(self.bass_energy, self.mid_energy, self.high_energy)
        factor = 1.0 / peak if peak > 0 else 1.0
        return replace(
            self,
            energy=min(1.0, self.energy * factor),
            bass_energy=self.bass_energy * factor,
            mid_energy=self.mid_energy * factor,
            high_energy=self.high_energy * factor,
        )

    def __str__(self) -> str:
        return (
            f"FeatureFrame(E:{self.energy:.2f} B:{self.bass_energy:.2f} M:{self.mid_energy:.2f} "
            f"H:{self.high_energy:.2f} Beat:{self.is_beat} SC:{self.spectral_centroid:.2f})"
        )


SILENT_FRAME = FeatureFrame(
    timestamp=0.0,
    energy=0.0,
    bass_energy=0.0,
    mid_energy=0.0,
    high_energy=0.0,
    spectral_centroid=0.0,
    is_beat=False,
)
