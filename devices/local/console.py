# devices/local/console.py
# Terminal renderer for features + lights. Meant for humans, not logs.
from __future__ import annotations

import sys
from typing import TextIO

from core.models import Color, FeatureFrame, Lights

RESET = "\033[0m"
CLEAR = "\033[2J\033[H"


def bar(value: float, width: int = 50) -> str:
    filled = int(max(0.0, min(1.0, value)) * width)
    return "█" * filled + "░" * (width - filled) + f" {value:.2f}"


def shade(intensity: float) -> str:
    if intensity > 0.8:
        return "█"
    if intensity > 0.6:
        return "▓"
    if intensity > 0.4:
        return "▒"
    if intensity > 0.2:
        return "░"
    return " "


def ansi_fg(color: Color) -> str:
    # 24-bit foreground colour
    return f"\033[38;2;{color.red};{color.green};{color.blue}m"


class ConsoleVisualizer:
    def __init__(self, light_count: int, width: int = 80, stream: TextIO = sys.stdout, clear: bool = True):
        self.light_count = light_count
        self.width = width
        self.light_width = max(1, width // max(1, light_count))
        self.stream = stream
        self.clear = clear

    def render(self, frame: FeatureFrame, lights: Lights) -> str:
        lines = [
            "=" * self.width,
            " Audio-Light Synchronization ",
            "=" * self.width,
            "",
            "Audio Features:",
            f"  Energy:   {bar(frame.energy)}",
            f"  Bass:     {bar(frame.bass_energy)}",
            f"  Mid:      {bar(frame.mid_energy)}",
            f"  High:     {bar(frame.high_energy)}",
            f"  Beat:     {'BEAT!' if frame.is_beat else ''}",
            f"  Centroid: {frame.spectral_centroid:.0f} Hz",
            "",
            "Lights:",
        ]
        strip = "".join(
            f"{ansi_fg(light.actual_color)}{shade(light.intensity) * self.light_width}{RESET}"
            for light in lights
        )
        lines.append("┌" + "─" * (self.light_width * len(lights)) + "┐")
        lines.append("│" + strip + "│")
        lines.append("└" + "─" * (self.light_width * len(lights)) + "┘")
        for start in range(0, len(lights), 5):
            group = lights[start:start + 5]
            lines.append("  ".join(f"{l.index:2d}:{l.intensity * 100:3.0f}%" for l in group))
        return "\n".join(lines)

    def on_frame(self, frame: FeatureFrame, lights: Lights) -> None:
        out = self.render(frame, lights)
        if self.clear:
            out = CLEAR + out
        self.stream.write(out + "\n")
        self.stream.flush()

    def on_end(self) -> None:
        self.stream.write("Audio stream completed\n")
        self.stream.flush()
