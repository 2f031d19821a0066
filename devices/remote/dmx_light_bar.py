# devices/remote/dmx_light_bar.py
from __future__ import annotations

from typing import List

from core.models import FeatureFrame, Lights

from .dmx_gateway import DMX_CHANNELS, DMXUniverse


class DmxLightBar:
    """
    Maps the light vector onto consecutive RGB fixtures of a DMX universe.

    DMX map (per light i, starting at base_addr):
        base + 3*i + 0: Red
        base + 3*i + 1: Green
        base + 3*i + 2: Blue
    Lights past channel 512 are ignored.
    """

    def __init__(self, universe: DMXUniverse, base_addr: int = 1, owns_universe: bool = False):
        if not 1 <= base_addr <= DMX_CHANNELS:
            raise ValueError("base_addr must be 1..512")
        self.universe = universe
        self.base = base_addr
        self._owns_universe = owns_universe

    def channels_for(self, lights: Lights) -> List[int]:
        values: List[int] = []
        for light in lights:
            values.extend(light.actual_color.as_tuple())
        room = DMX_CHANNELS - (self.base - 1)
        return values[:room]

    def on_frame(self, frame: FeatureFrame, lights: Lights) -> None:
        self.universe.write_region(self.base, self.channels_for(lights))

    def on_end(self) -> None:
        self.universe.blackout()
        if self._owns_universe:
            self.universe.stop()
