# devices/remote/udp_light_strip.py
#
# Feature sink that streams the committed light vector to a networked strip.

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from core.models import FeatureFrame, Lights, all_off

from .udp_gateway import UdpEndpoint, UdpGateway

FORMAT_TEXT = "text"
FORMAT_MLS = "mls"


def encode_text(lights: Lights) -> str:
    """
    Text protocol, one entry per light:
      "<id>:<r>,<g>,<b>;<id>:<r>,<g>,<b>;..."
    Colors are already scaled by intensity.
    """
    parts = []
    for light in lights:
        c = light.actual_color
        parts.append(f"{light.index}:{c.red},{c.green},{c.blue}")
    return ";".join(parts)


def encode_mls(lights: Lights) -> bytes:
    """Binary protocol: b"mls_" + u16 little-endian count + r,g,b bytes per light."""
    payload = bytearray(b"mls_")
    payload.extend(len(lights).to_bytes(2, "little"))
    for light in lights:
        payload.extend(light.actual_color.as_tuple())
    return bytes(payload)


@dataclass
class UdpLightStrip:
    """
    Networked LED strip (ESP32 / Arduino listening on UDP).

    Every committed frame is sent as one datagram; on end of stream the strip
    is blacked out.
    """

    ip: str = "192.168.1.153"
    port: int = 4210
    fmt: str = FORMAT_TEXT
    gateway: Optional[UdpGateway] = None

    def __post_init__(self) -> None:
        if self.fmt not in (FORMAT_TEXT, FORMAT_MLS):
            raise ValueError(f"Unknown strip format {self.fmt!r}")
        self._owns_gateway = self.gateway is None
        if self.gateway is None:
            self.gateway = UdpGateway(async_send=True)
        self._endpoint = UdpEndpoint(self.ip, self.port)
        self._light_count = 0

    def encode(self, lights: Lights) -> bytes | str:
        return encode_mls(lights) if self.fmt == FORMAT_MLS else encode_text(lights)

    def show(self, lights: Lights) -> bool:
        assert self.gateway is not None
        self._light_count = len(lights)
        return self.gateway.send(self._endpoint, self.encode(lights))

    def on_frame(self, frame: FeatureFrame, lights: Lights) -> None:
        self.show(lights)

    def on_end(self) -> None:
        if self._light_count:
            self.show(all_off(self._light_count))
        assert self.gateway is not None
        self.gateway.flush(timeout=1.0)
        self.close()

    def close(self) -> None:
        # Close only if we created the gateway ourselves.
        if self._owns_gateway and self.gateway is not None:
            self.gateway.close()
