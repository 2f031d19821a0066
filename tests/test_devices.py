"""Output sinks: wire encodings, UDP/DMX transports and the console renderer."""

import io
import socket
import threading

import pytest
import requests

from core.models import BLACK, BLUE, RED, Color, LightState, all_off
from devices.local.console import ConsoleVisualizer, bar, shade
from devices.remote.dmx_gateway import DMX_CHANNELS, DMXUniverse
from devices.remote.dmx_light_bar import DmxLightBar
from devices.remote.udp_gateway import UdpEndpoint, UdpGateway
from devices.remote.udp_light_strip import FORMAT_MLS, UdpLightStrip, encode_mls, encode_text

LIGHTS = (LightState(0, RED, 1.0), LightState(1, BLUE, 0.5))


@pytest.fixture
def receiver():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(2.0)
    yield sock
    sock.close()


class TestEncodings:
    def test_text_uses_intensity_scaled_colors(self):
        assert encode_text(LIGHTS) == "0:255,0,0;1:0,0,127"

    def test_mls_header_count_and_rgb(self):
        payload = encode_mls(LIGHTS)
        assert payload[:4] == b"mls_"
        assert int.from_bytes(payload[4:6], "little") == 2
        assert payload[6:] == bytes([255, 0, 0, 0, 0, 127])

    def test_empty_vector(self):
        assert encode_text(()) == ""
        assert encode_mls(()) == b"mls_\x00\x00"


class TestUdpGateway:
    def test_sync_send_reaches_listener(self, receiver):
        port = receiver.getsockname()[1]
        with UdpGateway(bind_host="127.0.0.1", async_send=False) as gw:
            assert gw.send(UdpEndpoint("127.0.0.1", port), "hello")
            data, _ = receiver.recvfrom(1024)
        assert data == b"hello"
        assert gw.sent == 1

    def test_async_send_and_flush(self, receiver):
        port = receiver.getsockname()[1]
        gw = UdpGateway(bind_host="127.0.0.1", async_send=True)
        try:
            assert gw.send(UdpEndpoint("127.0.0.1", port), b"\x01\x02")
            assert gw.flush(timeout=2.0)
            data, _ = receiver.recvfrom(1024)
            assert data == b"\x01\x02"
        finally:
            gw.close()

    def test_send_after_close_is_refused(self):
        gw = UdpGateway(bind_host="127.0.0.1", async_send=False)
        gw.close()
        assert gw.send(UdpEndpoint("127.0.0.1", 9), "x") is False

    def test_rejects_unsupported_payload(self):
        with UdpGateway(bind_host="127.0.0.1", async_send=False) as gw:
            with pytest.raises(TypeError):
                gw.send(UdpEndpoint("127.0.0.1", 9), 123)


class TestUdpLightStrip:
    def test_frames_then_blackout(self, receiver, frame):
        port = receiver.getsockname()[1]
        with UdpGateway(bind_host="127.0.0.1", async_send=False) as gw:
            strip = UdpLightStrip(ip="127.0.0.1", port=port, gateway=gw)
            strip.on_frame(frame(), LIGHTS)
            strip.on_end()
            first, _ = receiver.recvfrom(1024)
            last, _ = receiver.recvfrom(1024)
        assert first == b"0:255,0,0;1:0,0,127"
        assert last == b"0:0,0,0;1:0,0,0"

    def test_binary_format(self, receiver, frame):
        port = receiver.getsockname()[1]
        with UdpGateway(bind_host="127.0.0.1", async_send=False) as gw:
            strip = UdpLightStrip(ip="127.0.0.1", port=port, fmt=FORMAT_MLS, gateway=gw)
            strip.on_frame(frame(), LIGHTS)
            data, _ = receiver.recvfrom(1024)
        assert data == encode_mls(LIGHTS)

    def test_unknown_format_rejected(self):
        with UdpGateway(bind_host="127.0.0.1", async_send=False) as gw:
            with pytest.raises(ValueError):
                UdpLightStrip(ip="127.0.0.1", fmt="json", gateway=gw)


class FakeResponse:
    def __init__(self, status_code=200, text="ok"):
        self.status_code = status_code
        self.text = text


class FakeSession:
    """Stands in for requests.Session: records POSTs instead of sending them."""

    def __init__(self, response=None, error=None):
        self.posts = []
        self.closed = False
        self.response = response or FakeResponse()
        self.error = error
        self.lock = threading.Lock()

    def post(self, url, data=None, timeout=None):
        with self.lock:
            self.posts.append((url, dict(data)))
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        self.closed = True


def channels(post):
    return [int(x) for x in post[1]["d"].split(",")]


class TestDMXUniverse:
    def test_write_region_posts_merged_frame(self):
        session = FakeSession()
        u = DMXUniverse(host="dmx.local", universe=2, fps=100, session=session)
        u.write_region(1, [255, 10, 300])
        u.write_region(10, [-5, 7])
        u.stop(flush=True)

        assert session.closed
        url, payload = session.posts[-1]
        assert url == "http://dmx.local:9090/set_dmx"
        assert payload["u"] == 2
        values = channels(session.posts[-1])
        assert len(values) == DMX_CHANNELS
        assert values[:3] == [255, 10, 255]
        assert values[9:11] == [0, 7]
        assert u.errors == 0

    def test_region_is_cut_at_channel_512(self):
        u = DMXUniverse(fps=100, session=FakeSession())
        u.write_region(511, [1, 2, 3, 4])
        assert u.frame()[-2:] == [1, 2]
        u.stop(flush=False)

    def test_nothing_sent_when_unchanged(self):
        session = FakeSession()
        u = DMXUniverse(fps=100, session=session)
        u.stop(flush=True)
        assert session.posts == []

    def test_transport_errors_are_counted(self):
        session = FakeSession(error=requests.ConnectionError("gateway down"))
        u = DMXUniverse(fps=100, session=session)
        u.write_region(1, [1])
        u.stop(flush=True)
        assert u.errors == 1
        assert u.frames_sent == 0

    def test_http_errors_are_counted(self):
        session = FakeSession(response=FakeResponse(500, "boom"))
        u = DMXUniverse(fps=100, session=session)
        u.write_region(1, [1])
        u.stop(flush=True)
        assert u.errors == 1


class FakeUniverse:
    def __init__(self):
        self.writes = []
        self.blackouts = 0
        self.stopped = False

    def write_region(self, start, values):
        self.writes.append((start, list(values)))

    def blackout(self):
        self.blackouts += 1

    def stop(self):
        self.stopped = True


class TestDmxLightBar:
    def test_three_channels_per_light(self, frame):
        u = FakeUniverse()
        DmxLightBar(u, base_addr=4).on_frame(frame(), LIGHTS)
        assert u.writes == [(4, [255, 0, 0, 0, 0, 127])]

    def test_lights_past_the_universe_are_ignored(self):
        bar_ = DmxLightBar(FakeUniverse(), base_addr=511)
        assert len(bar_.channels_for(all_off(5))) == 2

    def test_end_blacks_out_and_stops_owned_universe(self):
        u = FakeUniverse()
        DmxLightBar(u, owns_universe=True).on_end()
        assert u.blackouts == 1
        assert u.stopped

    def test_shared_universe_is_left_running(self):
        u = FakeUniverse()
        DmxLightBar(u).on_end()
        assert not u.stopped

    def test_base_address_range(self):
        with pytest.raises(ValueError):
            DmxLightBar(FakeUniverse(), base_addr=0)


class TestConsoleVisualizer:
    def test_render_lists_features_and_lights(self, frame):
        text = ConsoleVisualizer(2).render(frame(is_beat=True, spectral_centroid=1234.0), LIGHTS)
        assert "Centroid: 1234 Hz" in text
        assert "BEAT!" in text
        assert " 0:100%" in text
        assert " 1: 50%" in text

    def test_writes_frames_and_end_marker(self, frame):
        out = io.StringIO()
        viz = ConsoleVisualizer(2, stream=out, clear=False)
        viz.on_frame(frame(), LIGHTS)
        viz.on_end()
        text = out.getvalue()
        assert "\033[2J" not in text
        assert "Audio Features:" in text
        assert text.endswith("Audio stream completed\n")

    def test_helpers(self):
        assert bar(2.0, width=4) == "████ 2.00"
        assert bar(0.5, width=4) == "██░░ 0.50"
        assert shade(0.9) == "█"
        assert shade(0.1) == " "

    def test_black_light_renders(self, frame):
        text = ConsoleVisualizer(1).render(frame(), (LightState(0, BLACK, 0.0),))
        assert "0:  0%" in text
