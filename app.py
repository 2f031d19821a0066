# app.py
# Entrypoint: pick a sample source, wire sinks, run one session until the stream ends or Ctrl+C.
from __future__ import annotations

import argparse
import logging
import sys

from core.audio_pipeline import AudioPipeline, SampleSource
from core.config import SessionConfig
from core.errors import AcquisitionFailure, InvalidConfigError
from core.models import WHITE
from core.patterns import Beat, Energy, Off, Pattern, Solid, Spectrum, Wave
from core.sources import SyntheticSource, WavFileSource, probe_sample_rate
from devices.local.console import ConsoleVisualizer
from devices.remote.dmx_gateway import DMXUniverse
from devices.remote.dmx_light_bar import DmxLightBar
from devices.remote.udp_light_strip import FORMAT_MLS, FORMAT_TEXT, UdpLightStrip
from services.orchestrator_master import OrchestratorMaster
from services.presets.fire import fire_pattern

_LOG = logging.getLogger("app")

PATTERNS = {
    "off": Off,
    "solid": lambda: Solid(WHITE),
    "spectrum": Spectrum,
    "energy": Energy,
    "beat": Beat,
    "wave": Wave,
    "fire": fire_pattern,
}


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Audio-reactive light sync")
    src = p.add_mutually_exclusive_group()
    src.add_argument("--file", metavar="PATH", help="Process an audio file (WAV/FLAC/AIFF)")
    src.add_argument("--realtime", action="store_true", help="Capture from the default input device")
    src.add_argument("--test", nargs="?", type=float, const=30.0, metavar="SECONDS",
                     help="Generate synthetic test audio (default 30 s)")
    p.add_argument("--device", default=None, help="Input device index or name for --realtime")
    p.add_argument("--pattern", choices=sorted(PATTERNS), default="spectrum")
    p.add_argument("--brightness", type=float, default=1.0)
    p.add_argument("--leds", type=int, default=10)
    p.add_argument("--sample-rate", type=int, default=44100)
    p.add_argument("--buffer-size", type=int, default=2048)
    p.add_argument("--fft-size", type=int, default=None, help="Defaults to --buffer-size")
    p.add_argument("--update-ms", type=int, default=50)
    p.add_argument("--console", action="store_true", help="Draw features and lights in the terminal")
    p.add_argument("--udp", metavar="HOST:PORT", help="Stream lights to a UDP strip")
    p.add_argument("--udp-format", choices=[FORMAT_TEXT, FORMAT_MLS], default=FORMAT_TEXT)
    p.add_argument("--dmx", metavar="HOST", help="Send lights to an HTTP DMX gateway")
    p.add_argument("--dmx-base", type=int, default=1)
    p.add_argument("--log-level", default="INFO")
    return p


def _device(value):
    if value is None:
        return None
    return int(value) if value.isdigit() else value


def build_source(args: argparse.Namespace, config: SessionConfig) -> SampleSource:
    if args.file:
        return WavFileSource(args.file, config, realtime=True)
    if args.realtime:
        return AudioPipeline(samplerate=config.sample_rate, blocksize=config.buffer_size, device=_device(args.device))
    duration = args.test if args.test is not None else 30.0
    if args.test is None:
        _LOG.info("No audio source specified, generating test audio (%.0f seconds)", duration)
    return SyntheticSource(config, duration=duration)


def build_sinks(args: argparse.Namespace, config: SessionConfig) -> list:
    sinks: list = []
    if args.console:
        sinks.append(ConsoleVisualizer(config.light_count))
    if args.udp:
        host, _, port = args.udp.rpartition(":")
        sinks.append(UdpLightStrip(ip=host or args.udp, port=int(port) if host else 4210, fmt=args.udp_format))
    if args.dmx:
        sinks.append(DmxLightBar(DMXUniverse(host=args.dmx), base_addr=args.dmx_base, owns_universe=True))
    return sinks


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )

    try:
        sample_rate = probe_sample_rate(args.file) if args.file else args.sample_rate
        config = SessionConfig(
            sample_rate=sample_rate,
            buffer_size=args.buffer_size,
            fft_size=args.fft_size or args.buffer_size,
            light_count=args.leds,
            update_interval_ms=args.update_ms,
        )
    except (InvalidConfigError, AcquisitionFailure) as e:
        _LOG.error("%s", e)
        return 2

    orch = OrchestratorMaster(
        config,
        build_source(args, config),
        pattern=PATTERNS[args.pattern](),
        sinks=build_sinks(args, config),
    )
    orch.set_global_brightness(args.brightness)
    _LOG.info("Press Ctrl+C to stop")
    orch.run()
    return 1 if orch.error is not None else 0


if __name__ == "__main__":
    sys.exit(main())
