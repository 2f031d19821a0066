"""
examples/demo_session.py

Runs a short synthetic-audio session and switches patterns while it plays.
Lights are drawn in the terminal; pass a strip IP to also stream them over UDP.

    python -m examples.demo_session [STRIP_IP]

Nothing here needs a microphone: the test signal is generated in-process
(bass/mid/high sweeps with a pulse every 500 ms, so Beat has something to
flash on).
"""

import logging
import sys
import time

from core.config import SessionConfig
from core.models import CYAN
from core.patterns import Beat, Energy, Solid, Spectrum, Wave
from core.sources import SyntheticSource
from devices.local.console import ConsoleVisualizer
from devices.remote.udp_light_strip import UdpLightStrip
from services.orchestrator_master import OrchestratorMaster
from services.presets.fire import fire_pattern


def main():
    logging.basicConfig(level=logging.WARNING)

    # --------------------------------------------------------------------
    # 1) Session setup
    # --------------------------------------------------------------------
    # 22.05 kHz with 1024-sample chunks gives ~21 analysed frames per second;
    # the engine still only sees one every 50 ms.
    config = SessionConfig(sample_rate=22050, buffer_size=1024, fft_size=1024, light_count=16)

    sinks = [ConsoleVisualizer(config.light_count)]
    if len(sys.argv) > 1:
        sinks.append(UdpLightStrip(ip=sys.argv[1]))

    session = OrchestratorMaster(
        config,
        SyntheticSource(config, duration=40.0),
        pattern=Spectrum(),
        sinks=sinks,
    )

    # --------------------------------------------------------------------
    # 2) Walk through the patterns, a few seconds each
    # --------------------------------------------------------------------
    playlist = [
        Spectrum(),
        Energy(),
        Beat(),
        Wave(),
        fire_pattern(),
        Solid(CYAN),
    ]

    try:
        session.start()
        for pattern in playlist:
            session.set_pattern(pattern)
            time.sleep(5.0)
            if session.wait(0):
                break

        # Fade out on the last pattern
        for step in range(10, -1, -1):
            session.set_global_brightness(step / 10)
            time.sleep(0.2)
    except KeyboardInterrupt:
        pass
    finally:
        session.stop()


if __name__ == "__main__":
    main()
