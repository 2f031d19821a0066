"""Command-line entry point."""

import pytest

import app
from core.config import SessionConfig
from core.patterns import Spectrum, pattern_name
from core.sources import SyntheticSource, WavFileSource
from devices.local.console import ConsoleVisualizer


class TestParser:
    def test_defaults(self):
        args = app.build_parser().parse_args([])
        assert args.pattern == "spectrum"
        assert args.leds == 10
        assert args.update_ms == 50
        assert args.test is None

    def test_sources_are_exclusive(self):
        with pytest.raises(SystemExit):
            app.build_parser().parse_args(["--realtime", "--file", "x.wav"])

    def test_test_duration_default(self):
        assert app.build_parser().parse_args(["--test"]).test == 30.0

    @pytest.mark.parametrize("name", sorted(app.PATTERNS))
    def test_every_pattern_builds(self, name):
        pattern = app.PATTERNS[name]()
        assert pattern_name(pattern) == name


class TestWiring:
    def test_source_selection(self, config):
        parser = app.build_parser()
        assert isinstance(app.build_source(parser.parse_args([]), config), SyntheticSource)
        assert isinstance(app.build_source(parser.parse_args(["--file", "a.wav"]), config), WavFileSource)

    def test_console_sink(self):
        args = app.build_parser().parse_args(["--console"])
        sinks = app.build_sinks(args, SessionConfig(light_count=4))
        assert len(sinks) == 1
        assert isinstance(sinks[0], ConsoleVisualizer)


class TestMain:
    def test_invalid_config_exits_2(self):
        assert app.main(["--test", "0.1", "--leds", "0"]) == 2

    def test_missing_file_exits_2(self, tmp_path):
        assert app.main(["--file", str(tmp_path / "none.wav")]) == 2

    def test_short_synthetic_run(self):
        argv = ["--test", "0.2", "--sample-rate", "8000", "--buffer-size", "256", "--update-ms", "0"]
        assert app.main(argv) == 0

    def test_default_pattern_is_spectrum(self):
        assert isinstance(app.PATTERNS["spectrum"](), Spectrum)
