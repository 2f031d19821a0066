"""Value types: colors, light states, audio and feature frames."""

import numpy as np
import pytest

from core.models import (
    BLACK,
    BLUE,
    RED,
    WHITE,
    AudioFrame,
    Color,
    FeatureFrame,
    LightState,
    all_off,
)


class TestColor:
    def test_channels_are_validated(self):
        with pytest.raises(ValueError):
            Color(256, 0, 0)
        with pytest.raises(ValueError):
            Color(0, -1, 0)

    def test_brightness_scales_and_truncates(self):
        assert WHITE.brightness(0.5) == Color(127, 127, 127)
        assert RED.brightness(0.0) == BLACK

    def test_brightness_rejects_out_of_range_factor(self):
        with pytest.raises(ValueError):
            RED.brightness(1.5)

    def test_blend_endpoints_and_midpoint(self):
        assert RED.blend(BLUE, 0.0) == RED
        assert RED.blend(BLUE, 1.0) == BLUE
        assert RED.blend(BLUE, 0.5) == Color(127, 0, 127)


class TestLightState:
    def test_intensity_must_be_unit_range(self):
        with pytest.raises(ValueError):
            LightState(0, RED, 1.01)
        with pytest.raises(ValueError):
            LightState(0, RED, -0.1)

    def test_actual_color_applies_intensity(self):
        assert LightState(3, WHITE, 0.5).actual_color == Color(127, 127, 127)

    def test_scaled_clamps(self):
        assert LightState(0, RED, 0.8).scaled(0.5).intensity == pytest.approx(0.4)
        assert LightState(0, RED, 0.8).scaled(2.0).intensity == 1.0

    def test_all_off_is_dense_and_black(self):
        lights = all_off(5)
        assert [l.index for l in lights] == list(range(5))
        assert all(l.color == BLACK and l.intensity == 0.0 for l in lights)


class TestAudioFrame:
    def test_samples_are_copied_and_read_only(self):
        raw = np.zeros(8)
        frame = AudioFrame(raw, 8000)
        raw[0] = 1.0
        assert frame.samples[0] == 0.0
        with pytest.raises(ValueError):
            frame.samples[0] = 1.0

    def test_frame_size(self):
        assert AudioFrame([0.0] * 16, 8000).frame_size == 16

    def test_rejects_multichannel(self):
        with pytest.raises(ValueError):
            AudioFrame(np.zeros((4, 2)), 8000)


class TestFeatureFrame:
    def test_is_immutable(self, frame):
        f = frame()
        with pytest.raises(AttributeError):
            f.energy = 2.0

    def test_tempo_is_absent(self, frame):
        assert frame().tempo is None

    def test_normalized_scales_by_loudest_band(self, frame):
        f = frame(energy=6.0, bass_energy=4.0, mid_energy=2.0, high_energy=0.0).normalized()
        assert f.bass_energy == pytest.approx(1.0)
        assert f.mid_energy == pytest.approx(0.5)
        assert f.high_energy == 0.0
        assert f.energy == 1.0

    def test_normalized_silence_is_unchanged(self, frame):
        f = frame(energy=0.0, bass_energy=0.0, mid_energy=0.0, high_energy=0.0)
        assert f.normalized() == f

    def test_normalized_keeps_beat_and_centroid(self, frame):
        f = frame(is_beat=True, spectral_centroid=1234.0).normalized()
        assert f.is_beat
        assert f.spectral_centroid == 1234.0

    def test_frames_with_equal_fields_compare_equal(self):
        a = FeatureFrame(0.0, 1.0, 0.5, 0.3, 0.2, 100.0, False, samples=(0.1,))
        b = FeatureFrame(0.0, 1.0, 0.5, 0.3, 0.2, 100.0, False, samples=(0.1,))
        assert a == b
