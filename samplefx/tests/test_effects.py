"""
Tests for equalizer, envelope and reverb effects.
"""

import pytest
import numpy as np

from samplefx.audio.effects import (
    EQ_FREQUENCIES_HZ,
    Equalizer,
    EnvelopeShaper,
    ReverbProcessor,
    apply_envelope,
    apply_reverb,
)
from samplefx.core.exceptions import ConfigurationError


def sine(freq, sample_rate, n, amplitude=0.5):
    t = np.arange(n) / sample_rate
    return (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float32)


class TestEqualizer:
    """Test the fixed-band equalizer."""

    @pytest.fixture
    def sample_rate(self):
        return 44100

    def test_neutral_is_identity(self, sample_rate):
        samples = sine(440.0, sample_rate, 2048)
        eq = Equalizer(sample_rate=sample_rate, bands=[(3, 0.0)])

        np.testing.assert_array_equal(eq.process(samples), samples)

    def test_boost_raises_band_energy(self, sample_rate):
        samples = sine(1000.0, sample_rate, 8192, amplitude=0.1)
        band = EQ_FREQUENCIES_HZ.index(1000)
        eq = Equalizer(sample_rate=sample_rate, bands=[(band, 12.0)])

        output = eq.process(samples)
        # Skip the filter's start-up transient
        gain = np.sqrt(np.mean(output[2048:] ** 2)) / np.sqrt(np.mean(samples[2048:] ** 2))

        assert output.shape == samples.shape
        assert 3.0 < gain < 4.5

    def test_cut_lowers_band_energy(self, sample_rate):
        samples = sine(60.0, sample_rate, 16384, amplitude=0.5)
        eq = Equalizer(sample_rate=sample_rate, bands=[(0, -12.0)])

        output = eq.process(samples)

        assert np.max(np.abs(output[8192:])) < 0.5 * np.max(np.abs(samples))

    def test_stereo_channels_filtered_independently(self, sample_rate):
        left = sine(1000.0, sample_rate, 4096)
        frames = np.column_stack([left, np.zeros_like(left)])
        eq = Equalizer(sample_rate=sample_rate, bands=[(4, 6.0)])

        output = eq.process(frames.reshape(-1), channel_count=2).reshape(-1, 2)

        assert np.all(output[:, 1] == 0.0)
        assert np.max(np.abs(output[:, 0])) > 0.0

    @pytest.mark.parametrize("bands", [[(8, 3.0)], [(-1, 3.0)], [(2, 25.0)], [(2, float("inf"))]])
    def test_invalid_bands_rejected(self, sample_rate, bands):
        with pytest.raises(ConfigurationError):
            Equalizer(sample_rate=sample_rate, bands=bands)


class TestEnvelopeShaper:
    """Test the ADSR envelope."""

    @pytest.fixture
    def sample_rate(self):
        return 1000

    def test_degenerate_envelope_is_identity(self, sample_rate):
        samples = np.random.default_rng(0).uniform(-1, 1, 500).astype(np.float32)

        output = apply_envelope(samples, sample_rate, 0.0, 0.0, 1.0, 0.0)

        np.testing.assert_array_equal(output, samples)

    def test_never_amplifies(self, sample_rate):
        samples = np.random.default_rng(1).uniform(-1, 1, 1000).astype(np.float32)

        output = apply_envelope(samples, sample_rate, 0.1, 0.2, 0.6, 0.3)

        assert output.shape == samples.shape
        assert np.all(np.abs(output) <= np.abs(samples) + 1e-7)

    def test_envelope_shape(self, sample_rate):
        shaper = EnvelopeShaper(
            sample_rate=sample_rate,
            attack_sec=0.1,
            decay_sec=0.1,
            sustain_level=0.5,
            release_sec=0.2
        )
        env = shaper.envelope(1000)

        assert env[0] == 0.0
        assert env[99] == pytest.approx(1.0)
        assert env[199] == pytest.approx(0.5)
        assert np.all(env[200:800] == 0.5)
        assert env[-1] == pytest.approx(0.0)
        assert np.all((env >= 0.0) & (env <= 1.0))
        assert np.all(np.diff(env[:100]) > 0)
        assert np.all(np.diff(env[800:]) <= 0)

    def test_phases_longer_than_buffer(self, sample_rate):
        shaper = EnvelopeShaper(
            sample_rate=sample_rate, attack_sec=2.0, decay_sec=2.0,
            sustain_level=0.3, release_sec=5.0
        )
        env = shaper.envelope(100)

        assert env.shape == (100,)
        assert np.all((env >= 0.0) & (env <= 1.0))

    def test_zero_input_stays_zero(self, sample_rate):
        output = apply_envelope(np.zeros(300), sample_rate, 0.05, 0.05, 0.5, 0.05)

        assert np.all(output == 0.0)

    def test_stereo_frames_share_gain(self, sample_rate):
        frames = np.ones((400, 2), dtype=np.float32)
        output = apply_envelope(
            frames.reshape(-1), sample_rate, 0.1, 0.0, 1.0, 0.1, channel_count=2
        ).reshape(-1, 2)

        np.testing.assert_array_equal(output[:, 0], output[:, 1])

    def test_empty_input(self, sample_rate):
        assert apply_envelope(np.array([]), sample_rate, 0.1, 0.1, 0.5, 0.1).size == 0

    @pytest.mark.parametrize("kwargs", [
        {"attack_sec": -0.1},
        {"sustain_level": 1.5},
        {"sustain_level": -0.1},
        {"release_sec": float("nan")},
    ])
    def test_invalid_parameters_rejected(self, sample_rate, kwargs):
        with pytest.raises(ConfigurationError):
            EnvelopeShaper(sample_rate=sample_rate, **kwargs)


class TestReverb:
    """Test the reverb processor."""

    def test_wet_zero_returns_dry(self):
        samples = np.sin(np.arange(500) * 0.1).astype(np.float32)

        output = apply_reverb(samples, 44100, 0.0, 0.7, 0.5, 0.5, 40.0)

        np.testing.assert_allclose(output, samples, atol=1e-6)

    def test_wet_one_changes_signal(self):
        samples = np.sin(np.arange(500) * 0.03).astype(np.float32)

        output = apply_reverb(samples, 44100, 1.0, 0.9, 0.8, 0.8, 0.0)

        assert output.shape == samples.shape
        assert not np.allclose(output, samples)

    def test_predelay_adds_silent_start(self):
        samples = np.ones(500, dtype=np.float32)

        output = apply_reverb(samples, 1000, 1.0, 0.5, 0.5, 0.5, 50.0)

        assert np.all(np.abs(output[:50]) < 1e-4)

    def test_predelay_shifts_reverb_start(self):
        impulse = np.zeros(6000, dtype=np.float32)
        impulse[0] = 1.0

        def first_echo(data):
            hits = np.flatnonzero(np.abs(data) > 0.001)
            return int(hits[0]) if hits.size else -1

        no_delay = apply_reverb(impulse, 44100, 1.0, 0.5, 0.5, 0.5, 0.0)
        with_delay = apply_reverb(impulse, 44100, 1.0, 0.5, 0.5, 0.5, 50.0)

        assert first_echo(with_delay) > first_echo(no_delay) + 2000

    @pytest.mark.parametrize("wet", [0.3, 0.7, 1.0])
    def test_output_bounded(self, wet):
        rng = np.random.default_rng(2)
        samples = rng.uniform(-1, 1, 4000).astype(np.float32)

        output = apply_reverb(samples, 8000, wet, 1.0, 1.0, 1.0, 20.0)

        assert np.all(np.isfinite(output))
        assert np.max(np.abs(output)) <= 1.0 + 1e-6

    def test_full_scale_dc_bounded(self):
        samples = np.ones(5000, dtype=np.float32)

        output = apply_reverb(samples, 8000, 0.5, 1.0, 1.0, 0.0, 0.0)

        assert np.max(np.abs(output)) <= 1.0 + 1e-6

    def test_stereo_width(self):
        left = np.zeros(2000, dtype=np.float32)
        left[0] = 1.0
        frames = np.column_stack([left, np.zeros_like(left)])
        reverb = ReverbProcessor(
            sample_rate=8000, wet=1.0, size=0.5, width=0.0, depth=0.0, predelay_ms=0.0
        )

        output = reverb.process(frames.reshape(-1), channel_count=2).reshape(-1, 2)

        # Zero width mixes both tails equally
        np.testing.assert_allclose(output[:, 0], output[:, 1], atol=1e-6)

    def test_zero_input_stays_zero(self):
        output = apply_reverb(np.zeros(1000), 8000, 1.0, 0.5, 0.5, 0.5, 10.0)

        assert np.all(output == 0.0)

    @pytest.mark.parametrize("kwargs", [
        {"wet": 1.2},
        {"size": -0.1},
        {"width": 2.0},
        {"predelay_ms": 500.0},
    ])
    def test_invalid_parameters_rejected(self, kwargs):
        with pytest.raises(ConfigurationError):
            ReverbProcessor(sample_rate=44100, **kwargs)
