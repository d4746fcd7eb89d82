"""
Tests for the phase-vocoder pitch/time backend.
"""

import pytest
import numpy as np

from samplefx.audio.processors import AudioProcessor, PhaseVocoderProcessor
from samplefx.core.exceptions import ConfigurationError, ProcessingError


def dominant_frequency(samples, sample_rate):
    spectrum = np.abs(np.fft.rfft(samples * np.hanning(samples.size)))
    return np.fft.rfftfreq(samples.size, 1.0 / sample_rate)[np.argmax(spectrum)]


class TestPhaseVocoder:
    """Test pitch shift and time stretch."""

    @pytest.fixture
    def sample_rate(self):
        return 22050

    @pytest.fixture
    def processor(self):
        return PhaseVocoderProcessor(fft_size=1024, hop_size=256)

    @pytest.fixture
    def tone(self, sample_rate):
        t = np.arange(sample_rate) / sample_rate
        return (0.5 * np.sin(2 * np.pi * 440.0 * t)).astype(np.float32)

    def test_is_audio_processor(self, processor):
        assert isinstance(processor, AudioProcessor)

    @pytest.mark.parametrize("ratio", [0.5, 0.8, 1.25, 2.0])
    def test_time_stretch_length(self, processor, tone, ratio):
        output = processor.time_stretch(tone, ratio)

        assert output.shape == (int(round(tone.size / ratio)),)
        assert output.dtype == np.float32
        assert np.all(np.isfinite(output))

    def test_time_stretch_keeps_pitch(self, processor, tone, sample_rate):
        output = processor.time_stretch(tone, 0.8)
        middle = output[2048:-2048]

        assert abs(dominant_frequency(middle, sample_rate) - 440.0) < 15.0

    @pytest.mark.parametrize("ratio", [0.25, 0.5, 2.0, 4.0])
    def test_time_stretch_keeps_level(self, processor, tone, ratio):
        output = processor.time_stretch(tone, ratio).astype(np.float64)
        margin = output.size // 8
        rms_in = np.sqrt(np.mean(tone.astype(np.float64) ** 2))
        rms_out = np.sqrt(np.mean(output[margin:-margin] ** 2))

        assert abs(20 * np.log10(rms_out / rms_in)) < 1.5

    @pytest.mark.parametrize("semitones", [-12, -3, 5, 12])
    def test_pitch_shift_keeps_length(self, processor, tone, semitones):
        output = processor.pitch_shift(tone, semitones)

        assert output.shape == tone.shape
        assert np.all(np.isfinite(output))

    def test_pitch_shift_octave_up(self, processor, tone, sample_rate):
        output = processor.pitch_shift(tone, 12)
        middle = output[2048:-2048]

        assert abs(dominant_frequency(middle, sample_rate) - 880.0) < 25.0

    def test_multichannel_frames(self, processor, tone):
        frames = np.column_stack([tone, -tone])

        stretched = processor.time_stretch(frames, 2.0)
        shifted = processor.pitch_shift(frames, 3)

        assert stretched.shape == (int(round(tone.size / 2.0)), 2)
        assert shifted.shape == frames.shape

    def test_short_input(self, processor):
        samples = np.linspace(-0.5, 0.5, 100).astype(np.float32)

        assert processor.time_stretch(samples, 2.0).shape == (50,)
        assert processor.pitch_shift(samples, 7).shape == (100,)

    def test_silence_stays_silent(self, processor):
        output = processor.pitch_shift(np.zeros(4096), 4)

        assert np.allclose(output, 0.0)

    @pytest.mark.parametrize("ratio", [0.0, -1.0, float("nan"), 10.0, 0.1])
    def test_invalid_tempo_ratio(self, processor, tone, ratio):
        with pytest.raises(ProcessingError):
            processor.time_stretch(tone, ratio)

    @pytest.mark.parametrize("semitones", [25, -30, 1.5])
    def test_invalid_semitones(self, processor, tone, semitones):
        with pytest.raises(ProcessingError):
            processor.pitch_shift(tone, semitones)

    def test_invalid_hop_size(self):
        with pytest.raises(ConfigurationError):
            PhaseVocoderProcessor(fft_size=512, hop_size=512)
