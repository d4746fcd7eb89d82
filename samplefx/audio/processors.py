"""
Pitch-shift and time-stretch backends.

The orchestrator only sees the ``AudioProcessor`` interface, so the
librosa implementation here can be swapped for another backend or for
a test double.
"""

from abc import ABC, abstractmethod
import math
from typing import Callable, Optional

import librosa
import numpy as np
from numpy.typing import NDArray

from samplefx.core.config import settings
from samplefx.core.exceptions import ConfigurationError, ProcessingError
from samplefx.core.logging import get_logger

logger = get_logger(__name__)


class AudioProcessor(ABC):
    """
    Pitch and duration manipulation capability.

    Samples are 1-D (mono) or shaped (frames, channels).
    """

    @abstractmethod
    def pitch_shift(self, samples: np.ndarray, semitones: int) -> np.ndarray:
        """
        Change pitch without changing duration.

        Args:
            samples: Input audio
            semitones: Signed shift in semitones

        Returns:
            Audio with the same number of frames
        """
        pass

    @abstractmethod
    def time_stretch(self, samples: np.ndarray, tempo_ratio: float) -> np.ndarray:
        """
        Change duration without changing pitch.

        Args:
            samples: Input audio
            tempo_ratio: Playback speed factor (> 1 is faster and shorter)

        Returns:
            Audio with round(frames / tempo_ratio) frames
        """
        pass




class PhaseVocoderProcessor(AudioProcessor):
    """
    librosa phase-vocoder backend.

    Each channel is processed on its own with ``librosa.effects.time_stretch``
    or ``librosa.effects.pitch_shift``. Stretched channels are rescaled to the
    RMS level of their source.
    """

    # Pitch-shift resampling depends only on the pitch ratio
    NOMINAL_SAMPLE_RATE = 44100

    def __init__(
        self,
        fft_size: Optional[int] = None,
        hop_size: Optional[int] = None,
        max_semitones: Optional[int] = None,
        min_tempo_ratio: Optional[float] = None,
        max_tempo_ratio: Optional[float] = None
    ):
        """
        Initialize phase vocoder.

        Args:
            fft_size: STFT window length in samples
            hop_size: Analysis hop in samples
            max_semitones: Largest accepted absolute pitch shift
            min_tempo_ratio: Smallest accepted tempo ratio
            max_tempo_ratio: Largest accepted tempo ratio
        """
        self.fft_size = fft_size or settings.vocoder_fft_size
        self.hop_size = hop_size or settings.vocoder_hop_size
        self.max_semitones = (
            settings.max_semitones if max_semitones is None else max_semitones
        )
        self.min_tempo_ratio = min_tempo_ratio or settings.min_tempo_ratio
        self.max_tempo_ratio = max_tempo_ratio or settings.max_tempo_ratio

        if not 0 < self.hop_size < self.fft_size:
            raise ConfigurationError(
                f"hop_size must be in (0, fft_size), got {self.hop_size}/{self.fft_size}"
            )

        logger.debug(
            "phase_vocoder_initialized",
            fft_size=self.fft_size,
            hop_size=self.hop_size
        )

    def pitch_shift(self, samples: np.ndarray, semitones: int) -> np.ndarray:
        """Shift pitch by ``semitones`` keeping the frame count."""
        if semitones != int(semitones) or abs(semitones) > self.max_semitones:
            raise ProcessingError(
                f"Pitch shift must be a whole number of semitones within "
                f"+/-{self.max_semitones}, got {semitones}"
            )

        def shift(channel: NDArray[np.float64]) -> NDArray[np.float64]:
            if channel.size == 0:
                return channel
            shifted = librosa.effects.pitch_shift(
                self._pad(channel),
                sr=self.NOMINAL_SAMPLE_RATE,
                n_steps=int(semitones),
                n_fft=self.fft_size,
                hop_length=self.hop_size
            )
            return librosa.util.fix_length(shifted, size=channel.size)

        return self._per_channel(samples, shift)

    def time_stretch(self, samples: np.ndarray, tempo_ratio: float) -> np.ndarray:
        """Change duration by 1 / ``tempo_ratio`` keeping pitch."""
        if not math.isfinite(tempo_ratio) or tempo_ratio <= 0:
            raise ProcessingError(f"Tempo ratio must be positive, got {tempo_ratio}")
        if not self.min_tempo_ratio <= tempo_ratio <= self.max_tempo_ratio:
            raise ProcessingError(
                f"Tempo ratio must be within [{self.min_tempo_ratio}, "
                f"{self.max_tempo_ratio}], got {tempo_ratio}"
            )

        def stretch(channel: NDArray[np.float64]) -> NDArray[np.float64]:
            target = int(round(channel.size / tempo_ratio))
            if channel.size == 0 or target == 0:
                return np.zeros(target)
            stretched = librosa.effects.time_stretch(
                self._pad(channel),
                rate=tempo_ratio,
                n_fft=self.fft_size,
                hop_length=self.hop_size
            )
            stretched = librosa.util.fix_length(stretched, size=target)
            return self._match_level(stretched, channel)

        return self._per_channel(samples, stretch)

    def _pad(self, channel: NDArray[np.float64]) -> NDArray[np.float64]:
        """Zero-pad a channel shorter than one analysis window."""
        if channel.size < self.fft_size:
            return np.pad(channel, (0, self.fft_size - channel.size))
        return channel

    @staticmethod
    def _match_level(
        output: NDArray[np.float64], source: NDArray[np.float64]
    ) -> NDArray[np.float64]:
        source_rms = float(np.sqrt(np.mean(source ** 2)))
        output_rms = float(np.sqrt(np.mean(output ** 2)))
        if source_rms == 0.0 or output_rms < 1e-12:
            return output
        return output * (source_rms / output_rms)

    def _per_channel(
        self,
        samples: np.ndarray,
        func: Callable[[NDArray[np.float64]], NDArray[np.float64]]
    ) -> np.ndarray:
        array = np.nan_to_num(np.asarray(samples, dtype=np.float64))
        if array.ndim == 1:
            result = func(array)
        elif array.ndim == 2:
            result = np.column_stack(
                [func(array[:, ch]) for ch in range(array.shape[1])]
            )
        else:
            raise ProcessingError(f"Unsupported sample array shape {array.shape}")
        return np.nan_to_num(result).astype(np.float32)
