"""
Offline audio effects applied to decoded sample buffers.

Every effect takes interleaved float samples and returns a new float32 array
of the same length; inputs are never modified.
"""

from abc import ABC, abstractmethod
import math
from typing import Iterable, Optional, Tuple

import numpy as np
from numpy.typing import NDArray
from scipy import signal

from samplefx.core.config import settings
from samplefx.core.exceptions import ConfigurationError
from samplefx.core.logging import get_logger

logger = get_logger(__name__)


EQ_FREQUENCIES_HZ = (60, 120, 250, 500, 1000, 2500, 5000, 10000)
EQ_GAIN_MIN_DB = -20.0
EQ_GAIN_MAX_DB = 20.0
PREDELAY_MAX_MS = 100.0


def sanitize(samples) -> NDArray[np.float64]:
    """Return a flat float64 copy with NaN mapped to 0 and infinities to +/-1."""
    array = np.asarray(samples, dtype=np.float64).reshape(-1)
    return np.nan_to_num(array, nan=0.0, posinf=1.0, neginf=-1.0)


def require_finite(**values: float) -> None:
    """Raise ConfigurationError if any named value is not a finite number."""
    for name, value in values.items():
        if not math.isfinite(value):
            raise ConfigurationError(f"{name} must be finite, got {value}")


def require_range(name: str, value: float, low: float, high: float) -> None:
    """Raise ConfigurationError unless low <= value <= high."""
    require_finite(**{name: value})
    if not low <= value <= high:
        raise ConfigurationError(
            f"{name} must be within [{low}, {high}], got {value}"
        )


def as_frames(samples: NDArray, channel_count: int) -> NDArray[np.float64]:
    """Reshape interleaved samples to (frames, channels)."""
    if channel_count < 1 or samples.size % channel_count != 0:
        raise ConfigurationError(
            f"{samples.size} samples do not divide into {channel_count} channels"
        )
    return samples.reshape(-1, channel_count)


class EffectBase(ABC):
    """Base class for audio effects."""

    def __init__(self, sample_rate: int = 44100):
        """
        Initialize effect.

        Args:
            sample_rate: Audio sample rate in Hz
        """
        if sample_rate <= 0:
            raise ConfigurationError(
                f"Sample rate must be positive, got {sample_rate}"
            )
        self.sample_rate = sample_rate
        self.enabled = True

    @abstractmethod
    def process(self, samples: np.ndarray, channel_count: int = 1) -> np.ndarray:
        """
        Process audio samples.

        Args:
            samples: Interleaved input samples
            channel_count: Number of interleaved channels

        Returns:
            Processed samples (float32, same length)
        """
        pass

    def set_enabled(self, enabled: bool):
        """Enable or disable the effect."""
        self.enabled = enabled


class Equalizer(EffectBase):
    """
    Eight-band peaking equalizer at fixed centre frequencies.

    Bands left at 0 dB are not filtered at all, so a neutral equalizer is an
    exact pass-through.
    """

    def __init__(
        self,
        sample_rate: int = 44100,
        bands: Iterable[Tuple[int, float]] = (),
        q: Optional[float] = None
    ):
        """
        Initialize equalizer.

        Args:
            sample_rate: Audio sample rate
            bands: (band_index, gain_db) pairs; index into EQ_FREQUENCIES_HZ
            q: Band quality factor (defaults to settings.eq_q)
        """
        super().__init__(sample_rate)
        self.q = settings.eq_q if q is None else q
        require_finite(q=self.q)
        if self.q <= 0:
            raise ConfigurationError(f"q must be positive, got {self.q}")

        self.gains = [0.0] * len(EQ_FREQUENCIES_HZ)
        for band_index, gain_db in bands:
            if not 0 <= band_index < len(EQ_FREQUENCIES_HZ):
                raise ConfigurationError(f"Unknown EQ band index {band_index}")
            require_range(
                f"eq_band_{band_index}", gain_db, EQ_GAIN_MIN_DB, EQ_GAIN_MAX_DB
            )
            self.gains[band_index] = float(gain_db)

        self.filters = [
            self._design_peak(freq, gain)
            for freq, gain in zip(EQ_FREQUENCIES_HZ, self.gains)
            if gain != 0.0
        ]

    def _design_peak(self, freq: float, gain_db: float):
        """RBJ cookbook peaking filter coefficients (b, a)."""
        nyquist = self.sample_rate / 2.0
        freq = max(10.0, min(freq, nyquist - 10.0))
        a = 10.0 ** (gain_db / 40.0)
        w0 = 2.0 * math.pi * freq / self.sample_rate
        alpha = math.sin(w0) / (2.0 * self.q)
        cos_w0 = math.cos(w0)

        b = np.array([1.0 + alpha * a, -2.0 * cos_w0, 1.0 - alpha * a])
        den = np.array([1.0 + alpha / a, -2.0 * cos_w0, 1.0 - alpha / a])
        return b / den[0], den / den[0]

    def process(self, samples: np.ndarray, channel_count: int = 1) -> np.ndarray:
        """Apply the active bands."""
        x = sanitize(samples)
        if not self.enabled or not self.filters or x.size == 0:
            return x.astype(np.float32)

        frames = as_frames(x, channel_count)
        for b, a in self.filters:
            frames = signal.lfilter(b, a, frames, axis=0)

        return np.nan_to_num(frames.reshape(-1)).astype(np.float32)


class EnvelopeShaper(EffectBase):
    """
    Linear ADSR gain envelope.

    Ramps 0 -> 1 over the attack, 1 -> sustain over the decay, holds the
    sustain level, and fades the last ``release_sec`` of the buffer to 0.
    Gain is always within [0, 1].
    """

    def __init__(
        self,
        sample_rate: int = 44100,
        attack_sec: float = 0.0,
        decay_sec: float = 0.0,
        sustain_level: float = 1.0,
        release_sec: float = 0.0
    ):
        """
        Initialize envelope shaper.

        Args:
            sample_rate: Audio sample rate
            attack_sec: Attack time in seconds
            decay_sec: Decay time in seconds
            sustain_level: Sustain level (0-1)
            release_sec: Release time in seconds
        """
        super().__init__(sample_rate)
        require_finite(
            attack_sec=attack_sec, decay_sec=decay_sec, release_sec=release_sec
        )
        for name, value in (
            ("attack_sec", attack_sec),
            ("decay_sec", decay_sec),
            ("release_sec", release_sec),
        ):
            if value < 0:
                raise ConfigurationError(f"{name} must not be negative, got {value}")
        require_range("sustain_level", sustain_level, 0.0, 1.0)

        self.attack_sec = attack_sec
        self.decay_sec = decay_sec
        self.sustain_level = sustain_level
        self.release_sec = release_sec

    def envelope(self, n_frames: int) -> NDArray[np.float64]:
        """
        Compute the per-frame gain curve.

        Args:
            n_frames: Number of frames in the buffer

        Returns:
            Gain values in [0, 1]
        """
        envelope = np.ones(n_frames)

        # Calculate frame counts for each phase
        attack_frames = int(round(self.attack_sec * self.sample_rate))
        decay_frames = int(round(self.decay_sec * self.sample_rate))
        release_frames = int(round(self.release_sec * self.sample_rate))

        # Ensure we don't exceed array bounds
        attack_frames = min(attack_frames, n_frames)
        decay_frames = min(decay_frames, n_frames - attack_frames)
        release_frames = min(release_frames, n_frames)

        if attack_frames > 0:
            envelope[:attack_frames] = np.linspace(0.0, 1.0, attack_frames)

        sustain_start = attack_frames + decay_frames
        if decay_frames > 0:
            envelope[attack_frames:sustain_start] = np.linspace(
                1.0, self.sustain_level, decay_frames
            )

        envelope[sustain_start:] = self.sustain_level

        # Release fades whatever level the envelope has reached
        if release_frames > 0:
            envelope[n_frames - release_frames:] *= np.linspace(
                1.0, 0.0, release_frames
            )

        return envelope

    def process(self, samples: np.ndarray, channel_count: int = 1) -> np.ndarray:
        """Apply the envelope frame by frame."""
        x = sanitize(samples)
        if not self.enabled or x.size == 0:
            return x.astype(np.float32)

        frames = as_frames(x, channel_count)
        shaped = frames * self.envelope(frames.shape[0])[:, np.newaxis]
        return shaped.reshape(-1).astype(np.float32)


class ReverbProcessor(EffectBase):
    """
    Schroeder-style reverb: damped parallel combs into series all-passes.

    The reverberant tail is pre-delayed, swept by a slow modulated delay,
    cross-mixed between channels according to ``width`` and scaled so it
    never peaks above the dry signal before the wet/dry mix.
    """

    COMB_DELAYS_SEC = (0.0297, 0.0371, 0.0411, 0.0437)
    ALLPASS_DELAYS_SEC = (0.0050, 0.0017)
    ALLPASS_GAIN = 0.5
    DAMPING = 0.2
    STEREO_SPREAD_SEC = 23 / 44100
    MOD_RATE_HZ = 0.8
    MOD_DEPTH_SEC = 0.003

    def __init__(
        self,
        sample_rate: int = 44100,
        wet: float = 0.25,
        size: float = 0.5,
        width: float = 1.0,
        depth: float = 0.5,
        predelay_ms: float = 10.0
    ):
        """
        Initialize reverb.

        Args:
            sample_rate: Audio sample rate
            wet: Wet/dry mix (0-1)
            size: Room size (0-1), scales delay lengths and feedback
            width: Stereo decorrelation (0-1)
            depth: Delay modulation depth (0-1)
            predelay_ms: Silence before the first reflection, in milliseconds
        """
        super().__init__(sample_rate)
        require_range("wet", wet, 0.0, 1.0)
        require_range("size", size, 0.0, 1.0)
        require_range("width", width, 0.0, 1.0)
        require_range("depth", depth, 0.0, 1.0)
        require_range("predelay_ms", predelay_ms, 0.0, PREDELAY_MAX_MS)

        self.wet = wet
        self.size = size
        self.width = width
        self.depth = depth
        self.predelay_ms = predelay_ms

        self.feedback = 0.7 + 0.28 * size
        scale = 0.5 + size
        self.comb_delays = [
            max(2, int(round(sec * sample_rate * scale)))
            for sec in self.COMB_DELAYS_SEC
        ]
        self.allpass_delays = [
            max(1, int(round(sec * sample_rate))) for sec in self.ALLPASS_DELAYS_SEC
        ]
        self.spread = int(round(self.STEREO_SPREAD_SEC * sample_rate))
        self.predelay_samples = int(round(predelay_ms / 1000.0 * sample_rate))

    def _comb(self, x: np.ndarray, delay: int) -> np.ndarray:
        # y[n] = x[n-D] + g * lowpass(y)[n-D]
        damp = self.DAMPING
        b = np.zeros(delay + 2)
        b[delay] = 1.0
        b[delay + 1] = -damp
        a = np.zeros(delay + 1)
        a[0] = 1.0
        a[1] = -damp
        a[delay] -= self.feedback * (1.0 - damp)
        return signal.lfilter(b, a, x)

    def _allpass(self, x: np.ndarray, delay: int) -> np.ndarray:
        g = self.ALLPASS_GAIN
        b = np.zeros(delay + 1)
        b[0] = -g
        b[delay] = 1.0
        a = np.zeros(delay + 1)
        a[0] = 1.0
        a[delay] = -g
        return signal.lfilter(b, a, x)

    def _modulate(self, x: np.ndarray) -> np.ndarray:
        if self.depth <= 0.0:
            return x
        idx = np.arange(x.size, dtype=np.float64)
        excursion = self.depth * self.MOD_DEPTH_SEC * self.sample_rate
        delay = 0.5 * excursion * (
            1.0 - np.cos(2.0 * np.pi * self.MOD_RATE_HZ * idx / self.sample_rate)
        )
        return np.interp(idx - delay, idx, x, left=0.0)

    def _tail(self, x: np.ndarray, spread: int) -> np.ndarray:
        """Reverberant tail for one channel."""
        n = x.size
        delayed = np.zeros(n)
        if self.predelay_samples < n:
            delayed[self.predelay_samples:] = x[:n - self.predelay_samples]

        tail = np.zeros(n)
        for delay in self.comb_delays:
            tail += self._comb(delayed, delay + spread)
        tail /= len(self.comb_delays)

        for delay in self.allpass_delays:
            tail = self._allpass(tail, delay)

        return self._modulate(tail)

    def process(self, samples: np.ndarray, channel_count: int = 1) -> np.ndarray:
        """Apply reverb effect."""
        x = sanitize(samples)
        if not self.enabled or self.wet == 0.0 or x.size == 0:
            return x.astype(np.float32)

        dry = as_frames(x, channel_count)
        tails = np.column_stack([
            self._tail(dry[:, channel], self.spread if channel % 2 else 0)
            for channel in range(channel_count)
        ])

        if channel_count == 2:
            wet1 = (1.0 + self.width) / 2.0
            wet2 = (1.0 - self.width) / 2.0
            left, right = tails[:, 0].copy(), tails[:, 1].copy()
            tails[:, 0] = left * wet1 + right * wet2
            tails[:, 1] = right * wet1 + left * wet2

        # Keep the tail at or below the dry peak
        dry_peak = float(np.max(np.abs(dry)))
        tail_peak = float(np.max(np.abs(tails)))
        if tail_peak > dry_peak:
            tails *= dry_peak / tail_peak
            np.clip(tails, -dry_peak, dry_peak, out=tails)

        output = (1.0 - self.wet) * dry + self.wet * tails

        logger.debug(
            "reverb_applied",
            channels=channel_count,
            frames=dry.shape[0],
            tail_peak=tail_peak
        )

        return np.nan_to_num(output.reshape(-1)).astype(np.float32)


def apply_envelope(
    input,
    sample_rate_hz: int,
    attack_sec: float,
    decay_sec: float,
    sustain_level: float,
    release_sec: float,
    channel_count: int = 1
) -> np.ndarray:
    """Shape ``input`` with a one-off ADSR envelope."""
    shaper = EnvelopeShaper(
        sample_rate=sample_rate_hz,
        attack_sec=attack_sec,
        decay_sec=decay_sec,
        sustain_level=sustain_level,
        release_sec=release_sec
    )
    return shaper.process(input, channel_count)


def apply_reverb(
    input,
    sample_rate_hz: int,
    wet: float,
    size: float,
    width: float,
    depth: float,
    predelay_ms: float,
    channel_count: int = 1
) -> np.ndarray:
    """Run a one-off reverb over ``input``."""
    reverb = ReverbProcessor(
        sample_rate=sample_rate_hz,
        wet=wet,
        size=size,
        width=width,
        depth=depth,
        predelay_ms=predelay_ms
    )
    return reverb.process(input, channel_count)
