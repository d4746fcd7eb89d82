"""
Feed-forward dynamics compressor for offline processing.
"""

import math

import numpy as np

from samplefx.audio.effects import EffectBase, require_finite, sanitize
from samplefx.core.exceptions import ConfigurationError
from samplefx.core.logging import get_logger

logger = get_logger(__name__)


class DynamicsCompressor(EffectBase):
    """
    Per-sample feed-forward compressor.

    The gain computer maps each input level through a hard or soft knee, and
    the resulting gain (in dB) is smoothed by a one-pole filter that uses the
    attack coefficient while gain is falling and the release coefficient while
    it recovers. Smoothing state starts at 0 dB on every ``process`` call.
    """

    EPS = 1e-5
    MIN_DB = -100.0
    MIN_TIME_SEC = 1e-4
    MAX_MAKEUP_DB = 60.0

    def __init__(
        self,
        sample_rate: int = 44100,
        threshold_db: float = -10.0,
        ratio: float = 4.0,
        knee_db: float = 0.0,
        makeup_db: float = 0.0,
        attack_sec: float = 0.010,
        release_sec: float = 0.100
    ):
        """
        Initialize compressor.

        Args:
            sample_rate: Audio sample rate
            threshold_db: Level in dBFS above which compression starts
            ratio: Compression ratio (>= 1)
            knee_db: Soft knee width in dB (0 = hard knee)
            makeup_db: Gain added after compression
            attack_sec: How fast gain reduction kicks in
            release_sec: How fast gain recovers
        """
        super().__init__(sample_rate)
        require_finite(
            threshold_db=threshold_db,
            ratio=ratio,
            knee_db=knee_db,
            makeup_db=makeup_db,
            attack_sec=attack_sec,
            release_sec=release_sec
        )
        if ratio < 1.0:
            raise ConfigurationError(f"ratio must be >= 1, got {ratio}")
        if knee_db < 0.0:
            raise ConfigurationError(f"knee_db must not be negative, got {knee_db}")
        if abs(makeup_db) > self.MAX_MAKEUP_DB:
            raise ConfigurationError(
                f"makeup_db must be within +/-{self.MAX_MAKEUP_DB}, got {makeup_db}"
            )
        if attack_sec < 0.0 or release_sec < 0.0:
            raise ConfigurationError(
                f"attack/release must not be negative, got {attack_sec}/{release_sec}"
            )

        self.threshold_db = threshold_db
        self.ratio = ratio
        self.knee_db = knee_db
        self.makeup_db = makeup_db
        self.attack_sec = attack_sec
        self.release_sec = release_sec

        # Calculate attack/release coefficients
        self.attack_coeff = math.exp(
            -1.0 / (sample_rate * max(attack_sec, self.MIN_TIME_SEC))
        )
        self.release_coeff = math.exp(
            -1.0 / (sample_rate * max(release_sec, self.MIN_TIME_SEC))
        )

    def amp_to_db(self, samples: np.ndarray) -> np.ndarray:
        """Sample magnitude in dBFS, floored at MIN_DB."""
        magnitude = np.maximum(np.abs(samples), self.EPS)
        return np.maximum(20.0 * np.log10(magnitude), self.MIN_DB)

    def map_level(self, input_db: np.ndarray) -> np.ndarray:
        """Static input -> output level curve in dB."""
        input_db = np.asarray(input_db, dtype=np.float64)
        threshold = self.threshold_db
        compressed = threshold + (input_db - threshold) / self.ratio

        if self.knee_db <= 0.0:
            return np.where(input_db > threshold, compressed, input_db)

        half = self.knee_db / 2.0
        knee_start = threshold - half
        knee_end = threshold + half
        compressed_at_end = threshold + (knee_end - threshold) / self.ratio
        position = (input_db - knee_start) / self.knee_db
        in_knee = knee_start + (compressed_at_end - knee_start) * position

        return np.where(
            input_db <= knee_start,
            input_db,
            np.where(input_db >= knee_end, compressed, in_knee)
        )

    def process(self, samples: np.ndarray, channel_count: int = 1) -> np.ndarray:
        """
        Compress samples.

        Interleaved channels are processed as one sequence, so all channels
        share the gain state.

        Args:
            samples: Input samples (NaN/Inf are clamped before use)
            channel_count: Unused; accepted for the EffectBase contract

        Returns:
            Compressed samples of identical length
        """
        x = sanitize(samples)
        if not self.enabled or x.size == 0:
            return x.astype(np.float32)

        input_db = self.amp_to_db(x)
        target_gain_db = (self.map_level(input_db) - input_db) + self.makeup_db

        attack = self.attack_coeff
        release = self.release_coeff
        gain_db = np.empty_like(target_gain_db)
        current = 0.0
        for i, target in enumerate(target_gain_db.tolist()):
            if current > target:
                current = attack * current + (1.0 - attack) * target
            else:
                current = release * current + (1.0 - release) * target
            gain_db[i] = current

        output = x * np.power(10.0, gain_db / 20.0)

        logger.debug(
            "compressor_applied",
            samples=x.size,
            max_reduction_db=float(np.min(gain_db) - self.makeup_db)
        )

        limit = float(np.finfo(np.float32).max)
        return np.clip(output, -limit, limit).astype(np.float32)
