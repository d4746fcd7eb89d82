"""
Immutable effect parameters for a single render request.

Defaults are neutral: a render with ``EffectParameters()`` returns the
decoded audio unchanged.
"""

from dataclasses import dataclass, field
from typing import NamedTuple, Tuple

from samplefx.audio.dynamics import DynamicsCompressor
from samplefx.audio.effects import EnvelopeShaper, Equalizer, ReverbProcessor


class EqBand(NamedTuple):
    """Gain for one fixed equalizer band."""
    band_index: int
    gain_db: float


@dataclass(frozen=True)
class ReverbParams:
    """Reverb parameters."""
    wet: float = 0.0          # 0 = dry only
    size: float = 0.5
    width: float = 1.0
    depth: float = 0.5
    predelay_ms: float = 10.0

    def build(self, sample_rate: int) -> ReverbProcessor:
        return ReverbProcessor(
            sample_rate=sample_rate,
            wet=self.wet,
            size=self.size,
            width=self.width,
            depth=self.depth,
            predelay_ms=self.predelay_ms
        )


@dataclass(frozen=True)
class EnvelopeParams:
    """ADSR envelope parameters."""
    attack_sec: float = 0.0
    decay_sec: float = 0.0
    sustain_level: float = 1.0  # level (0-1)
    release_sec: float = 0.0

    def build(self, sample_rate: int) -> EnvelopeShaper:
        return EnvelopeShaper(
            sample_rate=sample_rate,
            attack_sec=self.attack_sec,
            decay_sec=self.decay_sec,
            sustain_level=self.sustain_level,
            release_sec=self.release_sec
        )


@dataclass(frozen=True)
class CompressorParams:
    """Compressor parameters; ratio 1 with no makeup leaves audio untouched."""
    threshold_db: float = -10.0
    ratio: float = 1.0
    knee_db: float = 0.0
    makeup_db: float = 0.0
    attack_sec: float = 0.010
    release_sec: float = 0.100

    def build(self, sample_rate: int) -> DynamicsCompressor:
        return DynamicsCompressor(
            sample_rate=sample_rate,
            threshold_db=self.threshold_db,
            ratio=self.ratio,
            knee_db=self.knee_db,
            makeup_db=self.makeup_db,
            attack_sec=self.attack_sec,
            release_sec=self.release_sec
        )


@dataclass(frozen=True)
class EffectParameters:
    """Configuration for every stage of the pipeline."""
    eq_bands: Tuple[EqBand, ...] = ()
    reverb: ReverbParams = field(default_factory=ReverbParams)
    envelope: EnvelopeParams = field(default_factory=EnvelopeParams)
    semitones: int = 0
    tempo_ratio: float = 1.0
    compressor: CompressorParams = field(default_factory=CompressorParams)

    def __post_init__(self) -> None:
        bands = tuple(EqBand(int(index), float(gain)) for index, gain in self.eq_bands)
        object.__setattr__(self, "eq_bands", bands)

    @classmethod
    def neutral(cls) -> "EffectParameters":
        """Parameters for which every stage is a pass-through."""
        return cls()

    def build_equalizer(self, sample_rate: int) -> Equalizer:
        return Equalizer(sample_rate=sample_rate, bands=self.eq_bands)
