"""
Parameter sidecar shared with the project packager.

The JSON layout is ``{"audioFiles": [...], "parameters": [...]}`` with
camelCase keys; every numeric value is stored as a 32-bit float.
"""

import math
import re
from typing import Dict, List, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from samplefx.audio.effects import (
    EQ_FREQUENCIES_HZ,
    EQ_GAIN_MAX_DB,
    EQ_GAIN_MIN_DB,
    PREDELAY_MAX_MS,
)
from samplefx.core.config import settings
from samplefx.core.exceptions import ConfigurationError, DescriptorError
from samplefx.pipeline.parameters import (
    CompressorParams,
    EffectParameters,
    EnvelopeParams,
    EqBand,
    ReverbParams,
)

PARAMETER_TYPES = frozenset({
    "attack", "decay", "sustain", "release",
    "reverbWet", "reverbSize", "reverbWidth", "reverbDepth", "reverbPredelay",
    "compThreshold", "compRatio", "compKnee", "compGain", "compAttack", "compDecay",
    "tempo", "pitch",
})
EQ_BAND_TYPE = re.compile(r"^eq_band_(\d+)$")

# Ranges applied when loading a project
ADSR_MAX_TIME = 5.0
COMP_GAIN_MIN = -20.0
COMP_GAIN_MAX = 20.0
COMP_RATIO_MAX = 20
COMP_KNEE_MAX = 20.0
COMP_TIME_MAX = 1.0


def to_float32(value: float) -> float:
    """Round a value to the nearest 32-bit float."""
    return float(np.float32(value))


def finite_float32(value: float) -> float:
    """Round to 32-bit float, rejecting NaN, infinities and overflow."""
    if not math.isfinite(value) or abs(value) > float(np.finfo(np.float32).max):
        raise ValueError(f"value must be a finite 32-bit float, got {value}")
    return to_float32(value)


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


class AudioFileRecord(BaseModel):
    """One audio file in the project."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    volume: float = 1.0
    duration_seconds: float = Field(0.0, alias="durationSeconds")

    @field_validator("volume", "duration_seconds")
    @classmethod
    def _float32(cls, v: float) -> float:
        return finite_float32(v)


class ParameterRecord(BaseModel):
    """One applied parameter value."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: str
    value: float
    target_audio_file: str = Field(alias="targetAudioFile")

    @field_validator("type")
    @classmethod
    def _known_type(cls, v: str) -> str:
        if v not in PARAMETER_TYPES and not EQ_BAND_TYPE.match(v):
            raise ValueError(f"unknown parameter type {v!r}")
        return v

    @field_validator("value")
    @classmethod
    def _float32(cls, v: float) -> float:
        return finite_float32(v)


class ProjectDescriptor(BaseModel):
    """Sidecar describing a project's audio files and applied parameters."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    audio_files: List[AudioFileRecord] = Field(default_factory=list, alias="audioFiles")
    parameters: List[ParameterRecord] = Field(default_factory=list)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)

    @classmethod
    def from_json(cls, text: str) -> "ProjectDescriptor":
        try:
            return cls.model_validate_json(text)
        except ValidationError as e:
            raise DescriptorError(f"Invalid project descriptor: {e}") from e

    def parameter_map(self, target_audio_file: Optional[str] = None) -> Dict[str, float]:
        """Map parameter type to value, optionally for one audio file only."""
        return {
            record.type: record.value
            for record in self.parameters
            if target_audio_file is None or record.target_audio_file == target_audio_file
        }


def descriptor_from_parameters(
    parameters: EffectParameters,
    audio_file: str,
    volume: float = 1.0,
    duration_seconds: float = 0.0
) -> ProjectDescriptor:
    """
    Record every stage parameter for ``audio_file``.

    Args:
        parameters: Parameters applied to the audio
        audio_file: Name of the processed file inside the project
        volume: Playback volume stored with the file
        duration_seconds: Duration of the processed audio

    Returns:
        Descriptor with one record per parameter

    Raises:
        ConfigurationError: If a value is not a finite 32-bit float
    """
    env = parameters.envelope
    rev = parameters.reverb
    comp = parameters.compressor
    values = {
        "attack": env.attack_sec,
        "decay": env.decay_sec,
        "sustain": env.sustain_level,
        "release": env.release_sec,
        "reverbWet": rev.wet,
        "reverbSize": rev.size,
        "reverbWidth": rev.width,
        "reverbDepth": rev.depth,
        "reverbPredelay": rev.predelay_ms,
        "compThreshold": comp.threshold_db,
        "compRatio": comp.ratio,
        "compKnee": comp.knee_db,
        "compGain": comp.makeup_db,
        "compAttack": comp.attack_sec,
        "compDecay": comp.release_sec,
        "tempo": parameters.tempo_ratio,
        "pitch": parameters.semitones,
    }
    gains = dict.fromkeys(range(len(EQ_FREQUENCIES_HZ)), 0.0)
    gains.update({band.band_index: band.gain_db for band in parameters.eq_bands})
    for index, gain in gains.items():
        values[f"eq_band_{index}"] = gain

    try:
        return ProjectDescriptor(
            audio_files=[
                AudioFileRecord(
                    name=audio_file, volume=volume, duration_seconds=duration_seconds
                )
            ],
            parameters=[
                ParameterRecord(type=key, value=value, target_audio_file=audio_file)
                for key, value in values.items()
            ]
        )
    except ValidationError as e:
        raise ConfigurationError(f"Parameters cannot be recorded: {e}") from e


def parameters_from_descriptor(
    descriptor: ProjectDescriptor,
    target_audio_file: Optional[str] = None,
    clamp: bool = True
) -> EffectParameters:
    """
    Rebuild EffectParameters from a descriptor.

    Missing values fall back to neutral defaults. With ``clamp`` set, values
    are forced into the ranges the sampler accepts, the ratio is rounded to
    a whole number and pitch to whole semitones.
    """
    values = descriptor.parameter_map(target_audio_file)
    neutral = EffectParameters.neutral()

    def get(
        key: str, default: float, low: Optional[float] = None, high: Optional[float] = None
    ) -> float:
        value = values.get(key, default)
        if clamp and low is not None:
            value = _clamp(value, low, high)
        return value

    bands = []
    for index in range(len(EQ_FREQUENCIES_HZ)):
        key = f"eq_band_{index}"
        if key in values:
            bands.append(EqBand(index, get(key, 0.0, EQ_GAIN_MIN_DB, EQ_GAIN_MAX_DB)))

    env, rev, comp = neutral.envelope, neutral.reverb, neutral.compressor
    envelope = EnvelopeParams(
        attack_sec=get("attack", env.attack_sec, 0.0, ADSR_MAX_TIME),
        decay_sec=get("decay", env.decay_sec, 0.0, ADSR_MAX_TIME),
        sustain_level=get("sustain", env.sustain_level, 0.0, 1.0),
        release_sec=get("release", env.release_sec, 0.0, ADSR_MAX_TIME)
    )
    reverb = ReverbParams(
        wet=get("reverbWet", rev.wet, 0.0, 1.0),
        size=get("reverbSize", rev.size, 0.0, 1.0),
        width=get("reverbWidth", rev.width, 0.0, 1.0),
        depth=get("reverbDepth", rev.depth, 0.0, 1.0),
        predelay_ms=get("reverbPredelay", rev.predelay_ms, 0.0, PREDELAY_MAX_MS)
    )

    ratio = values.get("compRatio", comp.ratio)
    if clamp:
        ratio = float(_clamp(round(ratio), 1, COMP_RATIO_MAX))
    compressor = CompressorParams(
        threshold_db=get("compThreshold", comp.threshold_db, COMP_GAIN_MIN, COMP_GAIN_MAX),
        ratio=ratio,
        knee_db=get("compKnee", comp.knee_db, 0.0, COMP_KNEE_MAX),
        makeup_db=get("compGain", comp.makeup_db, COMP_GAIN_MIN, COMP_GAIN_MAX),
        attack_sec=get("compAttack", comp.attack_sec, 0.0, COMP_TIME_MAX),
        release_sec=get("compDecay", comp.release_sec, 0.0, COMP_TIME_MAX)
    )

    semitones = int(round(values.get("pitch", neutral.semitones)))
    tempo_ratio = values.get("tempo", neutral.tempo_ratio)
    if clamp:
        semitones = int(_clamp(semitones, -settings.max_semitones, settings.max_semitones))
        tempo_ratio = _clamp(tempo_ratio, settings.min_tempo_ratio, settings.max_tempo_ratio)

    return EffectParameters(
        eq_bands=tuple(bands),
        reverb=reverb,
        envelope=envelope,
        semitones=semitones,
        tempo_ratio=tempo_ratio,
        compressor=compressor
    )
