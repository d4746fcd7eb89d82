"""
Offline effects for decoded sample buffers.

Provides the equalizer, reverb, envelope and compressor stages plus the
pitch/time backend interface.
"""

from samplefx.audio.buffer import SampleBuffer
from samplefx.audio.effects import (
    EQ_FREQUENCIES_HZ,
    EffectBase,
    Equalizer,
    EnvelopeShaper,
    ReverbProcessor,
    apply_envelope,
    apply_reverb,
)
from samplefx.audio.dynamics import DynamicsCompressor
from samplefx.audio.processors import AudioProcessor, PhaseVocoderProcessor

__all__ = [
    'SampleBuffer',
    'EQ_FREQUENCIES_HZ',
    'EffectBase',
    'Equalizer',
    'EnvelopeShaper',
    'ReverbProcessor',
    'apply_envelope',
    'apply_reverb',
    'DynamicsCompressor',
    'AudioProcessor',
    'PhaseVocoderProcessor',
]
