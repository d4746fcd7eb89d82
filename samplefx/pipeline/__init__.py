"""
Render pipeline: effect parameters and the stage orchestrator.
"""

from samplefx.pipeline.parameters import (
    CompressorParams,
    EffectParameters,
    EnvelopeParams,
    EqBand,
    ReverbParams,
)
from samplefx.pipeline.orchestrator import PipelineOrchestrator, render

__all__ = [
    "CompressorParams",
    "EffectParameters",
    "EnvelopeParams",
    "EqBand",
    "ReverbParams",
    "PipelineOrchestrator",
    "render",
]
