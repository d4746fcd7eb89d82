"""
Data management - audio decoding, atomic writes, project descriptors.
"""

from samplefx.data.codec import SoundFileDecoder, SoundFileWriter, uri_to_path
from samplefx.data.descriptor import (
    AudioFileRecord,
    ParameterRecord,
    ProjectDescriptor,
    descriptor_from_parameters,
    parameters_from_descriptor,
)

__all__ = [
    "SoundFileDecoder",
    "SoundFileWriter",
    "uri_to_path",
    "AudioFileRecord",
    "ParameterRecord",
    "ProjectDescriptor",
    "descriptor_from_parameters",
    "parameters_from_descriptor",
]
