"""
Custom exceptions for the samplefx effects pipeline.
"""


class SampleFxError(Exception):
    """Base exception for all samplefx errors."""

    def __init__(self, message: str, code: str = "SAMPLEFX_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


class ConfigurationError(SampleFxError):
    """Invalid stage parameters, raised when a stage is constructed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="CONFIGURATION_ERROR")


class DecodeError(SampleFxError):
    """Source audio is missing, unreadable or corrupt."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="DECODE_ERROR")


class ProcessingError(SampleFxError):
    """Pitch-shift or time-stretch backend failure."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="PROCESSING_ERROR")


class RenderCancelledError(SampleFxError):
    """The caller cancelled a render before it completed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="RENDER_CANCELLED")


class PersistenceError(SampleFxError):
    """Writing processed audio or its descriptor failed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="PERSISTENCE_ERROR")


class DescriptorError(SampleFxError):
    """Parameter sidecar could not be parsed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="DESCRIPTOR_ERROR")
