"""
Immutable PCM sample buffer passed between pipeline stages.
"""

from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray

from samplefx.core.exceptions import ConfigurationError


@dataclass(frozen=True)
class SampleBuffer:
    """
    Decoded audio owned by a single render request.

    Samples are stored interleaved (frame-major) as float32. Stages never
    write into ``samples``; they build a new buffer with ``with_samples``.
    """

    samples: NDArray[np.float32] = field(repr=False)
    sample_rate_hz: int
    channel_count: int = 1

    def __post_init__(self) -> None:
        if self.sample_rate_hz <= 0:
            raise ConfigurationError(
                f"Sample rate must be positive, got {self.sample_rate_hz}"
            )
        if self.channel_count < 1:
            raise ConfigurationError(
                f"Channel count must be at least 1, got {self.channel_count}"
            )

        samples = np.array(self.samples, dtype=np.float32).reshape(-1)
        if samples.size % self.channel_count != 0:
            raise ConfigurationError(
                f"{samples.size} samples do not divide into "
                f"{self.channel_count} channels"
            )
        samples.flags.writeable = False
        object.__setattr__(self, "samples", samples)

    def __len__(self) -> int:
        return int(self.samples.size)

    @property
    def frame_count(self) -> int:
        """Number of frames (samples per channel)."""
        return len(self) // self.channel_count

    @property
    def duration_seconds(self) -> float:
        """Buffer duration in seconds."""
        return self.frame_count / self.sample_rate_hz

    def frames(self) -> NDArray[np.float32]:
        """Return a writable copy shaped (frames, channels)."""
        return self.samples.reshape(self.frame_count, self.channel_count).copy()

    def with_samples(self, samples: NDArray) -> "SampleBuffer":
        """Build a new buffer with the same format and different samples."""
        array = np.asarray(samples, dtype=np.float32)
        if array.ndim == 2:
            return SampleBuffer.from_frames(array, self.sample_rate_hz)
        return SampleBuffer(array, self.sample_rate_hz, self.channel_count)

    @classmethod
    def from_frames(cls, frames: NDArray, sample_rate_hz: int) -> "SampleBuffer":
        """Build a buffer from a (frames, channels) array."""
        array = np.asarray(frames, dtype=np.float32)
        if array.ndim == 1:
            return cls(array, sample_rate_hz, 1)
        return cls(array.reshape(-1), sample_rate_hz, array.shape[1])
