"""
Decoding source audio and committing processed audio to disk.
"""

import os
from pathlib import Path
import tempfile
from typing import Callable, Optional, Union
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

import numpy as np
import soundfile as sf

from samplefx.audio.buffer import SampleBuffer
from samplefx.core.config import settings
from samplefx.core.exceptions import DecodeError, PersistenceError
from samplefx.core.logging import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]


def uri_to_path(source_uri: PathLike) -> Path:
    """
    Resolve a filesystem path or ``file://`` URI.

    Raises:
        DecodeError: For any other URI scheme
    """
    if isinstance(source_uri, Path):
        return source_uri

    parsed = urlparse(source_uri)
    if parsed.scheme == "file":
        return Path(url2pathname(unquote(parsed.path)))
    # Single letters are Windows drive prefixes, not schemes
    if parsed.scheme == "" or len(parsed.scheme) == 1:
        return Path(source_uri)
    raise DecodeError(f"Unsupported audio URI scheme: {parsed.scheme}")


class SoundFileDecoder:
    """Decode any libsndfile-readable file into a float32 SampleBuffer."""

    def decode(self, source_uri: PathLike) -> SampleBuffer:
        """
        Decode a source file.

        Args:
            source_uri: Path or file:// URI

        Returns:
            Interleaved float32 buffer

        Raises:
            DecodeError: If the file is missing, unreadable or empty
        """
        path = uri_to_path(source_uri)
        if not path.is_file():
            raise DecodeError(f"Audio source not found: {path}")

        try:
            data, sample_rate = sf.read(str(path), dtype="float32", always_2d=True)
        except (sf.SoundFileError, RuntimeError, OSError) as e:
            raise DecodeError(f"Could not decode {path.name}: {e}") from e

        if data.size == 0:
            raise DecodeError(f"Audio source has no frames: {path}")

        logger.debug(
            "audio_decoded",
            source=str(path),
            sample_rate=sample_rate,
            channels=data.shape[1],
            frames=data.shape[0]
        )
        return SampleBuffer.from_frames(data, sample_rate)


class SoundFileWriter:
    """
    Persist processed audio and its parameter descriptor.

    Every write goes to a temporary file in the destination directory and is
    moved into place with ``os.replace``, so readers see either the previous
    file or the complete new one.
    """

    def __init__(self, subtype: Optional[str] = None):
        """
        Initialize writer.

        Args:
            subtype: libsndfile WAV subtype (defaults to settings.output_subtype)
        """
        self.subtype = subtype or settings.output_subtype

    def write_audio(self, buffer: SampleBuffer, destination: PathLike) -> Path:
        """Encode ``buffer`` as WAV at ``destination``."""
        destination = Path(destination)
        frames = np.clip(buffer.frames(), -1.0, 1.0)

        def write(tmp: str) -> None:
            sf.write(
                tmp,
                frames,
                buffer.sample_rate_hz,
                subtype=self.subtype,
                format="WAV"
            )

        self._atomic_write(destination, write)
        logger.info(
            "audio_committed",
            destination=str(destination),
            frames=buffer.frame_count,
            channels=buffer.channel_count
        )
        return destination

    def write_descriptor(self, descriptor, destination: PathLike) -> Path:
        """Write a ProjectDescriptor as JSON at ``destination``."""
        destination = Path(destination)
        content = descriptor.to_json()

        def write(tmp: str) -> None:
            Path(tmp).write_text(content, encoding="utf-8")

        self._atomic_write(destination, write)
        logger.info("descriptor_committed", destination=str(destination))
        return destination

    def _atomic_write(self, destination: Path, write: Callable[[str], None]) -> None:
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(
                prefix=f".{destination.name}.", suffix=".tmp", dir=destination.parent
            )
            os.close(fd)
        except OSError as e:
            raise PersistenceError(f"Cannot write to {destination.parent}: {e}") from e

        try:
            write(tmp)
            os.replace(tmp, destination)
        except Exception as e:
            Path(tmp).unlink(missing_ok=True)
            logger.error("commit_failed", destination=str(destination), error=str(e))
            raise PersistenceError(f"Failed to write {destination.name}: {e}") from e
