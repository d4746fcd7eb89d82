"""
Offline effects pipeline.

Runs the fixed stage chain over a decoded buffer:
Equalizer -> Reverb -> Envelope -> Pitch shift -> Time stretch -> Compressor
"""

from pathlib import Path
import threading
import time
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional, Tuple

import numpy as np

from samplefx.audio.buffer import SampleBuffer
from samplefx.audio.processors import AudioProcessor
from samplefx.core.config import settings
from samplefx.core.exceptions import ProcessingError, RenderCancelledError, SampleFxError
from samplefx.core.logging import get_logger
from samplefx.data.codec import PathLike, SoundFileDecoder, SoundFileWriter
from samplefx.pipeline.parameters import (
    CompressorParams,
    EffectParameters,
    EnvelopeParams,
    EqBand,
    ReverbParams,
)

if TYPE_CHECKING:
    from samplefx.data.descriptor import ProjectDescriptor

logger = get_logger(__name__)

Stage = Tuple[str, Callable[[SampleBuffer], SampleBuffer]]


class PipelineOrchestrator:
    """
    Composes the effect stages over one buffer per call.

    Holds no per-render state, so one instance can serve concurrent renders
    from a worker pool.
    """

    def __init__(
        self,
        audio_processor: AudioProcessor,
        decoder: Optional[SoundFileDecoder] = None,
        writer: Optional[SoundFileWriter] = None
    ):
        """
        Initialize orchestrator.

        Args:
            audio_processor: Pitch-shift / time-stretch backend
            decoder: Source decoder (defaults to SoundFileDecoder)
            writer: Audio and descriptor writer (defaults to SoundFileWriter)
        """
        self.audio_processor = audio_processor
        self.decoder = decoder or SoundFileDecoder()
        self.writer = writer or SoundFileWriter()

    def process(
        self,
        buffer: SampleBuffer,
        parameters: EffectParameters,
        cancel_event: Optional[threading.Event] = None
    ) -> SampleBuffer:
        """
        Apply every configured stage to ``buffer``.

        All stages are constructed before any audio is touched, so invalid
        parameters fail fast with ConfigurationError.

        Args:
            buffer: Decoded source audio
            parameters: Stage configuration
            cancel_event: Checked before each stage

        Returns:
            New processed buffer
        """
        stages = self._build_stages(buffer, parameters)
        start = time.perf_counter()

        logger.info(
            "render_started",
            frames=buffer.frame_count,
            sample_rate=buffer.sample_rate_hz,
            channels=buffer.channel_count,
            stages=[name for name, _ in stages]
        )

        current = buffer
        for name, stage in stages:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("render_cancelled", before_stage=name)
                raise RenderCancelledError(f"Render cancelled before {name}")
            current = stage(current)
            logger.debug("stage_applied", stage=name, frames=current.frame_count)

        logger.info(
            "render_completed",
            frames=current.frame_count,
            elapsed_ms=round((time.perf_counter() - start) * 1000, 2)
        )
        return current

    def render(
        self,
        raw_audio_uri: PathLike,
        eq_bands: Iterable[EqBand] = (),
        reverb: Optional[ReverbParams] = None,
        envelope: Optional[EnvelopeParams] = None,
        compressor: Optional[CompressorParams] = None,
        semitones: int = 0,
        tempo_ratio: float = 1.0,
        cancel_event: Optional[threading.Event] = None
    ) -> SampleBuffer:
        """Decode ``raw_audio_uri`` and process it."""
        parameters = EffectParameters(
            eq_bands=tuple(eq_bands),
            reverb=reverb or ReverbParams(),
            envelope=envelope or EnvelopeParams(),
            semitones=semitones,
            tempo_ratio=tempo_ratio,
            compressor=compressor or CompressorParams()
        )
        buffer = self.decoder.decode(raw_audio_uri)
        return self.process(buffer, parameters, cancel_event)

    def render_to_project(
        self,
        raw_audio_uri: PathLike,
        parameters: EffectParameters,
        project_dir: PathLike,
        audio_file_name: str,
        volume: float = 1.0,
        cancel_event: Optional[threading.Event] = None
    ) -> "ProjectDescriptor":
        """
        Render a source and commit the result with its descriptor.

        Parameters are rounded to the descriptor's 32-bit precision before
        processing, so the recorded values are exactly the applied ones.
        Nothing is written unless processing succeeds.

        Returns:
            The descriptor written next to the audio
        """
        from samplefx.data.descriptor import (
            descriptor_from_parameters,
            parameters_from_descriptor,
        )

        recorded = descriptor_from_parameters(parameters, audio_file_name, volume)
        applied = parameters_from_descriptor(recorded, audio_file_name, clamp=False)

        buffer = self.decoder.decode(raw_audio_uri)
        processed = self.process(buffer, applied, cancel_event)

        if cancel_event is not None and cancel_event.is_set():
            logger.info("render_cancelled", before_stage="commit")
            raise RenderCancelledError("Render cancelled before commit")

        descriptor = descriptor_from_parameters(
            applied, audio_file_name, volume, processed.duration_seconds
        )
        project_dir = Path(project_dir)
        self.writer.write_audio(processed, project_dir / audio_file_name)
        self.writer.write_descriptor(
            descriptor, project_dir / settings.descriptor_filename
        )
        return descriptor

    def _build_stages(
        self, buffer: SampleBuffer, parameters: EffectParameters
    ) -> List[Stage]:
        sample_rate = buffer.sample_rate_hz
        channels = buffer.channel_count

        equalizer = parameters.build_equalizer(sample_rate)
        reverb = parameters.reverb.build(sample_rate)
        envelope = parameters.envelope.build(sample_rate)
        compressor = parameters.compressor.build(sample_rate)

        def effect(processor) -> Callable[[SampleBuffer], SampleBuffer]:
            return lambda buf: buf.with_samples(processor.process(buf.samples, channels))

        stages: List[Stage] = [
            ("equalizer", effect(equalizer)),
            ("reverb", effect(reverb)),
            ("envelope", effect(envelope)),
        ]

        if parameters.semitones != 0:
            stages.append(("pitch_shift", lambda buf: self._pitch_shift(buf, parameters.semitones)))
        else:
            logger.debug("pitch_shift_skipped")

        if parameters.tempo_ratio != 1.0:
            stages.append(("time_stretch", lambda buf: self._time_stretch(buf, parameters.tempo_ratio)))
        else:
            logger.debug("time_stretch_skipped")

        stages.append(("compressor", effect(compressor)))
        return stages

    def _pitch_shift(self, buffer: SampleBuffer, semitones: int) -> SampleBuffer:
        shifted = self._call_backend(
            "pitch_shift", self.audio_processor.pitch_shift, buffer, semitones
        )
        if shifted.shape[0] != buffer.frame_count:
            raise ProcessingError(
                f"pitch_shift returned {shifted.shape[0]} frames, "
                f"expected {buffer.frame_count}"
            )
        return SampleBuffer.from_frames(shifted, buffer.sample_rate_hz)

    def _time_stretch(self, buffer: SampleBuffer, tempo_ratio: float) -> SampleBuffer:
        stretched = self._call_backend(
            "time_stretch", self.audio_processor.time_stretch, buffer, tempo_ratio
        )
        return SampleBuffer.from_frames(stretched, buffer.sample_rate_hz)

    def _call_backend(self, name: str, method, buffer: SampleBuffer, amount) -> np.ndarray:
        """
        Invoke a backend method on mono or (frames, channels) audio.

        Returns:
            Backend output shaped (frames, channels)

        Raises:
            ProcessingError: If the backend fails or returns audio with a
                different channel layout
        """
        channels = buffer.channel_count
        frames = buffer.frames()
        samples = frames[:, 0] if channels == 1 else frames
        try:
            result = np.asarray(method(samples, amount), dtype=np.float32)
        except SampleFxError:
            logger.error("backend_failed", stage=name, amount=amount)
            raise
        except Exception as e:
            logger.error("backend_failed", stage=name, amount=amount, error=str(e))
            raise ProcessingError(f"{name} failed: {e}") from e

        expected_ndim = 1 if channels == 1 else 2
        if result.ndim != expected_ndim or (channels > 1 and result.shape[1] != channels):
            logger.error("backend_output_invalid", stage=name, shape=result.shape)
            raise ProcessingError(
                f"{name} returned shape {result.shape} for {channels} channel(s)"
            )

        return np.nan_to_num(result.reshape(-1, channels))


def render(
    raw_audio_uri: PathLike,
    eq_bands: Iterable[EqBand],
    reverb_params: ReverbParams,
    adsr_params: EnvelopeParams,
    compressor_params: CompressorParams,
    semitones: int,
    tempo_ratio: float,
    audio_processor: AudioProcessor,
    decoder: Optional[SoundFileDecoder] = None
) -> SampleBuffer:
    """
    Decode and process one source in a single call.

    Returns:
        Processed buffer ready for encoding
    """
    orchestrator = PipelineOrchestrator(audio_processor, decoder=decoder)
    return orchestrator.render(
        raw_audio_uri,
        eq_bands=eq_bands,
        reverb=reverb_params,
        envelope=adsr_params,
        compressor=compressor_params,
        semitones=semitones,
        tempo_ratio=tempo_ratio
    )
