"""
Sample-rate conversion to the fingerprint rate.

Responsibilities:
- Convert interleaved PCM16 audio from any rate to a target rate
- Expose a push/drain converter (configure -> queue input -> end of stream
  -> drain chunks -> reset)
- Check cooperative cancellation between drained chunks
- Report failures as a typed result, never as partial audio

Non-responsibilities:
- NO channel mixing (channel count is preserved)
- NO retries
- NO logging (the pipeline logs outcomes)

Resampling uses scipy's polyphase FIR (`resample_poly`) with the reduced
up/down ratio, e.g. 44100 -> 16000 is up=160, down=441.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy import signal

from audio.cancellation import CancellationToken, OperationCancelled
from audio.formats import DecodedAudio, PcmEncoding
from audio.pcm import int16_to_pcm16le
from constants import AUDIO_SAMPLE_WIDTH_BYTES, RESAMPLE_CHUNK_BYTES_DEFAULT


# -------------------------
# Exceptions
# -------------------------

class ResampleError(Exception):
    """
    Sample-rate conversion failed.

    `cause` (also chained as __cause__) is the original exception, if any.
    Callers decide whether to retry or abort.
    """

    def __init__(self, message: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause
        self.__cause__ = cause


class UnsupportedStreamFormat(ResampleError):
    """Raised by StreamingResampler.configure() for formats it cannot convert."""


# -------------------------
# Types
# -------------------------

@dataclass(frozen=True)
class AudioStreamFormat:
    """Format of the PCM stream entering or leaving the converter."""
    sample_rate: int
    channel_count: int
    encoding: PcmEncoding

    @property
    def bytes_per_frame(self) -> int:
        return AUDIO_SAMPLE_WIDTH_BYTES * self.channel_count


@dataclass(frozen=True)
class ResampleResult:
    """
    Outcome of resample().

    Exactly one of `audio` / `error` is set.
    """
    audio: Optional[DecodedAudio] = None
    error: Optional[ResampleError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> DecodedAudio:
        """Return the audio or raise the carried ResampleError."""
        if self.error is not None:
            raise self.error
        assert self.audio is not None
        return self.audio

    @staticmethod
    def success(audio: DecodedAudio) -> ResampleResult:
        return ResampleResult(audio=audio)

    @staticmethod
    def failure(error: ResampleError) -> ResampleResult:
        return ResampleResult(error=error)


# -------------------------
# Streaming converter
# -------------------------

class StreamingResampler:
    """
    Push/drain PCM16 sample-rate converter.

    Lifecycle:
    1. configure(input_format) -> output_format
    2. queue_input(bytes) any number of times
    3. queue_end_of_stream()
    4. output() until is_ended
    5. reset() (always; releases buffered input and output)

    Conversion happens once at end of stream over the whole queued input,
    so chunk boundaries never introduce filter edge artifacts.
    """

    def __init__(
        self,
        *,
        output_sample_rate: int,
        chunk_bytes: int = RESAMPLE_CHUNK_BYTES_DEFAULT,
    ) -> None:
        if output_sample_rate <= 0:
            raise ValueError("output_sample_rate must be > 0")
        if chunk_bytes <= 0:
            raise ValueError("chunk_bytes must be > 0")

        self._output_sample_rate = output_sample_rate
        self._chunk_bytes = chunk_bytes

        self._input_format: AudioStreamFormat | None = None
        self._pending: list[bytes] = []
        self._output = b""
        self._output_pos = 0
        self._input_ended = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def configure(self, input_format: AudioStreamFormat) -> AudioStreamFormat:
        """
        Prepare for a new stream and return the output format.

        Raises:
            UnsupportedStreamFormat for non-PCM16 encodings or invalid
            rate / channel values.
        """
        if input_format.encoding is not PcmEncoding.PCM_16BIT:
            raise UnsupportedStreamFormat(
                f"unsupported encoding: {input_format.encoding.value}"
            )
        if input_format.sample_rate <= 0:
            raise UnsupportedStreamFormat(
                f"invalid input sample rate: {input_format.sample_rate}"
            )
        if input_format.channel_count <= 0:
            raise UnsupportedStreamFormat(
                f"invalid channel count: {input_format.channel_count}"
            )

        self.reset()
        self._input_format = input_format

        return AudioStreamFormat(
            sample_rate=self._output_sample_rate,
            channel_count=input_format.channel_count,
            encoding=PcmEncoding.PCM_16BIT,
        )

    def queue_input(self, data: bytes) -> None:
        """
        Buffer input bytes.

        Raises:
            RuntimeError if not configured or after end of stream.
        """
        if self._input_format is None:
            raise RuntimeError("queue_input() before configure()")
        if self._input_ended:
            raise RuntimeError("queue_input() after queue_end_of_stream()")
        if data:
            self._pending.append(bytes(data))

    def queue_end_of_stream(self) -> None:
        """
        Mark the end of input and convert everything queued.

        Raises:
            ValueError if the queued input is not a whole number of frames.
        """
        if self._input_format is None:
            raise RuntimeError("queue_end_of_stream() before configure()")
        if self._input_ended:
            return

        self._input_ended = True
        data = b"".join(self._pending)
        self._pending.clear()

        self._output = self._convert(data, self._input_format)
        self._output_pos = 0

    def output(self) -> bytes:
        """
        Return the next chunk of converted bytes.

        Returns b"" when nothing is pending (before end of stream, or once
        drained).
        """
        if self._output_pos >= len(self._output):
            return b""

        end = min(self._output_pos + self._chunk_bytes, len(self._output))
        # Keep chunks frame-aligned
        frame_bytes = AUDIO_SAMPLE_WIDTH_BYTES * (
            self._input_format.channel_count if self._input_format else 1
        )
        if end < len(self._output):
            end -= (end - self._output_pos) % frame_bytes
            if end <= self._output_pos:
                end = min(self._output_pos + frame_bytes, len(self._output))

        chunk = self._output[self._output_pos:end]
        self._output_pos = end
        return chunk

    @property
    def is_ended(self) -> bool:
        """True once end of stream was queued and all output was drained."""
        return self._input_ended and self._output_pos >= len(self._output)

    def reset(self) -> None:
        """Drop all buffered state. Safe to call at any time, any number of times."""
        self._input_format = None
        self._pending = []
        self._output = b""
        self._output_pos = 0
        self._input_ended = False

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _convert(self, data: bytes, fmt: AudioStreamFormat) -> bytes:
        if len(data) % fmt.bytes_per_frame != 0:
            raise ValueError(
                f"input length {len(data)} is not a multiple of frame size {fmt.bytes_per_frame}"
            )
        if not data:
            return b""

        if fmt.sample_rate == self._output_sample_rate:
            return data

        g = math.gcd(self._output_sample_rate, fmt.sample_rate)
        up = self._output_sample_rate // g
        down = fmt.sample_rate // g

        frames = np.frombuffer(data, dtype="<i2").reshape(-1, fmt.channel_count)
        resampled = signal.resample_poly(frames.astype(np.float64), up, down, axis=0)

        # Row-major int16 output keeps channels interleaved
        return int16_to_pcm16le(resampled)


# -------------------------
# One-shot API
# -------------------------

def resample(
    audio: DecodedAudio,
    output_sample_rate: int,
    *,
    cancel: Optional[CancellationToken] = None,
    chunk_bytes: int = RESAMPLE_CHUNK_BYTES_DEFAULT,
) -> ResampleResult:
    """
    Convert `audio` to `output_sample_rate`.

    - Same rate: returns the input object unchanged.
    - Otherwise: push all input, signal end of stream, drain all chunks
      into one buffer.

    Cancellation is checked between drained chunks and propagates as
    OperationCancelled; it is never reported as a failure. Every other
    exception becomes a failed ResampleResult carrying the cause. The
    converter is reset before returning on every path.
    """
    if audio.sample_rate == output_sample_rate:
        return ResampleResult.success(audio)

    converter: StreamingResampler | None = None
    try:
        converter = StreamingResampler(
            output_sample_rate=output_sample_rate,
            chunk_bytes=chunk_bytes,
        )
        output_format = converter.configure(
            AudioStreamFormat(
                sample_rate=audio.sample_rate,
                channel_count=audio.channel_count,
                encoding=audio.pcm_encoding,
            )
        )

        converter.queue_input(audio.data)
        converter.queue_end_of_stream()

        chunks: list[bytes] = []
        while not converter.is_ended:
            if cancel is not None:
                cancel.raise_if_cancelled()
            chunk = converter.output()
            if chunk:
                chunks.append(chunk)

        data = chunks[0] if len(chunks) == 1 else b"".join(chunks)

        return ResampleResult.success(
            DecodedAudio(
                data=data,
                channel_count=output_format.channel_count,
                sample_rate=output_format.sample_rate,
                pcm_encoding=output_format.encoding,
            )
        )

    except OperationCancelled:
        raise

    except ResampleError as exc:
        return ResampleResult.failure(exc)

    except Exception as exc:  # pylint: disable=broad-exception-caught
        # A cancel that raced with the failure still wins
        if cancel is not None:
            cancel.raise_if_cancelled()
        return ResampleResult.failure(
            ResampleError(f"resampling failed: {type(exc).__name__}: {exc}", cause=exc)
        )

    finally:
        if converter is not None:
            converter.reset()
