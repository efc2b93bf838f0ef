"""
Audio buffer primitives.

Pure data containers plus format predicates.
No resampling, no DSP, no IO.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from audio.pcm import validate_pcm16_bytes
from constants import (
    AUDIO_SAMPLE_WIDTH_BYTES,
    FINGERPRINT_CHANNELS,
    FINGERPRINT_SAMPLE_RATE_HZ,
)


class PcmEncoding(str, Enum):
    """
    Sample encoding tag carried next to a PCM buffer.

    PCM_16BIT is signed 16-bit little-endian; the fingerprinter accepts
    nothing else.
    """
    PCM_16BIT = "pcm_16bit"
    PCM_FLOAT = "pcm_float"


class UnsupportedAudioFormat(ValueError):
    """
    Raised when audio handed to the fingerprinter is not mono PCM16LE
    at the fingerprint sample rate.
    """


@dataclass(frozen=True)
class DecodedAudio:
    """
    Interleaved PCM audio with its format metadata.

    data:
        Raw PCM bytes. For PCM_16BIT: signed 16-bit little-endian samples.

    channel_count:
        Number of interleaved channels.

    sample_rate:
        Samples per second per channel.

    pcm_encoding:
        Sample encoding tag.
    """
    data: bytes
    channel_count: int
    sample_rate: int
    pcm_encoding: PcmEncoding = PcmEncoding.PCM_16BIT

    @property
    def num_frames(self) -> int:
        """Samples per channel (incomplete trailing frames excluded)."""
        return len(self.data) // (AUDIO_SAMPLE_WIDTH_BYTES * max(self.channel_count, 1))


# Raw microphone capture has the same shape; the alias keeps call sites honest
# about which side of the resampler a buffer is on.
RawAudio = DecodedAudio


def sample_duration_ms(audio: DecodedAudio) -> int:
    """
    Integer duration of `audio` in milliseconds (floor).

    This is the duration reported alongside a signature to the
    recognition service.
    """
    if audio.sample_rate <= 0:
        return 0
    return audio.num_frames * 1000 // audio.sample_rate


def ensure_fingerprint_format(audio: DecodedAudio) -> None:
    """
    Fail fast unless `audio` can be fed to the fingerprinter as-is.

    Checks channel count, sample rate, encoding tag (little-endian PCM16 by
    definition) and byte length.

    Raises:
        UnsupportedAudioFormat for a format mismatch.
        audio.pcm.InvalidPcmBuffer for empty / odd-length data.
    """
    if audio.channel_count != FINGERPRINT_CHANNELS:
        raise UnsupportedAudioFormat(
            f"expected {FINGERPRINT_CHANNELS} channel, got {audio.channel_count}"
        )
    if audio.sample_rate != FINGERPRINT_SAMPLE_RATE_HZ:
        raise UnsupportedAudioFormat(
            f"expected {FINGERPRINT_SAMPLE_RATE_HZ} Hz, got {audio.sample_rate} Hz"
        )
    if audio.pcm_encoding is not PcmEncoding.PCM_16BIT:
        raise UnsupportedAudioFormat(
            f"expected {PcmEncoding.PCM_16BIT.value}, got {audio.pcm_encoding.value}"
        )

    validate_pcm16_bytes(audio.data)
