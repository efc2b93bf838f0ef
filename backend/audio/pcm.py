"""PCM conversion utilities."""
import numpy as np


class InvalidPcmBuffer(ValueError):
    """
    Raised when a PCM16 buffer is empty or has an odd byte length.

    Precondition failure: reported before any processing begins.
    """


def validate_pcm16_bytes(pcm_bytes: bytes) -> None:
    """Raise InvalidPcmBuffer unless `pcm_bytes` holds at least one whole PCM16 sample."""
    if len(pcm_bytes) == 0:
        raise InvalidPcmBuffer("PCM buffer is empty")
    if len(pcm_bytes) % 2 != 0:
        raise InvalidPcmBuffer(f"PCM buffer length {len(pcm_bytes)} is not a multiple of 2")


def pcm16le_to_int16(pcm_bytes: bytes) -> np.ndarray:
    """
    Convert PCM16 little-endian bytes to a 1-D int16 array.

    Byte order is explicit, so the result does not depend on the host.
    No resampling. No channel mixing.

    Raises:
        InvalidPcmBuffer for empty or odd-length input.
    """
    validate_pcm16_bytes(pcm_bytes)
    return np.frombuffer(pcm_bytes, dtype="<i2").astype(np.int16)


def int16_to_pcm16le(samples: np.ndarray) -> bytes:
    """
    Clip to the int16 range and serialize as PCM16 little-endian bytes.
    """
    clipped = np.clip(np.rint(samples), -32768, 32767)
    return clipped.astype("<i2").tobytes()
