# backend/protocol/signature.py
"""
Binary signature encoding for the acoustic recognition service.

Wire layout (all integers little-endian):

    48 bytes header
        u32 magic1                       0xCAFE2580
        u32 crc32                        CRC32 of bytes [8, end)
        u32 size_minus_header            content bytes + 8
        u32 magic2                       0x94119C00
        u32 void[3]
        u32 shifted_sample_rate_id       3 << 27 (16 kHz)
        u32 void[2]
        u32 number_samples_plus_offset   samples + round(0.24 * rate)
        u32 fixed_value                  (15 << 19) + 0x40000
    u32 0x40000000
    u32 content bytes + 8
    per non-empty band, ascending band id:
        u32 tag                          0x60030040 + band id
        u32 payload length
        payload                          peaks, see below
        zero padding to a multiple of 4

    peak:
        [0xFF, u32 absolute frame]       only when frame - baseline >= 255
        u8  frame delta from baseline
        u16 magnitude
        u16 corrected bin

The result is base64 (no wrapping) behind "data:audio/vnd.shazam.sig;base64,".

Usage example:

    uri = encode_signature(signature)

    decoded = decode_signature(uri)
    assert decoded.signature.peaks(FrequencyBand.HZ_520_1450) == ...
"""

from __future__ import annotations

import base64
import binascii
import struct
import zlib
from dataclasses import dataclass
from typing import Iterable, Union

from constants import (
    BAND_PADDING_ALIGNMENT,
    PEAK_ABSOLUTE_FRAME_MARKER,
    PEAK_MAX_FRAME_DELTA,
    SIGNATURE_BAND_TAG_BASE,
    SIGNATURE_CONTENTS_MARKER,
    SIGNATURE_CRC_OFFSET,
    SIGNATURE_CRC_START,
    SIGNATURE_FIXED_VALUE,
    SIGNATURE_HEADER_BYTES,
    SIGNATURE_MAGIC1,
    SIGNATURE_MAGIC2,
    SIGNATURE_SAMPLE_RATE_IDS,
    SIGNATURE_SAMPLE_RATE_SHIFT,
    SIGNATURE_SAMPLES_OFFSET,
    SIGNATURE_URI_PREFIX,
)
from fingerprint.types import FrequencyBand, FrequencyPeak, Signature


# -------------------------
# Exceptions
# -------------------------

class SignatureProtocolError(Exception):
    """Base class for signature wire-format errors."""


class UnsupportedSampleRate(SignatureProtocolError):
    """
    Raised when a signature's sample rate has no known wire id.

    The id is an opaque protocol constant pinned to 16 kHz captures.
    """


class InvalidSignatureHeader(SignatureProtocolError):
    """
    Raised when a signature buffer is truncated, badly encoded, or its
    header fields (magics, marker, sizes) do not match the contract.
    """


class SignatureChecksumMismatch(SignatureProtocolError):
    """Raised when the stored CRC32 does not match bytes [8, end)."""


class MalformedBandPayload(SignatureProtocolError):
    """Raised when a band block or its peak stream cannot be parsed."""


# -------------------------
# Low-level helpers
# -------------------------

_HEADER = struct.Struct("<12I")
_CONTENTS_PREFIX = struct.Struct("<II")
_BAND_PREFIX = struct.Struct("<II")
_PEAK_BODY = struct.Struct("<BHH")

assert _HEADER.size == SIGNATURE_HEADER_BYTES


def _u32_le(value: int) -> bytes:
    return struct.pack("<I", value & 0xFFFFFFFF)


def _u16_le(value: int) -> bytes:
    return struct.pack("<H", value & 0xFFFF)


def _read_u32_le(buf: bytes, offset: int = 0) -> int:
    return struct.unpack_from("<I", buf, offset)[0]


def _padding(length: int) -> int:
    return (BAND_PADDING_ALIGNMENT - length % BAND_PADDING_ALIGNMENT) % BAND_PADDING_ALIGNMENT


def band_tag(band: FrequencyBand) -> int:
    return SIGNATURE_BAND_TAG_BASE + int(band)


def sample_rate_id(sample_rate_hz: int) -> int:
    try:
        return SIGNATURE_SAMPLE_RATE_IDS[sample_rate_hz]
    except KeyError:
        raise UnsupportedSampleRate(
            f"no signature sample rate id for {sample_rate_hz} Hz"
        ) from None


def signature_crc32(buf: bytes) -> int:
    """CRC32 over the checksum domain: bytes [8, end)."""
    return zlib.crc32(buf[SIGNATURE_CRC_START:]) & 0xFFFFFFFF


# -------------------------
# Encoding
# -------------------------

def encode_band_peaks(peaks: Iterable[FrequencyPeak]) -> bytes:
    """
    Delta-encode peaks ordered by ascending frame.

    A gap of 255 or more since the baseline emits 0xFF + absolute frame and
    moves the baseline there first, so every delta byte is < 255.
    """
    out = bytearray()
    baseline = 0

    for peak in peaks:
        if peak.frame - baseline >= PEAK_MAX_FRAME_DELTA:
            out.append(PEAK_ABSOLUTE_FRAME_MARKER)
            out += _u32_le(peak.frame)
            baseline = peak.frame

        out.append(peak.frame - baseline)
        out += _u16_le(peak.magnitude)
        out += _u16_le(peak.corrected_bin)
        baseline = peak.frame

    return bytes(out)


def encode_contents(signature: Signature) -> bytes:
    """Band blocks for every non-empty band, ascending band id."""
    out = bytearray()

    for band in FrequencyBand:
        peaks = signature.peaks(band)
        if not peaks:
            continue

        payload = encode_band_peaks(peaks)
        out += _BAND_PREFIX.pack(band_tag(band), len(payload))
        out += payload
        out += b"\x00" * _padding(len(payload))

    return bytes(out)


def encode_signature_bytes(signature: Signature) -> bytes:
    """
    Assemble the full binary signature, CRC included.

    Assumes a well-formed Signature; only the sample rate is checked,
    because it selects an opaque protocol id.
    """
    rate_id = sample_rate_id(signature.sample_rate_hz)

    contents = encode_contents(signature)
    size_minus_header = len(contents) + 8

    header = _HEADER.pack(
        SIGNATURE_MAGIC1,
        0,  # crc32, filled in below
        size_minus_header,
        SIGNATURE_MAGIC2,
        0, 0, 0,
        rate_id << SIGNATURE_SAMPLE_RATE_SHIFT,
        0, 0,
        (signature.number_samples + SIGNATURE_SAMPLES_OFFSET) & 0xFFFFFFFF,
        SIGNATURE_FIXED_VALUE,
    )

    buf = bytearray(header)
    buf += _CONTENTS_PREFIX.pack(SIGNATURE_CONTENTS_MARKER, size_minus_header)
    buf += contents

    struct.pack_into("<I", buf, SIGNATURE_CRC_OFFSET, signature_crc32(buf))

    return bytes(buf)


def encode_signature(signature: Signature) -> str:
    """Encode `signature` as a data URI."""
    b64 = base64.b64encode(encode_signature_bytes(signature)).decode("ascii")
    return SIGNATURE_URI_PREFIX + b64


# -------------------------
# Decoding
# -------------------------

@dataclass(frozen=True)
class SignatureHeader:
    """
    Parsed header fields.
    """
    crc32: int
    size_minus_header: int
    shifted_sample_rate_id: int
    number_samples_plus_offset: int
    fixed_value: int

    @property
    def sample_rate_id(self) -> int:
        return self.shifted_sample_rate_id >> SIGNATURE_SAMPLE_RATE_SHIFT

    @property
    def sample_rate_hz(self) -> int:
        for rate, rate_id in SIGNATURE_SAMPLE_RATE_IDS.items():
            if rate_id == self.sample_rate_id:
                return rate
        raise UnsupportedSampleRate(f"unknown sample rate id {self.sample_rate_id}")

    @property
    def number_samples(self) -> int:
        return self.number_samples_plus_offset - SIGNATURE_SAMPLES_OFFSET


@dataclass(frozen=True)
class DecodedSignature:
    """
    Result of decode_signature().
    """
    header: SignatureHeader
    signature: Signature
    raw: bytes


def signature_uri_to_bytes(uri: str) -> bytes:
    """
    Strip the data URI prefix and base64-decode.

    Raises:
        InvalidSignatureHeader for a wrong prefix or invalid base64.
    """
    if not uri.startswith(SIGNATURE_URI_PREFIX):
        raise InvalidSignatureHeader("missing signature data URI prefix")
    try:
        return base64.b64decode(uri[len(SIGNATURE_URI_PREFIX):], validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidSignatureHeader(f"invalid base64 payload: {e}") from e


def decode_band_peaks(payload: bytes) -> tuple[FrequencyPeak, ...]:
    """
    Reverse encode_band_peaks().

    Raises:
        MalformedBandPayload if the stream ends mid-peak.
    """
    peaks: list[FrequencyPeak] = []
    baseline = 0
    pos = 0

    while pos < len(payload):
        if payload[pos] == PEAK_ABSOLUTE_FRAME_MARKER:
            if pos + 5 > len(payload):
                raise MalformedBandPayload(f"truncated absolute frame at offset {pos}")
            baseline = _read_u32_le(payload, pos + 1)
            pos += 5

        if pos + _PEAK_BODY.size > len(payload):
            raise MalformedBandPayload(f"truncated peak at offset {pos}")

        delta, magnitude, corrected_bin = _PEAK_BODY.unpack_from(payload, pos)
        pos += _PEAK_BODY.size

        frame = baseline + delta
        peaks.append(FrequencyPeak(frame=frame, magnitude=magnitude, corrected_bin=corrected_bin))
        baseline = frame

    return tuple(peaks)


def decode_signature(payload: Union[str, bytes]) -> DecodedSignature:
    """
    Decode and verify a signature (data URI or raw bytes).

    Raises:
        InvalidSignatureHeader, SignatureChecksumMismatch,
        MalformedBandPayload, UnsupportedSampleRate.
    """
    buf = signature_uri_to_bytes(payload) if isinstance(payload, str) else bytes(payload)

    min_len = SIGNATURE_HEADER_BYTES + _CONTENTS_PREFIX.size
    if len(buf) < min_len:
        raise InvalidSignatureHeader(f"signature length {len(buf)} < {min_len}")

    fields = _HEADER.unpack_from(buf, 0)
    magic1, crc32, size_minus_header, magic2 = fields[0:4]
    shifted_rate_id, number_samples_plus_offset, fixed_value = fields[7], fields[10], fields[11]

    if magic1 != SIGNATURE_MAGIC1:
        raise InvalidSignatureHeader(f"bad magic1 0x{magic1:08x}")
    if magic2 != SIGNATURE_MAGIC2:
        raise InvalidSignatureHeader(f"bad magic2 0x{magic2:08x}")

    actual_crc = signature_crc32(buf)
    if actual_crc != crc32:
        raise SignatureChecksumMismatch(
            f"stored crc32 0x{crc32:08x} != computed 0x{actual_crc:08x}"
        )

    if size_minus_header != len(buf) - SIGNATURE_HEADER_BYTES:
        raise InvalidSignatureHeader(
            f"size_minus_header {size_minus_header} != {len(buf) - SIGNATURE_HEADER_BYTES}"
        )

    marker, contents_size = _CONTENTS_PREFIX.unpack_from(buf, SIGNATURE_HEADER_BYTES)
    if marker != SIGNATURE_CONTENTS_MARKER:
        raise InvalidSignatureHeader(f"bad contents marker 0x{marker:08x}")
    if contents_size != size_minus_header:
        raise InvalidSignatureHeader(
            f"contents size {contents_size} != size_minus_header {size_minus_header}"
        )

    header = SignatureHeader(
        crc32=crc32,
        size_minus_header=size_minus_header,
        shifted_sample_rate_id=shifted_rate_id,
        number_samples_plus_offset=number_samples_plus_offset,
        fixed_value=fixed_value,
    )

    peaks_by_band: dict[FrequencyBand, tuple[FrequencyPeak, ...]] = {}
    pos = min_len
    while pos < len(buf):
        if pos + _BAND_PREFIX.size > len(buf):
            raise MalformedBandPayload(f"truncated band header at offset {pos}")

        tag, length = _BAND_PREFIX.unpack_from(buf, pos)
        band_id = tag - SIGNATURE_BAND_TAG_BASE
        if not 0 <= band_id < len(FrequencyBand):
            raise MalformedBandPayload(f"unknown band tag 0x{tag:08x}")
        band = FrequencyBand(band_id)
        if band in peaks_by_band:
            raise MalformedBandPayload(f"duplicate band {band.name}")

        start = pos + _BAND_PREFIX.size
        end = start + length
        if end > len(buf):
            raise MalformedBandPayload(f"band {band.name} payload overruns buffer")

        peaks_by_band[band] = decode_band_peaks(buf[start:end])
        pos = end + _padding(length)

    signature = Signature(
        number_samples=header.number_samples,
        peaks_by_band=peaks_by_band,
        sample_rate_hz=header.sample_rate_hz,
    )

    return DecodedSignature(header=header, signature=signature, raw=buf)
