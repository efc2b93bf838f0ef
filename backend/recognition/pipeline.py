"""
Fingerprinting pipeline.

Responsibilities:
- Validate captured PCM before any processing
- Resample to the fingerprint rate (identity when already there)
- Enforce the fingerprint input format
- Run a fresh SignatureGenerator and encode the result
- Log outcomes and timings as JSONL events

Non-responsibilities:
- NO microphone capture
- NO network submission of the signature
- NO retries (callers decide)

Data flows strictly forward:
    raw bytes -> resampled PCM -> spectra -> spread spectra -> peaks -> signature
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from typing import Optional

from audio.cancellation import CancellationToken, OperationCancelled
from audio.formats import (
    DecodedAudio,
    RawAudio,
    ensure_fingerprint_format,
    sample_duration_ms,
)
from audio.pcm import pcm16le_to_int16, validate_pcm16_bytes
from audio.resampler import resample
from constants import FINGERPRINT_SAMPLE_RATE_HZ, RESAMPLE_CHUNK_BYTES_DEFAULT
from fingerprint.generator import SignatureGenerator
from fingerprint.types import Signature
from observability.logger import log_event
from observability.metrics import timed
from protocol.signature import encode_signature


@dataclass(frozen=True)
class SignatureResult:
    """
    Output of one fingerprinting call.

    uri:
        data:audio/vnd.shazam.sig;base64,... string.

    sample_duration_ms:
        Duration of the resampled audio, reported to the recognition service.

    peak_count:
        Total peaks encoded across all bands.

    samples_consumed:
        Samples the analyzer actually used (whole hops, stop rule applied).
    """
    uri: str
    sample_duration_ms: int
    peak_count: int
    samples_consumed: int
    signature: Signature


# ---------------------------------------------------------------------
# Fingerprinting (already at 16 kHz)
# ---------------------------------------------------------------------

def _fingerprint(audio: DecodedAudio, *, request_id: str) -> SignatureResult:
    ensure_fingerprint_format(audio)

    generator = SignatureGenerator()
    with timed("signature_generation", request_id=request_id):
        signature = generator.process(pcm16le_to_int16(audio.data))
        uri = encode_signature(signature)

    log_event({
        "event_type": "SIGNATURE_GENERATED",
        "request_id": request_id,
        "hops": generator.hops,
        "samples_consumed": signature.number_samples,
        "peak_count": signature.peak_count,
        "band_peaks": signature.band_counts(),
        "stop_reason": generator.stop_reason.value if generator.stop_reason else None,
    })

    return SignatureResult(
        uri=uri,
        sample_duration_ms=sample_duration_ms(audio),
        peak_count=signature.peak_count,
        samples_consumed=signature.number_samples,
        signature=signature,
    )


def signature_from_pcm16(data: bytes) -> str:
    """
    Fingerprint mono 16 kHz PCM16LE bytes and return the signature URI.

    Raises:
        audio.pcm.InvalidPcmBuffer for empty or odd-length input.
    """
    validate_pcm16_bytes(data)
    audio = DecodedAudio(data=data, channel_count=1, sample_rate=FINGERPRINT_SAMPLE_RATE_HZ)
    return _fingerprint(audio, request_id=_new_request_id()).uri


# ---------------------------------------------------------------------
# Full pipeline
# ---------------------------------------------------------------------

def generate_signature(
    raw: RawAudio,
    *,
    cancel: Optional[CancellationToken] = None,
    chunk_bytes: int = RESAMPLE_CHUNK_BYTES_DEFAULT,
    request_id: Optional[str] = None,
) -> SignatureResult:
    """
    Validate, resample and fingerprint captured audio.

    Raises:
        InvalidPcmBuffer         empty / odd-length input (before any work)
        ResampleError            conversion failed (carries the cause)
        UnsupportedAudioFormat   resampled audio is not mono PCM16 @ 16 kHz
        OperationCancelled       `cancel` was set during resampling
    """
    request_id = request_id or _new_request_id()

    validate_pcm16_bytes(raw.data)

    if raw.sample_rate == FINGERPRINT_SAMPLE_RATE_HZ:
        log_event({
            "event_type": "RESAMPLE_SKIPPED",
            "request_id": request_id,
            "sample_rate": raw.sample_rate,
        })
        audio = raw
    else:
        try:
            with timed(
                "resample_duration",
                request_id=request_id,
                details={"from_hz": raw.sample_rate, "to_hz": FINGERPRINT_SAMPLE_RATE_HZ},
            ):
                result = resample(
                    raw,
                    FINGERPRINT_SAMPLE_RATE_HZ,
                    cancel=cancel,
                    chunk_bytes=chunk_bytes,
                )
        except OperationCancelled as exc:
            log_event({
                "event_type": "RESAMPLE_CANCELLED",
                "request_id": request_id,
                "reason": str(exc),
            })
            raise

        if not result.ok:
            log_event({
                "event_type": "RESAMPLE_FAILED",
                "request_id": request_id,
                "from_hz": raw.sample_rate,
                "error": str(result.error),
                "cause": _cause_name(result.error),
            })

        audio = result.unwrap()

        log_event({
            "event_type": "RESAMPLE_COMPLETE",
            "request_id": request_id,
            "from_hz": raw.sample_rate,
            "to_hz": audio.sample_rate,
            "in_bytes": len(raw.data),
            "out_bytes": len(audio.data),
        })

    return _fingerprint(audio, request_id=request_id)


async def generate_signature_async(
    raw: RawAudio,
    *,
    chunk_bytes: int = RESAMPLE_CHUNK_BYTES_DEFAULT,
    request_id: Optional[str] = None,
) -> SignatureResult:
    """
    Run generate_signature() on the default executor.

    Cancelling the awaiting task sets the worker's token, so resampling
    unwinds at its next cancellation point; asyncio.CancelledError
    propagates to the caller.
    """
    loop = asyncio.get_running_loop()
    token = CancellationToken()

    def _call() -> SignatureResult:
        return generate_signature(
            raw,
            cancel=token,
            chunk_bytes=chunk_bytes,
            request_id=request_id,
        )

    try:
        return await loop.run_in_executor(None, _call)
    except asyncio.CancelledError:
        token.cancel("caller task cancelled")
        raise


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def _new_request_id() -> str:
    return uuid.uuid4().hex[:12]


def _cause_name(error: Optional[BaseException]) -> Optional[str]:
    cause = getattr(error, "cause", None)
    return type(cause).__name__ if cause is not None else None
