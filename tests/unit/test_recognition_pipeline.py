# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
import json
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import numpy as np
import pytest

import recognition.pipeline as pipeline
from audio.cancellation import CancellationToken, OperationCancelled
from audio.formats import DecodedAudio, PcmEncoding, RawAudio, UnsupportedAudioFormat
from audio.pcm import InvalidPcmBuffer, int16_to_pcm16le
from audio.resampler import ResampleError
from constants import SIGNATURE_URI_PREFIX
from observability import logger
from protocol.signature import decode_signature


@pytest.fixture
def events(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    captured: list[dict[str, Any]] = []
    monkeypatch.setattr(logger, "_print", lambda line: captured.append(json.loads(line)))
    return captured


def event_types(events: list[dict[str, Any]]) -> list[str]:
    return [e["event_type"] for e in events]


def capture(sample_rate: int, seconds: float, *, freq_hz: float = 880.0, seed: int = 0) -> RawAudio:
    rng = np.random.default_rng(seed)
    t = np.arange(int(sample_rate * seconds)) / sample_rate
    x = 6000.0 * np.sin(2.0 * np.pi * freq_hz * t) + rng.normal(scale=800.0, size=len(t))
    return RawAudio(data=int16_to_pcm16le(x), channel_count=1, sample_rate=sample_rate)


# ---------------------------------------------------------------------
# Synchronous pipeline
# ---------------------------------------------------------------------

def test_resampled_capture_produces_signature(events: list[dict[str, Any]]):
    result = pipeline.generate_signature(capture(44100, 2.0))

    assert result.uri.startswith(SIGNATURE_URI_PREFIX)
    assert result.sample_duration_ms == 2000
    assert result.samples_consumed == (32000 // 128) * 128

    decoded = decode_signature(result.uri)
    assert decoded.signature == result.signature
    assert decoded.signature.peak_count == result.peak_count

    types = event_types(events)
    assert "RESAMPLE_COMPLETE" in types
    assert types[-1] == "SIGNATURE_GENERATED"
    metrics = [e["metric"] for e in events if e["event_type"] == "METRIC_TIMER"]
    assert metrics == ["resample_duration", "signature_generation"]


def test_fingerprint_rate_skips_resampling(events: list[dict[str, Any]]):
    raw = capture(16000, 1.0)

    result = pipeline.generate_signature(raw, request_id="req-1")

    assert result.sample_duration_ms == 1000
    assert "RESAMPLE_COMPLETE" not in event_types(events)
    skipped = [e for e in events if e["event_type"] == "RESAMPLE_SKIPPED"]
    assert skipped and skipped[0]["request_id"] == "req-1"

    generated = events[-1]
    assert generated["event_type"] == "SIGNATURE_GENERATED"
    assert generated["request_id"] == "req-1"
    assert generated["stop_reason"] == "input_exhausted"
    assert sum(generated["band_peaks"].values()) == generated["peak_count"]


def test_signature_from_pcm16_matches_pipeline(events: list[dict[str, Any]]):
    raw = capture(16000, 1.5, seed=3)

    assert pipeline.signature_from_pcm16(raw.data) == pipeline.generate_signature(raw).uri


def test_degenerate_input_still_encodes(events: list[dict[str, Any]]):
    uri = pipeline.signature_from_pcm16(b"\x10\x00" * 64)

    decoded = decode_signature(uri)
    assert decoded.header.number_samples_plus_offset == 3840
    assert decoded.signature.peak_count == 0
    assert len(decoded.raw) == 56


@pytest.mark.parametrize("data", [b"", b"\x00\x00\x00"])
def test_invalid_pcm_fails_before_any_work(events: list[dict[str, Any]], data: bytes):
    with pytest.raises(InvalidPcmBuffer):
        pipeline.generate_signature(RawAudio(data=data, channel_count=1, sample_rate=44100))

    assert not events


def test_multichannel_at_fingerprint_rate_is_rejected(events: list[dict[str, Any]]):
    raw = RawAudio(data=b"\x00\x00" * 512, channel_count=2, sample_rate=16000)

    with pytest.raises(UnsupportedAudioFormat):
        pipeline.generate_signature(raw)


def test_resample_failure_is_logged_and_raised(events: list[dict[str, Any]]):
    raw = DecodedAudio(
        data=b"\x00\x00" * 100,
        channel_count=1,
        sample_rate=44100,
        pcm_encoding=PcmEncoding.PCM_FLOAT,
    )

    with pytest.raises(ResampleError):
        pipeline.generate_signature(raw)

    failed = [e for e in events if e["event_type"] == "RESAMPLE_FAILED"]
    assert len(failed) == 1
    assert "SIGNATURE_GENERATED" not in event_types(events)


def test_cancellation_is_logged_and_propagated(events: list[dict[str, Any]]):
    token = CancellationToken()
    token.cancel("stop")

    with pytest.raises(OperationCancelled):
        pipeline.generate_signature(capture(44100, 0.5), cancel=token)

    types = event_types(events)
    assert "RESAMPLE_CANCELLED" in types
    assert "RESAMPLE_FAILED" not in types


# ---------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------

def test_concurrent_calls_match_sequential(events: list[dict[str, Any]]):
    captures = [capture(16000, 1.0, freq_hz=f, seed=i) for i, f in enumerate((440.0, 880.0, 1760.0, 3000.0))]
    sequential = [pipeline.generate_signature(c).uri for c in captures]

    with ThreadPoolExecutor(max_workers=4) as pool:
        threaded = list(pool.map(lambda c: pipeline.generate_signature(c).uri, captures))

    assert threaded == sequential


def test_async_matches_sync(events: list[dict[str, Any]]):
    raw = capture(22050, 1.0)

    async def run() -> list[str]:
        results = await asyncio.gather(
            pipeline.generate_signature_async(raw),
            pipeline.generate_signature_async(raw),
        )
        return [r.uri for r in results]

    uris = asyncio.run(run())

    assert uris[0] == uris[1] == pipeline.generate_signature(raw).uri


def test_cancelling_async_task_sets_worker_token(monkeypatch: pytest.MonkeyPatch):
    observed = threading.Event()

    def slow_generate(raw: RawAudio, *, cancel: CancellationToken, **_: Any):
        del raw
        deadline = time.monotonic() + 5.0
        while time.monotonic() < deadline:
            if cancel.cancelled:
                observed.set()
                raise OperationCancelled(cancel.reason or "cancelled")
            time.sleep(0.005)
        raise AssertionError("worker was never cancelled")

    monkeypatch.setattr(pipeline, "generate_signature", slow_generate)

    async def run() -> None:
        task = asyncio.create_task(pipeline.generate_signature_async(capture(16000, 0.1)))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(run())

    assert observed.wait(2.0)
