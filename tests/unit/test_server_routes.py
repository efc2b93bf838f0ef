# pylint: disable=missing-module-docstring,missing-function-docstring

import json
from typing import Any

import numpy as np
import pytest
from fastapi.testclient import TestClient

from audio.pcm import int16_to_pcm16le
from config import AppConfig
from constants import SIGNATURE_URI_PREFIX
from observability import logger
from protocol.signature import decode_signature
from server.app import create_app


def make_config(**overrides: Any) -> AppConfig:
    values: dict[str, Any] = {
        "env": "test",
        "log_level": "INFO",
        "enable_json_logs": True,
        "capture_sample_rate_hz": 44100,
        "max_upload_bytes": 1 << 20,
        "resample_chunk_bytes": 4096,
    }
    values.update(overrides)
    return AppConfig(**values)


@pytest.fixture
def events(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    captured: list[dict[str, Any]] = []
    monkeypatch.setattr(logger, "_print", lambda line: captured.append(json.loads(line)))
    return captured


def client_for(monkeypatch: pytest.MonkeyPatch, events: list[dict[str, Any]], **overrides: Any) -> TestClient:
    app = create_app(make_config(**overrides))
    # create_app selects the stdout sink; route events back to the capture list
    monkeypatch.setattr(logger, "_print", lambda line: events.append(json.loads(line)))
    return TestClient(app)


def pcm_tone(sample_rate: int, seconds: float) -> bytes:
    t = np.arange(int(sample_rate * seconds)) / sample_rate
    return int16_to_pcm16le(5000.0 * np.sin(2.0 * np.pi * 660.0 * t))


def test_health(monkeypatch: pytest.MonkeyPatch, events: list[dict[str, Any]]):
    client = client_for(monkeypatch, events)

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_signature_at_capture_rate_default(monkeypatch: pytest.MonkeyPatch, events: list[dict[str, Any]]):
    client = client_for(monkeypatch, events)

    response = client.post("/v1/signature", content=pcm_tone(44100, 1.0))

    assert response.status_code == 200
    body = response.json()
    assert body["uri"].startswith(SIGNATURE_URI_PREFIX)
    assert body["sample_duration_ms"] == 1000
    assert body["peak_count"] == decode_signature(body["uri"]).signature.peak_count
    assert any(e["event_type"] == "RESAMPLE_COMPLETE" for e in events)


def test_signature_with_explicit_sample_rate(monkeypatch: pytest.MonkeyPatch, events: list[dict[str, Any]]):
    client = client_for(monkeypatch, events)

    response = client.post("/v1/signature?sample_rate=16000", content=pcm_tone(16000, 0.5))

    assert response.status_code == 200
    assert response.json()["sample_duration_ms"] == 500
    assert any(e["event_type"] == "RESAMPLE_SKIPPED" for e in events)


@pytest.mark.parametrize("content", [b"", b"\x00\x00\x00"])
def test_invalid_pcm_is_400(monkeypatch: pytest.MonkeyPatch, events: list[dict[str, Any]], content: bytes):
    client = client_for(monkeypatch, events)

    response = client.post("/v1/signature", content=content)

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_audio"
    assert events[-1]["event_type"] == "SIGNATURE_REQUEST_REJECTED"


def test_stereo_at_fingerprint_rate_is_400(monkeypatch: pytest.MonkeyPatch, events: list[dict[str, Any]]):
    client = client_for(monkeypatch, events)

    response = client.post("/v1/signature?sample_rate=16000&channels=2", content=b"\x00\x00" * 256)

    assert response.status_code == 400


def test_partial_frame_resample_failure_is_422(monkeypatch: pytest.MonkeyPatch, events: list[dict[str, Any]]):
    client = client_for(monkeypatch, events)

    response = client.post("/v1/signature?channels=2", content=b"\x00" * 6)

    assert response.status_code == 422
    assert response.json()["error"] == "resample_failed"
    assert any(e["event_type"] == "SIGNATURE_REQUEST_FAILED" for e in events)


def test_oversized_body_is_413(monkeypatch: pytest.MonkeyPatch, events: list[dict[str, Any]]):
    client = client_for(monkeypatch, events, max_upload_bytes=64)

    response = client.post("/v1/signature", content=b"\x00\x00" * 64)

    assert response.status_code == 413
    assert events[-1]["status_code"] == 413


def test_non_positive_sample_rate_is_validation_error(monkeypatch: pytest.MonkeyPatch, events: list[dict[str, Any]]):
    client = client_for(monkeypatch, events)

    response = client.post("/v1/signature?sample_rate=0", content=b"\x00\x00")

    assert response.status_code == 422
