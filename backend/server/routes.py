"""
Route registration for the signature API.

Responsibilities:
- Define HTTP endpoints
- Translate pipeline errors into HTTP status codes
- Pull dependencies from app.state

Every request fingerprints with its own generator state; CPU work runs in
a worker thread so the event loop stays responsive.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from audio.formats import RawAudio, UnsupportedAudioFormat
from audio.pcm import InvalidPcmBuffer
from audio.resampler import ResampleError
from config import AppConfig
from observability.logger import log_event
from recognition.pipeline import generate_signature_async


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""
    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.post("/v1/signature")
    async def create_signature( # pyright: ignore[reportUnusedFunction]
        request: Request,
        sample_rate: Optional[int] = Query(default=None, gt=0),
        channels: int = Query(default=1, gt=0),
    ) -> JSONResponse:
        config: AppConfig = app.state.config

        body = await request.body()

        if len(body) > config.max_upload_bytes:
            return _reject(
                413,
                "payload_too_large",
                f"body of {len(body)} bytes exceeds {config.max_upload_bytes}",
            )

        raw = RawAudio(
            data=body,
            channel_count=channels,
            sample_rate=sample_rate or config.capture_sample_rate_hz,
        )

        try:
            result = await generate_signature_async(
                raw,
                chunk_bytes=config.resample_chunk_bytes,
            )
        except (InvalidPcmBuffer, UnsupportedAudioFormat) as exc:
            return _reject(400, "invalid_audio", str(exc))
        except ResampleError as exc:
            log_event({
                "event_type": "SIGNATURE_REQUEST_FAILED",
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            return JSONResponse(
                status_code=422,
                content={"error": "resample_failed", "message": str(exc)},
            )

        return JSONResponse(
            content={
                "uri": result.uri,
                "sample_duration_ms": result.sample_duration_ms,
                "peak_count": result.peak_count,
            }
        )


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _reject(status_code: int, error: str, message: str) -> JSONResponse:
    body: dict[str, Any] = {"error": error, "message": message}
    log_event({
        "event_type": "SIGNATURE_REQUEST_REJECTED",
        "status_code": status_code,
        **body,
    })
    return JSONResponse(status_code=status_code, content=body)
