"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No pipeline logic
- No protocol constants (see constants.py; those are a wire contract)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import (
    CAPTURE_SAMPLE_RATE_HZ_DEFAULT,
    MAX_UPLOAD_BYTES_DEFAULT,
    RESAMPLE_CHUNK_BYTES_DEFAULT,
)


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the HTTP layer and CLI tools.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str
    log_level: str

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool

    # ------------------------------------------------------------------
    # Capture / ingest
    # ------------------------------------------------------------------

    capture_sample_rate_hz: int
    max_upload_bytes: int

    # ------------------------------------------------------------------
    # Resampling
    # ------------------------------------------------------------------

    resample_chunk_bytes: int

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a numeric variable is not an integer or not positive.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",

            capture_sample_rate_hz=_positive_int(
                "CAPTURE_SAMPLE_RATE_HZ", CAPTURE_SAMPLE_RATE_HZ_DEFAULT
            ),
            max_upload_bytes=_positive_int("MAX_UPLOAD_BYTES", MAX_UPLOAD_BYTES_DEFAULT),
            resample_chunk_bytes=_positive_int(
                "RESAMPLE_CHUNK_BYTES", RESAMPLE_CHUNK_BYTES_DEFAULT
            ),
        )


def _positive_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default

    value = int(raw)
    if value <= 0:
        raise ValueError(f"{name} must be > 0, got {value}")
    return value
