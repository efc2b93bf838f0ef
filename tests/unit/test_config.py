# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from config import AppConfig
from constants import (
    CAPTURE_SAMPLE_RATE_HZ_DEFAULT,
    MAX_UPLOAD_BYTES_DEFAULT,
    RESAMPLE_CHUNK_BYTES_DEFAULT,
)

ENV_VARS = (
    "ENV",
    "LOG_LEVEL",
    "ENABLE_JSON_LOGS",
    "CAPTURE_SAMPLE_RATE_HZ",
    "MAX_UPLOAD_BYTES",
    "RESAMPLE_CHUNK_BYTES",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = AppConfig.load_from_env()

    assert config.env == "dev"
    assert config.log_level == "INFO"
    assert config.enable_json_logs is True
    assert config.capture_sample_rate_hz == CAPTURE_SAMPLE_RATE_HZ_DEFAULT
    assert config.max_upload_bytes == MAX_UPLOAD_BYTES_DEFAULT
    assert config.resample_chunk_bytes == RESAMPLE_CHUNK_BYTES_DEFAULT


def test_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ENV", "prod")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("ENABLE_JSON_LOGS", "0")
    monkeypatch.setenv("CAPTURE_SAMPLE_RATE_HZ", "48000")
    monkeypatch.setenv("MAX_UPLOAD_BYTES", "1024")
    monkeypatch.setenv("RESAMPLE_CHUNK_BYTES", "")

    config = AppConfig.load_from_env()

    assert config.env == "prod"
    assert config.log_level == "DEBUG"
    assert config.enable_json_logs is False
    assert config.capture_sample_rate_hz == 48000
    assert config.max_upload_bytes == 1024
    assert config.resample_chunk_bytes == RESAMPLE_CHUNK_BYTES_DEFAULT


@pytest.mark.parametrize("value", ["0", "-5", "abc"])
def test_invalid_numbers_rejected(monkeypatch: pytest.MonkeyPatch, value: str):
    monkeypatch.setenv("CAPTURE_SAMPLE_RATE_HZ", value)

    with pytest.raises(ValueError):
        AppConfig.load_from_env()


def test_config_is_immutable():
    config = AppConfig.load_from_env()

    with pytest.raises(AttributeError):
        config.env = "other"  # type: ignore[misc]
