# ============================================================================
# FILE: tests/unit/test_config.py
# ============================================================================
"""
Unit tests for settings loading and the bundled PipelineConfig
"""

import pytest
from pydantic import ValidationError

from medical_docintel.config import ExtractionSettings, LoggingSettings, OcrSettings, WorkerSettings
from medical_docintel.core.config import PipelineConfig, get_config, load_config, reload_config
from medical_docintel.core.enums import OcrEngine


def _isolate_env(monkeypatch, *names):
    """Make sure values loaded from a .env file are removed after the test."""
    for name in names:
        monkeypatch.setenv(name, "placeholder")
        monkeypatch.delenv(name)


def test_defaults():
    settings = OcrSettings(AWS_ACCESS_KEY_ID=None, AWS_SECRET_ACCESS_KEY=None, MISTRAL_API_KEY=None)

    assert settings.PRIMARY_OCR_ENGINE == OcrEngine.MISTRAL_OCR
    assert settings.FALLBACK_OCR_ENGINE == OcrEngine.AWS_TEXTRACT
    assert ExtractionSettings().CONFIDENCE_THRESHOLD == 0.85


def test_values_from_environment(monkeypatch):
    monkeypatch.setenv("WORKER_CONCURRENCY", "7")
    monkeypatch.setenv("JOB_MAX_ATTEMPTS", "5")

    settings = WorkerSettings()

    assert settings.WORKER_CONCURRENCY == 7
    assert settings.JOB_MAX_ATTEMPTS == 5


def test_invalid_log_level():
    with pytest.raises(ValidationError):
        LoggingSettings(LOG_LEVEL="CHATTY")


def test_to_dict_masks_secrets():
    config = PipelineConfig(ocr=OcrSettings(
        AWS_ACCESS_KEY_ID="AKIA123",
        AWS_SECRET_ACCESS_KEY="secret",
        MISTRAL_API_KEY=None,
    ))

    data = config.to_dict()

    assert data["ocr"]["AWS_ACCESS_KEY_ID"] == "***"
    assert data["ocr"]["AWS_SECRET_ACCESS_KEY"] == "***"
    # unset secrets stay None so they are visibly missing
    assert data["ocr"]["MISTRAL_API_KEY"] is None
    # may carry a password
    assert data["worker"]["REDIS_URL"] == "***"
    assert set(data) == {"ocr", "llm", "extraction", "worker", "logging"}


def test_load_config_from_env_file(tmp_path, monkeypatch):
    _isolate_env(monkeypatch, "LOG_LEVEL", "WORKER_CONCURRENCY")
    env_file = tmp_path / ".env"
    env_file.write_text("LOG_LEVEL=DEBUG\nWORKER_CONCURRENCY=3\n")

    config = load_config(env_file)

    assert config.logging.LOG_LEVEL == "DEBUG"
    assert config.worker.WORKER_CONCURRENCY == 3


def test_load_config_missing_env_file(tmp_path):
    config = load_config(tmp_path / "missing.env")
    assert isinstance(config, PipelineConfig)


def test_get_config_is_cached(monkeypatch):
    monkeypatch.setenv("WORKER_CONCURRENCY", "2")
    reload_config()
    first = get_config()

    monkeypatch.setenv("WORKER_CONCURRENCY", "9")

    assert get_config() is first
    reloaded = reload_config()
    assert reloaded is not first
    assert reloaded.worker.WORKER_CONCURRENCY == 9
    get_config.cache_clear()
