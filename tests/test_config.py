"""Tests for configuration loading and the JSON log formatter."""

import json
import logging

import pytest

from photo_stylizer.utils.config import get_config, load_config
from photo_stylizer.utils.errors import ConfigurationError
from photo_stylizer.utils.logger import JSONFormatter


def test_defaults():
    config = load_config()

    assert config.has_api_key is False
    assert config.proxy_url is None
    assert config.gemini_model == "gemini-2.5-flash-image-preview"
    assert config.request_timeout_seconds == 60
    assert config.upstream_max_attempts == 1
    assert config.progress_cap < 100
    assert get_config() is config


def test_environment_and_overrides(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "from-env")
    monkeypatch.setenv("PROGRESS_STEP", "5")

    config = load_config(GEMINI_MODEL="custom-model")

    assert config.gemini_api_key == "from-env"
    assert config.progress_step == 5
    assert config.gemini_model == "custom-model"


def test_blank_key_is_not_configured():
    assert load_config(GEMINI_API_KEY="   ").has_api_key is False


def test_invalid_value():
    with pytest.raises(ConfigurationError):
        load_config(PROGRESS_CAP="100")


def test_log_formatter_hides_payloads():
    record = logging.LogRecord("photo_stylizer.test", logging.INFO, __file__, 1, "hello", None, None)
    record.image = b"\xff\xd8" * 10
    record.image_data = "A" * 2000
    record.status = 200

    data = json.loads(JSONFormatter().format(record))

    assert data["message"] == "hello"
    assert data["image"] == "<bytes: 20 bytes>"
    assert len(data["image_data"]) < 600
    assert data["status"] == 200


def test_log_formatter_describes_data_urls():
    record = logging.LogRecord("photo_stylizer.test", logging.INFO, __file__, 1, "photo", None, None)
    record.photo = "data:image/png;base64," + "A" * 100
    record.nested = {"items": [b"\x00\x01"]}

    data = json.loads(JSONFormatter().format(record))

    assert data["photo"] == "<data-url: image/png, 122 chars>"
    assert data["nested"] == {"items": ["<bytes: 2 bytes>"]}
