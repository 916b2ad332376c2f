"""Tests for configuration loading."""

import pytest

from tuition_intel.config import EngineConfig, get_api_key, get_data_dir
from tuition_intel.exceptions import ConfigurationError


class TestGetApiKey:
    def test_explicit_wins(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_API_KEY", "env-key")
        assert get_api_key("explicit") == "explicit"

    def test_google_before_gemini(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_API_KEY", "google-key")
        monkeypatch.setenv("GEMINI_API_KEY", "gemini-key")
        assert get_api_key() == "google-key"

    def test_placeholder_skipped(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_API_KEY", "your_api_key_here")
        monkeypatch.setenv("GEMINI_API_KEY", "gemini-key")
        assert get_api_key() == "gemini-key"

    def test_missing(self):
        with pytest.raises(ConfigurationError, match="API key not found"):
            get_api_key()


class TestDataDir:
    def test_env_override(self, tmp_path):
        assert get_data_dir() == (tmp_path / "data").resolve()

    def test_default(self, monkeypatch, tmp_path):
        monkeypatch.delenv("TUITION_DATA_DIR")
        monkeypatch.setenv("HOME", str(tmp_path))
        assert get_data_dir().name == ".tuition-intel-data"


class TestEngineConfig:
    def test_defaults(self):
        config = EngineConfig()
        assert config.model == "gemini-2.5-flash"
        assert config.max_retries == 3
        assert config.ai_review_mode == "borderline"
        assert config.batch_delay_s == 2.0
        assert config.request_timeout_s == 120.0

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("TUITION_MAX_RETRIES", "5")
        monkeypatch.setenv("TUITION_VERIFY", "false")
        monkeypatch.setenv("TUITION_AI_REVIEW", "always")
        monkeypatch.setenv("TUITION_BATCH_DELAY_S", "0.5")

        config = EngineConfig.from_env()

        assert config.max_retries == 5
        assert config.verification_enabled is False
        assert config.ai_review_mode == "always"
        assert config.batch_delay_s == 0.5

    def test_bad_integer(self, monkeypatch):
        monkeypatch.setenv("TUITION_MAX_RETRIES", "three")
        with pytest.raises(ConfigurationError):
            EngineConfig.from_env()

    def test_bad_review_mode(self):
        with pytest.raises(ConfigurationError):
            EngineConfig(ai_review_mode="sometimes")
