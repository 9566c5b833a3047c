"""Tests for configuration module."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

ENV_VARS = [
    "DATABASE_PATH", "LOG_LEVEL", "FETCH_TIMEOUT_SECONDS", "FETCH_RETRY_ATTEMPTS",
    "CONTENT_TTL_MINUTES", "METADATA_TTL_HOURS", "DEPENDENT_JOB_DELAY_MINUTES",
    "CONTENT_REFETCH_DELAY_MINUTES", "MAX_CONTENT_WAITS", "STUCK_JOB_MINUTES",
    "CONFIDENCE_HALF_LIFE_DAYS", "ANTHROPIC_API_KEY", "LLM_MODEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Ensure no .env file interferes and clear relevant env vars."""
    monkeypatch.chdir(tmp_path)
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)


def _load_config():
    from company_classifier.config import Config
    return Config(_env_file=None)


class TestConfig:
    def test_defaults(self):
        config = _load_config()
        assert config.database_path == "data/classifier.db"
        assert config.log_level == "INFO"
        assert config.content_ttl == timedelta(minutes=30)
        assert config.metadata_ttl == timedelta(hours=2)
        assert config.dependent_job_delay == timedelta(minutes=3)
        assert config.content_refetch_delay == timedelta(minutes=2)
        assert config.max_content_waits == 3
        assert config.confidence_half_life_days is None
        assert not config.llm_enabled

    def test_db_parent_dir_created(self, tmp_path, monkeypatch):
        db_path = tmp_path / "nested" / "dir" / "test.db"
        monkeypatch.setenv("DATABASE_PATH", str(db_path))
        _load_config()
        assert db_path.parent.exists()

    def test_log_level_uppercased(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert _load_config().log_level == "DEBUG"

    def test_invalid_log_level(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "VERBOSE")
        with pytest.raises(ValidationError):
            _load_config()

    @pytest.mark.parametrize("value,valid", [("0", True), ("5", True), ("-1", False), ("6", False)])
    def test_fetch_retry_range(self, monkeypatch, value, valid):
        monkeypatch.setenv("FETCH_RETRY_ATTEMPTS", value)
        if valid:
            assert _load_config().fetch_retry_attempts == int(value)
        else:
            with pytest.raises(ValidationError):
                _load_config()

    @pytest.mark.parametrize("value", ["-1", "11"])
    def test_content_waits_range(self, monkeypatch, value):
        monkeypatch.setenv("MAX_CONTENT_WAITS", value)
        with pytest.raises(ValidationError):
            _load_config()

    def test_ttl_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("CONTENT_TTL_MINUTES", "0")
        with pytest.raises(ValidationError):
            _load_config()

    def test_half_life_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("CONFIDENCE_HALF_LIFE_DAYS", "0")
        with pytest.raises(ValidationError):
            _load_config()

    def test_llm_enabled_with_key(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
        assert _load_config().llm_enabled
