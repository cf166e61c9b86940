"""Tests for pacer.core.settings.

Covers:
- PacerSettings defaults
- PACER_* environment overrides
- Validation of out-of-range values
- get_settings caching
"""

import pytest
from pydantic import ValidationError

from pacer.core.settings import PacerSettings, clear_settings_cache, get_settings


class TestPacerSettingsDefaults:
    def test_scheduling_defaults(self):
        s = PacerSettings()
        assert s.concurrency == 1
        assert s.delay == 0.0
        assert s.timeout == 0.0
        assert s.retry_delay == 0.0
        assert s.max_retries == 0
        assert s.max_total_errors is None
        assert s.poll_interval == pytest.approx(0.05)

    def test_logging_defaults(self):
        s = PacerSettings()
        assert s.log_level == "INFO"
        assert s.log_format == "auto"


class TestPacerSettingsEnvOverride:
    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("PACER_CONCURRENCY", "8")
        monkeypatch.setenv("PACER_DELAY", "0.25")
        monkeypatch.setenv("PACER_MAX_TOTAL_ERRORS", "3")
        s = PacerSettings()
        assert s.concurrency == 8
        assert s.delay == pytest.approx(0.25)
        assert s.max_total_errors == 3

    def test_unprefixed_env_is_ignored(self, monkeypatch):
        monkeypatch.setenv("CONCURRENCY", "8")
        assert PacerSettings().concurrency == 1

    def test_unknown_pacer_env_is_ignored(self, monkeypatch):
        monkeypatch.setenv("PACER_NOT_A_FIELD", "x")
        PacerSettings()

    def test_invalid_concurrency_rejected(self, monkeypatch):
        monkeypatch.setenv("PACER_CONCURRENCY", "0")
        with pytest.raises(ValidationError):
            PacerSettings()

    def test_invalid_log_format_rejected(self, monkeypatch):
        monkeypatch.setenv("PACER_LOG_FORMAT", "xml")
        with pytest.raises(ValidationError):
            PacerSettings()


class TestGetSettings:
    def test_cached(self):
        assert get_settings() is get_settings()

    def test_force_reload_rereads_env(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("PACER_MAX_RETRIES", "4")
        assert get_settings().max_retries == first.max_retries
        assert get_settings(_force_reload=True).max_retries == 4

    def test_clear_cache(self, monkeypatch):
        first = get_settings()
        clear_settings_cache()
        assert get_settings() is not first
