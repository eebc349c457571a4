"""Tests for shared CLI helpers."""

import pytest

from dbprofile.cli import common
from dbprofile.core.config import get_settings


@pytest.fixture
def captured(monkeypatch):
    """Record configure_logging calls instead of reconfiguring structlog."""
    calls = []
    monkeypatch.setattr(common, "configure_logging", lambda **kwargs: calls.append(kwargs))
    get_settings.cache_clear()
    yield calls
    get_settings.cache_clear()


class TestSetupLogging:
    def test_defaults_come_from_settings(self, monkeypatch, captured):
        monkeypatch.setenv("DBPROFILE_LOG_LEVEL", "ERROR")
        monkeypatch.setenv("DBPROFILE_LOG_FORMAT", "json")

        common.setup_logging()

        assert captured[0]["log_level"] == "ERROR"
        assert captured[0]["log_format"] == "json"
        assert captured[0]["color"] is False

    def test_flags_override_settings(self, monkeypatch, captured):
        monkeypatch.setenv("DBPROFILE_LOG_LEVEL", "ERROR")
        monkeypatch.setenv("DBPROFILE_LOG_FORMAT", "json")

        common.setup_logging(verbosity=2, log_format="console")

        assert captured[0]["log_level"] == "DEBUG"
        assert captured[0]["log_format"] == "console"
        assert captured[0]["show_timestamps"] is True

    def test_single_verbose_flag_is_info(self, monkeypatch, captured):
        monkeypatch.delenv("DBPROFILE_LOG_LEVEL", raising=False)

        common.setup_logging(verbosity=1)

        assert captured[0]["log_level"] == "INFO"
