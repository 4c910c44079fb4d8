"""Tests for logging configuration helpers."""

import logging

import pytest
import structlog
from ordering.utils.logging import configure_logging, get_environment, get_log_level


@pytest.fixture()
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()


class TestLogLevel:
    def test_test_environment_is_quiet(self, monkeypatch):
        monkeypatch.delenv("ENVIRONMENT", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.setenv("PROTEAN_ENV", "test")

        assert get_environment() == "test"
        assert get_log_level() == "WARNING"

    def test_explicit_level_wins(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "error")
        assert get_log_level() == "ERROR"

    def test_production_defaults_to_info(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.setenv("ENVIRONMENT", "production")
        assert get_log_level() == "INFO"


def test_configure_logging_writes_log_files(tmp_path, monkeypatch, restore_logging):
    monkeypatch.setenv("LOG_LEVEL", "INFO")
    configure_logging(log_dir=str(tmp_path))

    structlog.get_logger("ordering.test").error("Something failed", order_id="ORD-1")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert (tmp_path / "ordering.log").exists()
    assert "Something failed" in (tmp_path / "ordering_error.log").read_text()
