"""Tests for solstatic.core.logging formatters and setup."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from solstatic.core.logging import DevFormatter, JSONFormatter, setup_logging


def _record(msg="Built CFG", level=logging.INFO, **extra):
    record = logging.LogRecord(
        name="solstatic.core.cfg",
        level=level,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestJSONFormatter:

    def test_basic_fields(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "solstatic.core.cfg"
        assert entry["message"] == "Built CFG"
        assert entry["line"] == 10
        assert "timestamp" in entry

    def test_context_fields(self):
        record = _record(path="/p/Token.sol", target="Token", function="f", duration_ms=1.5)
        entry = json.loads(JSONFormatter().format(record))
        assert entry["path"] == "/p/Token.sol"
        assert entry["target"] == "Token"
        assert entry["function"] == "f"
        assert entry["duration_ms"] == 1.5

    def test_absent_context_fields_omitted(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert "target" not in entry and "path" not in entry

    def test_exception(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = _record(level=logging.ERROR)
            record.exc_info = sys.exc_info()
        entry = json.loads(JSONFormatter().format(record))
        assert entry["exception"]["type"] == "ValueError"
        assert entry["exception"]["message"] == "bad"


class TestDevFormatter:

    def test_target_prefix(self):
        out = DevFormatter().format(_record(target="Token"))
        assert "[Token] Built CFG" in out
        assert "solstatic.core.cfg" in out

    def test_level_color(self):
        out = DevFormatter().format(_record(level=logging.WARNING))
        assert DevFormatter.COLORS["WARNING"] in out


class TestSetupLogging:

    def test_development_uses_dev_formatter(self, restore_root_logger):
        setup_logging("development", "DEBUG")
        (handler,) = restore_root_logger.handlers
        assert isinstance(handler.formatter, DevFormatter)
        assert restore_root_logger.level == logging.DEBUG

    def test_production_uses_json(self, restore_root_logger):
        setup_logging("production", "warning")
        (handler,) = restore_root_logger.handlers
        assert isinstance(handler.formatter, JSONFormatter)
        assert restore_root_logger.level == logging.WARNING

    def test_defaults_come_from_settings(self, restore_root_logger, monkeypatch):
        monkeypatch.setenv("SOLSTATIC_APP_ENV", "production")
        monkeypatch.setenv("SOLSTATIC_LOG_LEVEL", "ERROR")
        setup_logging()
        (handler,) = restore_root_logger.handlers
        assert isinstance(handler.formatter, JSONFormatter)
        assert restore_root_logger.level == logging.ERROR

    def test_quiets_solcx(self, restore_root_logger):
        setup_logging()
        assert logging.getLogger("solcx").level == logging.WARNING
