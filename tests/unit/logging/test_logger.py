# tests/unit/logging/test_logger.py — v1
"""Tests for logging/logger.py — logger factory and formatters."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from copilens.logging.context import clear_context, set_document_context, set_operation_context
from copilens.logging.logger import JsonFormatter, TextFormatter, get_logger, setup_logging


def _record(msg: str = "Hello") -> logging.LogRecord:
    return logging.LogRecord(
        name="test", level=logging.INFO, pathname="", lineno=0,
        msg=msg, args=(), exc_info=None,
    )


class TestJsonFormatter:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_format_basic(self):
        parsed = json.loads(JsonFormatter().format(_record()))
        assert parsed["level"] == "INFO"
        assert parsed["message"] == "Hello"
        assert "timestamp" in parsed
        assert "context" not in parsed

    def test_format_with_context(self):
        set_document_context("/ws/A.java", "A.run")
        set_operation_context("inspect", cache_key="/ws/A.java")
        parsed = json.loads(JsonFormatter().format(_record()))
        assert parsed["context"] == {
            "document_key": "/ws/A.java",
            "symbol": "A.run",
            "operation": "inspect",
            "cache_key": "/ws/A.java",
        }

    def test_format_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = logging.LogRecord(
                name="test", level=logging.ERROR, pathname="", lineno=0,
                msg="failed", args=(), exc_info=sys.exc_info(),
            )
        parsed = json.loads(JsonFormatter().format(record))
        assert "RuntimeError: boom" in parsed["exception"]


class TestTextFormatter:
    def teardown_method(self):
        clear_context()

    def test_format_basic(self):
        output = TextFormatter().format(_record("Hello text"))
        assert "Hello text" in output
        assert "INFO" in output

    def test_format_with_context(self):
        set_document_context("/ws/A.java", "A.run")
        set_operation_context("inspect")
        output = TextFormatter().format(_record())
        assert "[inspect]" in output
        assert "(/ws/A.java#A.run)" in output


class TestGetLogger:
    def test_returns_logger(self):
        assert get_logger("cache").name == "copilens.cache"


class TestSetupLogging:
    @pytest.fixture(autouse=True)
    def _restore(self):
        root = logging.getLogger("copilens")
        level, handlers = root.level, list(root.handlers)
        yield
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_setup_json(self):
        setup_logging(level="DEBUG", log_format="json")
        root = logging.getLogger("copilens")
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, JsonFormatter)

    def test_setup_text(self):
        setup_logging(level="INFO", log_format="text")
        root = logging.getLogger("copilens")
        assert root.level == logging.INFO
        assert isinstance(root.handlers[0].formatter, TextFormatter)

    def test_no_duplicate_handlers(self):
        setup_logging()
        setup_logging()
        assert len(logging.getLogger("copilens").handlers) == 1

    def test_with_file(self, tmp_path):
        log_file = tmp_path / "logs" / "copilens.log"
        setup_logging(log_file=str(log_file), rotation="1KB", retention=2)
        logging.getLogger("copilens.test").info("to file")
        for handler in logging.getLogger("copilens").handlers:
            handler.flush()
        assert "to file" in log_file.read_text(encoding="utf-8")
