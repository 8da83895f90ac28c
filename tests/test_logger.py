"""
Tests for structured JSON logging.
"""

from __future__ import annotations

import json
import logging
import sys

import pytest

from llm_interface.logging.logger import JSONFormatter, setup_logging


def _record(msg: str, level: int = logging.INFO, **attrs) -> logging.LogRecord:
    record = logging.LogRecord("llm_interface.test", level, __file__, 1, msg, None, None)
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


def test_formats_single_line_json() -> None:
    line = JSONFormatter("gateway_service").format(_record("hello"))
    entry = json.loads(line)

    assert "\n" not in line
    assert entry["service"] == "gateway_service"
    assert entry["level"] == "INFO"
    assert entry["logger"] == "llm_interface.test"
    assert entry["message"] == "hello"
    assert "extra" not in entry


def test_includes_structured_extra() -> None:
    record = _record("Response data", logging.ERROR, _extra={"attempts": 3, "error": "boom"})
    entry = json.loads(JSONFormatter("svc").format(record))

    assert entry["extra"] == {"attempts": 3, "error": "boom"}


def test_provider_and_model_promoted() -> None:
    record = _record("answered", _extra={"provider": "gemini", "model": "gemini-1.5-flash"})
    entry = json.loads(JSONFormatter("svc").format(record))

    assert entry["provider"] == "gemini"
    assert entry["model"] == "gemini-1.5-flash"
    assert "extra" not in entry


def test_credentials_redacted() -> None:
    record = _record("configured", _extra={"provider": "writer", "api_key": "sk-secret"})
    line = JSONFormatter("svc").format(record)

    assert "sk-secret" not in line
    assert json.loads(line)["extra"] == {"api_key": "***"}


def test_includes_exception() -> None:
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = _record("failed", logging.ERROR, exc_info=sys.exc_info())

    entry = json.loads(JSONFormatter("svc").format(record))
    assert "RuntimeError: boom" in entry["exception"]


@pytest.fixture
def restore_root():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_setup_logging(restore_root, monkeypatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "debug")

    logger = setup_logging("gateway_service")

    assert logger.name == "gateway_service"
    assert restore_root.level == logging.DEBUG
    assert len(restore_root.handlers) == 1
    assert isinstance(restore_root.handlers[0].formatter, JSONFormatter)
    assert logging.getLogger("httpx").level == logging.WARNING


def test_setup_logging_explicit_level(restore_root) -> None:
    setup_logging("svc", "warning")
    assert restore_root.level == logging.WARNING
