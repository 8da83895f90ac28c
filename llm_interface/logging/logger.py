"""
Structured JSON logging for the LLM interface and its gateway service.

One JSON object per line on stdout. Structured fields travel in
`extra={"_extra": {...}}`; `provider` and `model` are lifted to top-level
keys so logs can be filtered per provider, and credential fields are
redacted before anything is written.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

_PROMOTED_FIELDS = ("provider", "model")
_SECRET_FIELDS = frozenset({"api_key", "authorization", "x-goog-api-key"})
_REDACTED = "***"


def _redact(fields: dict[str, Any]) -> dict[str, Any]:
    return {
        key: _REDACTED if key.lower() in _SECRET_FIELDS and value else value
        for key, value in fields.items()
    }


class JSONFormatter(logging.Formatter):
    """Formats log records as single-line JSON objects."""

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self._service = service_name

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self._service,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)

        extra = getattr(record, "_extra", None)
        if extra:
            extra = _redact(dict(extra))
            for field in _PROMOTED_FIELDS:
                if field in extra:
                    entry[field] = extra.pop(field)
            if extra:
                entry["extra"] = extra

        return json.dumps(entry, default=str)


def setup_logging(service_name: str, level_name: str | None = None) -> logging.Logger:
    """
    Configure the root logger with JSON output to stdout.

    Call once at process startup (a service lifespan or a CLI entry point).
    The level defaults to LOG_LEVEL. Returns the service-specific logger.
    """
    level_name = (level_name or os.environ.get("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter(service_name))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # HTTP client libraries log every request at INFO
    for noisy in ("uvicorn.access", "httpx", "httpcore", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger = logging.getLogger(service_name)
    logger.info("Logging initialized", extra={"_extra": {"level": level_name}})
    return logger
