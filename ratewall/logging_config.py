"""Logging helpers for structured service logs and the request audit trail."""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from ratewall.utils.time import iso_timestamp

EXTRA_FIELDS = ("client_ip", "table", "path", "detail")


class JsonFormatter(logging.Formatter):
    """Render log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: Dict[str, Any] = {
            "time": iso_timestamp(record.created * 1000),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for attr in EXTRA_FIELDS:
            if value := getattr(record, attr, None):
                payload[attr] = str(value)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def configure_logging(level: str | None = None) -> None:
    """Configure the root logger with JSON formatting.

    The level defaults to ``RATEWALL_LOG_LEVEL`` and then ``INFO``.
    """

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    resolved = (level or os.getenv("RATEWALL_LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(level=resolved, handlers=[handler], force=True)


def audit_handler(path: Path) -> logging.Handler:
    """File handler that writes audit lines verbatim."""

    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8", delay=True)
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler
