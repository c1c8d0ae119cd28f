"""Structured logging utility with JSON output."""

import logging
import json
import sys
import os
from datetime import datetime, timezone
from typing import Any, Dict

# Attributes every LogRecord carries; anything else came in through `extra=`
_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "taskName"}


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line, with `extra=` fields merged in.

    Image payloads never reach the output: bytes and data URLs are replaced
    by a short description and other long strings are truncated.
    """

    MAX_VALUE_LENGTH = 500

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS or key.startswith('_'):
                continue
            log_data[key] = self._sanitize(value)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)

    def _sanitize(self, value: Any) -> Any:
        if isinstance(value, bytes):
            return f"<bytes: {len(value)} bytes>"
        if isinstance(value, (list, tuple)):
            return [self._sanitize(item) for item in value]
        if isinstance(value, dict):
            return {str(k): self._sanitize(v) for k, v in value.items()}

        try:
            json.dumps(value)
        except (TypeError, ValueError):
            value = str(value)

        if isinstance(value, str):
            if value.startswith("data:") and ";base64," in value[:64]:
                mime_type = value[5:value.index(";")]
                return f"<data-url: {mime_type}, {len(value)} chars>"
            if len(value) > self.MAX_VALUE_LENGTH:
                return value[:self.MAX_VALUE_LENGTH] + "...[truncated]"
        return value


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger writing JSON lines to stdout.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance; LOG_LEVEL sets the threshold
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        logger.setLevel(getattr(logging, log_level, logging.INFO))

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)

        # Already emitted here; the root logger would print it twice
        logger.propagate = False

    return logger
