"""Logging configuration.

Provides JSON-formatted logging for the TripGate service.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record):
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k in ("request_id", "route", "remote_addr", "principal", "action", "status", "resource", "details"):
            if hasattr(record, k):
                payload[k] = getattr(record, k)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(
    log_file: str = None,
    log_level: str = None,
):
    """Configure logging with JSON formatter.

    Args:
        log_file: Path to log file. Defaults to TRIPGATE_LOG_FILE env var or 'tripgate.log'.
            An empty TRIPGATE_LOG_FILE disables the file handler.
        log_level: Log level. Defaults to TRIPGATE_LOG_LEVEL env var or 'INFO'.
    """
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(JsonFormatter())
    handlers = [console_handler]

    log_file = log_file if log_file is not None else os.getenv("TRIPGATE_LOG_FILE", "tripgate.log")
    if log_file:
        file_handler = logging.FileHandler(log_file, mode='a')
        file_handler.setFormatter(JsonFormatter())
        handlers.append(file_handler)

    root = logging.getLogger()
    log_level = log_level or os.getenv("TRIPGATE_LOG_LEVEL", "INFO").upper()
    root.setLevel(getattr(logging, log_level, logging.INFO))
    root.handlers = handlers


def mask_phone(phone: str | None) -> str:
    """Mask a phone number for logs, keeping the last two digits."""
    if not phone:
        return "<none>"
    return f"***{phone[-2:]}"


def short_token(token: str | None) -> str:
    """Shorten an opaque token for logs."""
    if not token:
        return "<none>"
    return f"{token[:8]}..."
