# invitation_routing/observability.py
"""Structured JSON logging for the routing core."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

LOGGER_NAME = "invitation_routing"

_EXTRA_FIELDS = (
    "invitation_id",
    "notification_id",
    "connection_id",
    "destination",
    "reason",
    "goal_code",
)


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "message": record.getMessage(),
            "logger": record.name,
        }
        for field in _EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_logging(level: int | str = logging.INFO, *, stream: Any = None) -> logging.Logger:
    """Attach a single JSON handler to the package logger. Safe to call twice."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        if isinstance(handler.formatter, StructuredFormatter):
            logger.removeHandler(handler)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())
    logger.addHandler(handler)
    return logger


def safe_log(logger: Optional[logging.Logger], level: int, msg: str, *args: Any, **extra: Any) -> None:
    """Best-effort logging; a missing or failing logger never affects routing."""
    if logger is None:
        return
    try:
        logger.log(level, msg, *args, extra=extra or None)
    except Exception:  # noqa: BLE001 - logging is a side channel
        return
