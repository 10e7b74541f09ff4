"""Structured Logging — JSON formatter and setup for the package's loggers.

Invariants:
    - All logs include timestamp, level, logger name, and message
    - Extra fields (elapsed_ms, threshold_ms, concurrency_limit, attempt, error_code)
      surfaced when present
    - setup_logging attaches at most one handler to the package logger, however often
      it is called

Design Decisions:
    - JSONFormatter over third-party libs: zero dependencies, full control
    - Configures the "resilient_save" logger, not root: the host application owns root
"""

import logging
import json
from datetime import datetime, timezone

PACKAGE_LOGGER = "resilient_save"

_EXTRA_FIELDS = (
    "elapsed_ms", "threshold_ms", "concurrency_limit", "attempt",
    "max_retries", "delay_ms", "error_code", "error_type",
)


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False)


def setup_logging(level: str = "INFO", fmt: str = "json") -> logging.Logger:
    """Configure the package logger; returns it."""
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for existing in list(package_logger.handlers):
        if getattr(existing, "_resilient_save_handler", False):
            package_logger.removeHandler(existing)

    handler = logging.StreamHandler()
    handler._resilient_save_handler = True  # type: ignore[attr-defined]
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s — %(message)s",
        ))
    package_logger.addHandler(handler)
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return package_logger
