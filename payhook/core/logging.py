"""Structured JSON logging for payhook."""

import json
import logging
from datetime import UTC, datetime
from typing import Any

# Dynamically derive standard LogRecord attributes at module import time
# so future additions (like taskName) are never emitted as extras.
_STANDARD_LOGRECORD_KEYS: frozenset[str] = frozenset(
    logging.LogRecord(
        name="", level=0, pathname="", lineno=0, msg="", args=(), exc_info=None
    ).__dict__.keys()
)

# Emitted first, in this order, when present on the record
CONTEXT_FIELDS = ("event_id", "event_type", "event_created", "object_id", "error_kind")


class JSONFormatter(logging.Formatter):
    """JSON formatter with UTC ISO8601 timestamps."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        # Any other extra={} fields
        for key, value in vars(record).items():
            if key not in _STANDARD_LOGRECORD_KEYS and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        try:
            return json.dumps(log_data, default=str)
        except (TypeError, ValueError):
            return str(log_data)


_default_level: int = logging.INFO


def _resolve_level(level: int | str) -> int:
    resolved = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def _setup_json_handler(logger: logging.Logger, level: int) -> None:
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def get_logger(name: str = "payhook", level: int | str | None = None) -> logging.Logger:
    """Get a logger with JSON formatting.

    Args:
        name: The logger name. Defaults to "payhook".
        level: Logging level. Defaults to the level set through
            ``configure_logging`` (INFO if never called).
    """
    logger = logging.getLogger(name)
    _setup_json_handler(logger, _default_level if level is None else _resolve_level(level))
    return logger


def configure_logging(level: int | str = logging.INFO) -> None:
    """Set the level used by every payhook logger, existing and future."""
    global _default_level
    _default_level = _resolve_level(level)
    for name, logger in logging.Logger.manager.loggerDict.items():
        if name.startswith("payhook") and isinstance(logger, logging.Logger):
            logger.setLevel(_default_level)
