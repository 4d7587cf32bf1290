"""
Structured Logging Configuration Module

Every platform log line carries the same optional context fields: the user
whose money or profile is affected, the action name, the resource as
"type:id", and a free-form ``extra`` mapping. ``log_action`` attaches them,
and both formatters below render them.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Optional


CONTEXT_FIELDS = ("user_id", "action", "resource", "extra")

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _context(record: logging.LogRecord) -> dict:
    return {
        field: getattr(record, field)
        for field in CONTEXT_FIELDS
        if getattr(record, field, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record"""

    def format(self, record):
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_context(record))

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


class ContextTextFormatter(logging.Formatter):
    """Plain text with the context fields appended as key=value pairs"""

    def __init__(self):
        super().__init__(TEXT_FORMAT)

    def format(self, record):
        line = super().format(record)
        context = _context(record)
        if context:
            line += " " + " ".join(
                f"{key}={json.dumps(value, default=str) if key == 'extra' else value}"
                for key, value in context.items()
            )
        return line


def setup_logging(level: str = "INFO", log_format: str = "json",
                  logger_name: str = "platform") -> logging.Logger:
    """
    Configure the application logger tree rooted at ``logger_name``.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: "json" for structured output, anything else for plain text

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)

    # Reconfiguring must not stack handlers
    for existing in list(logger.handlers):
        logger.removeHandler(existing)

    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if log_format == "json" else ContextTextFormatter())

    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False

    return logger


def get_logger(name: str = "platform") -> logging.Logger:
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               user_id: Optional[str] = None, action: Optional[str] = None,
               resource: Optional[str] = None, extra: Optional[dict] = None):
    """Log ``message`` with the platform context fields attached"""
    context = {
        "user_id": user_id,
        "action": action,
        "resource": resource,
        "extra": extra or None,
    }
    logger.log(
        logging.getLevelName(level.upper()),
        message,
        extra={key: value for key, value in context.items() if value is not None},
    )
