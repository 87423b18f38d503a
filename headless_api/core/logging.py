"""Logging setup for the headless API.

Two output formats: ``dev`` (one readable line per record) and
``structured`` (one JSON object per record). Both pass through
``TokenRedactionFilter`` so a bearer token or CSRF token that ends up in a
message is masked before it reaches a handler.
"""

import json
import logging
import re
import sys
from typing import Literal

DEV_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Request attributes copied into structured records when passed via ``extra``
CONTEXT_FIELDS = ("method", "path", "user_id")

# Third-party loggers and the level they run at outside DEBUG
QUIET_LOGGERS = {
    "uvicorn": logging.WARNING,
    "uvicorn.error": logging.WARNING,
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
}

_SECRET_PATTERNS = [
    re.compile(r"(?i)(authorization:\s*bearer\s+)(\S{7,})"),
    re.compile(r"(?i)((?:access_token|csrftoken)=)([^&\s]{7,})"),
]


def _mask(match: re.Match[str]) -> str:
    return f"{match.group(1)}{match.group(2)[:6]}..."


class TokenRedactionFilter(logging.Filter):
    """Mask token values in the rendered message, keeping a short prefix."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = message
        for pattern in _SECRET_PATTERNS:
            redacted = pattern.sub(_mask, redacted)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per log line, escaped with json.dumps()."""

    def __init__(self):
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _build_handler(format_type: str) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    if format_type == "structured":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(DEV_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    handler.addFilter(TokenRedactionFilter())
    return handler


def setup_logging(
    level: str = "INFO",
    format_type: Literal["structured", "dev"] = "dev",
) -> None:
    """
    Replace the root handlers with a single stdout handler.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: 'structured' for JSON lines, 'dev' for readable lines
    """
    numeric_level = getattr(logging, level.upper())
    logging.root.handlers = [_build_handler(format_type)]
    logging.root.setLevel(numeric_level)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(logging.DEBUG if numeric_level == logging.DEBUG else quiet_level)

    get_logger("logging").info(f"Logging configured: level={level}, format={format_type}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the headless_api prefix."""
    return logging.getLogger(f"headless_api.{name}")
