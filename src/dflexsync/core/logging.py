"""
Logging setup.

Every module logs through ``get_logger(__name__)``. ``setup_logging`` is
called once by ``create_app``: JSON lines in production, a coloured
single-line format everywhere else.
"""

import logging
import sys
from typing import Any

import orjson

# Attributes every LogRecord carries; anything else came in through ``extra=``
_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "taskName"}

_NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "asyncio")

DEFAULT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d - %(message)s"


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Fields passed with ``extra=`` (batch sizes, NV lists, column names)
    end up under ``extra``.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.funcName}:{record.lineno}",
        }

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return orjson.dumps(payload, default=str).decode()


class ConsoleFormatter(logging.Formatter):
    """Human-readable format with the level name coloured."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno)
        if color is None:
            return super().format(record)
        # Colour a copy; other handlers still see the plain level name
        colored = logging.makeLogRecord(record.__dict__)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


def setup_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
    log_format: str | None = None,
) -> None:
    """
    Configure the root logger with a single stdout handler.

    Args:
        log_level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Emit JSON lines instead of the console format
        log_format: Console format string, ``DEFAULT_FORMAT`` when omitted
    """
    level = log_level.upper()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    if json_logs:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            ConsoleFormatter(log_format or DEFAULT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    get_logger(__name__).info(
        "Logging configured", extra={"log_level": level, "json_logs": json_logs}
    )


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, normally called with ``__name__``."""
    return logging.getLogger(name)
