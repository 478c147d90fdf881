"""
Logging setup.

Usage:

    from backend.skillvalidator.logger import get_logger, set_request_id

    logger = get_logger(__name__)
    set_request_id("req-123")
    logger.info("Validating skill %s", skill_id)

Console output carries the request id of the HTTP request being served
(``-`` outside of a request).
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import Optional

ROOT_LOGGER = "skillvalidator"

_request_id: ContextVar[str] = ContextVar("request_id", default="")


def set_request_id(request_id: str) -> None:
    """Bind a request id to the current context (called by the HTTP middleware)."""
    _request_id.set(request_id)


def clear_request_id() -> None:
    _request_id.set("")


class _ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get() or "-"
        return True


class _ConsoleFormatter(logging.Formatter):
    """Readable console format, coloured when attached to a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] [%(request_id)s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
        self.use_colors = sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        if self.use_colors:
            record = logging.makeLogRecord(record.__dict__)
            color = self.COLORS.get(record.levelname, "")
            record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


class _LoggerManager:
    _initialized = False

    @classmethod
    def setup(cls, level: str = "INFO") -> None:
        root = logging.getLogger(ROOT_LOGGER)
        root.setLevel(level.upper())
        root.handlers.clear()

        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(_ConsoleFormatter())
        console.addFilter(_ContextFilter())
        root.addHandler(console)
        root.propagate = False

        cls._initialized = True

    @classmethod
    def get(cls, name: Optional[str] = None) -> logging.Logger:
        if not cls._initialized:
            cls.setup()
        if not name:
            return logging.getLogger(ROOT_LOGGER)
        short = name.split(".")[-1]
        return logging.getLogger(f"{ROOT_LOGGER}.{short}")


def setup_logging(level: str = "INFO") -> None:
    """(Re)configure the package logger, e.g. from ``Settings.log_level``."""
    _LoggerManager.setup(level)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a child of the package logger named after the calling module."""
    return _LoggerManager.get(name)
