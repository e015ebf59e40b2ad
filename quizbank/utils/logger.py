from __future__ import annotations

import copy
import logging
import os
import sys
import time
import uuid
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

REQUEST_ID: ContextVar[str] = ContextVar("request_id", default="-")

LOGGER_NAME = "quizbank"
LOG_FORMAT = (
    "%(asctime)s %(levelname)-8s %(name)s "
    "pid=%(process)d request_id=%(request_id)s src=%(filename)s:%(lineno)d "
    "%(message)s"
)
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003 (shadow built-in name)
        record.request_id = REQUEST_ID.get("-")
        return True


class ColorFormatter(logging.Formatter):
    """ANSI colors for the console: blue timestamp, one color per level, dim name and request id."""

    _RESET = "\x1b[0m"
    _DIM = "\x1b[2m"
    _BLUE = "\x1b[34m"

    _LEVEL_COLORS: dict[int, str] = {
        logging.DEBUG: "\x1b[36m",
        logging.INFO: "\x1b[32m",
        logging.WARNING: "\x1b[33m",
        logging.ERROR: "\x1b[31m",
        logging.CRITICAL: "\x1b[35m",
    }

    def format(self, record: logging.LogRecord) -> str:
        r = copy.copy(record)
        color = self._LEVEL_COLORS.get(r.levelno, "\x1b[37m")
        r.levelname = f"{color}{r.levelname}{self._RESET}"
        r.name = f"{self._DIM}{r.name}{self._RESET}"
        r.request_id = f"{self._DIM}{getattr(r, 'request_id', '-')}{self._RESET}"
        return super().format(r)

    def formatTime(self, record, datefmt=None):  # noqa: N802
        return f"{self._BLUE}{super().formatTime(record, datefmt)}{self._RESET}"


def _console_formatter() -> logging.Formatter:
    # NO_COLOR or a non-TTY stdout (pytest capture, log files) gets plain text.
    if os.getenv("NO_COLOR") or not sys.stdout.isatty():
        return logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    return ColorFormatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)


def configure_logging() -> logging.Logger:
    """
    Configure the "quizbank" logger with a rotating file under LOG_DIR and a
    console handler. Every module calls this at import; only the first call
    attaches handlers.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if getattr(logger, "_configured", False):
        return logger

    level = os.getenv("LOG_LEVEL", "INFO").upper()
    numeric_level = logging.getLevelNamesMapping().get(level, logging.INFO)
    logger.setLevel(numeric_level)
    logger.propagate = False

    log_dir = Path(os.getenv("LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    file_path = log_dir / "quizbank.log"

    request_filter = RequestIdFilter()

    fh = RotatingFileHandler(
        filename=str(file_path),
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
        encoding="utf-8",
    )
    fh.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))

    ch = logging.StreamHandler(sys.stdout)
    ch.setFormatter(_console_formatter())

    for handler in (fh, ch):
        handler.setLevel(numeric_level)
        handler.addFilter(request_filter)
        logger.addHandler(handler)

    logger._configured = True  # type: ignore[attr-defined]
    logger.debug("Logger configured (file=%s level=%s)", file_path, level)
    return logger


def set_request_id(request_id: Optional[str] = None) -> str:
    rid = request_id or str(uuid.uuid4())
    REQUEST_ID.set(rid)
    return rid


def clear_request_id() -> None:
    REQUEST_ID.set("-")


class log_request:
    """
    Times a service operation:
      with log_request(logger, "create_session"):
          ...
    Domain refusals are expected outcomes and are logged without a stack trace.
    """

    def __init__(self, logger: logging.Logger, name: str):
        self.logger = logger
        self.name = name
        self.start = 0.0

    def __enter__(self):
        self.start = time.time()
        return self

    def __exit__(self, exc_type, exc, tb):
        dur_ms = int((time.time() - self.start) * 1000)
        if exc is None:
            self.logger.info("%s ok duration_ms=%s", self.name, dur_ms)
        elif getattr(exc, "expected", False):
            self.logger.info("%s refused code=%s duration_ms=%s", self.name, getattr(exc, "code", "-"), dur_ms)
        else:
            self.logger.exception("%s failed duration_ms=%s", self.name, dur_ms)
        return False
