"""
Logging setup shared by the API process and the grouping engine.

Every line is written to stdout as:

    2026-01-06T14:05:52Z [api] INFO Camp camp-1: committed 2 move(s)

Levels come from the environment unless the caller passes one:

    LOG_LEVEL         TRACE, DEBUG, INFO (default), WARNING or ERROR
    SOLVER_LOG_LEVEL  Level for ``grouping.solver`` only, e.g. TRACE to see
                      per-candidate scoring without tracing the whole API

Call ``configure_logging(source="api")`` once at startup; modules keep using
``logging.getLogger(__name__)``.
"""

from __future__ import annotations

import logging
import os
import re
import sys
from datetime import UTC, datetime

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

LEVELS = {
    "TRACE": TRACE,
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

SOLVER_LOGGER = "grouping.solver"
UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")
NOISY_LOGGERS = ("httpx", "httpcore")


def _trace(self: logging.Logger, message: object, *args: object, **kwargs: object) -> None:
    if self.isEnabledFor(TRACE):
        self._log(TRACE, message, args, **kwargs)  # type: ignore[arg-type]


logging.Logger.trace = _trace  # type: ignore[attr-defined]


def level_from_env(variable: str, default: int | None = None) -> int | None:
    """Numeric level named by an environment variable, or ``default`` when unset or unknown."""
    return LEVELS.get(os.getenv(variable, "").strip().upper(), default)


class ISO8601Formatter(logging.Formatter):
    """``<UTC timestamp> [<source>] <LEVEL> <message>``, tracebacks on following lines."""

    def __init__(self, source: str = "app"):
        super().__init__()
        self.source = source

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # noqa: N802
        return datetime.fromtimestamp(record.created, UTC).strftime("%Y-%m-%dT%H:%M:%SZ")

    def format(self, record: logging.LogRecord) -> str:
        line = f"{self.formatTime(record)} [{self.source}] {record.levelname} {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class HealthCheckFilter(logging.Filter):
    """Drop access-log lines for health checks unless running at DEBUG."""

    HEALTH_REQUEST = re.compile(r'"(?:GET|HEAD) /(?:api/)?health(?:\?\S*)? HTTP/[\d.]+"')

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno <= logging.DEBUG:
            return True
        return self.HEALTH_REQUEST.search(record.getMessage()) is None


def configure_logging(
    source: str = "app",
    level: int | None = None,
    debug: bool | None = None,
) -> logging.Logger:
    """Install the stdout handler on the root and uvicorn loggers.

    Args:
        source: Name shown in brackets on every line (e.g. "api")
        level: Explicit level; wins over ``debug`` and ``LOG_LEVEL``
        debug: Use DEBUG when ``LOG_LEVEL`` is not set

    Returns:
        The root logger
    """
    if level is None:
        level = level_from_env("LOG_LEVEL", logging.DEBUG if debug else logging.INFO)
    assert level is not None

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ISO8601Formatter(source=source))
    handler.addFilter(HealthCheckFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in UVICORN_LOGGERS:
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = [handler]
        uvicorn_logger.setLevel(level)
        uvicorn_logger.propagate = False

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    # Records propagate to the root handler regardless of the root level
    solver_level = level_from_env("SOLVER_LOG_LEVEL")
    logging.getLogger(SOLVER_LOGGER).setLevel(solver_level if solver_level is not None else logging.NOTSET)

    return root


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
