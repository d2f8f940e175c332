"""Logging utilities for repolens commands and the service.

Records emitted while a backend attempt is running carry an ``attempt``
attribute (``model@api_version#n``) so interleaved candidate output stays
readable. Outside an attempt the attribute is empty.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Iterator

_LOGGER_NAME = "repolens"
_CONSOLE_FORMAT = "[repolens]%(attempt)s %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s%(attempt)s: %(message)s"

_current_attempt: ContextVar[str] = ContextVar("repolens_attempt", default="")


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the repolens hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


@contextmanager
def attempt_context(model: str, api_version: str, attempt: int) -> Iterator[str]:
    """Tag log records emitted inside the block with the backend attempt."""
    label = f"{model}@{api_version}#{attempt}"
    token = _current_attempt.set(label)
    try:
        yield label
    finally:
        _current_attempt.reset(token)


def current_attempt() -> str:
    return _current_attempt.get()


class AttemptContextFilter(logging.Filter):
    """Sets ``record.attempt`` to `` [model@version#n]`` or an empty string."""

    def filter(self, record: logging.LogRecord) -> bool:
        label = _current_attempt.get()
        record.attempt = f" [{label}]" if label else ""
        return True


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Configure the repolens logger with console output and optional file sink."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    # Handler filters also see records from child loggers.
    context_filter = AttemptContextFilter()

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.addFilter(context_filter)
    stream_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.addFilter(context_filter)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger


__all__ = [
    "AttemptContextFilter",
    "attempt_context",
    "configure_logging",
    "current_attempt",
    "get_logger",
]
