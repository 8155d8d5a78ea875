"""Logging setup for deal-calendar.

Every module logs through ``logging.getLogger(__name__)``; this module only
decides where those records go and what they look like.
"""

from __future__ import annotations

import logging
import sys

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Marks the handler installed here so repeated setup calls reuse it.
_HANDLER_ATTR = "_deal_calendar_log_handler"

# Google client libraries log discovery-cache and transport chatter at INFO.
_NOISY_LOGGERS = ("googleapiclient.discovery", "googleapiclient.discovery_cache", "google.auth")


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger for the sync engine.

    Safe to call more than once: the existing handler is updated rather
    than duplicated.  Google client library loggers are capped at
    ``WARNING`` unless *level* is ``DEBUG``.

    Args:
        level: A standard logging level name (e.g. ``"DEBUG"``, ``"INFO"``).

    Raises:
        ValueError: If *level* is not a recognised logging level string.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level!r}")

    root = logging.getLogger()
    root.setLevel(numeric_level)

    library_level = numeric_level if numeric_level <= logging.DEBUG else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    for handler in root.handlers:
        if getattr(handler, _HANDLER_ATTR, False):
            handler.setLevel(numeric_level)
            return

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))

    setattr(handler, _HANDLER_ATTR, True)
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Return a named logger (thin wrapper around :func:`logging.getLogger`)."""
    return logging.getLogger(name)
