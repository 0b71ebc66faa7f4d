"""Logging setup for the booking engine's package loggers."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from academy_booking.utils.config import get_settings


PACKAGE_LOGGER_NAME = "academy_booking"
HANDLER_NAME = "academy_booking.stdout"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(threadName)s | %(name)s | %(message)s"

_configured_level: Optional[str] = None


def configure_logging(level: Optional[str] = None) -> None:
    """Attach one stdout handler to the package logger.

    Only the ``academy_booking`` hierarchy is configured so uvicorn keeps
    control of its own loggers. Thread names are included because teacher
    scoring runs on a worker pool. Passing an explicit ``level`` after the
    first call only changes the level.
    """
    global _configured_level

    resolved_level = (level or get_settings().log_level).upper()
    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)

    if _configured_level is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)
        package_logger.propagate = False
    elif level is None:
        return

    package_logger.setLevel(resolved_level)
    _configured_level = resolved_level


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the package hierarchy.

    Root-level scripts such as ``app`` get a child of the package logger so
    their records share its handler.
    """
    configure_logging()
    if name != PACKAGE_LOGGER_NAME and not name.startswith(PACKAGE_LOGGER_NAME + "."):
        name = f"{PACKAGE_LOGGER_NAME}.{name}"
    return logging.getLogger(name)
