"""Logging configuration for the ``backoffice`` package.

Library modules only call ``logging.getLogger(__name__)``.  Entrypoints call
:func:`configure_logging` once to attach a single stream handler to the
package logger.
"""
from __future__ import annotations

import logging
import sys
from typing import IO

_PKG_LOGGER_NAME = "backoffice"
_CONFIGURED = False

DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"


def _parse_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        level = level.strip().upper()
        if level.isdigit():
            return int(level)
        numeric = getattr(logging, level, None)
        if isinstance(numeric, int):
            return numeric
    return logging.INFO


def configure_logging(level: int | str | None = None, *, stream: IO[str] = sys.stderr) -> None:
    """Configure the package logger exactly once; later calls are no-ops."""

    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
    logger.setLevel(_parse_level(level))
    logger.addHandler(handler)
    # Avoid double emission via the root logger.
    logger.propagate = False

    _CONFIGURED = True


__all__ = ["configure_logging"]
