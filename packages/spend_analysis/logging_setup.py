"""Logging configuration for the ``spend_analysis`` package.

- ``configure_logging(...)`` attaches one ``StreamHandler`` to the package
  logger (``"spend_analysis"``). Entrypoints such as the CLI call it once.
- ``get_logger(name)`` is what library modules use. Until an application
  configures logging, the package logger carries a ``NullHandler`` so library
  use stays silent.

Library modules never attach handlers themselves. Log messages use a terse
``event:key=value`` shape and never include transaction descriptions or
amounts.
"""

from __future__ import annotations

import logging
import os
from typing import IO

_PKG_LOGGER_NAME = "spend_analysis"
_LEVEL_ENV = "SPEND_ANALYSIS_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_configured = False


def resolve_level(level: int | str | None) -> int:
    """Return a numeric level from an int, a level name, or the environment."""

    if isinstance(level, int):
        return level
    if level is None:
        env_val = os.getenv(_LEVEL_ENV)
        return resolve_level(env_val) if env_val else logging.INFO
    name = level.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = logging.getLevelNamesMapping().get(name)
    return numeric if numeric is not None else logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Attach a single stream handler to the package logger (idempotent).

    ``level`` accepts an int or a name such as ``"DEBUG"``; ``None`` reads
    ``SPEND_ANALYSIS_LOG_LEVEL`` and defaults to ``INFO``. ``stream`` defaults
    to ``sys.stderr``.
    """

    global _configured
    if _configured:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    numeric = resolve_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(numeric)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))

    logger.setLevel(numeric)
    logger.addHandler(handler)
    logger.propagate = False

    _configured = True


def get_logger(name: str) -> logging.Logger:
    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _configured and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger", "resolve_level"]
