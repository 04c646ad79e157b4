"""Logging configuration for the ``fintrack`` package.

Library modules only call ``logging.getLogger(__name__)``; the host
application calls ``configure_logging`` once at startup.
"""

import logging
import sys
from typing import IO

_PKG_LOGGER_NAME = "fintrack"
_CONFIGURED = False

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _parse_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    level = level.strip().upper()
    if level.isdigit():
        return int(level)
    numeric = getattr(logging, level, None)
    if isinstance(numeric, int):
        return numeric
    return logging.INFO


def configure_logging(level: int | str = "INFO", *, stream: IO[str] = sys.stderr) -> None:
    """Attach a single stream handler to the package root logger.

    Repeated calls only adjust the level.
    """
    global _CONFIGURED

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    logger.setLevel(_parse_level(level))

    if _CONFIGURED:
        return

    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
    logger.addHandler(handler)
    _CONFIGURED = True


# Library default: no "No handler found" warnings when the app never configures logging
logging.getLogger(_PKG_LOGGER_NAME).addHandler(logging.NullHandler())
