"""Loguru configuration for the service and the CLI."""

from __future__ import annotations

import sys

from loguru import logger

TEXT_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function}:{line} | {message}"


def configure_logging(level: str = "INFO", json: bool = False) -> None:
    """Replace loguru's default sink with one stderr sink.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ...)
        json: Emit serialized JSON records instead of the text format
    """
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=TEXT_FORMAT, serialize=json)
