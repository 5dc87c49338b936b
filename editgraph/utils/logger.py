"""Logging configuration using Loguru."""
from __future__ import annotations

import os
import sys

from loguru import logger

_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[module]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def setup_logging(level: str | None = None, serialize: bool = False) -> None:
    """Replace Loguru's default sink with a single stderr sink."""
    logger.remove()
    logger.configure(extra={"module": "editgraph"})
    logger.add(
        sys.stderr,
        level=level or os.getenv("EDITGRAPH_LOG_LEVEL", "INFO"),
        format=_FORMAT,
        colorize=not serialize,
        serialize=serialize,
    )


def get_logger(name: str):
    """Get a logger instance for a module."""
    return logger.bind(module=name)
