"""Logging setup for Mart Tracker."""

import logging
import os

from rich.console import Console
from rich.logging import RichHandler

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


def _coerce_level(value: str | int | None) -> int:
    if isinstance(value, str):
        return _LEVELS.get(value.upper().strip(), logging.WARNING)
    if isinstance(value, int):
        return value
    return logging.WARNING


def configure_logging(level: str | int | None = None) -> logging.Logger:
    """Configure the package logger once.

    LOG_LEVEL in the environment overrides the given level. Records go to
    stderr so JSON output on stdout stays parseable.

    Args:
        level: Level name or number from configuration

    Returns:
        The package logger
    """
    logger = logging.getLogger("mart_tracker")
    resolved = _coerce_level(os.environ.get("LOG_LEVEL") or level)
    logger.setLevel(resolved)

    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("[%(name)s] %(message)s"))
        logger.addHandler(handler)

    for handler in logger.handlers:
        handler.setLevel(resolved)

    return logger
