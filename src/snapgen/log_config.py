"""Logging setup for the snapgen command line."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from snapgen.config.models import LoggingSettings

ROOT_LOGGER_NAME = "snapgen"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_installed: list[logging.Handler] = []


def configure_logging(
    settings: LoggingSettings,
    *,
    level_override: str | None = None,
    console: Console | None = None,
) -> logging.Logger:
    """Attach stderr and optional rotating file handlers to the package logger.

    Calling this again replaces the handlers installed by the previous call.

    Args:
        settings: Logging section of the resolved configuration.
        level_override: Level taken from the command line, if any.
        console: Console used for the stderr handler.

    Returns:
        logging.Logger: The configured ``snapgen`` logger.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in _installed:
        logger.removeHandler(handler)
        handler.close()
    _installed.clear()

    level = (level_override or settings.level).upper()
    logger.setLevel(level)
    logger.propagate = False

    stderr_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
    )
    stderr_handler.setLevel(level)
    _installed.append(stderr_handler)

    if settings.file:
        path = Path(settings.file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=settings.max_size_mb * 1024 * 1024,
            backupCount=settings.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        _installed.append(file_handler)

    for handler in _installed:
        logger.addHandler(handler)
    return logger


__all__ = ["FILE_FORMAT", "ROOT_LOGGER_NAME", "configure_logging"]
