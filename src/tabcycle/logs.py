"""Logging setup shared by the CLI and long-running engine."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.logging import RichHandler

from tabcycle.config.models import LoggingSettings

LOG_FILENAME = "tabcycle.log"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: LoggingSettings, directory: Path, *, console: bool = False) -> Path:
    """Attach rotating file (and optionally console) handlers to the package logger.

    Args:
        settings: Level and rotation settings.
        directory: Directory receiving ``tabcycle.log``.
        console: Also render records to stderr through rich.

    Returns:
        Path: Location of the log file.
    """
    logger = logging.getLogger("tabcycle")
    level = logging.getLevelName(settings.level.upper())
    logger.setLevel(level if isinstance(level, int) else logging.WARNING)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    directory.mkdir(parents=True, exist_ok=True)
    log_path = directory / LOG_FILENAME
    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=settings.max_size_mb * 1024 * 1024,
        backupCount=settings.backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
    logger.addHandler(file_handler)

    if console:
        logger.addHandler(RichHandler(show_path=False, rich_tracebacks=False))
    return log_path


__all__ = ["LOG_FILENAME", "configure_logging"]
