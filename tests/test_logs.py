"""Tests for logging setup."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.logging import RichHandler

from tabcycle.config.models import LoggingSettings
from tabcycle.logs import configure_logging


def test_configure_logging_replaces_handlers(tmp_path: Path) -> None:
    logger = logging.getLogger("tabcycle")
    settings = LoggingSettings(level="info", max_size_mb=1, backup_count=2)

    configure_logging(settings, tmp_path, console=True)
    path = configure_logging(settings, tmp_path)

    try:
        assert path == tmp_path / "tabcycle.log"
        assert logger.level == logging.INFO
        assert len(logger.handlers) == 1
        handler = logger.handlers[0]
        assert isinstance(handler, RotatingFileHandler)
        assert handler.maxBytes == 1024 * 1024
        assert handler.backupCount == 2

        logging.getLogger("tabcycle.engine").info("cycle finished")
        handler.flush()
        assert "cycle finished" in path.read_text(encoding="utf-8")
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.setLevel(logging.NOTSET)


def test_console_handler_is_optional(tmp_path: Path) -> None:
    logger = logging.getLogger("tabcycle")
    try:
        configure_logging(LoggingSettings(level="bogus"), tmp_path, console=True)
        assert any(isinstance(handler, RichHandler) for handler in logger.handlers)
        assert logger.level == logging.WARNING
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.setLevel(logging.NOTSET)
