"""Logging setup for the command line entry points."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from relcollect.config.models import LoggingSettings

_HANDLER_FLAG = "_relcollect_handler"


def configure_logging(
    settings: LoggingSettings,
    *,
    verbose: bool = False,
    console: Console | None = None,
) -> logging.Logger:
    """Attach console and optional rotating file handlers to the package logger.

    Args:
        settings: Logging section of the loaded configuration.
        verbose: Force DEBUG level regardless of the configured level.
        console: Rich console used for stderr output.

    Returns:
        logging.Logger: The configured ``relcollect`` logger.
    """
    logger = logging.getLogger("relcollect")
    level = logging.DEBUG if verbose else logging.getLevelName(settings.level.upper())
    if not isinstance(level, int):
        level = logging.WARNING
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_FLAG, False):
            logger.removeHandler(handler)
            handler.close()

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    setattr(rich_handler, _HANDLER_FLAG, True)
    logger.addHandler(rich_handler)

    if settings.file:
        log_path = Path(settings.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max(1, settings.max_size_mb) * 1024 * 1024,
            backupCount=max(0, settings.backup_count),
            encoding="utf-8",
        )
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        setattr(file_handler, _HANDLER_FLAG, True)
        logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging"]
