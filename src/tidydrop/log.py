"""Logging setup shared by the CLI and long-running commands."""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from tidydrop.config.models import LoggingSettings

_HANDLER_MARKER = "_tidydrop_handler"
FILE_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"


def configure_logging(
    settings: LoggingSettings,
    *,
    level_override: Optional[str] = None,
    console: Optional[Console] = None,
) -> logging.Logger:
    """Attach console and optional rotating file handlers to the package logger.

    Calling this again replaces the handlers installed by a previous call.

    Args:
        settings: Logging section of the loaded configuration.
        level_override: Level name taking precedence over ``settings.level``.
        console: Rich console to render records on; stderr when omitted.

    Returns:
        logging.Logger: The configured ``tidydrop`` logger.
    """
    logger = logging.getLogger("tidydrop")
    level_name = (level_override or settings.level).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise ValueError(f"Unknown logging level: {level_name}")

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()

    console_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    console_handler.setLevel(level)
    setattr(console_handler, _HANDLER_MARKER, True)
    logger.addHandler(console_handler)

    if settings.file:
        log_path = Path(settings.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=settings.max_size_mb * 1024 * 1024,
            backupCount=settings.backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG if level <= logging.INFO else logging.INFO)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        setattr(file_handler, _HANDLER_MARKER, True)
        logger.addHandler(file_handler)
        logger.setLevel(min(level, file_handler.level))
    else:
        logger.setLevel(level)
    return logger


__all__ = ["configure_logging", "FILE_FORMAT"]
