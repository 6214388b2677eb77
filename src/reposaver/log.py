"""Logging setup shared by the CLI and long-running watch sessions."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from reposaver.config import LoggingSettings

PACKAGE_LOGGER = "reposaver"
DEFAULT_LOG_PATH = Path("~/.reposaver/reposaver.log")
_FILE_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"


def configure_logging(
    settings: LoggingSettings,
    *,
    log_path: Path | None = None,
    console: Console | None = None,
) -> logging.Logger:
    """Install console and rotating-file handlers on the package logger.

    Handlers installed by a previous call are removed first, so the CLI can
    reconfigure logging on every invocation without duplicating output.

    Args:
        settings: Logging configuration section.
        log_path: Optional override for the log file location.
        console: Optional Rich console used for terminal output.

    Returns:
        logging.Logger: The configured package logger.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    level = logging.getLevelName(settings.level.upper())
    if not isinstance(level, int):
        level = logging.WARNING
    logger.setLevel(level)

    console_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    console_handler.setLevel(level)
    logger.addHandler(console_handler)

    path = (log_path or DEFAULT_LOG_PATH).expanduser()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max(1, settings.max_size_mb) * 1024 * 1024,
            backupCount=max(0, settings.backup_count),
            encoding="utf-8",
        )
    except OSError as exc:
        logger.warning("Log file %s unavailable: %s", path, exc)
    else:
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging", "DEFAULT_LOG_PATH", "PACKAGE_LOGGER"]
