"""Logging configuration for AutoFM commands."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from autofm.config.models import LoggingSettings

PACKAGE_LOGGER = "autofm"
LOG_DIRNAME = ".autofm"
LOG_FILENAME = "autofm.log"


def configure_logging(
    settings: LoggingSettings,
    *,
    verbose: bool = False,
    log_dir: Optional[Path] = None,
    console: Optional[Console] = None,
) -> Optional[Path]:
    """Attach console and rotating file handlers to the package logger.

    Calling this again replaces handlers installed by a previous call, so
    repeated CLI invocations in one process do not duplicate output.

    Args:
        settings: Level and rotation limits from the configuration.
        verbose: Log at DEBUG on the console regardless of ``settings.level``.
        log_dir: Directory for ``autofm.log``; file logging is skipped when omitted.
        console: Rich console used for terminal output (stderr by default).

    Returns:
        Optional[Path]: Path of the log file, when file logging is active.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if getattr(handler, "_autofm_handler", False):
            logger.removeHandler(handler)
            handler.close()

    console_level = logging.DEBUG if verbose else _parse_level(settings.level)
    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
        rich_tracebacks=verbose,
    )
    rich_handler.setLevel(console_level)
    rich_handler._autofm_handler = True  # type: ignore[attr-defined]
    logger.addHandler(rich_handler)

    log_path: Optional[Path] = None
    file_level = console_level
    if log_dir is not None:
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            log_path = log_dir / LOG_FILENAME
            file_handler = RotatingFileHandler(
                str(log_path),
                maxBytes=max(1, settings.max_size_mb) * 1024 * 1024,
                backupCount=settings.backup_count,
                encoding="utf-8",
            )
        except OSError as exc:
            logger.warning("File logging disabled; cannot open %s: %s", log_dir, exc)
            log_path = None
        else:
            file_level = min(console_level, logging.INFO)
            file_handler.setLevel(file_level)
            file_handler.setFormatter(
                logging.Formatter(
                    "%(asctime)s %(levelname)s %(name)s: %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
            file_handler._autofm_handler = True  # type: ignore[attr-defined]
            logger.addHandler(file_handler)

    logger.setLevel(min(console_level, file_level))
    return log_path


def _parse_level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.WARNING


__all__ = ["LOG_DIRNAME", "LOG_FILENAME", "configure_logging"]
