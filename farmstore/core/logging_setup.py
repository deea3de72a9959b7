"""Logging for the farm store.

Failures are written to ``error.log`` inside the data directory, with a
timestamp and the full traceback, so an operator can inspect them later.
"""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

ROOT_LOGGER_NAME = "farmstore"

_configured: dict[str, logging.Handler] = {}


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the ``farmstore`` logger or one of its children."""

    if not name:
        return logging.getLogger(ROOT_LOGGER_NAME)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def configure_logging(directory: str | Path, log_config: dict) -> logging.Logger:
    """Attach a rotating file handler for ``directory`` to the package logger.

    Calling this again for the same log file is a no-op.
    """

    logger = get_logger()
    level = getattr(logging, str(log_config.get("level", "WARNING")).upper(), logging.WARNING)
    logger.setLevel(level)

    log_dir = Path(directory)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = (log_dir / log_config.get("file", "error.log")).resolve()
    key = str(log_file)
    if key in _configured:
        return logger

    formatter = logging.Formatter(log_config.get("format"))
    file_handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=int(log_config.get("max_size_mb", 5)) * 1024 * 1024,
        backupCount=int(log_config.get("backup_count", 3)),
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)
    _configured[key] = file_handler

    if log_config.get("console_output") and "<console>" not in _configured:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)
        _configured["<console>"] = console_handler

    return logger


def reset_logging() -> None:
    """Detach and close every handler added by :func:`configure_logging`."""

    logger = get_logger()
    for handler in _configured.values():
        logger.removeHandler(handler)
        handler.close()
    _configured.clear()


def log_failure(doing: str, exc: BaseException) -> None:
    """Record that an operation failed, with the traceback of ``exc``."""

    get_logger("errors").error(
        "Failure while %s: %s",
        doing,
        exc,
        exc_info=(type(exc), exc, exc.__traceback__),
    )


__all__ = ["configure_logging", "get_logger", "log_failure", "reset_logging"]
