"""Logging utilities for seoagent runs."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

_LOGGER_NAME = "seoagent"
LEVEL_ENV = "SEOAGENT_LOG_LEVEL"

_MAX_LOG_BYTES = 5 * 1024 * 1024
_LOG_BACKUPS = 5


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the seoagent hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def resolve_level(verbose: bool) -> int:
    """``--verbose`` wins; otherwise ``SEOAGENT_LOG_LEVEL`` (name or number), else INFO."""
    if verbose:
        return logging.DEBUG
    configured = os.environ.get(LEVEL_ENV, "").strip()
    if not configured:
        return logging.INFO
    if configured.isdigit():
        return int(configured)
    level = logging.getLevelName(configured.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Attach console and optional rotating-file handlers to the seoagent logger.

    Records do not propagate to the root logger, so embedding applications
    (uvicorn in service mode) keep their own formatting.
    """
    level = resolve_level(verbose)
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Service mode and repeated CLI calls in one process would otherwise stack handlers.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter("[seoagent] %(levelname)s %(message)s"))
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file, maxBytes=_MAX_LOG_BYTES, backupCount=_LOG_BACKUPS, encoding="utf-8"
        )
        file_handler.setLevel(level)
        # Worker threads interleave repositories; the thread name tells them apart.
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


__all__ = ["LEVEL_ENV", "configure_logging", "get_logger", "resolve_level"]
