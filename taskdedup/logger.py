"""Application-wide logger for the ``taskdedup`` package."""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

_APP_NAME = "taskdedup"
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_BACKUP_COUNT = 3
_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"

_logger: logging.Logger | None = None


def get_logger(level: str | int = "INFO", log_file: Path | None = None) -> logging.Logger:
    """Return the package logger, initialising handlers on first call.

    Child loggers (``logging.getLogger(__name__)`` inside the package) propagate here.
    """
    global _logger
    if _logger is not None:
        return _logger

    formatter = logging.Formatter(fmt=_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S")

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=_MAX_BYTES,
            backupCount=_BACKUP_COUNT,
            encoding="utf-8",
        )
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    logger = logging.getLogger(_APP_NAME)
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    if not logger.handlers:
        logger.addHandler(handler)
    logger.propagate = False

    _logger = logger
    return _logger
