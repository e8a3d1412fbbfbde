"""Logging configuration.

One "carevibe" logger for the whole package, configured once from
`settings.logging`: stdout always, plus a file when `logging.file` (or
CAREVIBE_LOG_FILE) is set.
"""
import logging
import sys
from pathlib import Path
from typing import Optional

from carevibe.core.config import settings


_logger: Optional[logging.Logger] = None
_initialized = False


def _get_log_path() -> Optional[Path]:
    return Path(settings.logging.file) if settings.logging.file else None


def _get_log_level() -> int:
    return getattr(logging, str(settings.logging.level).upper(), logging.INFO)


def get_logger() -> logging.Logger:
    """Get or create the singleton logger instance."""
    global _logger, _initialized

    if _logger is None:
        _logger = logging.getLogger("carevibe")
        _logger.setLevel(_get_log_level())
        _logger.propagate = False

    if not _initialized:
        _logger.handlers.clear()
        formatter = logging.Formatter(settings.logging.format)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        _logger.addHandler(console_handler)

        log_path = _get_log_path()
        if log_path is not None:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path)
            file_handler.setFormatter(formatter)
            _logger.addHandler(file_handler)

        _initialized = True

    return _logger


logger = get_logger()
