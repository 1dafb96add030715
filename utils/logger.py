"""
utils/logger.py
---------------
Centralized logging configuration.
All modules should use `get_logger(__name__)` to obtain a logger instance.

The root level comes from LOG_LEVEL. With LOG_SQL enabled the statement
trace of db.executor is shown regardless of the root level.
"""

import logging
import sys

from config import LOG_LEVEL, LOG_SQL

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_SQL_TRACE_LOGGER = "db.executor"
_initialized = False


def _resolve_level(name: str) -> int:
    """Translate a level name like 'debug' into a logging constant (INFO if unknown)."""
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _init_logging() -> None:
    """Configure the root logger once."""
    global _initialized
    if _initialized:
        return
    level = _resolve_level(LOG_LEVEL)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, _DATE_FORMAT))
    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)
    if LOG_SQL:
        logging.getLogger(_SQL_TRACE_LOGGER).setLevel(logging.DEBUG)
    _initialized = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a named logger instance.

    Args:
        name: Usually ``__name__`` of the calling module.

    Returns:
        A configured logging.Logger.
    """
    _init_logging()
    return logging.getLogger(name)
