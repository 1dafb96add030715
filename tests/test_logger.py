"""Tests for logging setup."""

from __future__ import annotations

import logging

from utils.logger import _resolve_level, get_logger


def test_level_names_are_resolved() -> None:
    assert _resolve_level("debug") == logging.DEBUG
    assert _resolve_level(" WARNING ") == logging.WARNING
    assert _resolve_level("chatty") == logging.INFO


def test_get_logger_returns_named_logger() -> None:
    logger = get_logger("db.connection")

    assert logger.name == "db.connection"
    assert logging.getLogger().handlers
