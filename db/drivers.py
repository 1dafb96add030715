"""
db/drivers.py
-------------
Thin adapter over DB-API 2.0 driver modules (psycopg2, sqlite3, ...).

Knows which placeholder a driver expects, how to hand it the configured
URL and credentials, and how to probe a connection for liveness.
"""

import importlib
from contextlib import closing
from dataclasses import dataclass, field
from typing import Any, Callable

from psycopg2 import extras

from db.errors import ConfigurationError
from models.pool_config import PoolConfig
from utils.logger import get_logger

logger = get_logger(__name__)

# DB-API paramstyle -> positional marker used by the statement builder.
_PLACEHOLDERS = {
    "qmark": "?",
    "format": "%s",
    "pyformat": "%s",
}


def _connect_sqlite3(module, config: PoolConfig):
    # Pooled connections move between threads.
    return module.connect(config.url, check_same_thread=False)


def _connect_with_credentials(module, config: PoolConfig):
    kwargs: dict[str, Any] = {}
    if config.username:
        kwargs["user"] = config.username
    if config.password:
        kwargs["password"] = config.password
    return module.connect(config.url, **kwargs)


_CONNECTORS: dict[str, Callable[[Any, PoolConfig], Any]] = {
    "sqlite3": _connect_sqlite3,
}

# Cursors that already yield rows as column -> value mappings.
_CURSOR_OPTIONS: dict[str, dict[str, Any]] = {
    "psycopg2": {"cursor_factory": extras.RealDictCursor},
}

# sqlite3 keeps its implicit-transaction mode; the others get autocommit=False.
_IMPLICIT_TRANSACTIONS = frozenset({"sqlite3"})


@dataclass(frozen=True)
class Driver:
    """
    A loaded database driver.

    Attributes:
        name: Module name the driver was loaded from.
        placeholder: Positional parameter marker for SQL text.
        connect_fn: Opens one physical connection for a PoolConfig.
        manages_autocommit: Whether mutations must switch autocommit off first.
        cursor_options: Keyword arguments for conn.cursor() on query paths.
    """
    name: str
    placeholder: str
    connect_fn: Callable[[PoolConfig], Any] = field(repr=False)
    manages_autocommit: bool = True
    cursor_options: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    def connect(self, config: PoolConfig):
        """Open a new physical connection."""
        return self.connect_fn(config)

    def open_cursor(self, conn):
        """Open a cursor, with dict rows where the driver offers them."""
        return conn.cursor(**self.cursor_options)

    def disable_autocommit(self, conn) -> None:
        """Make sure the next statements run inside an explicit transaction."""
        if self.manages_autocommit and getattr(conn, "autocommit", False):
            conn.autocommit = False

    def is_alive(self, conn, test_query: str) -> bool:
        """
        Run the liveness probe on a connection.

        Returns:
            True if the probe succeeded, False if the connection is unusable.
        """
        try:
            with closing(conn.cursor()) as cur:
                cur.execute(test_query)
                cur.fetchone()
            conn.rollback()
            return True
        except Exception as e:
            logger.warning(f"Connection failed liveness test: {e}")
            return False


def load_driver(identifier: str) -> Driver:
    """
    Import a DB-API module and wrap it in a Driver.

    Args:
        identifier: Module name, e.g. 'psycopg2' or 'sqlite3'.

    Raises:
        ConfigurationError: If the module cannot be imported, has no
            connect(), or uses a non-positional paramstyle.
    """
    try:
        module = importlib.import_module(identifier)
    except ImportError as e:
        raise ConfigurationError(f"Database driver {identifier!r} is not installed: {e}") from e

    if not callable(getattr(module, "connect", None)):
        raise ConfigurationError(f"Module {identifier!r} is not a DB-API driver (no connect()).")

    paramstyle = getattr(module, "paramstyle", None)
    placeholder = _PLACEHOLDERS.get(paramstyle)
    if placeholder is None:
        raise ConfigurationError(
            f"Driver {identifier!r} uses paramstyle {paramstyle!r}; only positional styles are supported."
        )

    base = identifier.split(".", 1)[0]
    connector = _CONNECTORS.get(base, _connect_with_credentials)
    return Driver(
        name=identifier,
        placeholder=placeholder,
        connect_fn=lambda config: connector(module, config),
        manages_autocommit=base not in _IMPLICIT_TRANSACTIONS,
        cursor_options=_CURSOR_OPTIONS.get(base, {}),
    )
