"""
db/connection.py
----------------
Manages the database connection pool.

Physical connections are kept in psycopg2's ThreadedConnectionPool, opened
through the configured Driver so any DB-API module can be pooled. On top of
it ConnectionPool adds blocking checkout with a timeout, connect retries,
liveness tests and idle eviction.

The pool is an explicit handle created by the application's composition
root with `open_pool()` (one per process). Connections are opened lazily on
first use and closed by `shutdown()`, which runs automatically when the
outermost `with` block owning the pool exits.

    with open_pool() as pool:
        repo = TableRepository(pool)
        ...
"""

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterator, Optional

from psycopg2 import pool as pg_pool

from config import load_pool_config
from db.drivers import Driver, load_driver
from db.errors import (
    ConnectionAcquireError,
    PoolBrokenError,
    PoolClosedError,
    PoolError,
    PoolExhaustedError,
)
from models.pool_config import PoolConfig
from utils.logger import get_logger

logger = get_logger(__name__)


class PoolState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    BROKEN = "broken"
    SHUTDOWN = "shutdown"


@dataclass(frozen=True)
class PoolStats:
    """Point-in-time pool counters."""
    state: PoolState
    total: int
    idle: int
    in_use: int


def _close(conn) -> None:
    try:
        conn.close()
    except Exception as e:
        logger.warning(f"Failed to close connection: {e}")


class _DriverConnectionPool(pg_pool.ThreadedConnectionPool):
    """
    psycopg2's threaded pool, opening connections with ``opener`` instead of
    psycopg2.connect().

    Released connections are always kept (the base class closes those above
    ``minconn``), and the time each one went idle is recorded for eviction.
    Connections still checked out when the pool is closed are closed as they
    come back.
    """

    def __init__(self, minconn: int, maxconn: int, opener: Callable[[], Any]):
        self._opener = opener
        self._idle_since: dict[int, float] = {}
        try:
            super().__init__(minconn, maxconn)
        except Exception:
            for conn in self._pool:
                _close(conn)
            raise

    # ── Base class hooks ──────────────────────────────────

    def _connect(self, key=None):
        conn = self._opener()
        if key is None:
            self._push_idle(conn, time.monotonic())
        else:
            self._used[key] = conn
            self._rused[id(conn)] = key
        return conn

    def _getconn(self, key=None):
        conn = super()._getconn(key)
        self._idle_since.pop(id(conn), None)
        return conn

    def _putconn(self, conn, key=None, close=False):
        if key is None:
            key = self._rused.get(id(conn))
            if key is None:
                raise pg_pool.PoolError("trying to put unkeyed connection")
        del self._used[key]
        del self._rused[id(conn)]
        if close or self.closed:
            _close(conn)
        else:
            self._push_idle(conn, time.monotonic())

    def _closeall(self):
        if self.closed:
            raise pg_pool.PoolError("connection pool is closed")
        for conn in self._pool:
            _close(conn)
        self._pool = []
        self._idle_since.clear()
        self.closed = True

    def _push_idle(self, conn, since: float) -> None:
        self._pool.append(conn)
        self._idle_since[id(conn)] = since

    # ── Extensions used by ConnectionPool ─────────────────

    def checked_out(self, conn) -> bool:
        with self._lock:
            return id(conn) in self._rused

    def take_idle(self):
        """Check out the most recently released idle connection, or None."""
        with self._lock:
            if self.closed or not self._pool:
                return None
            return self._getconn()

    def adopt(self, conn) -> None:
        """Register a connection opened outside the pool as checked out."""
        with self._lock:
            key = self._getkey()
            self._used[key] = conn
            self._rused[id(conn)] = key

    def add_idle(self, conn) -> bool:
        """Park a newly opened connection; False if the pool is closed."""
        with self._lock:
            if self.closed:
                return False
            self._push_idle(conn, time.monotonic())
            return True

    def idle_entries(self) -> list[tuple[Any, float]]:
        with self._lock:
            return [(conn, self._idle_since[id(conn)]) for conn in self._pool]

    def claim(self, conn) -> bool:
        """Check out one particular idle connection if it is still idle."""
        with self._lock:
            if not self._remove_idle(conn):
                return False
            key = self._getkey()
            self._used[key] = conn
            self._rused[id(conn)] = key
            return True

    def evict(self, conn) -> bool:
        """Drop an idle connection from the pool without closing it."""
        with self._lock:
            return self._remove_idle(conn)

    def restore(self, conn, since: float) -> None:
        """Return a claimed connection, keeping its original idle clock."""
        with self._lock:
            self._putconn(conn)
            if id(conn) in self._idle_since:
                self._idle_since[id(conn)] = since

    def counts(self) -> tuple[int, int]:
        """(idle, checked out)"""
        with self._lock:
            return len(self._pool), len(self._used)

    def _remove_idle(self, conn) -> bool:
        for index, idle in enumerate(self._pool):
            if idle is conn:
                del self._pool[index]
                self._idle_since.pop(id(conn), None)
                return True
        return False


class ConnectionPool:
    """
    Thread-safe pool of DB-API connections.

    Every checked-out connection, and every connection being opened, holds
    one of ``config.max_size`` permits, so at most that many physical
    connections exist. Callers beyond that block until a connection is
    released or the checkout timeout expires.
    """

    def __init__(self, config: PoolConfig, driver: Optional[Driver] = None):
        self.config = config
        self.driver = driver or load_driver(config.driver)
        self._state = PoolState.UNINITIALIZED
        self._store: Optional[_DriverConnectionPool] = None
        self._init_lock = threading.Lock()
        self._lock = threading.Lock()
        # Plain Semaphore: shutdown() releases an extra permit to wake waiters.
        self._permits = threading.Semaphore(config.max_size)
        self._opening = 0
        self._owners = 0
        self._stop = threading.Event()
        self._maintenance: Optional[threading.Thread] = None

    # ── Properties ────────────────────────────────────────

    @property
    def state(self) -> PoolState:
        return self._state

    @property
    def placeholder(self) -> str:
        """Positional parameter marker of the underlying driver."""
        return self.driver.placeholder

    def stats(self) -> PoolStats:
        idle, in_use = self._store.counts() if self._store is not None else (0, 0)
        with self._lock:
            opening = self._opening
        return PoolStats(state=self._state, total=idle + in_use + opening, idle=idle, in_use=in_use)

    # ── Checkout / checkin ────────────────────────────────

    def acquire(self, timeout: Optional[float] = None):
        """
        Check a connection out of the pool.

        Args:
            timeout: Seconds to wait for a free connection. Defaults to the
                configured checkout timeout (None waits forever).

        Returns:
            A DB-API connection. Hand it back with `release()`.

        Raises:
            PoolExhaustedError: No connection became free in time.
            ConnectionAcquireError: New connections could not be opened.
            PoolBrokenError: The pool broke after an acquire failure.
            PoolClosedError: The pool has been shut down.
        """
        self._ensure_ready()
        if timeout is None:
            timeout = self.config.checkout_timeout
        if not self._permits.acquire(timeout=timeout):
            raise PoolExhaustedError(
                f"No connection available within the checkout timeout "
                f"({self.config.max_size} in use)."
            )
        try:
            self._check_usable()
            while True:
                conn = self._store.take_idle()
                if conn is None:
                    return self._grow()
                if self.config.test_on_checkout and not self.driver.is_alive(conn, self.config.test_query):
                    self._store.putconn(conn, close=True)
                    continue
                return conn
        except BaseException:
            self._permits.release()
            raise

    def release(self, conn) -> None:
        """
        Return a connection to the pool.

        Any open transaction is rolled back. Connections that cannot be
        reset, or that fail the check-in test, are closed and replaced.

        Raises:
            PoolError: If the connection was not checked out from this pool.
        """
        store = self._store
        if store is None or not store.checked_out(conn):
            raise PoolError("Connection was not checked out from this pool.")
        try:
            if self._state is not PoolState.READY:
                store.putconn(conn, close=True)
                return
            healthy = self._reset(conn)
            if healthy and self.config.test_on_checkin:
                healthy = self.driver.is_alive(conn, self.config.test_query)
            if healthy:
                store.putconn(conn)
                return
            store.putconn(conn, close=True)
            self._replace()
        finally:
            self._permits.release()

    @contextmanager
    def connection(self, timeout: Optional[float] = None) -> Iterator[Any]:
        """Acquire a connection for the duration of a `with` block."""
        conn = self.acquire(timeout)
        try:
            yield conn
        finally:
            self.release(conn)

    # ── Maintenance ───────────────────────────────────────

    def maintain(self) -> int:
        """
        Test idle connections and evict stale or dead ones.

        Connections are tested one at a time, so the rest of the idle set
        stays available to callers during the pass. Runs periodically on a
        background thread every ``idle_test_period_sec`` seconds; safe to
        call directly.

        Returns:
            Number of connections closed.
        """
        store = self._store
        if self._state is not PoolState.READY or store is None:
            return 0

        max_idle = self.config.max_idle_time_sec
        evicted = 0
        for conn, since in store.idle_entries():
            if max_idle > 0 and time.monotonic() - since > max_idle:
                if store.evict(conn):
                    logger.info(f"Evicting connection idle for {time.monotonic() - since:.0f}s.")
                    _close(conn)
                    evicted += 1
                continue
            # Testing a connection takes a permit like any checkout.
            if not self._permits.acquire(blocking=False):
                break
            try:
                if not store.claim(conn):
                    continue
                if self.driver.is_alive(conn, self.config.test_query):
                    store.restore(conn, since)
                else:
                    store.putconn(conn, close=True)
                    evicted += 1
            finally:
                self._permits.release()
        return evicted

    def _maintenance_loop(self) -> None:
        period = self.config.idle_test_period_sec
        while not self._stop.wait(period):
            try:
                self.maintain()
            except Exception:
                logger.exception("Idle connection maintenance failed.")

    # ── Lifecycle ─────────────────────────────────────────

    def shutdown(self) -> None:
        """Close all idle connections and refuse further work. Idempotent."""
        with self._lock:
            if self._state is PoolState.SHUTDOWN:
                return
            self._state = PoolState.SHUTDOWN

        # Waiters wake one after another: each hands its permit on when it fails.
        self._permits.release()
        self._stop.set()
        thread = self._maintenance
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=5)

        if self._store is not None and not self._store.closed:
            self._store.closeall()
        logger.info("Database connection pool closed.")

    def __enter__(self) -> "ConnectionPool":
        with self._lock:
            self._owners += 1
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        with self._lock:
            self._owners -= 1
            last_owner = self._owners <= 0
        if last_owner:
            self.shutdown()

    # ── Internals ─────────────────────────────────────────

    def _check_usable(self) -> None:
        if self._state is PoolState.SHUTDOWN:
            raise PoolClosedError("Connection pool has been shut down.")
        if self._state is PoolState.BROKEN:
            raise PoolBrokenError("Connection pool is broken after repeated acquire failures.")

    def _ensure_ready(self) -> None:
        if self._state is PoolState.READY:
            return
        with self._init_lock:
            if self._state is PoolState.UNINITIALIZED:
                self._initialize()
        self._check_usable()

    def _initialize(self) -> None:
        """Open the initial connections. Called with the init lock held."""
        with self._lock:
            if self._state is not PoolState.UNINITIALIZED:
                return
            self._state = PoolState.INITIALIZING

        try:
            store = _DriverConnectionPool(self.config.initial_size, self.config.max_size, self._open_with_retry)
        except ConnectionAcquireError as e:
            with self._lock:
                if self._state is PoolState.SHUTDOWN:
                    raise PoolClosedError("Connection pool has been shut down.") from e
                if self.config.break_after_acquire_failure:
                    self._state = PoolState.BROKEN
                    logger.error("Connection pool marked as broken after acquire failure.")
                else:
                    self._state = PoolState.UNINITIALIZED
            if self.config.break_after_acquire_failure:
                raise PoolBrokenError(f"Connection pool is now broken: {e}") from e
            raise

        with self._lock:
            if self._state is not PoolState.SHUTDOWN:
                self._store = store
                self._state = PoolState.READY
        if self._state is not PoolState.READY:
            store.closeall()
            return

        logger.info(
            f"Database connection pool initialized successfully "
            f"({self.config.initial_size} connection(s), max {self.config.max_size})."
        )
        if self.config.idle_test_period_sec > 0:
            self._maintenance = threading.Thread(
                target=self._maintenance_loop,
                name="dbutil-pool-maintenance",
                daemon=True,
            )
            self._maintenance.start()

    def _grow(self):
        """
        Open a connection for the caller, plus up to ``acquire_increment - 1``
        spare ones parked as idle. Called holding one permit.
        """
        with self._lock:
            self._opening += 1
        try:
            conn = self._open_with_retry()
        except ConnectionAcquireError as e:
            if self.config.break_after_acquire_failure:
                with self._lock:
                    if self._state is not PoolState.SHUTDOWN:
                        self._state = PoolState.BROKEN
                        logger.error("Connection pool marked as broken after acquire failure.")
                raise PoolBrokenError(f"Connection pool is now broken: {e}") from e
            raise
        finally:
            with self._lock:
                self._opening -= 1

        self._store.adopt(conn)
        if self._state is not PoolState.READY:
            self._store.putconn(conn, close=True)
            self._check_usable()

        opened = 1
        for _ in range(self.config.acquire_increment - 1):
            if not self._open_spare():
                break
            opened += 1
        logger.debug(f"Opened {opened} new pooled connection(s).")
        return conn

    def _open_spare(self) -> bool:
        """Open one extra idle connection if a permit is free and nothing is idle."""
        if not self._permits.acquire(blocking=False):
            return False
        try:
            if self._store.counts()[0] > 0:
                return False
            try:
                conn = self.driver.connect(self.config)
            except Exception as e:
                logger.warning(f"Could not open additional pooled connection: {e}")
                return False
            if not self._store.add_idle(conn):
                _close(conn)
                return False
            return True
        finally:
            self._permits.release()

    def _open_with_retry(self):
        attempts = max(1, self.config.acquire_retry_attempts)
        last_error: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            if self._state is PoolState.SHUTDOWN:
                raise PoolClosedError("Connection pool has been shut down.")
            try:
                return self.driver.connect(self.config)
            except Exception as e:
                last_error = e
                logger.warning(f"Connection attempt {attempt}/{attempts} failed: {e}")
                if attempt < attempts:
                    time.sleep(self.config.retry_delay)
        logger.error(f"Could not open a database connection after {attempts} attempt(s).")
        raise ConnectionAcquireError(
            f"Could not open a database connection after {attempts} attempt(s): {last_error}"
        ) from last_error

    def _replace(self) -> None:
        """Open a substitute for a discarded connection. Called holding its permit."""
        try:
            conn = self.driver.connect(self.config)
        except Exception as e:
            logger.warning(f"Could not replace discarded connection: {e}")
            return
        if self._state is not PoolState.READY or not self._store.add_idle(conn):
            _close(conn)

    @staticmethod
    def _reset(conn) -> bool:
        try:
            conn.rollback()
            return True
        except Exception as e:
            logger.warning(f"Failed to reset connection on check-in: {e}")
            return False


def open_pool(config: Optional[PoolConfig] = None, driver: Optional[Driver] = None) -> ConnectionPool:
    """
    Create the application's connection pool.

    No connection is opened until the first `acquire()`. Create exactly one
    pool per process and share the handle; use it as a context manager so
    `shutdown()` runs when the owning scope ends.

    Args:
        config: Pool settings; defaults to `config.load_pool_config()`.
        driver: Pre-loaded driver; defaults to the one named in the config.

    Raises:
        ConfigurationError: If the settings or the driver are unusable.
    """
    return ConnectionPool(config or load_pool_config(), driver)
