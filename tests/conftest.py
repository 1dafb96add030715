"""Shared fixtures: fake DB-API connections and pools over them or sqlite3."""

from __future__ import annotations

import threading

import pytest

from db.connection import ConnectionPool, open_pool
from db.drivers import Driver
from models.pool_config import PoolConfig


class FakeCursor:
    def __init__(self, conn: "FakeConnection") -> None:
        self.conn = conn
        self.closed = False
        self.description = None
        self.rowcount = -1
        self._rows: list[tuple] = []

    def execute(self, sql: str, params=None) -> None:
        if not self.conn.alive or self.conn.closed:
            raise RuntimeError("server closed the connection unexpectedly")
        self.conn.executed.append((sql, params))
        if self.conn.fail_on and self.conn.fail_on in sql:
            raise RuntimeError(f"relation {self.conn.fail_on!r} does not exist")
        if sql.lstrip().upper().startswith("SELECT"):
            self.description = tuple((name, None, None, None, None, None, None) for name in self.conn.columns)
            self._rows = list(self.conn.rows)
            self.rowcount = len(self._rows)
        else:
            self.rowcount = self.conn.affected

    def fetchone(self):
        return self._rows[0] if self._rows else (1,)

    def fetchall(self):
        return list(self._rows)

    def close(self) -> None:
        self.closed = True


class FakeConnection:
    def __init__(self) -> None:
        self.alive = True
        self.closed = False
        self.commits = 0
        self.rollbacks = 0
        self.executed: list[tuple] = []
        self.fail_on: str | None = None
        self.columns: tuple[str, ...] = ()
        self.rows: list[tuple] = []
        self.affected = 1

    def cursor(self) -> FakeCursor:
        if self.closed:
            raise RuntimeError("connection already closed")
        return FakeCursor(self)

    def commit(self) -> None:
        self.commits += 1

    def rollback(self) -> None:
        if not self.alive:
            raise RuntimeError("server closed the connection unexpectedly")
        self.rollbacks += 1

    def close(self) -> None:
        self.closed = True


class FakeConnectionFactory:
    """Stands in for driver.connect(); can fail the first N calls."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.calls = 0
        self.created: list[FakeConnection] = []
        self._lock = threading.Lock()

    def __call__(self, _config: PoolConfig) -> FakeConnection:
        with self._lock:
            self.calls += 1
            if self.failures > 0:
                self.failures -= 1
                raise ConnectionError("could not connect to server")
            conn = FakeConnection()
            self.created.append(conn)
            return conn


def make_config(**overrides) -> PoolConfig:
    settings = dict(
        driver="fake",
        url="fake://localhost/test",
        initial_size=0,
        max_size=2,
        acquire_increment=1,
        acquire_retry_attempts=1,
        acquire_retry_delay_ms=0,
        idle_test_period_sec=0,
        max_idle_time_sec=0,
        checkout_timeout_ms=0,
    )
    settings.update(overrides)
    return PoolConfig(**settings)


@pytest.fixture
def factory() -> FakeConnectionFactory:
    return FakeConnectionFactory()


@pytest.fixture
def make_pool(factory: FakeConnectionFactory):
    pools: list[ConnectionPool] = []

    def _make(driver_type: type[Driver] = Driver, **overrides) -> ConnectionPool:
        driver = driver_type(name="fake", placeholder="?", connect_fn=factory, manages_autocommit=False)
        pool = ConnectionPool(make_config(**overrides), driver)
        pools.append(pool)
        return pool

    yield _make
    for pool in pools:
        pool.shutdown()


@pytest.fixture
def sqlite_pool(tmp_path):
    config = PoolConfig(
        driver="sqlite3",
        url=str(tmp_path / "emp.db"),
        initial_size=1,
        max_size=4,
        acquire_retry_attempts=1,
        acquire_retry_delay_ms=0,
        idle_test_period_sec=0,
    )
    with open_pool(config) as pool:
        with pool.connection() as conn:
            conn.execute(
                "CREATE TABLE emp_test (id INTEGER PRIMARY KEY, name TEXT, age INTEGER, dept TEXT)"
            )
            conn.commit()
        yield pool
