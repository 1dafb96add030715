"""Tests for DB-API driver loading."""

from __future__ import annotations

import sys
import types

import pytest
from psycopg2.extras import RealDictCursor

from db.drivers import load_driver
from db.errors import ConfigurationError
from models.pool_config import PoolConfig


def _fake_module(monkeypatch: pytest.MonkeyPatch, name: str, paramstyle: str) -> list[tuple]:
    calls: list[tuple] = []
    module = types.ModuleType(name)
    module.paramstyle = paramstyle
    module.connect = lambda *args, **kwargs: calls.append((args, kwargs)) or object()
    monkeypatch.setitem(sys.modules, name, module)
    return calls


def test_sqlite3_driver(tmp_path) -> None:
    driver = load_driver("sqlite3")
    config = PoolConfig(driver="sqlite3", url=str(tmp_path / "d.db"))

    conn = driver.connect(config)

    assert driver.placeholder == "?"
    assert driver.manages_autocommit is False
    assert driver.is_alive(conn, "SELECT 1") is True
    conn.close()
    assert driver.is_alive(conn, "SELECT 1") is False


def test_format_driver_gets_percent_placeholder_and_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _fake_module(monkeypatch, "fake_pg_driver", "pyformat")
    driver = load_driver("fake_pg_driver")
    config = PoolConfig(
        driver="fake_pg_driver",
        url="postgresql://db:5432/app",
        username="app",
        password="secret",
    )

    driver.connect(config)

    assert driver.placeholder == "%s"
    assert driver.manages_autocommit is True
    assert calls == [(("postgresql://db:5432/app",), {"user": "app", "password": "secret"})]


def test_disable_autocommit_switches_it_off(monkeypatch: pytest.MonkeyPatch) -> None:
    _fake_module(monkeypatch, "fake_autocommit_driver", "format")
    driver = load_driver("fake_autocommit_driver")
    conn = types.SimpleNamespace(autocommit=True)

    driver.disable_autocommit(conn)

    assert conn.autocommit is False


def test_missing_driver_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        load_driver("definitely_not_a_db_driver")


def test_module_without_connect_is_rejected() -> None:
    with pytest.raises(ConfigurationError):
        load_driver("json")


def test_named_paramstyle_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    _fake_module(monkeypatch, "fake_named_driver", "named")

    with pytest.raises(ConfigurationError):
        load_driver("fake_named_driver")


def test_psycopg2_queries_use_dict_cursors() -> None:
    driver = load_driver("psycopg2")
    requested: list[dict] = []
    conn = types.SimpleNamespace(cursor=lambda **kwargs: requested.append(kwargs))

    driver.open_cursor(conn)

    assert driver.placeholder == "%s"
    assert requested == [{"cursor_factory": RealDictCursor}]


def test_other_drivers_open_plain_cursors(tmp_path) -> None:
    driver = load_driver("sqlite3")
    conn = driver.connect(PoolConfig(driver="sqlite3", url=str(tmp_path / "c.db")))

    cur = driver.open_cursor(conn)

    assert driver.cursor_options == {}
    cur.close()
    conn.close()
