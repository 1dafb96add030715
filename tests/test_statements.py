"""Tests for the statement builder."""

from __future__ import annotations

import pytest

from db.errors import InvalidClauseCombination, InvalidLimitSyntax, UnsupportedValueType, ValidationError
from db.statements import build_delete, build_insert, build_select, build_update, build_where
from models.query import QuerySpec
from models.value import ValueKind


def test_insert_binds_values_in_column_order() -> None:
    statement = build_insert("emp", {"id": 1, "name": "alice", "age": 30})

    assert statement.sql == "INSERT INTO emp (id, name, age) VALUES (?, ?, ?)"
    assert statement.params() == (1, "alice", 30)
    assert [arg.kind for arg in statement.args] == [ValueKind.INTEGER, ValueKind.TEXT, ValueKind.INTEGER]


@pytest.mark.parametrize(
    "values",
    [
        {"a": 1},
        {"a": 1, "b": None},
        {"z": "last", "y": 2.5, "x": True, "w": b"raw"},
    ],
)
def test_insert_columns_placeholders_and_args_line_up(values: dict) -> None:
    statement = build_insert("t", values)

    columns = statement.sql.split("(")[1].split(")")[0].split(", ")
    markers = statement.sql.split("VALUES (")[1].rstrip(")").split(", ")
    assert columns == list(values)
    assert markers == ["?"] * len(values)
    assert statement.params() == tuple(values.values())


def test_insert_uses_driver_placeholder() -> None:
    statement = build_insert("emp", {"id": 1, "name": "alice"}, placeholder="%s")

    assert statement.sql == "INSERT INTO emp (id, name) VALUES (%s, %s)"


def test_insert_requires_values() -> None:
    with pytest.raises(ValidationError):
        build_insert("emp", {})


def test_insert_rejects_unsupported_values() -> None:
    with pytest.raises(UnsupportedValueType):
        build_insert("emp", {"id": object()})


def test_values_never_reach_sql_text() -> None:
    hostile = "x'); DROP TABLE emp; --"
    statement = build_update("emp", {"name": hostile}, {"id": 1})

    assert hostile not in statement.sql
    assert statement.params() == (hostile, 1)


def test_update_appends_where_args_after_values() -> None:
    statement = build_update("emp", {"name": "bob", "age": 41}, {"id": 7, "dept": "ops"})

    assert statement.sql == "UPDATE emp SET name = ?, age = ? WHERE id = ? AND dept = ?"
    assert statement.params() == ("bob", 41, 7, "ops")


@pytest.mark.parametrize("where_values", [None, {}])
def test_update_without_predicates_targets_whole_table(where_values) -> None:
    statement = build_update("emp", {"age": 0}, where_values)

    assert statement.sql == "UPDATE emp SET age = ?"
    assert "WHERE" not in statement.sql
    assert statement.params() == (0,)


def test_update_requires_values() -> None:
    with pytest.raises(ValidationError):
        build_update("emp", {}, {"id": 1})


def test_delete_with_predicates() -> None:
    statement = build_delete("emp", {"dept": "ops", "age": None}, placeholder="%s")

    assert statement.sql == "DELETE FROM emp WHERE dept = %s AND age = %s"
    assert statement.params() == ("ops", None)


@pytest.mark.parametrize("where_values", [None, {}])
def test_delete_without_predicates_targets_whole_table(where_values) -> None:
    statement = build_delete("emp", where_values)

    assert statement.sql == "DELETE FROM emp"
    assert statement.args == ()


def test_build_where() -> None:
    clause, args = build_where({"a": 1, "b": "x"})

    assert clause == "a = ? AND b = ?"
    assert [arg.bind() for arg in args] == [1, "x"]
    assert build_where(None) == ("", ())


def test_select_defaults_to_all_columns() -> None:
    assert build_select(QuerySpec(table="emp_test")) == "SELECT * FROM emp_test"


def test_select_with_every_clause() -> None:
    spec = QuerySpec(
        table="emp",
        distinct=True,
        columns=["dept", None, "COUNT(*) AS n"],
        where_clause="age > ?",
        where_args=[30],
        group_by="dept",
        having="COUNT(*) > 1",
        order_by="n DESC",
        limit="0, 10",
    )

    assert build_select(spec) == (
        "SELECT DISTINCT dept, COUNT(*) AS n FROM emp WHERE age > ? "
        "GROUP BY dept HAVING COUNT(*) > 1 ORDER BY n DESC LIMIT 0, 10"
    )
    assert spec.columns == ("dept", None, "COUNT(*) AS n")
    assert spec.where_args == (30,)


def test_select_skips_empty_clauses() -> None:
    spec = QuerySpec(table="emp", columns=[None], where_clause="", group_by="", order_by="", limit="")

    assert build_select(spec) == "SELECT * FROM emp"


def test_select_validates_before_building() -> None:
    with pytest.raises(InvalidClauseCombination):
        build_select(QuerySpec(table="emp", having="COUNT(*) > 1"))
    with pytest.raises(InvalidLimitSyntax):
        build_select(QuerySpec(table="emp", limit="all"))
