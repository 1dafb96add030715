"""
db/statements.py
----------------
Builds parameterized INSERT / UPDATE / DELETE / SELECT statements from
table names and column -> value mappings.

Values only ever travel as bound arguments; the SQL text contains
positional placeholders (``?`` by default, ``%s`` for psycopg2).
Table and column names are inserted verbatim and must come from trusted code.
"""

from typing import Any, Mapping, NamedTuple, Optional

from db.clauses import is_empty, validate
from db.errors import ValidationError
from models.query import QuerySpec
from models.value import SqlValue

DEFAULT_PLACEHOLDER = "?"


class Statement(NamedTuple):
    """SQL text plus its positional arguments, in placeholder order."""
    sql: str
    args: tuple[SqlValue, ...]

    def params(self) -> tuple[Any, ...]:
        """Driver-level values for cursor.execute()."""
        return tuple(arg.bind() for arg in self.args)


def build_where(
    where_values: Optional[Mapping[str, Any]], placeholder: str = DEFAULT_PLACEHOLDER
) -> tuple[str, tuple[SqlValue, ...]]:
    """
    Turn a column -> value mapping into AND-joined equality predicates.

    Returns:
        (clause, args) where clause has no WHERE keyword; ("", ()) for an empty mapping.
    """
    if not where_values:
        return "", ()
    clause = " AND ".join(f"{column} = {placeholder}" for column in where_values)
    args = tuple(SqlValue.of(value) for value in where_values.values())
    return clause, args


def build_insert(
    table: str, values: Mapping[str, Any], placeholder: str = DEFAULT_PLACEHOLDER
) -> Statement:
    """
    Build ``INSERT INTO <table> (<cols>) VALUES (<placeholders>)``.

    Raises:
        ValidationError: If ``values`` is empty or holds an unsupported value.
    """
    if not values:
        raise ValidationError(f"INSERT into {table} needs at least one column value")
    columns = ", ".join(values)
    markers = ", ".join(placeholder for _ in values)
    args = tuple(SqlValue.of(value) for value in values.values())
    return Statement(f"INSERT INTO {table} ({columns}) VALUES ({markers})", args)


def build_update(
    table: str,
    values: Mapping[str, Any],
    where_values: Optional[Mapping[str, Any]] = None,
    placeholder: str = DEFAULT_PLACEHOLDER,
) -> Statement:
    """
    Build ``UPDATE <table> SET a = ?, ... [WHERE x = ? AND ...]``.

    Without ``where_values`` no WHERE clause is emitted and the statement
    updates every row of the table.

    Raises:
        ValidationError: If ``values`` is empty or holds an unsupported value.
    """
    if not values:
        raise ValidationError(f"UPDATE of {table} needs at least one column value")
    assignments = ", ".join(f"{column} = {placeholder}" for column in values)
    args = tuple(SqlValue.of(value) for value in values.values())
    sql = f"UPDATE {table} SET {assignments}"
    where, where_args = build_where(where_values, placeholder)
    if where:
        sql += f" WHERE {where}"
    return Statement(sql, args + where_args)


def build_delete(
    table: str,
    where_values: Optional[Mapping[str, Any]] = None,
    placeholder: str = DEFAULT_PLACEHOLDER,
) -> Statement:
    """Build ``DELETE FROM <table> [WHERE ...]``; no predicates means every row."""
    sql = f"DELETE FROM {table}"
    where, where_args = build_where(where_values, placeholder)
    if where:
        sql += f" WHERE {where}"
    return Statement(sql, where_args)


def build_select(spec: QuerySpec) -> str:
    """
    Build the SELECT text for a QuerySpec.

    Clauses whose body is None or empty are left out. ``spec.where_args``
    are not part of the text; bind them alongside it.

    Raises:
        InvalidClauseCombination: HAVING without GROUP BY.
        InvalidLimitSyntax: Malformed LIMIT.
    """
    validate(spec.group_by, spec.having, spec.limit)

    parts = ["SELECT"]
    if spec.distinct:
        parts.append("DISTINCT")
    columns = [column for column in spec.columns or () if column is not None]
    parts.append(", ".join(columns) if columns else "*")
    parts.append(f"FROM {spec.table}")
    for keyword, body in (
        ("WHERE", spec.where_clause),
        ("GROUP BY", spec.group_by),
        ("HAVING", spec.having),
        ("ORDER BY", spec.order_by),
        ("LIMIT", spec.limit),
    ):
        if not is_empty(body):
            parts.append(f"{keyword} {body}")
    return " ".join(parts)
