"""
repositories/table_repo.py
--------------------------
Generic data access for any table.
Builds parameterized statements from column -> value mappings and runs
them through the shared connection pool.
"""

from typing import Any, Mapping, Optional, Sequence

from db.connection import ConnectionPool
from db.executor import execute_mutation, execute_query
from db.statements import build_delete, build_insert, build_select, build_update, build_where
from models.query import MutationSpec, QuerySpec, Row
from utils.logger import get_logger

logger = get_logger(__name__)


class TableRepository:
    """
    CRUD operations on arbitrary tables.

    Table and column names are written into the SQL text as given and must
    come from trusted code; values are always bound as parameters.
    WHERE clauses passed as text use the driver's placeholder
    (``repo.placeholder``: ``?`` for sqlite3, ``%s`` for psycopg2).
    """

    def __init__(self, pool: ConnectionPool):
        self.pool = pool

    @property
    def placeholder(self) -> str:
        return self.pool.placeholder

    # ── CREATE ────────────────────────────────────────────

    def insert(self, table: str, values: Mapping[str, Any]) -> int:
        """
        Insert one row.

        Args:
            table: Target table.
            values: Column -> value for the new row.

        Returns:
            Number of inserted rows.
        """
        spec = MutationSpec(table, values)
        statement = build_insert(spec.table, spec.values, self.placeholder)
        return execute_mutation(self.pool, statement.sql, statement.params())

    # ── UPDATE ────────────────────────────────────────────

    def update(
        self,
        table: str,
        values: Mapping[str, Any],
        where_values: Optional[Mapping[str, Any]] = None,
    ) -> int:
        """
        Update rows matching all ``where_values`` equality predicates.

        Without ``where_values`` EVERY row of the table is updated.

        Returns:
            Number of updated rows.
        """
        spec = MutationSpec(table, values, where_values)
        if spec.affects_all_rows:
            logger.warning(f"UPDATE on {table} has no WHERE clause; all rows will be changed.")
        statement = build_update(spec.table, spec.values, spec.where_values, self.placeholder)
        return execute_mutation(self.pool, statement.sql, statement.params())

    # ── DELETE ────────────────────────────────────────────

    def delete(self, table: str, where_values: Optional[Mapping[str, Any]] = None) -> int:
        """
        Delete rows matching all ``where_values`` equality predicates.

        Without ``where_values`` EVERY row of the table is deleted.

        Returns:
            Number of deleted rows.
        """
        spec = MutationSpec(table, where_values=where_values)
        if spec.affects_all_rows:
            logger.warning(f"DELETE on {table} has no WHERE clause; all rows will be removed.")
        statement = build_delete(spec.table, spec.where_values, self.placeholder)
        return execute_mutation(self.pool, statement.sql, statement.params())

    # ── READ ──────────────────────────────────────────────

    def query_raw(self, sql: str) -> list[Row]:
        """
        Run a complete SQL query as-is.

        Nothing is parameterized here: never build ``sql`` from untrusted
        input, it is open to SQL injection.
        """
        return execute_query(self.pool, sql)

    def query_by(self, table: str, where_values: Optional[Mapping[str, Any]] = None) -> list[Row]:
        """Fetch all columns of the rows matching every column = value pair."""
        where, args = build_where(where_values, self.placeholder)
        return self.query(table, where_clause=where, where_args=args)

    def query_where(
        self, table: str, where_clause: Optional[str], where_args: Optional[Sequence[Any]] = None
    ) -> list[Row]:
        """
        Fetch all columns of the rows matching a parameterized WHERE body.

        Example:
            repo.query_where("emp", "age > ? AND dept = ?", [30, "sales"])
        """
        return self.query(table, where_clause=where_clause, where_args=where_args)

    def query(
        self,
        table: str,
        distinct: bool = False,
        columns: Optional[Sequence[Optional[str]]] = None,
        where_clause: Optional[str] = None,
        where_args: Optional[Sequence[Any]] = None,
        group_by: Optional[str] = None,
        having: Optional[str] = None,
        order_by: Optional[str] = None,
        limit: Optional[str] = None,
    ) -> list[Row]:
        """
        Fetch rows with the full set of SELECT options.

        Args:
            table: Table to read from.
            distinct: Return unique rows only.
            columns: Columns to project; None selects all.
            where_clause: WHERE body with placeholders (no keyword).
            where_args: Values for the placeholders in ``where_clause``.
            group_by: GROUP BY body.
            having: HAVING body; requires ``group_by``.
            order_by: ORDER BY body.
            limit: ``"n"`` or ``"offset, n"``.

        Returns:
            Matching rows; an empty list when nothing matched.

        Raises:
            InvalidClauseCombination: HAVING without GROUP BY.
            InvalidLimitSyntax: Malformed LIMIT.
        """
        return self.select(
            QuerySpec(
                table=table,
                distinct=distinct,
                columns=None if columns is None else tuple(columns),
                where_clause=where_clause,
                where_args=tuple(where_args or ()),
                group_by=group_by,
                having=having,
                order_by=order_by,
                limit=limit,
            )
        )

    def select(self, spec: QuerySpec) -> list[Row]:
        """Run a prepared QuerySpec."""
        sql = build_select(spec)
        return execute_query(self.pool, sql, spec.where_args)
