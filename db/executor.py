"""
db/executor.py
--------------
Runs statements on pooled connections.

Every call borrows exactly one connection for its whole duration and
always gives it back. Mutations run in an explicit transaction that is
committed on success and rolled back on any failure.
"""

from typing import Any, Mapping, Optional, Sequence

from db.connection import ConnectionPool
from db.errors import ExecutionError
from models.query import Row
from models.value import SqlValue, to_sql_values
from utils.logger import get_logger

logger = get_logger(__name__)


def format_trace(sql: str, args: Optional[Sequence[Any]] = None, placeholder: str = "?") -> str:
    """
    Render a statement with its arguments inlined, for log output only.

    The result is not safe to execute; it exists so a human can read what ran.
    """
    if not args:
        return sql
    pieces: list[str] = []
    position = 0
    for arg in args:
        index = sql.find(placeholder, position)
        if index == -1:
            break
        pieces.append(sql[position:index])
        pieces.append(str(SqlValue.of(arg)))
        position = index + len(placeholder)
    pieces.append(sql[position:])
    return "".join(pieces)


def execute_mutation(pool: ConnectionPool, sql: str, args: Optional[Sequence[Any]] = None) -> int:
    """
    Execute an INSERT / UPDATE / DELETE (or other DML) and commit it.

    Args:
        pool: Pool to borrow the connection from.
        sql: Statement text with positional placeholders.
        args: Values bound to the placeholders, in order.

    Returns:
        Number of affected rows as reported by the driver.

    Raises:
        ValidationError: If an argument has an unsupported type.
        ExecutionError: If execution or commit failed (already rolled back).
        PoolError: If no connection could be acquired.
    """
    params = _bind(args)
    logger.debug(f"Executing: {format_trace(sql, params, pool.placeholder)}")
    with pool.connection() as conn:
        cur = None
        try:
            pool.driver.disable_autocommit(conn)
            cur = conn.cursor()
            _run(cur, sql, params)
            affected = cur.rowcount
            _close_cursor(cur)
            cur = None
            conn.commit()
        except Exception as e:
            if cur is not None:
                _close_cursor(cur)
            _rollback(conn)
            logger.error(f"Statement failed and was rolled back: {e}")
            raise ExecutionError(f"Failed to execute statement: {e}") from e

    logger.info(f"{_operation(sql)} affected {affected} row(s).")
    return affected


def execute_query(pool: ConnectionPool, sql: str, args: Optional[Sequence[Any]] = None) -> list[Row]:
    """
    Execute a query and drain its cursor.

    Args:
        pool: Pool to borrow the connection from.
        sql: Statement text with positional placeholders.
        args: Values bound to the placeholders, in order.

    Returns:
        One dict per row, in cursor order, keyed by column name.
        An empty list when nothing matched.

    Raises:
        ValidationError: If an argument has an unsupported type.
        ExecutionError: If the statement or the fetch failed.
        PoolError: If no connection could be acquired.
    """
    params = _bind(args)
    logger.debug(f"Executing: {format_trace(sql, params, pool.placeholder)}")
    with pool.connection() as conn:
        cur = None
        try:
            cur = pool.driver.open_cursor(conn)
            _run(cur, sql, params)
            rows = _drain(cur)
        except Exception as e:
            logger.error(f"Query failed: {e}")
            raise ExecutionError(f"Failed to execute query: {e}") from e
        finally:
            if cur is not None:
                _close_cursor(cur)

    logger.debug(f"Query returned {len(rows)} row(s).")
    return rows


# ── Helpers ───────────────────────────────────────────────

def _bind(args: Optional[Sequence[Any]]) -> tuple[Any, ...]:
    return tuple(value.bind() for value in to_sql_values(args))


def _run(cur, sql: str, params: tuple[Any, ...]) -> None:
    # Without arguments some drivers (psycopg2) must not see a params tuple,
    # otherwise literal '%' characters in the SQL are treated as markers.
    if params:
        cur.execute(sql, params)
    else:
        cur.execute(sql)


def _drain(cur) -> list[Row]:
    if cur.description is None:
        return []
    columns = [column[0] for column in cur.description]
    return [
        dict(record) if isinstance(record, Mapping) else dict(zip(columns, record))
        for record in cur.fetchall()
    ]


def _rollback(conn) -> None:
    try:
        conn.rollback()
    except Exception as e:
        logger.error(f"Rollback failed: {e}")


def _close_cursor(cur) -> None:
    try:
        cur.close()
    except Exception as e:
        logger.warning(f"Failed to close cursor: {e}")


def _operation(sql: str) -> str:
    head = sql.lstrip().split(None, 1)
    return head[0].upper() if head else "Statement"
