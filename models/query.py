"""
models/query.py
---------------
Per-call statement descriptions and the row shape returned by queries.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

# One result record: column name -> value, keys taken from cursor metadata.
Row = dict[str, Any]


@dataclass(frozen=True)
class QuerySpec:
    """
    Describes a SELECT against a single table.

    Attributes:
        table: Table (or table expression) to read from.
        distinct: Emit SELECT DISTINCT.
        columns: Projected columns in order; None or empty selects ``*``.
        where_clause: WHERE body using positional placeholders, without the keyword.
        where_args: Values bound to the placeholders of ``where_clause``.
        group_by: GROUP BY body, without the keyword.
        having: HAVING body; only allowed together with ``group_by``.
        order_by: ORDER BY body, without the keyword.
        limit: ``"count"`` or ``"offset, count"``.
    """
    table: str
    distinct: bool = False
    columns: Optional[tuple[Optional[str], ...]] = None
    where_clause: Optional[str] = None
    where_args: tuple[Any, ...] = ()
    group_by: Optional[str] = None
    having: Optional[str] = None
    order_by: Optional[str] = None
    limit: Optional[str] = None

    def __post_init__(self) -> None:
        if self.columns is not None and not isinstance(self.columns, tuple):
            object.__setattr__(self, "columns", tuple(self.columns))
        if not isinstance(self.where_args, tuple):
            object.__setattr__(self, "where_args", tuple(self.where_args or ()))


@dataclass(frozen=True)
class MutationSpec:
    """
    Describes an INSERT, UPDATE or DELETE against a single table.

    The iteration order of ``values`` and ``where_values`` fixes both the
    column order in the SQL text and the order of the bound arguments.

    Attributes:
        table: Target table.
        values: Column -> new value (INSERT/UPDATE).
        where_values: Column -> value equality predicates joined with AND.
            Empty or None means the statement touches every row.
    """
    table: str
    values: Mapping[str, Any] = field(default_factory=dict)
    where_values: Optional[Mapping[str, Any]] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", dict(self.values or {}))
        if self.where_values is not None:
            object.__setattr__(self, "where_values", dict(self.where_values))

    @property
    def affects_all_rows(self) -> bool:
        """True when no WHERE predicate will be emitted."""
        return not self.where_values

