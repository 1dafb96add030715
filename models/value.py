"""
models/value.py
---------------
Tagged value type for bound statement arguments.

Column values arrive as loose Python objects; each one is classified into a
SqlValue before it is bound, so unsupported types are rejected up front.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any

from db.errors import UnsupportedValueType


class ValueKind(Enum):
    """SQL-side category of a bound value."""
    NULL = "null"
    BOOLEAN = "boolean"
    INTEGER = "integer"
    REAL = "real"
    DECIMAL = "decimal"
    TEXT = "text"
    BYTES = "bytes"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"


# Order matters: bool is an int subclass and datetime is a date subclass.
_CLASSIFIERS = (
    (bool, ValueKind.BOOLEAN),
    (int, ValueKind.INTEGER),
    (float, ValueKind.REAL),
    (Decimal, ValueKind.DECIMAL),
    (str, ValueKind.TEXT),
    ((bytes, bytearray, memoryview), ValueKind.BYTES),
    (datetime, ValueKind.DATETIME),
    (date, ValueKind.DATE),
    (time, ValueKind.TIME),
)

_QUOTED_KINDS = frozenset({ValueKind.TEXT, ValueKind.DATE, ValueKind.TIME, ValueKind.DATETIME})


@dataclass(frozen=True)
class SqlValue:
    """
    A single value bound to a positional placeholder.

    Attributes:
        kind: The SQL category the value was classified into.
        value: The Python payload handed to the driver.
    """
    kind: ValueKind
    value: Any = None

    @classmethod
    def of(cls, obj: Any) -> "SqlValue":
        """
        Classify a Python object.

        Args:
            obj: Any value from a caller's key/value mapping, or a SqlValue.

        Returns:
            The matching SqlValue (``obj`` itself if it already is one).

        Raises:
            UnsupportedValueType: If the type has no SQL counterpart.
        """
        if isinstance(obj, SqlValue):
            return obj
        if obj is None:
            return cls(ValueKind.NULL)
        for types, kind in _CLASSIFIERS:
            if isinstance(obj, types):
                if kind is ValueKind.BYTES:
                    obj = bytes(obj)
                return cls(kind, obj)
        raise UnsupportedValueType(
            f"Cannot bind value of type {type(obj).__name__!r}: {obj!r}"
        )

    @property
    def is_null(self) -> bool:
        return self.kind is ValueKind.NULL

    def bind(self) -> Any:
        """Return the value in the form the DB-API driver expects."""
        return self.value

    def __str__(self) -> str:
        if self.is_null:
            return "NULL"
        if self.kind in _QUOTED_KINDS:
            return f"'{self.value}'"
        return str(self.value)


def to_sql_values(values) -> tuple[SqlValue, ...]:
    """Classify every item of an argument sequence (None means no arguments)."""
    if values is None:
        return ()
    return tuple(SqlValue.of(v) for v in values)
