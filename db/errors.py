"""
db/errors.py
------------
Exception hierarchy for the data access layer.

Validation errors are raised before any database contact; execution and
pool errors wrap the driver exception that caused them (``raise ... from``).
"""


class DBUtilError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(DBUtilError):
    """Pool settings or driver selection are unusable."""


# ── Validation ────────────────────────────────────────────

class ValidationError(DBUtilError, ValueError):
    """Caller input cannot be turned into a statement. Never retried."""


class InvalidClauseCombination(ValidationError):
    """A HAVING clause was given without a GROUP BY clause."""


class InvalidLimitSyntax(ValidationError):
    """A LIMIT clause is not ``count`` or ``offset, count``."""


class UnsupportedValueType(ValidationError):
    """A bound value has a Python type with no SQL counterpart."""


# ── Execution ─────────────────────────────────────────────

class ExecutionError(DBUtilError):
    """A statement, commit or cursor read failed. Mutations are already rolled back."""


# ── Pool ──────────────────────────────────────────────────

class PoolError(DBUtilError):
    """Generic connection pool failure."""


class PoolExhaustedError(PoolError, TimeoutError):
    """No connection became available within the checkout timeout."""


class ConnectionAcquireError(PoolError):
    """New physical connections could not be opened after all retries."""


class PoolBrokenError(ConnectionAcquireError):
    """The pool gave up after an acquire failure and refuses further work."""


class PoolClosedError(PoolError):
    """The pool has been shut down."""
