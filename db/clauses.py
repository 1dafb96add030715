"""
db/clauses.py
-------------
Checks on the optional SELECT fragments before any SQL is assembled.
"""

import re
from typing import Optional

from db.errors import InvalidClauseCombination, InvalidLimitSyntax

# "count" or "offset, count"
LIMIT_PATTERN = re.compile(r"\s*[0-9]+\s*(,\s*[0-9]+\s*)?")


def is_empty(fragment: Optional[str]) -> bool:
    """True for None and the empty string."""
    return fragment is None or len(fragment) == 0


def validate(group_by: Optional[str], having: Optional[str], limit: Optional[str]) -> None:
    """
    Validate the GROUP BY / HAVING / LIMIT combination of a SELECT.

    Args:
        group_by: GROUP BY body or None.
        having: HAVING body or None.
        limit: LIMIT body or None.

    Raises:
        InvalidClauseCombination: If HAVING is given without GROUP BY.
        InvalidLimitSyntax: If LIMIT is neither ``n`` nor ``offset, n``.
    """
    if is_empty(group_by) and not is_empty(having):
        raise InvalidClauseCombination(
            "HAVING clauses are only permitted when using a GROUP BY clause"
        )
    if not is_empty(limit) and LIMIT_PATTERN.fullmatch(limit) is None:
        raise InvalidLimitSyntax(f"Invalid LIMIT clause: {limit!r}")
