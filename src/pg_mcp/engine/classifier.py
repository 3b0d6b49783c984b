"""
Read-only statement classification.

A statement is blocked under read-only policy when its first keyword denotes a
data change, a schema change, a privilege change or a maintenance operation.
Only the leading keyword is examined; the statement is never parsed.

Blocked keywords:
    DML: INSERT, UPDATE, DELETE, TRUNCATE, MERGE
    DDL: CREATE, ALTER, DROP, RENAME
    DCL: GRANT, REVOKE
    Other: COPY, VACUUM, REINDEX, CLUSTER, COMMENT

Limitations:
    A comment preceding the keyword defeats the match, so
    "/* x */ DELETE FROM t" is not blocked.
"""

import re
from dataclasses import dataclass

BLOCKED_KEYWORDS: tuple[str, ...] = (
    # DML
    "INSERT",
    "UPDATE",
    "DELETE",
    "TRUNCATE",
    "MERGE",
    # DDL
    "CREATE",
    "ALTER",
    "DROP",
    "RENAME",
    # DCL
    "GRANT",
    "REVOKE",
    # Maintenance
    "COPY",
    "VACUUM",
    "REINDEX",
    "CLUSTER",
    "COMMENT",
)

# Keyword must end at a word boundary ("DELETED_AT" is not DELETE)
_BLOCKED_PATTERN = re.compile(
    r"^\s*(" + "|".join(BLOCKED_KEYWORDS) + r")\b",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class StatementClassification:
    """Outcome of classifying one SQL submission."""

    blocked: bool
    keyword: str | None = None


def classify(sql: str) -> StatementClassification:
    """Classify a SQL submission against the read-only policy.

    Example:
        classify("  delete from t").blocked  # True
        classify("WITH x AS (SELECT 1) SELECT * FROM x").blocked  # False
    """
    match = _BLOCKED_PATTERN.match(sql)
    if match is None:
        return StatementClassification(blocked=False)
    return StatementClassification(blocked=True, keyword=match.group(1).upper())


def is_blocked(sql: str) -> bool:
    """Return True if the statement is forbidden on a read-only connection."""
    return classify(sql).blocked


__all__ = ["BLOCKED_KEYWORDS", "StatementClassification", "classify", "is_blocked"]
