"""
Helpers for working with SQLAlchemy sessions in a dialect-agnostic way.
"""

from __future__ import annotations

from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

# SQLSTATE codes raised when concurrent transactions collide
SERIALIZATION_FAILURE = "40001"
DEADLOCK_DETECTED = "40P01"

_CONCURRENCY_MESSAGES = (
    "deadlock detected",
    "could not serialize access",
    "database is locked",
)


def get_dialect_name(session: Session, default: str = "sqlite") -> str:
    """
    Return SQLAlchemy dialect name for the session's bind.

    Falls back to ``default`` when the bound engine cannot be resolved.
    """
    bind = session.get_bind()
    dialect = getattr(bind, "dialect", None)
    return getattr(dialect, "name", None) or default


def get_sqlstate(exc: DBAPIError) -> str | None:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def is_concurrency_conflict(exc: DBAPIError) -> bool:
    """True for serialization failures and deadlocks between competing writers."""
    if get_sqlstate(exc) in {SERIALIZATION_FAILURE, DEADLOCK_DETECTED}:
        return True
    message = str(exc).lower()
    return any(snippet in message for snippet in _CONCURRENCY_MESSAGES)
