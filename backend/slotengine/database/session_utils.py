"""
Dialect checks for sessions.

The reservation store behaves differently per backend (row locks on
PostgreSQL, ``BEGIN IMMEDIATE`` on SQLite), so callers ask the session which
one they are talking to.
"""

from sqlalchemy.exc import UnboundExecutionError
from sqlalchemy.orm import Session


def get_dialect_name(session: Session, default: str = "sqlite") -> str:
    """Dialect name of the session's bind, or ``default`` when it has none."""
    try:
        bind = session.get_bind()
    except UnboundExecutionError:
        return default
    dialect = getattr(bind, "dialect", None)
    return getattr(dialect, "name", None) or default


def is_sqlite(session: Session) -> bool:
    return get_dialect_name(session) == "sqlite"
