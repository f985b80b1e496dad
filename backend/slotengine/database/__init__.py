"""
Database engine, session factory, and metadata shared across the application.
"""

from __future__ import annotations

import logging
from typing import Any, Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from ..core.config import settings

logger = logging.getLogger(__name__)

# Execution option read by the SQLite "begin" listener; UnitOfWork sets it to
# IMMEDIATE so write transactions take the database write lock up front.
SQLITE_BEGIN_MODE_OPTION = "slotengine_sqlite_begin"


def _install_sqlite_transaction_control(engine: Engine, busy_timeout_seconds: float) -> None:
    """
    Hand BEGIN emission to SQLAlchemy instead of pysqlite.

    pysqlite defers BEGIN until the first DML statement, which lets two writers
    both hold a read lock and then fail to upgrade without waiting on the busy
    handler. Emitting BEGIN ourselves lets a unit of work ask for IMMEDIATE.
    """

    @event.listens_for(engine, "connect")
    def _sqlite_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute(f"PRAGMA busy_timeout = {int(busy_timeout_seconds * 1000)}")
        cursor.close()
        logger.debug("SQLite connection established")

    @event.listens_for(engine, "begin")
    def _sqlite_begin(conn: Any) -> None:
        mode = conn.get_execution_options().get(SQLITE_BEGIN_MODE_OPTION, "DEFERRED")
        conn.exec_driver_sql(f"BEGIN {mode}")


def create_store_engine(
    db_url: str, busy_timeout_seconds: Optional[float] = None, **kwargs: Any
) -> Engine:
    """
    Build an engine for the reservation store.

    SQLite engines get the busy timeout and explicit BEGIN handling used by the
    reservation gate; PostgreSQL engines keep pre-ping enabled.
    """
    if db_url.startswith("sqlite"):
        timeout = busy_timeout_seconds or settings.gate_lock_timeout_seconds
        connect_args = dict(kwargs.pop("connect_args", {}) or {})
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", timeout)
        store_engine = create_engine(db_url, connect_args=connect_args, future=True, **kwargs)
        _install_sqlite_transaction_control(store_engine, timeout)
        return store_engine

    kwargs.setdefault("pool_pre_ping", True)
    return create_engine(db_url, future=True, **kwargs)


engine: Engine = create_store_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base: DeclarativeMeta = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


__all__ = [
    "Base",
    "SQLITE_BEGIN_MODE_OPTION",
    "SessionLocal",
    "create_store_engine",
    "engine",
    "get_db",
]
