# backend/slotengine/database/unit_of_work.py
"""
Transaction context for reservation writes.

A UnitOfWork wraps one SQLAlchemy session transaction. Everything performed
through it (the reservation gate's lock acquisition, re-check and insert)
commits together on clean exit or rolls back together on any exception.

Usage:
    with UnitOfWork(db) as uow:
        gate.reserve(uow, tenant_id, service_id, start_utc, end_utc)

    result = run_with_retry("reserve", lambda: do_reserve())
"""

from __future__ import annotations

import logging
import random
import time
from types import TracebackType
from typing import Callable, Optional, Type, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from ..core.config import settings
from ..core.exceptions import TransactionAbortedException, is_lock_contention
from ..monitoring.prometheus_metrics import prometheus_metrics
from . import SQLITE_BEGIN_MODE_OPTION, SessionLocal
from .session_utils import is_sqlite

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UnitOfWork:
    """Explicit transaction boundary shared by every write in one claim."""

    def __init__(self, session: Session, *, owns_session: bool = False) -> None:
        self.session = session
        self._owns_session = owns_session
        self._active = False

    @classmethod
    def open(cls, session_factory: Optional[sessionmaker] = None) -> "UnitOfWork":
        """Create a unit of work over a fresh session that it closes on exit."""
        factory = session_factory or SessionLocal
        return cls(factory(), owns_session=True)

    @property
    def active(self) -> bool:
        return self._active

    def __enter__(self) -> "UnitOfWork":
        if is_sqlite(self.session) and not self.session.in_transaction():
            # Take the SQLite write lock at BEGIN; waiting is bounded by busy_timeout
            try:
                self.session.connection(
                    execution_options={SQLITE_BEGIN_MODE_OPTION: "IMMEDIATE"}
                )
            except OperationalError as exc:
                self.session.rollback()
                if self._owns_session:
                    self.session.close()
                if is_lock_contention(exc):
                    raise TransactionAbortedException(details={"stage": "begin"}) from exc
                raise
        self._active = True
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> bool:
        try:
            if exc_type is None:
                self.commit()
            else:
                self.rollback()
        finally:
            self._active = False
            if self._owns_session:
                self.session.close()
        return False

    def flush(self) -> None:
        self.session.flush()

    def commit(self) -> None:
        try:
            self.session.commit()
        except OperationalError as exc:
            self.session.rollback()
            if is_lock_contention(exc):
                raise TransactionAbortedException(details={"stage": "commit"}) from exc
            raise

    def rollback(self) -> None:
        self.session.rollback()


def _retry_delay(attempt: int) -> float:
    base = 0.1 * (2 ** (attempt - 1))
    return base + random.uniform(0, 0.05 * attempt)


def run_with_retry(
    op_name: str,
    func: Callable[[], T],
    *,
    max_attempts: Optional[int] = None,
) -> T:
    """
    Execute a reservation-store operation, retrying transient aborts.

    Only TransactionAbortedException is retried. Conflicts and input errors
    propagate on the first attempt.
    """
    attempts = max_attempts or settings.gate_max_attempts
    attempt = 1
    while True:
        try:
            return func()
        except TransactionAbortedException as exc:
            if attempt >= attempts:
                raise

            delay = _retry_delay(attempt)
            logger.warning(
                "Transient reservation store failure, retrying",
                extra={
                    "event": "gate_retry",
                    "op": op_name,
                    "attempt": attempt,
                    "delay": delay,
                    "error": exc.message,
                },
            )
            prometheus_metrics.record_gate_retry(op_name)
            time.sleep(delay)
            attempt += 1


__all__ = ["UnitOfWork", "run_with_retry"]
