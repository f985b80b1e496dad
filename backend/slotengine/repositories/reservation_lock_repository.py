# backend/slotengine/repositories/reservation_lock_repository.py
"""
Lock rows used by the reservation gate.

Each row is keyed by (tenant, scope, bucket). Claiming a window means making
sure every row it touches exists, then locking them in one sorted pass:

- PostgreSQL: ``SELECT ... FOR UPDATE`` in key order, bounded by
  ``SET LOCAL lock_timeout``.
- SQLite: the unit of work already holds the database write lock
  (``BEGIN IMMEDIATE``); the version bump keeps the write path identical.

Driver errors (lock timeout, deadlock, busy) propagate as OperationalError;
translating them is the gate's job.
"""

from datetime import datetime
from typing import Iterable, List, Sequence, Tuple

from sqlalchemy import text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session
import ulid

from ..models.reservation import ReservationLock
from .base_repository import BaseRepository

LockKey = Tuple[str, datetime]  # (scope_key, bucket_start)


class ReservationLockRepository(BaseRepository[ReservationLock]):
    def __init__(self, db: Session):
        super().__init__(db, ReservationLock)

    def set_lock_timeout(self, seconds: float) -> None:
        """Bound lock waits for the rest of the transaction (PostgreSQL only)."""
        if self.dialect_name == "postgresql":
            self.db.execute(text(f"SET LOCAL lock_timeout = '{int(seconds * 1000)}ms'"))

    def ensure_rows(self, tenant_id: str, keys: Iterable[LockKey]) -> None:
        """Insert any missing lock rows, ignoring ones that already exist."""
        dialect_insert = postgresql.insert if self.dialect_name == "postgresql" else sqlite.insert
        for scope_key, bucket_start in keys:
            stmt = (
                dialect_insert(ReservationLock)
                .values(
                    id=str(ulid.ULID()),
                    tenant_id=tenant_id,
                    scope_key=scope_key,
                    bucket_start=bucket_start,
                    version=0,
                )
                .on_conflict_do_nothing(index_elements=["tenant_id", "scope_key", "bucket_start"])
            )
            self.db.execute(stmt)

    def lock_rows(self, tenant_id: str, keys: Sequence[LockKey]) -> List[ReservationLock]:
        """
        Lock the rows for ``keys`` in (scope_key, bucket_start) order.

        Returns:
            The locked rows with their version incremented
        """
        ordered = sorted(set(keys))
        if not ordered:
            return []
        self.ensure_rows(tenant_id, ordered)

        # Keys are every scope crossed with one contiguous run of buckets
        scopes = sorted({scope_key for scope_key, _ in ordered})
        first_bucket = min(bucket for _, bucket in ordered)
        last_bucket = max(bucket for _, bucket in ordered)

        locks = (
            self.db.query(ReservationLock)
            .filter(
                ReservationLock.tenant_id == tenant_id,
                ReservationLock.scope_key.in_(scopes),
                ReservationLock.bucket_start >= first_bucket,
                ReservationLock.bucket_start <= last_bucket,
            )
            .order_by(ReservationLock.scope_key, ReservationLock.bucket_start)
            .with_for_update()
            .populate_existing()
            .all()
        )
        for lock in locks:
            lock.version = (lock.version or 0) + 1
        self.db.flush()
        return locks
