# backend/slotengine/models/reservation.py
"""
Reservation and reservation-lock models.

A reservation occupies ``[start_utc, occupied_end_utc)`` where
``occupied_end_utc = end_utc + buffer_minutes``. The buffer is snapshotted at
claim time so later edits to the service never move existing reservations.
Only CONFIRMED and COMPLETED reservations occupy time.
"""

from datetime import datetime, timedelta
from enum import Enum
from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.sql import func
import ulid

from ..database import Base
from .types import UTCDateTime


class ReservationStatus(str, Enum):
    """Reservation lifecycle statuses."""

    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


OCCUPYING_STATUSES = (ReservationStatus.CONFIRMED.value, ReservationStatus.COMPLETED.value)


class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    tenant_id = Column(String(26), ForeignKey("tenants.id"), nullable=False)
    service_id = Column(String(26), ForeignKey("services.id"), nullable=False)
    staff_id = Column(String(26), ForeignKey("staff.id"), nullable=True)

    start_utc = Column(UTCDateTime(), nullable=False)
    end_utc = Column(UTCDateTime(), nullable=False)
    buffer_minutes = Column(Integer, nullable=False, default=0)
    occupied_end_utc = Column(UTCDateTime(), nullable=False)

    status = Column(String(20), nullable=False, default=ReservationStatus.CONFIRMED.value, index=True)

    created_at = Column(UTCDateTime(), server_default=func.now(), nullable=False)
    updated_at = Column(UTCDateTime(), onupdate=func.now(), nullable=True)

    # Server-side timestamps are loaded at flush so detached rows stay readable
    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        Index("idx_reservations_tenant_start", "tenant_id", "start_utc"),
        Index("idx_reservations_staff_start", "staff_id", "start_utc"),
        CheckConstraint("end_utc > start_utc", name="check_reservation_window"),
        CheckConstraint("buffer_minutes >= 0", name="check_reservation_buffer"),
        CheckConstraint(
            "status IN ('confirmed', 'completed', 'cancelled', 'no_show')",
            name="check_reservation_status",
        ),
    )

    def set_window(self, start_utc: datetime, end_utc: datetime, buffer_minutes: int) -> None:
        """Move the reservation, recomputing its occupied end."""
        self.start_utc = start_utc
        self.end_utc = end_utc
        self.buffer_minutes = buffer_minutes
        self.occupied_end_utc = end_utc + timedelta(minutes=buffer_minutes)

    def cancel(self) -> None:
        self.status = ReservationStatus.CANCELLED.value

    def complete(self) -> None:
        self.status = ReservationStatus.COMPLETED.value

    def mark_no_show(self) -> None:
        self.status = ReservationStatus.NO_SHOW.value

    def __repr__(self) -> str:
        return f"<Reservation {self.id} {self.start_utc}-{self.end_utc} {self.status}>"


class ReservationLock(Base):
    """
    Serialization row for one (tenant, scope, time bucket).

    The reservation gate locks these rows before re-reading reservations so
    two claims touching the same bucket for the same scope never interleave.
    ``scope_key`` is a staff id, or ``*`` for tenant-wide claims.
    """

    __tablename__ = "reservation_locks"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    tenant_id = Column(String(26), nullable=False)
    scope_key = Column(String(26), nullable=False)
    bucket_start = Column(UTCDateTime(), nullable=False)
    version = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "scope_key", "bucket_start", name="uq_reservation_lock_scope_bucket"
        ),
    )
