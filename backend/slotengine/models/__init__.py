# backend/slotengine/models/__init__.py
"""
SQLAlchemy models for the slot engine.

Importing this package registers every table on ``Base.metadata``.
"""

from .reservation import (
    OCCUPYING_STATUSES,
    Reservation,
    ReservationLock,
    ReservationStatus,
)
from .service import Service
from .staff import Staff, StaffHoliday
from .tenant import Tenant

__all__ = [
    "OCCUPYING_STATUSES",
    "Reservation",
    "ReservationLock",
    "ReservationStatus",
    "Service",
    "Staff",
    "StaffHoliday",
    "Tenant",
]
