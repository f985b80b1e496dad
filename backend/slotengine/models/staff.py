# backend/slotengine/models/staff.py
"""
Staff members and their holiday exceptions.

``weekly_schedule`` holds the JSON form of a WeeklySchedule: weekday name to a
list of ``{"start": "HH:MM", "end": "HH:MM"}`` periods in the tenant's
reference timezone. It is validated when written; readers still tolerate a
malformed day by treating it as closed.
"""

from sqlalchemy import JSON, Column, Date, ForeignKey, Index, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base
from .types import UTCDateTime


class Staff(Base):
    __tablename__ = "staff"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    tenant_id = Column(String(26), ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    weekly_schedule = Column(JSON, nullable=True)
    created_at = Column(UTCDateTime(), server_default=func.now(), nullable=False)
    deleted_at = Column(UTCDateTime(), nullable=True)

    tenant = relationship("Tenant", back_populates="staff_members")
    holidays = relationship("StaffHoliday", back_populates="staff", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Staff {self.name}>"


class StaffHoliday(Base):
    """
    A calendar date on which a staff member is unavailable.

    ``date`` is interpreted in the tenant's reference timezone. Duplicate rows
    for the same date are allowed and harmless.
    """

    __tablename__ = "staff_holidays"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    staff_id = Column(String(26), ForeignKey("staff.id"), nullable=False)
    date = Column(Date, nullable=False)
    reason = Column(Text, nullable=True)
    created_at = Column(UTCDateTime(), server_default=func.now(), nullable=False)

    staff = relationship("Staff", back_populates="holidays")

    __table_args__ = (Index("idx_staff_holidays_staff_date", "staff_id", "date"),)

    def __repr__(self) -> str:
        return f"<StaffHoliday {self.staff_id} {self.date}>"
