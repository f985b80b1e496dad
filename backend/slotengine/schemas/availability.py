# backend/slotengine/schemas/availability.py
"""
Availability schemas for the slot engine.

A CandidateSlot is identified by its UTC window; the local fields are the
same instants rendered in the customer's timezone for display.
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .base import StandardizedModel, UTCWindowModel


class CandidateSlot(BaseModel):
    """A bookable (or, in flag mode, possibly booked) window. Never persisted."""

    model_config = ConfigDict(frozen=True)

    start_utc: datetime
    end_utc: datetime
    start_local: datetime
    end_local: datetime
    staff_id: Optional[str] = None
    available: bool = True


class SlotListResponse(StandardizedModel):
    tenant_id: str
    service_id: str
    staff_id: Optional[str] = None
    timezone: str
    start_date: date
    end_date: date
    slots: List[CandidateSlot] = Field(default_factory=list)


class AvailabilityCheckRequest(UTCWindowModel):
    service_id: str
    staff_id: Optional[str] = None


class AvailabilityCheckResponse(StandardizedModel):
    available: bool
    start_utc: datetime
    end_utc: datetime
    staff_id: Optional[str] = None
