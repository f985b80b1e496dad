# backend/slotengine/schemas/reservation.py
"""Reservation request and response schemas."""

from datetime import datetime
from typing import Optional

from pydantic import ConfigDict

from .base import StandardizedModel, UTCWindowModel


class ReservationCreate(UTCWindowModel):
    service_id: str
    staff_id: Optional[str] = None


class ReservationReschedule(UTCWindowModel):
    pass


class ReservationResponse(StandardizedModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    id: str
    tenant_id: str
    service_id: str
    staff_id: Optional[str] = None
    start_utc: datetime
    end_utc: datetime
    occupied_end_utc: datetime
    buffer_minutes: int
    status: str
