# backend/slotengine/routes/availability.py
"""
Availability routes - API v1

Endpoints:
    GET /availability/slots - Bookable windows for a service
    POST /availability/check - Is one window currently free
"""

import asyncio
from datetime import date, timedelta
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..api.dependencies import get_availability_service
from ..core.config import settings
from ..core.exceptions import DomainException
from ..schemas.availability import (
    AvailabilityCheckRequest,
    AvailabilityCheckResponse,
    SlotListResponse,
)
from ..services.availability_service import AvailabilityService
from ..services.conflict_checker import DetectionMode
from ..services.timezone_service import TimezoneService
from . import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["availability"])


@router.get("/availability/slots", response_model=SlotListResponse)
async def list_slots(
    tenant_id: str,
    service_id: str = Query(..., description="Service to book"),
    staff_id: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None, description="First day, defaults to today"),
    end_date: Optional[date] = Query(None, description="Last day, inclusive"),
    timezone: str = Query("UTC", description="Customer timezone for local times"),
    include_booked: bool = Query(False, description="Return booked windows as unavailable"),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> SlotListResponse:
    """Get bookable windows in the customer's timezone."""
    try:
        first_day = start_date or TimezoneService.today_in(timezone)
        last_day = end_date or first_day + timedelta(days=settings.availability_default_range_days)
        mode = DetectionMode.FLAG if include_booked else DetectionMode.FILTER

        slots = await asyncio.to_thread(
            availability_service.generate_slots,
            tenant_id,
            service_id,
            staff_id,
            first_day,
            last_day,
            timezone,
            mode,
        )
        return SlotListResponse(
            tenant_id=tenant_id,
            service_id=service_id,
            staff_id=staff_id,
            timezone=timezone,
            start_date=first_day,
            end_date=last_day,
            slots=slots,
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/availability/check", response_model=AvailabilityCheckResponse)
async def check_availability(
    tenant_id: str,
    payload: AvailabilityCheckRequest,
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityCheckResponse:
    """Check a single window. The answer is advisory until a reservation is made."""
    try:
        available = await asyncio.to_thread(
            availability_service.check_availability,
            tenant_id,
            payload.service_id,
            payload.start_utc,
            payload.end_utc,
            payload.staff_id,
        )
        return AvailabilityCheckResponse(
            available=available,
            start_utc=payload.start_utc,
            end_utc=payload.end_utc,
            staff_id=payload.staff_id,
        )
    except DomainException as e:
        handle_domain_exception(e)
