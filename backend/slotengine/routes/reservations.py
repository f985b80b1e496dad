# backend/slotengine/routes/reservations.py
"""
Reservation routes - API v1

Endpoints:
    POST /reservations - Claim a window
    GET /reservations/{reservation_id} - Reservation details
    POST /reservations/{reservation_id}/reschedule - Move a reservation

Claims commit in their own unit of work and retry transient aborts; a 503
with Retry-After means every attempt hit store contention.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, Path, status

from ..api.dependencies import get_availability_service
from ..core.exceptions import DomainException
from ..schemas.reservation import ReservationCreate, ReservationReschedule, ReservationResponse
from ..services.availability_service import AvailabilityService
from . import ULID_PATH_PATTERN, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["reservations"])


@router.post(
    "/reservations",
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_reservation(
    tenant_id: str,
    payload: ReservationCreate,
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> ReservationResponse:
    try:
        reservation = await asyncio.to_thread(
            availability_service.reserve_with_retry,
            tenant_id,
            payload.service_id,
            payload.start_utc,
            payload.end_utc,
            payload.staff_id,
        )
        return ReservationResponse.model_validate(reservation)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/reservations/{reservation_id}", response_model=ReservationResponse)
async def get_reservation(
    tenant_id: str,
    reservation_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> ReservationResponse:
    try:
        reservation = await asyncio.to_thread(
            availability_service.get_reservation, tenant_id, reservation_id
        )
        return ReservationResponse.model_validate(reservation)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/reservations/{reservation_id}/reschedule", response_model=ReservationResponse)
async def reschedule_reservation(
    tenant_id: str,
    payload: ReservationReschedule,
    reservation_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> ReservationResponse:
    try:
        reservation = await asyncio.to_thread(
            availability_service.reschedule_with_retry,
            reservation_id,
            tenant_id,
            payload.start_utc,
            payload.end_utc,
        )
        return ReservationResponse.model_validate(reservation)
    except DomainException as e:
        handle_domain_exception(e)
