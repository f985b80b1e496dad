# backend/slotengine/routes/staff.py
"""
Staff schedule routes - API v1

Endpoints:
    PUT /staff/{staff_id}/schedule - Replace the weekly schedule (validated)
    GET /staff/{staff_id}/holidays - List holidays, optionally within a date range
    POST /staff/{staff_id}/holidays - Add a holiday
    DELETE /staff/{staff_id}/holidays/{holiday_id} - Remove a holiday
"""

import asyncio
from datetime import date
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query, Response, status
from pydantic import BaseModel, ConfigDict

from ..api.dependencies import get_schedule_model
from ..core.exceptions import DomainException
from ..services.schedule_model import ScheduleModel
from . import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/staff", tags=["staff"])


class StaffScheduleResponse(BaseModel):
    staff_id: str
    weekly_schedule: Dict[str, List[Dict[str, str]]]


class HolidayCreate(BaseModel):
    date: date
    reason: Optional[str] = None


class HolidayResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    staff_id: str
    date: date
    reason: Optional[str] = None


@router.put("/{staff_id}/schedule", response_model=StaffScheduleResponse)
async def update_schedule(
    tenant_id: str,
    staff_id: str,
    weekly_schedule: Dict[str, Any] = Body(...),
    schedule_model: ScheduleModel = Depends(get_schedule_model),
) -> StaffScheduleResponse:
    try:
        staff = await asyncio.to_thread(
            schedule_model.update_staff_schedule, tenant_id, staff_id, weekly_schedule
        )
        return StaffScheduleResponse(staff_id=staff.id, weekly_schedule=staff.weekly_schedule)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{staff_id}/holidays", response_model=List[HolidayResponse])
async def list_holidays(
    tenant_id: str,
    staff_id: str,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    schedule_model: ScheduleModel = Depends(get_schedule_model),
) -> List[HolidayResponse]:
    try:
        holidays = await asyncio.to_thread(
            schedule_model.list_holidays, tenant_id, staff_id, start_date, end_date
        )
        return [HolidayResponse.model_validate(holiday) for holiday in holidays]
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{staff_id}/holidays",
    response_model=HolidayResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_holiday(
    tenant_id: str,
    staff_id: str,
    payload: HolidayCreate,
    schedule_model: ScheduleModel = Depends(get_schedule_model),
) -> HolidayResponse:
    try:
        holiday = await asyncio.to_thread(
            schedule_model.add_holiday, tenant_id, staff_id, payload.date, payload.reason
        )
        return HolidayResponse.model_validate(holiday)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete("/{staff_id}/holidays/{holiday_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_holiday(
    tenant_id: str,
    staff_id: str,
    holiday_id: str,
    schedule_model: ScheduleModel = Depends(get_schedule_model),
) -> Response:
    try:
        await asyncio.to_thread(schedule_model.delete_holiday, tenant_id, staff_id, holiday_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except DomainException as e:
        handle_domain_exception(e)
