# backend/slotengine/services/slot_generator.py
"""
Slot Generator for the slot engine.

Turns open hours into bookable windows:

1. Open UTC intervals per day come from the Schedule Model (business timezone).
2. Each interval is cut from its start into windows of the service duration,
   advancing by duration + buffer; a window is emitted only if it ends by the
   interval end.
3. Windows that ended before now are dropped. A window already in progress
   (started before now, ends at or after now) is still listed.
4. Start and end are rendered in the customer timezone; UTC stays the identity.
5. The Conflict Detector drops (or flags) windows that collide with existing
   reservations, loaded once for the whole range.

Each day uses its own UTC offset, so on DST transition days local slot
lengths may look shifted. That is expected and left as is.
"""

from datetime import date, datetime, timedelta
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ValidationException
from ..models.service import Service
from ..models.staff import Staff
from ..models.tenant import Tenant
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..repositories.reservation_repository import ReservationRepository
from ..schemas.availability import CandidateSlot
from .base import BaseService
from .conflict_checker import ConflictDetector, DetectionMode
from .schedule_model import ScheduleModel
from .timezone_service import TimezoneService

logger = logging.getLogger(__name__)


class SlotGenerator(BaseService):
    """Produces candidate slots for a service over a date range."""

    def __init__(
        self,
        db: Session,
        schedule_model: ScheduleModel,
        conflict_detector: Optional[ConflictDetector] = None,
        reservation_repository: Optional[ReservationRepository] = None,
    ):
        super().__init__(db)
        self.schedule_model = schedule_model
        self.conflict_detector = conflict_detector or ConflictDetector(db)
        self.reservation_repository = (
            reservation_repository or RepositoryFactory.create_reservation_repository(db)
        )

    @staticmethod
    def business_timezone(tenant: Tenant) -> str:
        return tenant.timezone or settings.default_business_timezone

    @BaseService.measure_operation("generate_candidate_slots")
    def generate(
        self,
        tenant: Tenant,
        service: Service,
        staff: Optional[Staff],
        start_date: date,
        end_date: date,
        customer_timezone: str,
        mode: DetectionMode = DetectionMode.FILTER,
        now: Optional[datetime] = None,
    ) -> List[CandidateSlot]:
        """
        Generate candidate slots.

        Args:
            tenant: Tenant owning the service; its timezone is the reference timezone
            service: Service being booked (duration and buffer)
            staff: Staff member, or None for tenant-wide hours
            start_date: First calendar day, inclusive
            end_date: Last calendar day, inclusive
            customer_timezone: Zone the local fields are rendered in
            mode: FILTER drops booked windows, FLAG keeps them unavailable
            now: Reference instant for past-slot suppression (defaults to now)

        Returns:
            Slots ordered by UTC start, then staff id

        Raises:
            InvalidTimezoneException: Unknown customer or business timezone
            ValidationException: Range longer than the configured maximum
        """
        TimezoneService.get_timezone(customer_timezone)
        business_tz = self.business_timezone(tenant)
        TimezoneService.get_timezone(business_tz)

        if end_date < start_date:
            return []

        day_count = (end_date - start_date).days + 1
        if day_count > settings.availability_max_range_days:
            raise ValidationException(
                f"Date range cannot exceed {settings.availability_max_range_days} days",
                code="RANGE_TOO_LONG",
                details={"days": day_count},
            )

        now_utc = TimezoneService.ensure_utc(now) if now else TimezoneService.now_utc()
        duration = timedelta(minutes=service.duration_minutes)
        buffer_minutes = service.buffer_minutes or 0
        step = duration + timedelta(minutes=buffer_minutes)
        staff_id = staff.id if staff is not None else None

        holidays = self.schedule_model.holidays_between(staff, start_date, end_date)

        candidates: List[CandidateSlot] = []
        for offset in range(day_count):
            day = start_date + timedelta(days=offset)
            intervals = self.schedule_model.open_intervals_for(day, business_tz, staff, holidays)
            for open_start, open_end in intervals:
                cursor = open_start
                while cursor + duration <= open_end:
                    slot_end = cursor + duration
                    if slot_end >= now_utc:
                        candidates.append(
                            CandidateSlot(
                                start_utc=cursor,
                                end_utc=slot_end,
                                start_local=TimezoneService.localize(cursor, customer_timezone),
                                end_local=TimezoneService.localize(slot_end, customer_timezone),
                                staff_id=staff_id,
                            )
                        )
                    cursor = cursor + step

        if not candidates:
            return []

        candidates.sort(key=lambda slot: (slot.start_utc, slot.staff_id or ""))

        window_start = candidates[0].start_utc
        window_end = max(slot.end_utc for slot in candidates) + timedelta(minutes=buffer_minutes)
        reservations = self.reservation_repository.find_occupying(
            tenant.id, window_start, window_end, staff_id=staff_id
        )

        slots = self.conflict_detector.detect(
            candidates, reservations, mode=mode, buffer_minutes=buffer_minutes
        )
        self.logger.debug(
            f"Generated {len(slots)} slots from {len(candidates)} candidates, first at "
            f"{TimezoneService.format_for_display(candidates[0].start_utc, business_tz)}",
            extra={
                "tenant_id": tenant.id,
                "service_id": service.id,
                "staff_id": staff_id,
                "reservations": len(reservations),
            },
        )
        prometheus_metrics.record_slot_listing(len(slots))
        return slots
