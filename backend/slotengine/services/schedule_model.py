# backend/slotengine/services/schedule_model.py
"""
Schedule Model for the slot engine.

Answers "when is this business (or this staff member) open on a given day",
as UTC intervals. Working hours are authored as wall-clock periods in the
tenant's reference timezone, so each day is converted with that day's own
UTC offset.

Also owns the schedule-write boundary: weekly schedules are validated here
before they are stored, and staff holidays are added/removed here.
"""

from datetime import date, datetime
import logging
from typing import Any, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import WEEKDAY_NAMES
from ..core.exceptions import NotFoundException, StaffNotFoundException
from ..models.service import Service
from ..models.staff import Staff, StaffHoliday
from ..repositories import RepositoryFactory
from ..repositories.staff_repository import StaffRepository
from ..schemas.schedule import SchedulePeriod, WeeklySchedule
from .base import BaseService
from .timezone_service import TimezoneService

logger = logging.getLogger(__name__)

Interval = Tuple[datetime, datetime]


class ScheduleModel(BaseService):
    """Resolves open UTC intervals from weekly schedules and holidays."""

    def __init__(
        self,
        db: Session,
        default_schedule: WeeklySchedule,
        staff_repository: Optional[StaffRepository] = None,
    ):
        """
        Args:
            db: Database session
            default_schedule: Tenant-wide hours used when no staff member is involved
            staff_repository: Optional StaffRepository instance
        """
        super().__init__(db)
        self.default_schedule = default_schedule
        self.staff_repository = staff_repository or RepositoryFactory.create_staff_repository(db)

    def open_intervals_for(
        self,
        day: date,
        zone_id: str,
        staff: Optional[Staff] = None,
        holidays: Iterable[Any] = (),
    ) -> List[Interval]:
        """
        Get the open UTC intervals for a calendar day.

        Args:
            day: Calendar date in ``zone_id``
            zone_id: Reference timezone the schedule is authored in
            staff: Staff member whose schedule applies; None for tenant-wide hours
            holidays: StaffHoliday rows (or plain dates) for that staff member

        Returns:
            Sorted ``(start_utc, end_utc)`` pairs; empty when closed
        """
        holiday_dates = {getattr(holiday, "date", holiday) for holiday in holidays}
        if day in holiday_dates:
            return []

        if staff is not None and staff.weekly_schedule is not None:
            periods = self._stored_periods(staff, day.weekday())
        else:
            periods = self.default_schedule.periods_for(day.weekday())

        intervals: List[Interval] = []
        for period in periods:
            start_utc = TimezoneService.local_date_time_to_utc(day, period.start_time, zone_id)
            end_utc = TimezoneService.local_date_time_to_utc(day, period.end_time, zone_id)
            # A period lying entirely inside a DST gap collapses to nothing
            if end_utc > start_utc:
                intervals.append((start_utc, end_utc))
        return intervals

    def _stored_periods(self, staff: Staff, weekday: int) -> List[SchedulePeriod]:
        """Read one day from a stored schedule, treating a malformed day as closed."""
        day_name = WEEKDAY_NAMES[weekday]
        raw = staff.weekly_schedule
        if not isinstance(raw, dict):
            self.logger.warning(
                "Stored weekly schedule is not an object; treating as closed",
                extra={"staff_id": staff.id, "day": day_name},
            )
            return []

        try:
            return WeeklySchedule.parse_day(day_name, raw.get(day_name))
        except ValueError as exc:
            self.logger.warning(
                f"Malformed stored schedule for {day_name}; treating day as closed: {exc}",
                extra={"staff_id": staff.id, "day": day_name},
            )
            return []

    def resolve_staff(
        self, tenant_id: str, staff_id: Optional[str], service: Service
    ) -> Optional[Staff]:
        """
        Resolve the staff member a request targets.

        Raises:
            StaffNotFoundException: If ``staff_id`` does not resolve within the tenant,
                or the service requires staff and none was supplied
        """
        if staff_id:
            staff = self.staff_repository.get_for_tenant(staff_id, tenant_id)
            if staff is None:
                raise StaffNotFoundException(staff_id)
            return staff

        if service.require_staff:
            raise StaffNotFoundException(None, "Staff member is required for this service")
        return None

    def holidays_between(
        self, staff: Optional[Staff], start_date: date, end_date: date
    ) -> List[StaffHoliday]:
        if staff is None:
            return []
        return self.staff_repository.get_holidays(staff.id, start_date, end_date)

    # Schedule writes

    def validate_weekly_schedule(self, raw: Any) -> WeeklySchedule:
        """Validate an authored schedule; raises ScheduleConfigurationException."""
        return WeeklySchedule.from_mapping(raw)

    def _require_staff(self, tenant_id: str, staff_id: str) -> Staff:
        staff = self.staff_repository.get_for_tenant(staff_id, tenant_id)
        if staff is None:
            raise StaffNotFoundException(staff_id)
        return staff

    @BaseService.measure_operation("update_staff_schedule")
    def update_staff_schedule(self, tenant_id: str, staff_id: str, raw: Any) -> Staff:
        """Validate and store a staff member's weekly schedule."""
        schedule = self.validate_weekly_schedule(raw)
        with self.transaction():
            staff = self._require_staff(tenant_id, staff_id)
            self.staff_repository.set_weekly_schedule(staff, schedule.to_mapping())
        self.log_operation("update_staff_schedule", tenant_id=tenant_id, staff_id=staff_id)
        return staff

    @BaseService.measure_operation("add_holiday")
    def add_holiday(
        self,
        tenant_id: str,
        staff_id: str,
        holiday_date: date,
        reason: Optional[str] = None,
    ) -> StaffHoliday:
        with self.transaction():
            self._require_staff(tenant_id, staff_id)
            holiday = self.staff_repository.add_holiday(staff_id, holiday_date, reason)
        return holiday

    def list_holidays(
        self,
        tenant_id: str,
        staff_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[StaffHoliday]:
        self._require_staff(tenant_id, staff_id)
        return self.staff_repository.get_holidays(staff_id, start_date, end_date)

    @BaseService.measure_operation("delete_holiday")
    def delete_holiday(self, tenant_id: str, staff_id: str, holiday_id: str) -> None:
        with self.transaction():
            self._require_staff(tenant_id, staff_id)
            if not self.staff_repository.delete_holiday(holiday_id, staff_id):
                raise NotFoundException(
                    "Holiday not found",
                    code="HOLIDAY_NOT_FOUND",
                    details={"holiday_id": holiday_id},
                )
