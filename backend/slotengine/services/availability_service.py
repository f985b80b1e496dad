# backend/slotengine/services/availability_service.py
"""
Availability Service for the slot engine.

The library boundary callers use:
- generate_slots: bookable windows for a service over a date range
- check_availability: read-only yes/no for one window
- reserve / reschedule: claims through the Reservation Gate in the caller's UnitOfWork
- reserve_with_retry / reschedule_with_retry: same, each attempt in its own
  UnitOfWork, retrying only transient aborts

Availability answers are advisory. Only the gate decides whether a window
can still be claimed.
"""

from datetime import date, datetime, timezone
import logging
from typing import Callable, List, Optional

from sqlalchemy.orm import Session, sessionmaker

from ..core.config import settings
from ..core.exceptions import (
    InvalidInputException,
    ReservationNotFoundException,
    ServiceInactiveException,
    ServiceNotFoundException,
    TenantNotFoundException,
)
from ..database.unit_of_work import UnitOfWork, run_with_retry
from ..models.reservation import Reservation
from ..models.service import Service
from ..models.tenant import Tenant
from ..repositories import RepositoryFactory
from ..schemas.availability import CandidateSlot
from ..schemas.schedule import WeeklySchedule
from .base import BaseService
from .conflict_checker import ConflictDetector, DetectionMode
from .reservation_gate import ReservationGate
from .schedule_model import ScheduleModel
from .slot_generator import SlotGenerator
from .timezone_service import TimezoneService

logger = logging.getLogger(__name__)


class AvailabilityService(BaseService):
    """Facade over the schedule model, slot generator, conflict detector and gate."""

    def __init__(
        self,
        db: Session,
        default_schedule: Optional[WeeklySchedule] = None,
        gate: Optional[ReservationGate] = None,
        session_factory: Optional[sessionmaker] = None,
    ):
        """
        Initialize availability service.

        Args:
            db: Database session for read paths
            default_schedule: Tenant-wide hours; defaults to the configured schedule
            gate: Optional ReservationGate instance
            session_factory: Session factory for the *_with_retry variants
        """
        super().__init__(db)
        self.tenant_repository = RepositoryFactory.create_tenant_repository(db)
        self.service_repository = RepositoryFactory.create_service_catalog_repository(db)
        self.schedule_model = ScheduleModel(
            db, default_schedule or settings.default_weekly_schedule()
        )
        self.conflict_detector = ConflictDetector(db)
        self.slot_generator = SlotGenerator(
            db, self.schedule_model, conflict_detector=self.conflict_detector
        )
        self.gate = gate or ReservationGate()
        self.session_factory = session_factory

    def _get_tenant(self, tenant_id: str) -> Tenant:
        tenant = self.tenant_repository.get_by_id(tenant_id)
        if tenant is None:
            raise TenantNotFoundException(tenant_id)
        return tenant

    def _get_bookable_service(self, tenant_id: str, service_id: str) -> Service:
        service = self.service_repository.get_for_tenant(service_id, tenant_id)
        if service is None:
            raise ServiceNotFoundException(service_id)
        if not service.is_active:
            raise ServiceInactiveException(service_id)
        return service

    @BaseService.measure_operation("generate_slots")
    def generate_slots(
        self,
        tenant_id: str,
        service_id: str,
        staff_id: Optional[str],
        start_date: date,
        end_date: date,
        customer_timezone: str,
        mode: DetectionMode = DetectionMode.FILTER,
        now: Optional[datetime] = None,
    ) -> List[CandidateSlot]:
        """
        List bookable windows for a service.

        Args:
            tenant_id: Tenant owning the service
            service_id: Service to book
            staff_id: Optional staff member
            start_date: First day (business calendar), inclusive
            end_date: Last day, inclusive
            customer_timezone: Zone the local fields are rendered in
            mode: FILTER hides booked windows, FLAG returns them as unavailable
            now: Reference instant for hiding past windows

        Returns:
            Candidate slots ordered by UTC start

        Raises:
            TenantNotFoundException, ServiceNotFoundException, ServiceInactiveException,
            StaffNotFoundException, InvalidTimezoneException
        """
        TimezoneService.get_timezone(customer_timezone)
        tenant = self._get_tenant(tenant_id)
        service = self._get_bookable_service(tenant_id, service_id)
        staff = self.schedule_model.resolve_staff(tenant_id, staff_id, service)

        return self.slot_generator.generate(
            tenant,
            service,
            staff,
            start_date,
            end_date,
            customer_timezone,
            mode=mode,
            now=now,
        )

    @BaseService.measure_operation("check_availability")
    def check_availability(
        self,
        tenant_id: str,
        service_id: str,
        start_utc: datetime,
        end_utc: datetime,
        staff_id: Optional[str] = None,
    ) -> bool:
        """
        Check whether a window is currently free. Read-only and advisory.

        Returns False for unknown, deleted or inactive services.

        Raises:
            InvalidInputException: Naive datetimes or end <= start
            StaffNotFoundException: Unknown staff member
        """
        for name, value in (("start_utc", start_utc), ("end_utc", end_utc)):
            if value.tzinfo is None:
                raise InvalidInputException(
                    f"{name} must be a timezone-aware datetime", details={"field": name}
                )
        start_utc = start_utc.astimezone(timezone.utc)
        end_utc = end_utc.astimezone(timezone.utc)
        if end_utc <= start_utc:
            raise InvalidInputException("End time must be after start time")

        service = self.service_repository.get_for_tenant(service_id, tenant_id)
        if service is None or not service.is_active:
            return False

        staff = self.schedule_model.resolve_staff(tenant_id, staff_id, service)
        return not self.conflict_detector.has_conflict(
            tenant_id,
            start_utc,
            end_utc,
            service.buffer_minutes or 0,
            staff_id=staff.id if staff is not None else None,
        )

    def reserve(
        self,
        tenant_id: str,
        service_id: str,
        start_utc: datetime,
        end_utc: datetime,
        staff_id: Optional[str],
        uow: UnitOfWork,
    ) -> Reservation:
        """Claim a window inside the caller's unit of work."""
        return self.gate.reserve(uow, tenant_id, service_id, start_utc, end_utc, staff_id=staff_id)

    def reschedule(
        self,
        reservation_id: str,
        tenant_id: str,
        new_start_utc: datetime,
        new_end_utc: datetime,
        uow: UnitOfWork,
    ) -> Reservation:
        """Move a reservation inside the caller's unit of work."""
        return self.gate.reschedule(uow, reservation_id, tenant_id, new_start_utc, new_end_utc)

    def _run_in_own_unit_of_work(
        self, op_name: str, claim: Callable[[UnitOfWork], Reservation]
    ) -> Reservation:
        def attempt() -> Reservation:
            with UnitOfWork.open(self.session_factory) as uow:
                return claim(uow)

        return run_with_retry(op_name, attempt)

    @BaseService.measure_operation("reserve_with_retry")
    def reserve_with_retry(
        self,
        tenant_id: str,
        service_id: str,
        start_utc: datetime,
        end_utc: datetime,
        staff_id: Optional[str] = None,
    ) -> Reservation:
        """Reserve and commit, retrying transient aborts with backoff."""
        return self._run_in_own_unit_of_work(
            "reserve",
            lambda uow: self.gate.reserve(
                uow, tenant_id, service_id, start_utc, end_utc, staff_id=staff_id
            ),
        )

    @BaseService.measure_operation("reschedule_with_retry")
    def reschedule_with_retry(
        self,
        reservation_id: str,
        tenant_id: str,
        new_start_utc: datetime,
        new_end_utc: datetime,
    ) -> Reservation:
        """Reschedule and commit, retrying transient aborts with backoff."""
        return self._run_in_own_unit_of_work(
            "reschedule",
            lambda uow: self.gate.reschedule(
                uow, reservation_id, tenant_id, new_start_utc, new_end_utc
            ),
        )

    def get_reservation(self, tenant_id: str, reservation_id: str) -> Reservation:
        repository = RepositoryFactory.create_reservation_repository(self.db)
        reservation = repository.get_for_tenant(reservation_id, tenant_id)
        if reservation is None:
            raise ReservationNotFoundException(reservation_id)
        return reservation
