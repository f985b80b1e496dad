# backend/slotengine/services/reservation_gate.py
"""
Reservation Gate for the slot engine.

The only path that writes reservation windows. A claim is:

1. lock the (tenant, scope, bucket) rows covering the new occupied interval,
   in sorted order;
2. re-read occupying reservations overlapping that interval from the live store;
3. reject with SlotUnavailableException, or write and flush.

All three happen inside the caller's UnitOfWork, which commits or rolls back
as one. Slot listings are never trusted here: availability can change between
the listing and the claim.

Lock scopes:
- staff claim: that staff member's scope plus the ``*`` scope, because
  tenant-wide reservations occupy every staff member.
- tenant-wide claim (no staff): the ``*`` scope plus every staff scope of the
  tenant, because a tenant-wide claim is checked against all tenant reservations.

Lock waits are bounded (PostgreSQL lock_timeout, SQLite busy timeout). Lock
timeouts, deadlocks and busy errors roll the unit of work back and surface as
TransactionAbortedException, which is safe to retry.
"""

from datetime import datetime, timedelta, timezone
import logging
from typing import List, Optional

from sqlalchemy.exc import OperationalError

from ..core.config import settings
from ..core.exceptions import (
    InvalidInputException,
    InvalidStateException,
    ReservationNotFoundException,
    ServiceInactiveException,
    ServiceNotFoundException,
    SlotUnavailableException,
    StaffNotFoundException,
    TransactionAbortedException,
    is_lock_contention,
)
from ..database.unit_of_work import UnitOfWork
from ..models.reservation import Reservation, ReservationStatus
from ..models.service import Service
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..repositories.reservation_lock_repository import LockKey
from .base import BaseService
from .conflict_checker import ConflictDetector

logger = logging.getLogger(__name__)

TENANT_WIDE_SCOPE = "*"
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def lock_buckets(start_utc: datetime, end_utc: datetime, bucket_minutes: int) -> List[datetime]:
    """Start instants of every fixed-size UTC bucket that ``[start, end)`` touches."""
    bucket = timedelta(minutes=bucket_minutes)
    current = _EPOCH + ((start_utc - _EPOCH) // bucket) * bucket
    buckets = []
    while current < end_utc:
        buckets.append(current)
        current += bucket
    return buckets


class ReservationGate:
    """Atomic check-and-claim of reservation windows."""

    def __init__(
        self,
        lock_bucket_minutes: Optional[int] = None,
        lock_timeout_seconds: Optional[float] = None,
    ):
        self.lock_bucket_minutes = lock_bucket_minutes or settings.gate_lock_bucket_minutes
        self.lock_timeout_seconds = lock_timeout_seconds or settings.gate_lock_timeout_seconds
        self.logger = logging.getLogger(self.__class__.__name__)

    @BaseService.measure_operation("reserve")
    def reserve(
        self,
        uow: UnitOfWork,
        tenant_id: str,
        service_id: str,
        start_utc: datetime,
        end_utc: datetime,
        staff_id: Optional[str] = None,
    ) -> Reservation:
        """
        Claim a window for a service.

        The reservation is flushed, not committed; the caller's unit of work commits.

        Raises:
            InvalidInputException: Naive datetimes or end <= start
            ServiceNotFoundException / ServiceInactiveException: Service not bookable
            StaffNotFoundException: Unknown staff, or staff required and missing
            SlotUnavailableException: Window collides with an occupying reservation
            TransactionAbortedException: Store contention; retry is safe
        """
        self._require_active(uow)
        start_utc, end_utc = self._validate_window(start_utc, end_utc)
        session = uow.session

        service = self._load_service(uow, tenant_id, service_id, require_active=True)
        if staff_id:
            staff_repository = RepositoryFactory.create_staff_repository(session)
            if staff_repository.get_for_tenant(staff_id, tenant_id) is None:
                raise StaffNotFoundException(staff_id)
        elif service.require_staff:
            raise StaffNotFoundException(None, "Staff member is required for this service")

        buffer_minutes = service.buffer_minutes or 0
        try:
            self._acquire_locks(uow, tenant_id, staff_id, start_utc, end_utc, buffer_minutes)
            self._ensure_free(
                uow, "reserve", tenant_id, start_utc, end_utc, buffer_minutes, staff_id
            )

            reservation_repository = RepositoryFactory.create_reservation_repository(session)
            reservation = reservation_repository.create(
                tenant_id=tenant_id,
                service_id=service.id,
                staff_id=staff_id,
                start_utc=start_utc,
                end_utc=end_utc,
                buffer_minutes=buffer_minutes,
                occupied_end_utc=end_utc + timedelta(minutes=buffer_minutes),
                status=ReservationStatus.CONFIRMED.value,
            )
        except OperationalError as exc:
            self._abort_on_contention(uow, "reserve", exc)
            raise

        prometheus_metrics.record_gate_outcome("reserve", "claimed")
        self.logger.info(
            "Reservation claimed",
            extra={
                "tenant_id": tenant_id,
                "reservation_id": reservation.id,
                "staff_id": staff_id,
                "start_utc": start_utc.isoformat(),
            },
        )
        return reservation

    @BaseService.measure_operation("reschedule")
    def reschedule(
        self,
        uow: UnitOfWork,
        reservation_id: str,
        tenant_id: str,
        new_start_utc: datetime,
        new_end_utc: datetime,
    ) -> Reservation:
        """
        Move a confirmed reservation to a new window.

        The reservation itself is excluded from the conflict check, so a move
        that overlaps its own current window succeeds.

        Raises:
            ReservationNotFoundException: Unknown reservation for the tenant
            InvalidStateException: Reservation is cancelled, completed or a no-show
            SlotUnavailableException: New window collides with another reservation
            TransactionAbortedException: Store contention; retry is safe
        """
        self._require_active(uow)
        new_start_utc, new_end_utc = self._validate_window(new_start_utc, new_end_utc)
        session = uow.session

        reservation_repository = RepositoryFactory.create_reservation_repository(session)
        reservation = reservation_repository.get_for_tenant(reservation_id, tenant_id)
        if reservation is None:
            raise ReservationNotFoundException(reservation_id)
        if reservation.status != ReservationStatus.CONFIRMED.value:
            raise InvalidStateException(reservation_id, reservation.status)

        service = self._load_service(uow, tenant_id, reservation.service_id, require_active=False)
        buffer_minutes = service.buffer_minutes or 0
        staff_id = reservation.staff_id

        try:
            self._acquire_locks(
                uow, tenant_id, staff_id, new_start_utc, new_end_utc, buffer_minutes
            )
            self._ensure_free(
                uow,
                "reschedule",
                tenant_id,
                new_start_utc,
                new_end_utc,
                buffer_minutes,
                staff_id,
                exclude_reservation_id=reservation.id,
            )
            reservation.set_window(new_start_utc, new_end_utc, buffer_minutes)
            uow.flush()
        except OperationalError as exc:
            self._abort_on_contention(uow, "reschedule", exc)
            raise

        prometheus_metrics.record_gate_outcome("reschedule", "claimed")
        self.logger.info(
            "Reservation rescheduled",
            extra={
                "tenant_id": tenant_id,
                "reservation_id": reservation.id,
                "start_utc": new_start_utc.isoformat(),
            },
        )
        return reservation

    def lock_keys(
        self,
        uow: UnitOfWork,
        tenant_id: str,
        staff_id: Optional[str],
        occupied_start: datetime,
        occupied_end: datetime,
    ) -> List[LockKey]:
        """Sorted (scope, bucket) keys a claim must hold."""
        if staff_id:
            scopes = [TENANT_WIDE_SCOPE, staff_id]
        else:
            staff_repository = RepositoryFactory.create_staff_repository(uow.session)
            scopes = [TENANT_WIDE_SCOPE] + staff_repository.list_staff_ids(tenant_id)

        buckets = lock_buckets(occupied_start, occupied_end, self.lock_bucket_minutes)
        return sorted((scope, bucket) for scope in scopes for bucket in buckets)

    def _acquire_locks(
        self,
        uow: UnitOfWork,
        tenant_id: str,
        staff_id: Optional[str],
        start_utc: datetime,
        end_utc: datetime,
        buffer_minutes: int,
    ) -> None:
        occupied_start, occupied_end = ConflictDetector.candidate_interval(
            start_utc, end_utc, buffer_minutes
        )
        lock_repository = RepositoryFactory.create_reservation_lock_repository(uow.session)
        lock_repository.set_lock_timeout(self.lock_timeout_seconds)
        keys = self.lock_keys(uow, tenant_id, staff_id, occupied_start, occupied_end)
        lock_repository.lock_rows(tenant_id, keys)

    def _ensure_free(
        self,
        uow: UnitOfWork,
        operation: str,
        tenant_id: str,
        start_utc: datetime,
        end_utc: datetime,
        buffer_minutes: int,
        staff_id: Optional[str],
        exclude_reservation_id: Optional[str] = None,
    ) -> None:
        detector = ConflictDetector(uow.session)
        conflicts = detector.find_conflicts(
            tenant_id,
            start_utc,
            end_utc,
            buffer_minutes,
            staff_id=staff_id,
            exclude_reservation_id=exclude_reservation_id,
        )
        if not conflicts:
            return

        prometheus_metrics.record_gate_outcome(operation, "conflict")
        self.logger.info(
            "Requested window is no longer available",
            extra={
                "tenant_id": tenant_id,
                "staff_id": staff_id,
                "start_utc": start_utc.isoformat(),
                "conflicts": len(conflicts),
            },
        )
        raise SlotUnavailableException(
            details={
                "start_utc": start_utc.isoformat(),
                "end_utc": end_utc.isoformat(),
                "staff_id": staff_id,
                "conflicting_reservation_ids": [conflict.id for conflict in conflicts],
            }
        )

    def _abort_on_contention(self, uow: UnitOfWork, operation: str, exc: OperationalError) -> None:
        """Roll back after a driver error; contention becomes TransactionAbortedException."""
        uow.rollback()
        if not is_lock_contention(exc):
            return

        prometheus_metrics.record_gate_outcome(operation, "aborted")
        self.logger.warning(
            f"Reservation {operation} aborted by store contention: {exc}",
            extra={"operation": operation},
        )
        raise TransactionAbortedException(details={"operation": operation}) from exc

    @staticmethod
    def _require_active(uow: UnitOfWork) -> None:
        if not isinstance(uow, UnitOfWork) or not uow.active:
            raise RuntimeError("Reservation gate requires an active UnitOfWork")

    @staticmethod
    def _validate_window(start_utc: datetime, end_utc: datetime) -> tuple:
        for name, value in (("start_utc", start_utc), ("end_utc", end_utc)):
            if not isinstance(value, datetime) or value.tzinfo is None:
                raise InvalidInputException(
                    f"{name} must be a timezone-aware datetime", details={"field": name}
                )
        start_utc = start_utc.astimezone(timezone.utc)
        end_utc = end_utc.astimezone(timezone.utc)
        if end_utc <= start_utc:
            raise InvalidInputException(
                "End time must be after start time",
                details={"start_utc": start_utc.isoformat(), "end_utc": end_utc.isoformat()},
            )
        return start_utc, end_utc

    @staticmethod
    def _load_service(
        uow: UnitOfWork, tenant_id: str, service_id: str, require_active: bool
    ) -> Service:
        service_repository = RepositoryFactory.create_service_catalog_repository(uow.session)
        service = service_repository.get_for_tenant(service_id, tenant_id)
        if service is None:
            raise ServiceNotFoundException(service_id)
        if require_active and not service.is_active:
            raise ServiceInactiveException(service_id)
        return service
