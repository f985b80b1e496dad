# backend/tests/services/test_reservation_gate.py
"""
Tests for ReservationGate: claims, rejections, reschedules, lock rows and
contention handling.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from slotengine.core.exceptions import (
    InvalidInputException,
    InvalidStateException,
    ReservationNotFoundException,
    ServiceInactiveException,
    ServiceNotFoundException,
    SlotUnavailableException,
    StaffNotFoundException,
    TransactionAbortedException,
)
from slotengine.database.unit_of_work import UnitOfWork
from slotengine.models import Reservation, ReservationLock, ReservationStatus
from slotengine.repositories.reservation_lock_repository import ReservationLockRepository
from slotengine.services.reservation_gate import TENANT_WIDE_SCOPE, ReservationGate, lock_buckets

from ..helpers.factories import create_reservation, create_service, create_staff, create_tenant


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


NINE = utc(2030, 1, 7, 9)
TEN = utc(2030, 1, 7, 10)
ELEVEN = utc(2030, 1, 7, 11)


@pytest.fixture
def gate():
    return ReservationGate(lock_bucket_minutes=60, lock_timeout_seconds=1)


def reserve(db, gate, tenant, service, start, end, staff=None):
    with UnitOfWork(db) as uow:
        return gate.reserve(
            uow, tenant.id, service.id, start, end, staff_id=staff.id if staff else None
        )


class TestLockBuckets:
    def test_single_bucket(self):
        assert lock_buckets(utc(2030, 1, 7, 9, 15), utc(2030, 1, 7, 9, 45), 60) == [NINE]

    def test_window_crossing_buckets(self):
        assert lock_buckets(utc(2030, 1, 7, 9, 30), utc(2030, 1, 7, 10, 15), 60) == [NINE, TEN]

    def test_end_on_boundary_is_exclusive(self):
        assert lock_buckets(NINE, TEN, 60) == [NINE]

    def test_buckets_are_epoch_aligned(self):
        assert lock_buckets(utc(2030, 1, 7, 9, 40), utc(2030, 1, 7, 9, 50), 30) == [
            utc(2030, 1, 7, 9, 30)
        ]


class TestReserve:
    def test_claims_free_window(self, db, gate, tenant, service):
        reservation = reserve(db, gate, tenant, service, NINE, TEN)

        stored = db.get(Reservation, reservation.id)
        assert stored.status == ReservationStatus.CONFIRMED.value
        assert stored.start_utc == NINE
        assert stored.end_utc == TEN
        assert stored.occupied_end_utc == TEN

    def test_snapshots_service_buffer(self, db, gate, tenant):
        service = create_service(db, tenant, buffer_minutes=15)
        reservation = reserve(db, gate, tenant, service, NINE, TEN)
        assert reservation.buffer_minutes == 15
        assert reservation.occupied_end_utc == utc(2030, 1, 7, 10, 15)

    def test_normalizes_to_utc(self, db, gate, tenant, service):
        plus_two = timezone(timedelta(hours=2))
        reservation = reserve(
            db,
            gate,
            tenant,
            service,
            datetime(2030, 1, 7, 11, tzinfo=plus_two),
            datetime(2030, 1, 7, 12, tzinfo=plus_two),
        )
        assert reservation.start_utc == NINE

    def test_overlap_rejected(self, db, gate, tenant, service):
        existing = reserve(db, gate, tenant, service, NINE, TEN)

        with pytest.raises(SlotUnavailableException) as exc_info:
            reserve(db, gate, tenant, service, utc(2030, 1, 7, 9, 30), utc(2030, 1, 7, 10, 30))

        assert exc_info.value.code == "SLOT_UNAVAILABLE"
        assert exc_info.value.details["conflicting_reservation_ids"] == [existing.id]
        assert db.query(Reservation).count() == 1

    def test_touching_window_accepted(self, db, gate, tenant, service):
        reserve(db, gate, tenant, service, NINE, TEN)
        reserve(db, gate, tenant, service, TEN, ELEVEN)
        assert db.query(Reservation).count() == 2

    def test_buffer_of_existing_reservation_rejects(self, db, gate, tenant):
        service = create_service(db, tenant, buffer_minutes=15)
        reserve(db, gate, tenant, service, NINE, TEN)

        with pytest.raises(SlotUnavailableException):
            reserve(db, gate, tenant, service, utc(2030, 1, 7, 10, 14), utc(2030, 1, 7, 11, 14))
        reserve(db, gate, tenant, service, utc(2030, 1, 7, 10, 15), utc(2030, 1, 7, 11, 15))

    def test_own_buffer_must_fit_before_next_reservation(self, db, gate, tenant):
        plain = create_service(db, tenant, name="Plain")
        buffered = create_service(db, tenant, buffer_minutes=30, name="Buffered")
        reserve(db, gate, tenant, plain, TEN, ELEVEN)

        with pytest.raises(SlotUnavailableException):
            reserve(db, gate, tenant, buffered, NINE, utc(2030, 1, 7, 9, 45))

    def test_cancelled_reservation_does_not_block(self, db, gate, tenant, service):
        create_reservation(db, tenant, service, NINE, status=ReservationStatus.CANCELLED.value)
        reserve(db, gate, tenant, service, NINE, TEN)

    def test_different_staff_do_not_collide(self, db, gate, tenant, service):
        first = create_staff(db, tenant, name="First")
        second = create_staff(db, tenant, name="Second")
        reserve(db, gate, tenant, service, NINE, TEN, staff=first)
        reserve(db, gate, tenant, service, NINE, TEN, staff=second)

        with pytest.raises(SlotUnavailableException):
            reserve(db, gate, tenant, service, NINE, TEN, staff=first)

    def test_tenant_wide_claim_blocked_by_staff_booking(self, db, gate, tenant, service, staff):
        reserve(db, gate, tenant, service, NINE, TEN, staff=staff)
        with pytest.raises(SlotUnavailableException):
            reserve(db, gate, tenant, service, NINE, TEN)

    def test_staff_claim_blocked_by_tenant_wide_booking(self, db, gate, tenant, service, staff):
        tenant_wide = reserve(db, gate, tenant, service, NINE, TEN)
        with pytest.raises(SlotUnavailableException) as exc_info:
            reserve(db, gate, tenant, service, utc(2030, 1, 7, 9, 30), ELEVEN, staff=staff)

        assert exc_info.value.details["conflicting_reservation_ids"] == [tenant_wide.id]
        assert db.query(Reservation).count() == 1

    def test_staff_reschedule_onto_tenant_wide_booking(self, db, gate, tenant, service, staff):
        reserve(db, gate, tenant, service, NINE, TEN)
        staff_booking = reserve(db, gate, tenant, service, TEN, ELEVEN, staff=staff)
        with pytest.raises(SlotUnavailableException):
            with UnitOfWork(db) as uow:
                gate.reschedule(uow, staff_booking.id, tenant.id, NINE, TEN)

    def test_other_tenant_unaffected(self, db, gate, tenant, service):
        reserve(db, gate, tenant, service, NINE, TEN)
        other = create_tenant(db, slug="second-tenant")
        other_service = create_service(db, other)
        reserve(db, gate, other, other_service, NINE, TEN)

    @pytest.mark.parametrize(
        "start,end",
        [
            (datetime(2030, 1, 7, 9), TEN),
            (NINE, datetime(2030, 1, 7, 10)),
            (TEN, NINE),
            (NINE, NINE),
        ],
    )
    def test_invalid_window(self, db, gate, tenant, service, start, end):
        with pytest.raises(InvalidInputException):
            reserve(db, gate, tenant, service, start, end)

    def test_unknown_service(self, db, gate, tenant):
        with UnitOfWork(db) as uow:
            with pytest.raises(ServiceNotFoundException):
                gate.reserve(uow, tenant.id, "01HZZZZZZZZZZZZZZZZZZZZZZZ", NINE, TEN)

    def test_inactive_service(self, db, gate, tenant):
        service = create_service(db, tenant, is_active=False)
        with pytest.raises(ServiceInactiveException):
            reserve(db, gate, tenant, service, NINE, TEN)

    def test_service_of_other_tenant(self, db, gate, tenant):
        other = create_tenant(db, slug="foreign")
        foreign_service = create_service(db, other)
        with pytest.raises(ServiceNotFoundException):
            reserve(db, gate, tenant, foreign_service, NINE, TEN)

    def test_unknown_staff(self, db, gate, tenant, service):
        with UnitOfWork(db) as uow:
            with pytest.raises(StaffNotFoundException):
                gate.reserve(uow, tenant.id, service.id, NINE, TEN, staff_id="01HZZZZZZZZZZZZZZZZZZZZZZZ")

    def test_required_staff_missing(self, db, gate, tenant):
        service = create_service(db, tenant, require_staff=True)
        with pytest.raises(StaffNotFoundException):
            reserve(db, gate, tenant, service, NINE, TEN)

    def test_requires_active_unit_of_work(self, db, gate, tenant, service):
        with pytest.raises(RuntimeError):
            gate.reserve(UnitOfWork(db), tenant.id, service.id, NINE, TEN)

    def test_rejection_rolls_back_whole_unit(self, db, gate, tenant, service):
        """A failed claim leaves nothing behind, including earlier writes in the unit."""
        reserve(db, gate, tenant, service, NINE, TEN)

        with pytest.raises(SlotUnavailableException):
            with UnitOfWork(db) as uow:
                gate.reserve(uow, tenant.id, service.id, TEN, ELEVEN)
                gate.reserve(uow, tenant.id, service.id, NINE, TEN)

        assert db.query(Reservation).count() == 1


class TestLockRows:
    def test_staff_claim_locks_staff_and_tenant_wide_scopes(self, db, gate, tenant, service, staff):
        reserve(db, gate, tenant, service, utc(2030, 1, 7, 9, 30), utc(2030, 1, 7, 10, 30), staff)

        locks = db.query(ReservationLock).all()
        assert sorted((lock.scope_key, lock.bucket_start) for lock in locks) == [
            (TENANT_WIDE_SCOPE, NINE),
            (TENANT_WIDE_SCOPE, TEN),
            (staff.id, NINE),
            (staff.id, TEN),
        ]
        assert all(lock.version == 1 for lock in locks)

    def test_tenant_wide_claim_locks_every_scope(self, db, gate, tenant, service):
        first = create_staff(db, tenant, name="First")
        second = create_staff(db, tenant, name="Second")
        with UnitOfWork(db) as uow:
            keys = gate.lock_keys(uow, tenant.id, None, NINE, TEN)
        assert keys == sorted(
            [(TENANT_WIDE_SCOPE, NINE), (first.id, NINE), (second.id, NINE)]
        )

    def test_repeated_claims_reuse_rows(self, db, gate, tenant, service, staff):
        reserve(db, gate, tenant, service, NINE, utc(2030, 1, 7, 9, 30), staff)
        reserve(db, gate, tenant, service, utc(2030, 1, 7, 9, 30), TEN, staff)

        locks = db.query(ReservationLock).all()
        assert len(locks) == 2
        assert all(lock.version == 2 for lock in locks)


class TestContention:
    def test_lock_contention_aborts_and_rolls_back(self, db, gate, tenant, service, monkeypatch):
        def busy(self, tenant_id, keys):
            raise OperationalError("SELECT ...", {}, Exception("database is locked"))

        monkeypatch.setattr(ReservationLockRepository, "lock_rows", busy)

        with pytest.raises(TransactionAbortedException) as exc_info:
            reserve(db, gate, tenant, service, NINE, TEN)

        assert exc_info.value.code == "TRANSACTION_ABORTED"
        assert exc_info.value.details == {"operation": "reserve"}
        assert db.query(Reservation).count() == 0

    def test_other_driver_errors_propagate(self, db, gate, tenant, service, monkeypatch):
        def broken(self, tenant_id, keys):
            raise OperationalError("SELECT ...", {}, Exception("no such table: reservation_locks"))

        monkeypatch.setattr(ReservationLockRepository, "lock_rows", broken)

        with pytest.raises(OperationalError):
            reserve(db, gate, tenant, service, NINE, TEN)


class TestReschedule:
    def test_moves_reservation(self, db, gate, tenant, service):
        reservation = reserve(db, gate, tenant, service, NINE, TEN)

        with UnitOfWork(db) as uow:
            moved = gate.reschedule(uow, reservation.id, tenant.id, ELEVEN, utc(2030, 1, 7, 12))

        assert moved.id == reservation.id
        db.expire_all()
        stored = db.get(Reservation, reservation.id)
        assert stored.start_utc == ELEVEN
        assert stored.occupied_end_utc == utc(2030, 1, 7, 12)

    def test_overlapping_own_window_allowed(self, db, gate, tenant, service):
        reservation = reserve(db, gate, tenant, service, NINE, TEN)
        with UnitOfWork(db) as uow:
            moved = gate.reschedule(
                uow, reservation.id, tenant.id, utc(2030, 1, 7, 9, 30), utc(2030, 1, 7, 10, 30)
            )
        assert moved.start_utc == utc(2030, 1, 7, 9, 30)

    def test_conflict_leaves_reservation_unchanged(self, db, gate, tenant, service):
        moving = reserve(db, gate, tenant, service, NINE, TEN)
        reserve(db, gate, tenant, service, ELEVEN, utc(2030, 1, 7, 12))

        with pytest.raises(SlotUnavailableException):
            with UnitOfWork(db) as uow:
                gate.reschedule(
                    uow, moving.id, tenant.id, utc(2030, 1, 7, 11, 30), utc(2030, 1, 7, 12, 30)
                )

        db.expire_all()
        assert db.get(Reservation, moving.id).start_utc == NINE

    def test_uses_current_service_buffer(self, db, gate, tenant, service):
        reservation = reserve(db, gate, tenant, service, NINE, TEN)
        service.buffer_minutes = 10
        db.commit()

        with UnitOfWork(db) as uow:
            moved = gate.reschedule(uow, reservation.id, tenant.id, ELEVEN, utc(2030, 1, 7, 12))
        assert moved.buffer_minutes == 10
        assert moved.occupied_end_utc == utc(2030, 1, 7, 12, 10)

    @pytest.mark.parametrize(
        "status",
        [
            ReservationStatus.CANCELLED.value,
            ReservationStatus.COMPLETED.value,
            ReservationStatus.NO_SHOW.value,
        ],
    )
    def test_only_confirmed_reservations_move(self, db, gate, tenant, service, status):
        reservation = create_reservation(db, tenant, service, NINE, status=status)
        with UnitOfWork(db) as uow:
            with pytest.raises(InvalidStateException) as exc_info:
                gate.reschedule(uow, reservation.id, tenant.id, ELEVEN, utc(2030, 1, 7, 12))
        assert exc_info.value.details["status"] == status

    def test_unknown_reservation(self, db, gate, tenant):
        with UnitOfWork(db) as uow:
            with pytest.raises(ReservationNotFoundException):
                gate.reschedule(uow, "01HZZZZZZZZZZZZZZZZZZZZZZZ", tenant.id, NINE, TEN)

    def test_reservation_of_other_tenant(self, db, gate, tenant, service):
        reservation = reserve(db, gate, tenant, service, NINE, TEN)
        other = create_tenant(db, slug="not-owner")
        with UnitOfWork(db) as uow:
            with pytest.raises(ReservationNotFoundException):
                gate.reschedule(uow, reservation.id, other.id, ELEVEN, utc(2030, 1, 7, 12))
