# backend/tests/integration/test_reservation_gate_concurrency.py
"""
Concurrent claims against a file-backed SQLite store.

Each worker uses its own session and connection, as separate requests would.
"""

from datetime import datetime, timezone
import sqlite3
import threading

import pytest
from sqlalchemy.orm import sessionmaker

from slotengine.core.exceptions import SlotUnavailableException, TransactionAbortedException
from slotengine.database import unit_of_work as uow_module
from slotengine.database import Base, create_store_engine
from slotengine.database.unit_of_work import UnitOfWork
from slotengine.models import Reservation
from slotengine.services.availability_service import AvailabilityService
from slotengine.services.reservation_gate import ReservationGate

from ..helpers.factories import create_service, create_staff, create_tenant

pytestmark = pytest.mark.integration


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def file_session_factory(tmp_path):
    engine = create_store_engine(f"sqlite:///{tmp_path / 'gate.db'}", busy_timeout_seconds=10)
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def seeded(file_session_factory):
    session = file_session_factory()
    try:
        tenant = create_tenant(session)
        service = create_service(session, tenant, duration_minutes=60, buffer_minutes=10)
        staff = create_staff(session, tenant)
        return tenant.id, service.id, staff.id
    finally:
        session.close()


def run_concurrently(file_session_factory, claims):
    """Run each claim in its own thread and unit of work; collect results."""
    gate = ReservationGate()
    barrier = threading.Barrier(len(claims))
    results = [None] * len(claims)

    def worker(index, claim):
        barrier.wait()
        try:
            with UnitOfWork.open(file_session_factory) as uow:
                results[index] = claim(gate, uow)
        except Exception as exc:  # collected for assertions
            results[index] = exc

    threads = [
        threading.Thread(target=worker, args=(index, claim)) for index, claim in enumerate(claims)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return results


class TestConcurrentClaims:
    def test_same_window_exactly_one_wins(self, file_session_factory, seeded):
        tenant_id, service_id, staff_id = seeded

        def claim(gate, uow):
            return gate.reserve(
                uow, tenant_id, service_id, utc(2030, 1, 7, 9), utc(2030, 1, 7, 10), staff_id=staff_id
            )

        results = run_concurrently(file_session_factory, [claim, claim])

        winners = [r for r in results if isinstance(r, Reservation)]
        losers = [r for r in results if isinstance(r, SlotUnavailableException)]
        assert len(winners) == 1, results
        assert len(losers) == 1, results

        session = file_session_factory()
        try:
            assert session.query(Reservation).count() == 1
        finally:
            session.close()

    def test_overlap_through_buffer_exactly_one_wins(self, file_session_factory, seeded):
        """09:00-10:00 plus 10 minutes buffer collides with a 10:05 start."""
        tenant_id, service_id, _ = seeded

        def early(gate, uow):
            return gate.reserve(uow, tenant_id, service_id, utc(2030, 1, 7, 9), utc(2030, 1, 7, 10))

        def late(gate, uow):
            return gate.reserve(
                uow, tenant_id, service_id, utc(2030, 1, 7, 10, 5), utc(2030, 1, 7, 11, 5)
            )

        results = run_concurrently(file_session_factory, [early, late])

        assert sum(isinstance(r, Reservation) for r in results) == 1, results
        assert sum(isinstance(r, SlotUnavailableException) for r in results) == 1, results

    def test_disjoint_windows_both_succeed(self, file_session_factory, seeded):
        tenant_id, service_id, staff_id = seeded

        def morning(gate, uow):
            return gate.reserve(
                uow, tenant_id, service_id, utc(2030, 1, 7, 9), utc(2030, 1, 7, 10), staff_id=staff_id
            )

        def afternoon(gate, uow):
            return gate.reserve(
                uow, tenant_id, service_id, utc(2030, 1, 7, 14), utc(2030, 1, 7, 15), staff_id=staff_id
            )

        results = run_concurrently(file_session_factory, [morning, afternoon])
        assert all(isinstance(r, Reservation) for r in results), results


class TestHeldWriteLock:
    """Another connection holds the SQLite write lock past the busy timeout."""

    @pytest.fixture
    def db_path(self, tmp_path, seeded):
        return tmp_path / "gate.db"

    @pytest.fixture
    def impatient_factory(self, db_path):
        engine = create_store_engine(f"sqlite:///{db_path}", busy_timeout_seconds=0.2)
        yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        engine.dispose()

    @pytest.fixture
    def blocker(self, db_path):
        connection = sqlite3.connect(str(db_path), isolation_level=None, check_same_thread=False)
        connection.execute("BEGIN IMMEDIATE")
        yield connection
        if connection.in_transaction:
            connection.execute("ROLLBACK")
        connection.close()

    def test_begin_timeout_is_transaction_aborted(self, impatient_factory, blocker):
        with pytest.raises(TransactionAbortedException) as exc_info:
            with UnitOfWork.open(impatient_factory):
                pass
        assert exc_info.value.details == {"stage": "begin"}

    def test_reserve_with_retry_waits_out_the_lock(
        self, impatient_factory, blocker, seeded, monkeypatch
    ):
        tenant_id, service_id, staff_id = seeded
        monkeypatch.setattr(uow_module.time, "sleep", lambda seconds: blocker.execute("ROLLBACK"))

        session = impatient_factory()
        try:
            service = AvailabilityService(session, session_factory=impatient_factory)
            reservation = service.reserve_with_retry(
                tenant_id, service_id, utc(2030, 1, 7, 9), utc(2030, 1, 7, 10), staff_id=staff_id
            )
        finally:
            session.close()

        assert reservation.staff_id == staff_id
        assert not blocker.in_transaction
