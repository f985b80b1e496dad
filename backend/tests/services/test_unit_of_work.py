# backend/tests/services/test_unit_of_work.py
"""Tests for UnitOfWork commit/rollback and run_with_retry."""

import pytest
from sqlalchemy.exc import OperationalError

from slotengine.core.exceptions import SlotUnavailableException, TransactionAbortedException
from slotengine.database import unit_of_work as uow_module
from slotengine.database.unit_of_work import UnitOfWork, run_with_retry
from slotengine.models import Tenant


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(uow_module.time, "sleep", lambda seconds: None)


class TestUnitOfWork:
    def test_commits_on_clean_exit(self, db):
        with UnitOfWork(db) as uow:
            assert uow.active
            db.add(Tenant(slug="committed", business_name="Committed", timezone="UTC"))
        assert not uow.active

        db.expire_all()
        assert db.query(Tenant).filter(Tenant.slug == "committed").count() == 1

    def test_rolls_back_on_exception(self, db):
        with pytest.raises(ValueError):
            with UnitOfWork(db):
                db.add(Tenant(slug="rolled-back", business_name="Gone", timezone="UTC"))
                db.flush()
                raise ValueError("boom")

        assert db.query(Tenant).filter(Tenant.slug == "rolled-back").count() == 0

    def test_open_owns_and_closes_session(self, session_factory):
        with UnitOfWork.open(session_factory) as uow:
            uow.session.add(Tenant(slug="owned", business_name="Owned", timezone="UTC"))

        check = session_factory()
        try:
            assert check.query(Tenant).filter(Tenant.slug == "owned").count() == 1
        finally:
            check.close()

    def test_commit_contention_becomes_transient(self, db, monkeypatch):
        def locked():
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        uow = UnitOfWork(db)
        monkeypatch.setattr(db, "commit", locked)
        with pytest.raises(TransactionAbortedException) as exc_info:
            uow.commit()
        assert exc_info.value.details == {"stage": "commit"}

    def test_begin_contention_becomes_transient(self, session_factory, monkeypatch):
        session = session_factory()
        closed = []

        def locked(*args, **kwargs):
            raise OperationalError("BEGIN IMMEDIATE", {}, Exception("database is locked"))

        monkeypatch.setattr(session, "connection", locked)
        monkeypatch.setattr(session, "close", lambda: closed.append(True))
        with pytest.raises(TransactionAbortedException) as exc_info:
            with UnitOfWork(session, owns_session=True):
                pytest.fail("body must not run without the write lock")
        assert exc_info.value.details == {"stage": "begin"}
        assert closed == [True]

    def test_begin_other_driver_errors_propagate(self, session_factory, monkeypatch):
        session = session_factory()

        def broken(*args, **kwargs):
            raise OperationalError("BEGIN IMMEDIATE", {}, Exception("disk I/O error"))

        monkeypatch.setattr(session, "connection", broken)
        with pytest.raises(OperationalError):
            with UnitOfWork(session):
                pass
        session.close()


class TestRunWithRetry:
    def test_returns_first_success(self):
        assert run_with_retry("op", lambda: 42) == 42

    def test_retries_transient_failures(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise TransactionAbortedException()
            return "ok"

        assert run_with_retry("reserve", flaky, max_attempts=3) == "ok"
        assert len(calls) == 3

    def test_gives_up_after_max_attempts(self):
        calls = []

        def always_busy():
            calls.append(1)
            raise TransactionAbortedException()

        with pytest.raises(TransactionAbortedException):
            run_with_retry("reserve", always_busy, max_attempts=2)
        assert len(calls) == 2

    def test_conflicts_are_never_retried(self):
        calls = []

        def conflict():
            calls.append(1)
            raise SlotUnavailableException()

        with pytest.raises(SlotUnavailableException):
            run_with_retry("reserve", conflict, max_attempts=5)
        assert len(calls) == 1

    def test_backoff_grows(self):
        assert uow_module._retry_delay(1) < uow_module._retry_delay(3)
