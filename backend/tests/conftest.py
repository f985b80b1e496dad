# backend/tests/conftest.py
"""
Pytest configuration for the slot engine.

Every test gets a fresh in-memory SQLite database. The engine is built with
create_store_engine so the same BEGIN handling and busy timeout apply as in
production SQLite deployments.

Sessions that open their own connection (the *_with_retry paths, route
requests) share the single in-memory connection, so tests commit or roll back
the ``db`` session before handing control to them.
"""

import os

# Settings must see the test configuration before any slotengine import
os.environ.setdefault("SLOTENGINE_DATABASE_URL", "sqlite://")
os.environ.setdefault("SLOTENGINE_DEFAULT_OPEN_HOURS", "09:00-17:00")

from datetime import datetime, timezone

import pytest
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from slotengine.database import Base, create_store_engine
from slotengine.database.unit_of_work import UnitOfWork
import slotengine.models  # noqa: F401
from slotengine.schemas.schedule import WeeklySchedule

from .helpers.factories import create_service, create_staff, create_tenant

NINE_TO_FIVE = [{"start": "09:00", "end": "17:00"}]


@pytest.fixture
def engine():
    engine = create_store_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def uow(db: Session) -> UnitOfWork:
    """Unit of work over the test session; enter it with ``with uow:``."""
    return UnitOfWork(db)


@pytest.fixture
def default_schedule() -> WeeklySchedule:
    return WeeklySchedule.from_mapping(
        {
            day: NINE_TO_FIVE
            for day in (
                "monday",
                "tuesday",
                "wednesday",
                "thursday",
                "friday",
                "saturday",
                "sunday",
            )
        }
    )


@pytest.fixture
def tenant(db: Session):
    return create_tenant(db, timezone="UTC")


@pytest.fixture
def ny_tenant(db: Session):
    return create_tenant(db, timezone="America/New_York", slug="ny-studio")


@pytest.fixture
def service(db: Session, tenant):
    return create_service(db, tenant, duration_minutes=60, buffer_minutes=0)


@pytest.fixture
def staff(db: Session, tenant):
    return create_staff(db, tenant)


@pytest.fixture
def far_past() -> datetime:
    """A 'now' well before every date used in tests."""
    return datetime(2020, 1, 1, tzinfo=timezone.utc)
