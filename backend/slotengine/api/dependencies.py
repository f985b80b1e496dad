# backend/slotengine/api/dependencies.py
"""
Dependencies for dependency injection.

Route handlers receive services built on the request's database session.
Claims that retry open their own sessions from ``get_session_factory``.
"""

from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session, sessionmaker

from ..core.config import settings
from ..database import SessionLocal, get_db as original_get_db
from ..services.availability_service import AvailabilityService
from ..services.schedule_model import ScheduleModel


def get_db() -> Generator[Session, None, None]:
    """
    Get database session dependency.

    Yields:
        Database session that will be closed after use
    """
    yield from original_get_db()


def get_session_factory() -> sessionmaker:
    return SessionLocal


def get_availability_service(
    db: Session = Depends(get_db),
    session_factory: sessionmaker = Depends(get_session_factory),
) -> AvailabilityService:
    return AvailabilityService(db, session_factory=session_factory)


def get_schedule_model(db: Session = Depends(get_db)) -> ScheduleModel:
    return ScheduleModel(db, settings.default_weekly_schedule())
