# backend/slotengine/services/__init__.py
"""
Service layer for the slot engine.

Services contain business logic; repositories contain queries.
"""

from .availability_service import AvailabilityService
from .base import BaseService
from .conflict_checker import ConflictDetector, DetectionMode
from .reservation_gate import ReservationGate
from .schedule_model import ScheduleModel
from .slot_generator import SlotGenerator
from .timezone_service import TimezoneService

__all__ = [
    "AvailabilityService",
    "BaseService",
    "ConflictDetector",
    "DetectionMode",
    "ReservationGate",
    "ScheduleModel",
    "SlotGenerator",
    "TimezoneService",
]
