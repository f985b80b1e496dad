# backend/slotengine/services/conflict_checker.py
"""
Conflict Detector for the slot engine.

Handles all reservation conflict detection:
- Half-open interval overlap
- Occupied intervals including buffer time
- Filtering or flagging candidate slots against existing reservations
- Live conflict lookups for a single window

A reservation occupies ``[start, end + its own buffer)``. A candidate window
for a service occupies ``[start, end + that service's buffer)``, since once
booked it will block its own buffer as well. Only confirmed and completed
reservations occupy time.
"""

from datetime import datetime, timedelta
from enum import Enum
import logging
from typing import Any, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..models.reservation import OCCUPYING_STATUSES, Reservation
from ..repositories import RepositoryFactory
from ..repositories.reservation_repository import ReservationRepository
from ..schemas.availability import CandidateSlot
from .base import BaseService

logger = logging.getLogger(__name__)

Interval = Tuple[datetime, datetime]


class DetectionMode(str, Enum):
    """What to do with a candidate that collides with a reservation."""

    FILTER = "filter"  # drop it
    FLAG = "flag"  # keep it with available=False


class ConflictDetector(BaseService):
    """
    Service for checking reservation conflicts.

    The interval helpers and ``detect`` are pure; ``find_conflicts`` and
    ``has_conflict`` read the store through the reservation repository.
    """

    def __init__(self, db: Session, repository: Optional[ReservationRepository] = None):
        """
        Initialize conflict detector.

        Args:
            db: Database session
            repository: Optional ReservationRepository instance
        """
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_reservation_repository(db)

    @staticmethod
    def overlaps(a: Interval, b: Interval) -> bool:
        """Half-open overlap: touching intervals do not overlap."""
        return a[0] < b[1] and b[0] < a[1]

    @staticmethod
    def occupied_interval(reservation: Any) -> Interval:
        """``[start, end + buffer)`` of a stored reservation, using its own buffer."""
        occupied_end = getattr(reservation, "occupied_end_utc", None)
        if occupied_end is None:
            occupied_end = reservation.end_utc + timedelta(
                minutes=getattr(reservation, "buffer_minutes", 0) or 0
            )
        return reservation.start_utc, occupied_end

    @staticmethod
    def candidate_interval(start_utc: datetime, end_utc: datetime, buffer_minutes: int) -> Interval:
        """What a window would occupy once claimed for a service with this buffer."""
        return start_utc, end_utc + timedelta(minutes=buffer_minutes)

    @staticmethod
    def occupies_time(reservation: Any) -> bool:
        status = getattr(reservation, "status", None)
        return getattr(status, "value", status) in OCCUPYING_STATUSES

    def detect(
        self,
        candidates: Sequence[CandidateSlot],
        reservations: Sequence[Any],
        mode: DetectionMode = DetectionMode.FILTER,
        buffer_minutes: int = 0,
    ) -> List[CandidateSlot]:
        """
        Apply existing reservations to candidate slots.

        Args:
            candidates: Candidate slots in any order (order is preserved)
            reservations: Existing reservations; non-occupying ones are ignored
            mode: FILTER drops colliding candidates, FLAG marks them unavailable
            buffer_minutes: Buffer of the service the candidates are for

        Returns:
            The resulting candidate list
        """
        occupied = sorted(
            self.occupied_interval(reservation)
            for reservation in reservations
            if self.occupies_time(reservation)
        )

        result: List[CandidateSlot] = []
        collisions = 0
        for candidate in candidates:
            window = self.candidate_interval(candidate.start_utc, candidate.end_utc, buffer_minutes)
            collides = False
            for interval in occupied:
                if interval[0] >= window[1]:
                    break
                if self.overlaps(window, interval):
                    collides = True
                    break

            if not collides:
                result.append(candidate)
                continue

            collisions += 1
            if mode == DetectionMode.FLAG:
                result.append(candidate.model_copy(update={"available": False}))

        if collisions:
            self.logger.debug(
                f"{collisions} of {len(candidates)} candidate slots collide with reservations",
                extra={"mode": DetectionMode(mode).value},
            )
        return result

    def find_conflicts(
        self,
        tenant_id: str,
        start_utc: datetime,
        end_utc: datetime,
        buffer_minutes: int,
        staff_id: Optional[str] = None,
        exclude_reservation_id: Optional[str] = None,
    ) -> List[Reservation]:
        """
        Get occupying reservations that collide with a window claimed for a service.

        Args:
            tenant_id: Tenant scope
            start_utc: Window start
            end_utc: Window end, excluding buffer
            buffer_minutes: Buffer of the service being claimed
            staff_id: Staff scope (tenant-wide reservations included); None checks the whole tenant
            exclude_reservation_id: Reservation being moved

        Returns:
            Colliding reservations ordered by start
        """
        window_start, window_end = self.candidate_interval(start_utc, end_utc, buffer_minutes)
        return self.repository.find_occupying(
            tenant_id,
            window_start,
            window_end,
            staff_id=staff_id,
            exclude_reservation_id=exclude_reservation_id,
        )

    def has_conflict(
        self,
        tenant_id: str,
        start_utc: datetime,
        end_utc: datetime,
        buffer_minutes: int,
        staff_id: Optional[str] = None,
        exclude_reservation_id: Optional[str] = None,
    ) -> bool:
        return bool(
            self.find_conflicts(
                tenant_id,
                start_utc,
                end_utc,
                buffer_minutes,
                staff_id=staff_id,
                exclude_reservation_id=exclude_reservation_id,
            )
        )
