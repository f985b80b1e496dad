# backend/slotengine/repositories/reservation_repository.py
"""
Reservation Repository for the slot engine.

Owns the queries behind conflict detection: which occupying reservations
overlap a UTC window. Overlap is evaluated on occupied intervals,
``[start_utc, occupied_end_utc)``, so buffers are respected without joins.

Scope rules:
- staff_id given: that staff member's reservations plus tenant-wide ones
  (staff_id NULL), which occupy every staff member.
- staff_id None: every reservation of the tenant.
"""

from datetime import datetime
import logging
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..models.reservation import OCCUPYING_STATUSES, Reservation
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ReservationRepository(BaseRepository[Reservation]):
    def __init__(self, db: Session):
        super().__init__(db, Reservation)

    def get_for_tenant(self, reservation_id: str, tenant_id: str) -> Optional[Reservation]:
        return (
            self.db.query(Reservation)
            .filter(Reservation.id == reservation_id, Reservation.tenant_id == tenant_id)
            .first()
        )

    def find_occupying(
        self,
        tenant_id: str,
        window_start: datetime,
        window_end: datetime,
        staff_id: Optional[str] = None,
        exclude_reservation_id: Optional[str] = None,
    ) -> List[Reservation]:
        """
        Get occupying reservations whose occupied interval overlaps the window.

        Args:
            tenant_id: Tenant scope
            window_start: Inclusive UTC start
            window_end: Exclusive UTC end
            staff_id: Restrict to one staff member and tenant-wide reservations
            exclude_reservation_id: Reservation to ignore (reschedule of itself)

        Returns:
            Reservations ordered by start
        """
        query = self.db.query(Reservation).filter(
            Reservation.tenant_id == tenant_id,
            Reservation.status.in_(OCCUPYING_STATUSES),
            Reservation.start_utc < window_end,
            Reservation.occupied_end_utc > window_start,
        )
        if staff_id is not None:
            query = query.filter(
                or_(Reservation.staff_id == staff_id, Reservation.staff_id.is_(None))
            )
        if exclude_reservation_id is not None:
            query = query.filter(Reservation.id != exclude_reservation_id)

        return query.order_by(Reservation.start_utc, Reservation.id).all()
