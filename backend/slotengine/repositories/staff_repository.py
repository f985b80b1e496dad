# backend/slotengine/repositories/staff_repository.py
"""
Repository for staff members, their weekly schedules and holidays.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..models.staff import Staff, StaffHoliday
from .base_repository import BaseRepository


class StaffRepository(BaseRepository[Staff]):
    def __init__(self, db: Session):
        super().__init__(db, Staff)

    def get_for_tenant(self, staff_id: str, tenant_id: str) -> Optional[Staff]:
        """Get a non-deleted staff member of the tenant."""
        return (
            self.db.query(Staff)
            .filter(
                Staff.id == staff_id,
                Staff.tenant_id == tenant_id,
                Staff.deleted_at.is_(None),
            )
            .first()
        )

    def list_staff_ids(self, tenant_id: str) -> List[str]:
        """All staff ids of a tenant, deleted ones included, in sorted order."""
        rows = (
            self.db.query(Staff.id).filter(Staff.tenant_id == tenant_id).order_by(Staff.id).all()
        )
        return [row[0] for row in rows]

    def set_weekly_schedule(self, staff: Staff, schedule: Dict[str, Any]) -> Staff:
        staff.weekly_schedule = schedule
        self.db.flush()
        return staff

    # Holidays

    def add_holiday(self, staff_id: str, holiday_date: date, reason: Optional[str]) -> StaffHoliday:
        holiday = StaffHoliday(staff_id=staff_id, date=holiday_date, reason=reason)
        self.db.add(holiday)
        self.db.flush()
        return holiday

    def get_holidays(
        self,
        staff_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[StaffHoliday]:
        query = self.db.query(StaffHoliday).filter(StaffHoliday.staff_id == staff_id)
        if start_date is not None:
            query = query.filter(StaffHoliday.date >= start_date)
        if end_date is not None:
            query = query.filter(StaffHoliday.date <= end_date)
        return query.order_by(StaffHoliday.date).all()

    def delete_holiday(self, holiday_id: str, staff_id: str) -> bool:
        deleted = (
            self.db.query(StaffHoliday)
            .filter(StaffHoliday.id == holiday_id, StaffHoliday.staff_id == staff_id)
            .delete(synchronize_session="fetch")
        )
        self.db.flush()
        return deleted > 0
