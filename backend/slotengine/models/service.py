# backend/slotengine/models/service.py
"""
Bookable service offered by a tenant.

Duration and buffer are whole minutes. The buffer is idle time that follows
every reservation of this service and is counted as occupied.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base
from .types import UTCDateTime


class Service(Base):
    __tablename__ = "services"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    tenant_id = Column(String(26), ForeignKey("tenants.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    buffer_minutes = Column(Integer, nullable=False, default=0)
    require_staff = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime(), server_default=func.now(), nullable=False)
    deleted_at = Column(UTCDateTime(), nullable=True)

    tenant = relationship("Tenant", back_populates="services")

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="check_service_duration_positive"),
        CheckConstraint("buffer_minutes >= 0", name="check_service_buffer_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<Service {self.name} {self.duration_minutes}m+{self.buffer_minutes}m>"
