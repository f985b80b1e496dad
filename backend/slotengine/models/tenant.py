# backend/slotengine/models/tenant.py
"""
Tenant model.

A tenant is the business publishing services. Its ``timezone`` is the
reference timezone every weekly schedule and holiday date is authored in.
"""

from sqlalchemy import Column, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base
from .types import UTCDateTime


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    slug = Column(String(100), nullable=False, unique=True, index=True)
    business_name = Column(String(200), nullable=False)
    timezone = Column(String(64), nullable=False, default="UTC")
    created_at = Column(UTCDateTime(), server_default=func.now(), nullable=False)

    services = relationship("Service", back_populates="tenant")
    staff_members = relationship("Staff", back_populates="tenant")

    def __repr__(self) -> str:
        return f"<Tenant {self.slug} tz={self.timezone}>"
