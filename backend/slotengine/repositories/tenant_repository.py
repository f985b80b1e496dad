# backend/slotengine/repositories/tenant_repository.py
"""Tenant lookups."""

from sqlalchemy.orm import Session

from ..models.tenant import Tenant
from .base_repository import BaseRepository


class TenantRepository(BaseRepository[Tenant]):
    def __init__(self, db: Session):
        super().__init__(db, Tenant)
