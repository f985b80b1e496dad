# backend/slotengine/repositories/service_catalog_repository.py
"""
Repository for bookable services.

Soft-deleted services are invisible to every lookup here.
"""

from typing import Optional

from sqlalchemy.orm import Session

from ..models.service import Service
from .base_repository import BaseRepository


class ServiceCatalogRepository(BaseRepository[Service]):
    def __init__(self, db: Session):
        super().__init__(db, Service)

    def get_for_tenant(self, service_id: str, tenant_id: str) -> Optional[Service]:
        """Get a non-deleted service owned by the tenant."""
        return (
            self.db.query(Service)
            .filter(
                Service.id == service_id,
                Service.tenant_id == tenant_id,
                Service.deleted_at.is_(None),
            )
            .first()
        )
