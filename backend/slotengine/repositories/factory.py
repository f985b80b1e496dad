# backend/slotengine/repositories/factory.py
"""
Repository Factory for the slot engine.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

# Avoid circular imports
if TYPE_CHECKING:
    from .reservation_lock_repository import ReservationLockRepository
    from .reservation_repository import ReservationRepository
    from .service_catalog_repository import ServiceCatalogRepository
    from .staff_repository import StaffRepository
    from .tenant_repository import TenantRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation to ensure consistent initialization
    and makes it easy to swap implementations if needed.
    """

    @staticmethod
    def create_tenant_repository(db: Session) -> "TenantRepository":
        from .tenant_repository import TenantRepository

        return TenantRepository(db)

    @staticmethod
    def create_service_catalog_repository(db: Session) -> "ServiceCatalogRepository":
        """Create repository for service lookups."""
        from .service_catalog_repository import ServiceCatalogRepository

        return ServiceCatalogRepository(db)

    @staticmethod
    def create_staff_repository(db: Session) -> "StaffRepository":
        """Create repository for staff, schedules and holidays."""
        from .staff_repository import StaffRepository

        return StaffRepository(db)

    @staticmethod
    def create_reservation_repository(db: Session) -> "ReservationRepository":
        """Create repository for reservation and conflict queries."""
        from .reservation_repository import ReservationRepository

        return ReservationRepository(db)

    @staticmethod
    def create_reservation_lock_repository(db: Session) -> "ReservationLockRepository":
        from .reservation_lock_repository import ReservationLockRepository

        return ReservationLockRepository(db)
