# backend/slotengine/core/exceptions.py
"""
Domain-specific exceptions for the slot engine.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.

Taxonomy:
- Input errors (ValidationException, NotFoundException): surfaced immediately,
  never retried.
- Conflict errors (SlotUnavailableException): an expected negative result.
- Transient errors (TransactionAbortedException): safe to retry the same call.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException using the class status code."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when input validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class TransientException(DomainException):
    """Raised when the store could not complete an operation but a retry may succeed."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def to_http_exception(self) -> HTTPException:
        exc = super().to_http_exception()
        exc.headers = {"Retry-After": "1"}
        return exc


# Input errors


class InvalidTimezoneException(ValidationException):
    """Raised when a zone identifier is not a recognized IANA name."""

    def __init__(self, zone_id: Any):
        super().__init__(
            message=f"Invalid timezone: {zone_id}",
            code="INVALID_TIMEZONE",
            details={"timezone": str(zone_id)},
        )


class InvalidInputException(ValidationException):
    """Raised when a date/time or range does not describe a real calendar value."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="INVALID_INPUT", details=details)


class ScheduleConfigurationException(ValidationException):
    """Raised when an authored weekly schedule is malformed."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="INVALID_SCHEDULE", details=details)


class TenantNotFoundException(NotFoundException):
    def __init__(self, tenant_id: str):
        super().__init__(
            message="Tenant not found",
            code="TENANT_NOT_FOUND",
            details={"tenant_id": tenant_id},
        )


class ServiceNotFoundException(NotFoundException):
    def __init__(self, service_id: str):
        super().__init__(
            message="Service not found",
            code="SERVICE_NOT_FOUND",
            details={"service_id": service_id},
        )


class StaffNotFoundException(NotFoundException):
    def __init__(self, staff_id: Optional[str], message: str = "Staff member not found"):
        super().__init__(
            message=message,
            code="STAFF_NOT_FOUND",
            details={"staff_id": staff_id},
        )


class ReservationNotFoundException(NotFoundException):
    def __init__(self, reservation_id: str):
        super().__init__(
            message="Reservation not found",
            code="RESERVATION_NOT_FOUND",
            details={"reservation_id": reservation_id},
        )


# Business rules


class ServiceInactiveException(BusinessRuleException):
    """Raised when a service exists but is not currently bookable."""

    def __init__(self, service_id: str):
        super().__init__(
            message="Service is not active",
            code="SERVICE_INACTIVE",
            details={"service_id": service_id},
        )


class InvalidStateException(BusinessRuleException):
    """Raised when a reservation's lifecycle status forbids the operation."""

    def __init__(self, reservation_id: str, current_status: str):
        super().__init__(
            message=f"Cannot reschedule {current_status} reservation",
            code="INVALID_STATE",
            details={"reservation_id": reservation_id, "status": current_status},
        )


# Conflicts


class SlotUnavailableException(ConflictException):
    """
    Raised when the requested window collides with an occupying reservation.

    Callers should re-query availability and pick another window; retrying the
    same window will not succeed.
    """

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "Selected time slot is no longer available",
            code="SLOT_UNAVAILABLE",
            details=details or {},
        )


# Transient


class TransactionAbortedException(TransientException):
    """
    Raised when the unit of work was rolled back because of store contention.

    No partial effect remains, so the identical call may be retried.
    """

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "The reservation store is busy, please retry",
            code="TRANSACTION_ABORTED",
            details=details or {},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """


def is_lock_contention(exc: Exception) -> bool:
    """
    Check if a driver error indicates lock contention rather than a bug.

    Covers PostgreSQL lock_timeout/deadlock/serialization failures and the
    SQLite "database is locked" busy error.
    """
    error_str = str(exc).lower()
    return any(
        snippet in error_str
        for snippet in (
            "database is locked",
            "database table is locked",
            "lock timeout",
            "lock_timeout",
            "canceling statement due to lock timeout",
            "deadlock detected",
            "could not serialize access",
            "could not obtain lock",
        )
    )
