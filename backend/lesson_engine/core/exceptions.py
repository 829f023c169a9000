# backend/lesson_engine/core/exceptions.py
"""
Domain-specific exceptions for the lesson rescheduling engine.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
Every failure of the engine surfaces as one of these typed errors;
nothing is retried automatically.
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
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when request input is malformed or incomplete."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a lesson, request, teacher or enrollment does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class InvalidStateException(ConflictException):
    """Raised when the current status does not allow the requested transition."""

    def __init__(
        self,
        message: str,
        *,
        current_status: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        merged = dict(details or {})
        if current_status is not None:
            merged["current_status"] = current_status
        super().__init__(message=message, code="INVALID_STATE", details=merged)


class PolicyViolationException(BusinessRuleException):
    """Raised when the advance-notice or holiday rule blocks a change."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "POLICY_VIOLATION",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, code=code, details=details or {})


class InsufficientNoticeException(PolicyViolationException):
    """Raised when a change does not meet the minimum advance notice."""

    def __init__(self, required_hours: int, provided_hours: float):
        super().__init__(
            message=f"Changes must be requested at least {required_hours} hours in advance",
            code="INSUFFICIENT_NOTICE",
            details={
                "required_hours": required_hours,
                "provided_hours": round(provided_hours, 2),
            },
        )


class UnsupportedForGroupException(BusinessRuleException):
    """Raised when a self-service request targets a group lesson."""

    def __init__(self, group_name: str):
        super().__init__(
            message=(
                "Group lessons cannot be cancelled or rescheduled through self-service. "
                "Please contact the school administration."
            ),
            code="UNSUPPORTED_FOR_GROUP",
            details={"group_name": group_name},
        )


class SlotConflictException(ConflictException):
    """Raised when the requested slot overlaps an existing booking at commit time."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message
            or "The requested time is no longer available. Please choose another slot.",
            code="SLOT_CONFLICT",
            details=details or {},
        )


class PersistenceFailureException(ServiceException):
    """Raised when the storage layer fails during an atomic mutation."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="PERSISTENCE_FAILURE", details=details or {})


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
