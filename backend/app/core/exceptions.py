# backend/app/core/exceptions.py
"""
Domain-specific exceptions for the scheduling backend.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, List, Optional

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
    """Raised when business validation fails."""

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


class SlotConflictException(ConflictException):
    """Raised when a requested slot is no longer available."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "This time slot is no longer available",
            code="SLOT_CONFLICT",
            details=details or {},
        )


class PriceChangedException(ConflictException):
    """Raised when the live price no longer matches the price the student saw."""

    def __init__(self, expected_total: str, current_total: str, currency: str):
        super().__init__(
            message="The price for this course has changed. Please review the new total.",
            code="PRICE_CHANGED",
            details={
                "expected_total": expected_total,
                "current_total": current_total,
                "currency": currency,
            },
        )


class NotBookableException(BusinessRuleException):
    """Raised when a course has no appointment rate configured."""

    def __init__(self, course_id: str):
        super().__init__(
            message="This course is not available for appointment booking",
            code="NOT_BOOKABLE",
            details={"course_id": course_id},
        )


class PolicyViolationException(BusinessRuleException):
    """Raised when an appointment change breaks a scheduling policy."""


class GatewayException(ServiceException):
    """Raised when the payment gateway cannot be reached or rejects the call."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(
        self,
        message: str = "Payment provider is temporarily unavailable. Please retry.",
        *,
        appointment_ids: Optional[List[str]] = None,
    ):
        details: Dict[str, Any] = {"retryable": True}
        if appointment_ids:
            details["appointment_ids"] = appointment_ids
        super().__init__(message=message, code="GATEWAY_ERROR", details=details)


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
