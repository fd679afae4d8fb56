# backend/app/schemas/__init__.py
"""Pydantic request and response schemas for the appointment API."""

from .appointment import (
    AppointmentListResponse,
    AppointmentResponse,
    AvailabilityDatesRequest,
    AvailabilityDatesResponse,
    AvailabilityResponse,
    AvailabilitySlotOut,
    CancelRequest,
    CheckoutRequest,
    CheckoutResponse,
    ConfirmPaymentRequest,
    ConfirmPaymentResponse,
    RescheduleRequest,
    SlotSelection,
    WebhookAckResponse,
)

__all__ = [
    "AppointmentListResponse",
    "AppointmentResponse",
    "AvailabilityDatesRequest",
    "AvailabilityDatesResponse",
    "AvailabilityResponse",
    "AvailabilitySlotOut",
    "CancelRequest",
    "CheckoutRequest",
    "CheckoutResponse",
    "ConfirmPaymentRequest",
    "ConfirmPaymentResponse",
    "RescheduleRequest",
    "SlotSelection",
    "WebhookAckResponse",
]
