# backend/app/schemas/appointment.py
"""
Appointment schemas.

Datetimes on the wire are ISO-8601 with an explicit offset; responses are
always UTC with local date/time strings added where a student reads them.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import ConfigDict, Field, field_validator

from ..models.appointment import AppointmentStatus
from ._strict_base import StrictModel, StrictRequestModel


def _require_offset(value: datetime, field_name: str) -> datetime:
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{field_name} must include a timezone offset")
    return value


class SlotSelection(StrictRequestModel):
    """One slot of a checkout."""

    start: datetime = Field(..., description="Slot start with timezone offset")
    duration_minutes: int = Field(..., gt=0, le=720)

    @field_validator("start")
    @classmethod
    def _start_has_offset(cls, v: datetime) -> datetime:
        return _require_offset(v, "start")


class CheckoutRequest(StrictRequestModel):
    course_id: str = Field(..., min_length=1, max_length=64)
    slots: List[SlotSelection] = Field(..., min_length=1, max_length=20)
    expected_total: Optional[Decimal] = Field(
        None, ge=0, description="Total the student was shown; rejected if the live price drifted"
    )
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("notes")
    @classmethod
    def _clean_notes(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class CheckoutResponse(StrictModel):
    client_handle: str
    payment_reference: str
    appointment_ids: List[str]
    total_amount: Decimal
    currency: str


class ConfirmPaymentRequest(StrictRequestModel):
    payment_reference: str = Field(..., min_length=1, max_length=255)


class ConfirmPaymentResponse(StrictModel):
    outcome: str
    payment_reference: str
    appointment_ids: List[str] = Field(default_factory=list)
    newly_confirmed_ids: List[str] = Field(default_factory=list)
    gateway_status: Optional[str] = None


class RescheduleRequest(StrictRequestModel):
    new_start: datetime
    reason: str = Field(..., max_length=1000)

    @field_validator("new_start")
    @classmethod
    def _new_start_has_offset(cls, v: datetime) -> datetime:
        return _require_offset(v, "new_start")


class CancelRequest(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=1000)


class AvailabilitySlotOut(StrictModel):
    start: datetime
    end: datetime
    local_date: str
    local_time: str
    available: bool
    price: Decimal
    reason: Optional[str] = None


class AvailabilityResponse(StrictModel):
    course_id: str
    duration_minutes: int
    timezone: str
    currency: str
    slots: List[AvailabilitySlotOut]


class AvailabilityDatesRequest(StrictRequestModel):
    course_id: str = Field(..., min_length=1, max_length=64)
    dates: List[date] = Field(..., min_length=1, max_length=62)
    duration_minutes: int = Field(..., gt=0, le=720)


class AvailabilityDatesResponse(StrictModel):
    course_id: str
    duration_minutes: int
    availability_map: Dict[str, bool]


class AppointmentResponse(StrictModel):
    model_config = ConfigDict(extra="forbid", from_attributes=True)

    id: str
    student_id: str
    course_id: str
    scheduled_at: datetime
    ends_at: datetime
    duration_minutes: int
    status: AppointmentStatus
    amount: Decimal
    currency: str
    payment_reference: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None


class AppointmentListResponse(StrictModel):
    items: List[AppointmentResponse]
    next_cursor: Optional[str] = None
    has_more: bool = False


class WebhookAckResponse(StrictModel):
    status: str
    event_type: Optional[str] = None
    outcome: Optional[str] = None
