# backend/app/routes/v1/appointments.py
"""
Student appointment routes - API v1

Versioned appointment endpoints under /api/v1/appointments.
All business logic delegated to the scheduling services.

Endpoints:
    GET /availability - Bookable slots for a course and date range
    POST /availability/dates - Which dates have at least one free slot
    POST / - Reserve slots and open one payment for them
    GET / - The caller's appointments, newest first
    POST /confirm-payment - Confirm appointments after client-side payment
    GET /{appointment_id} - One of the caller's appointments
    POST /{appointment_id}/reschedule - Move an appointment to a new slot
    POST /{appointment_id}/cancel - Cancel an appointment
"""

import asyncio
from datetime import date
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, Response, status

from ...api.dependencies import (
    get_availability_service,
    get_booking_service,
    get_current_user_id,
    get_payment_reconciler,
    get_reschedule_engine,
)
from ...core.config import settings
from ...core.exceptions import DomainException
from ...core.timezone_utils import format_business_datetime
from ...domain.slots import SlotRequest
from ...models.appointment import AppointmentStatus
from ...schemas.appointment import (
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
)
from ...services.availability_service import AvailabilityService
from ...services.booking_service import BookingService
from ...services.payment_reconciler import PaymentReconciler, ReconciliationOutcome
from ...services.reschedule_service import ReschedulePolicyEngine

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["appointments-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"
DEFERRED_RETRY_AFTER_SECONDS = 5

# Reconciliation outcomes that are not plain success
OUTCOME_STATUS_CODES = {
    ReconciliationOutcome.DECLINED: status.HTTP_402_PAYMENT_REQUIRED,
    ReconciliationOutcome.DEFERRED: status.HTTP_503_SERVICE_UNAVAILABLE,
    ReconciliationOutcome.AMOUNT_MISMATCH: status.HTTP_409_CONFLICT,
}


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


# ============================================================================
# SECTION 1: Static routes (no path parameters)
# ============================================================================


@router.get("/availability", response_model=AvailabilityResponse)
async def get_availability(
    course_id: str = Query(..., min_length=1, max_length=64),
    start_date: date = Query(..., description="First local date (inclusive)"),
    end_date: date = Query(..., description="Last local date (inclusive)"),
    duration_minutes: int = Query(60, gt=0, le=720),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityResponse:
    """
    Bookable slots for a course.

    Unavailable slots are included with a reason so the calendar can show
    them greyed out.
    """
    try:
        slots = await asyncio.to_thread(
            availability_service.get_available_slots,
            course_id,
            start_date,
            end_date,
            duration_minutes,
        )
    except DomainException as e:
        handle_domain_exception(e)

    tz = availability_service.business_hours.timezone
    items = []
    for slot in slots:
        local = format_business_datetime(slot.start, tz)
        items.append(
            AvailabilitySlotOut(
                start=slot.start,
                end=slot.end,
                local_date=local["local_date"],
                local_time=local["local_time"],
                available=slot.available,
                price=slot.price,
                reason=slot.reason,
            )
        )
    return AvailabilityResponse(
        course_id=course_id,
        duration_minutes=duration_minutes,
        timezone=tz.zone,
        currency=settings.payment_currency,
        slots=items,
    )


@router.post("/availability/dates", response_model=AvailabilityDatesResponse)
async def get_availability_for_dates(
    payload: AvailabilityDatesRequest,
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityDatesResponse:
    """Date picker helper: one boolean per requested date."""
    try:
        availability_map = await asyncio.to_thread(
            availability_service.get_availability_map,
            payload.course_id,
            payload.dates,
            payload.duration_minutes,
        )
    except DomainException as e:
        handle_domain_exception(e)

    return AvailabilityDatesResponse(
        course_id=payload.course_id,
        duration_minutes=payload.duration_minutes,
        availability_map={d.isoformat(): open_ for d, open_ in availability_map.items()},
    )


@router.post("", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
async def create_appointments(
    payload: CheckoutRequest,
    student_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> CheckoutResponse:
    """
    Reserve the selected slots and return the client payment handle.

    The appointments stay PENDING until the payment is confirmed through
    ``/confirm-payment`` or the gateway webhook.
    """
    slots = [SlotRequest(start=s.start, duration_minutes=s.duration_minutes) for s in payload.slots]
    try:
        result = await asyncio.to_thread(
            booking_service.create_checkout,
            student_id,
            payload.course_id,
            slots,
            expected_total=payload.expected_total,
            notes=payload.notes,
        )
    except DomainException as e:
        handle_domain_exception(e)

    return CheckoutResponse(
        client_handle=result.client_handle,
        payment_reference=result.payment_reference,
        appointment_ids=result.appointment_ids,
        total_amount=result.total_amount,
        currency=result.currency,
    )


@router.get("", response_model=AppointmentListResponse)
async def list_appointments(
    status_filter: Optional[AppointmentStatus] = Query(None, alias="status"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    cursor: Optional[str] = Query(None, max_length=26),
    limit: int = Query(20, ge=1, le=100),
    student_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> AppointmentListResponse:
    """The caller's appointments, newest first, keyset-paginated by ``cursor``."""
    try:
        page = await asyncio.to_thread(
            booking_service.list_appointments_for_student,
            student_id,
            status=status_filter,
            date_from=date_from,
            date_to=date_to,
            cursor=cursor,
            limit=limit,
        )
    except DomainException as e:
        handle_domain_exception(e)

    return AppointmentListResponse(
        items=[AppointmentResponse.model_validate(a) for a in page.items],
        next_cursor=page.next_cursor,
        has_more=page.has_more,
    )


@router.post("/confirm-payment", response_model=ConfirmPaymentResponse)
async def confirm_payment(
    payload: ConfirmPaymentRequest,
    response: Response,
    student_id: str = Depends(get_current_user_id),
    reconciler: PaymentReconciler = Depends(get_payment_reconciler),
) -> ConfirmPaymentResponse:
    """
    Client-side trigger for payment reconciliation.

    Safe to call repeatedly and concurrently with the gateway webhook.
    """
    try:
        result = await asyncio.to_thread(
            reconciler.confirm_payment, payload.payment_reference, student_id
        )
    except DomainException as e:
        handle_domain_exception(e)

    response.status_code = OUTCOME_STATUS_CODES.get(result.outcome, status.HTTP_200_OK)
    if result.outcome is ReconciliationOutcome.DEFERRED:
        response.headers["Retry-After"] = str(DEFERRED_RETRY_AFTER_SECONDS)

    return ConfirmPaymentResponse(
        outcome=result.outcome.value,
        payment_reference=result.payment_reference,
        appointment_ids=result.appointment_ids,
        newly_confirmed_ids=result.newly_confirmed_ids,
        gateway_status=result.gateway_status,
    )


# ============================================================================
# SECTION 2: Routes with path parameters
# ============================================================================


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    student_id: str = Depends(get_current_user_id),
    booking_service: BookingService = Depends(get_booking_service),
) -> AppointmentResponse:
    try:
        appointment = await asyncio.to_thread(
            booking_service.get_appointment_for_student, appointment_id, student_id
        )
    except DomainException as e:
        handle_domain_exception(e)
    return AppointmentResponse.model_validate(appointment)


@router.post("/{appointment_id}/reschedule", response_model=AppointmentResponse)
async def reschedule_appointment(
    payload: RescheduleRequest,
    appointment_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    student_id: str = Depends(get_current_user_id),
    engine: ReschedulePolicyEngine = Depends(get_reschedule_engine),
) -> AppointmentResponse:
    """Move an appointment to a new start; duration and price are kept."""
    try:
        appointment = await asyncio.to_thread(
            engine.reschedule, appointment_id, student_id, payload.new_start, payload.reason
        )
    except DomainException as e:
        handle_domain_exception(e)
    return AppointmentResponse.model_validate(appointment)


@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel_appointment(
    payload: Optional[CancelRequest] = None,
    appointment_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    student_id: str = Depends(get_current_user_id),
    engine: ReschedulePolicyEngine = Depends(get_reschedule_engine),
) -> AppointmentResponse:
    reason = payload.reason if payload is not None else None
    try:
        appointment = await asyncio.to_thread(engine.cancel, appointment_id, student_id, reason)
    except DomainException as e:
        handle_domain_exception(e)
    return AppointmentResponse.model_validate(appointment)


__all__ = ["router"]
