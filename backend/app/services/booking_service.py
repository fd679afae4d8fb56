# backend/app/services/booking_service.py
"""
Booking Orchestrator.

Turns a student's slot selection into PENDING appointments plus one
payment handle covering all of them:

1. validate and price the selection at the live rate
2. reserve every slot in one transaction (all or nothing)
3. create the gateway payment intent outside any transaction
4. persist the gateway reference onto the reserved rows
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.course_lock import course_schedule_lock
from ..core.exceptions import (
    GatewayException,
    NotBookableException,
    NotFoundException,
    PriceChangedException,
    RepositoryException,
    SlotConflictException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc, localize_business_time, utc_now
from ..domain.slots import CENT, SlotRequest, compute_price, find_overlapping_pair
from ..integrations.payment_gateway import PaymentGateway, PaymentGatewayError
from ..models.appointment import Appointment, AppointmentStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .availability_service import AvailabilityService
from .base import BaseService
from .conflict_checker import as_slot_conflict, assert_no_overlaps

logger = logging.getLogger(__name__)

LOCK_BUSY_MESSAGE = "Another booking for this course is in progress. Please retry."
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class CheckoutResult:
    client_handle: str
    payment_reference: str
    appointment_ids: List[str]
    total_amount: Decimal
    currency: str


@dataclass(frozen=True)
class AppointmentPage:
    items: List[Appointment]
    next_cursor: Optional[str]
    has_more: bool


class BookingService(BaseService):
    """
    Service layer for appointment checkout and student appointment views.
    """

    def __init__(
        self,
        db: Session,
        availability_service: AvailabilityService,
        payment_gateway: PaymentGateway,
        *,
        config: Optional[Settings] = None,
    ):
        super().__init__(db)
        self.config = config or default_settings
        self.availability_service = availability_service
        self.payment_gateway = payment_gateway
        self.repository = RepositoryFactory.create_appointment_repository(db)

    # Validation and pricing

    def _validate_slots(self, slots: Sequence[SlotRequest]) -> None:
        if not slots:
            raise ValidationException("At least one time slot is required", code="NO_SLOTS")
        for slot in slots:
            self.availability_service.validate_duration(slot.duration_minutes)
        pair = find_overlapping_pair(slots)
        if pair is not None:
            raise ValidationException(
                "Selected time slots overlap each other",
                code="OVERLAPPING_SLOTS",
                details={"slot_indexes": list(pair)},
            )

    def _check_price_drift(
        self, expected_total: Optional[Decimal], current_total: Decimal, currency: str
    ) -> None:
        if expected_total is None:
            return
        expected = Decimal(expected_total).quantize(CENT)
        if abs(expected - current_total) > self.config.price_change_tolerance:
            prometheus_metrics.record_checkout("price_changed")
            self.logger.info(
                f"Price changed since display: expected {expected}, current {current_total}"
            )
            raise PriceChangedException(str(expected), str(current_total), currency)

    # Reservation

    def _slot_failures(
        self, course_id: str, slots: Sequence[SlotRequest], now: datetime
    ) -> List[Dict[str, Any]]:
        failures = []
        for index, slot in enumerate(slots):
            reason = self.availability_service.check_slot(
                course_id, slot.start, slot.duration_minutes, now=now
            )
            if reason is not None:
                failures.append(
                    {
                        "index": index,
                        "start": slot.start.isoformat(),
                        "duration_minutes": slot.duration_minutes,
                        "reason": reason,
                    }
                )
        return failures

    def _reserve_slots(
        self,
        student_id: str,
        course_id: str,
        slots: Sequence[SlotRequest],
        prices: Sequence[Decimal],
        currency: str,
        notes: Optional[str],
        now: datetime,
    ) -> List[Appointment]:
        with course_schedule_lock(course_id) as acquired:
            if not acquired:
                raise SlotConflictException(LOCK_BUSY_MESSAGE, details={"retryable": True})
            try:
                with self.transaction():
                    self.repository.lock_course_schedule(course_id)
                    failures = self._slot_failures(course_id, slots, now)
                    if failures:
                        raise SlotConflictException(
                            "One or more selected time slots are no longer available",
                            details={"failed_slots": failures},
                        )
                    appointments = [
                        self.repository.create(
                            student_id=student_id,
                            course_id=course_id,
                            scheduled_at=slot.start,
                            ends_at=slot.end,
                            duration_minutes=slot.duration_minutes,
                            status=AppointmentStatus.PENDING.value,
                            amount=price,
                            currency=currency,
                            notes=notes,
                        )
                        for slot, price in zip(slots, prices)
                    ]
                    assert_no_overlaps(self.repository, appointments)
            except (SQLAlchemyError, RepositoryException) as exc:
                conflict = as_slot_conflict(exc, details={"course_id": course_id})
                if conflict is None:
                    raise
                raise conflict from exc
        return appointments

    @BaseService.measure_operation("create_checkout")
    def create_checkout(
        self,
        student_id: str,
        course_id: str,
        slots: Sequence[SlotRequest],
        *,
        expected_total: Optional[Decimal] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> CheckoutResult:
        """
        Reserve the selected slots and open one payment intent for their total.

        Either every slot becomes a PENDING appointment or none does; no
        payment intent is created unless the reservation committed.

        Raises:
            ValidationException: empty selection, bad duration, overlapping picks
            NotBookableException: course has no appointment rate
            PriceChangedException: ``expected_total`` no longer matches the live total
            SlotConflictException: a slot is taken, in the past or out of hours
            GatewayException: payment intent could not be created (rows stay PENDING)
        """
        now = ensure_utc(now) if now is not None else utc_now()
        self._validate_slots(slots)

        rate = self.availability_service.get_hourly_rate(course_id)
        if rate is None:
            raise NotBookableException(course_id)

        currency = self.config.payment_currency
        prices = [compute_price(rate, slot.duration_minutes) for slot in slots]
        total = sum(prices, Decimal("0.00"))
        self._check_price_drift(expected_total, total, currency)

        try:
            appointments = self._reserve_slots(
                student_id, course_id, slots, prices, currency, notes, now
            )
        except SlotConflictException:
            prometheus_metrics.record_checkout("slot_conflict")
            raise
        appointment_ids = [a.id for a in appointments]
        self.log_operation(
            "appointments_reserved",
            course_id=course_id,
            student_id=student_id,
            appointment_ids=appointment_ids,
        )

        metadata = {
            "type": "appointment",
            "student_id": student_id,
            "course_id": course_id,
            "appointment_count": str(len(appointment_ids)),
            "appointment_ids": ",".join(appointment_ids),
        }
        try:
            handle = self.payment_gateway.create_payment_intent(
                total,
                currency,
                metadata,
                idempotency_key=f"appointment-checkout:{appointment_ids[0]}",
            )
        except PaymentGatewayError as exc:
            prometheus_metrics.record_checkout("gateway_error")
            self.logger.error(
                f"Payment intent creation failed for appointments {appointment_ids}: {exc}"
            )
            raise GatewayException(appointment_ids=appointment_ids) from exc

        with self.transaction():
            self.repository.attach_payment_reference(appointment_ids, handle.reference)

        prometheus_metrics.record_checkout("created")
        self.logger.info(
            f"Checkout created for {len(appointment_ids)} appointment(s), "
            f"total {total} {currency}, intent {handle.reference}"
        )
        return CheckoutResult(
            client_handle=handle.client_handle,
            payment_reference=handle.reference,
            appointment_ids=appointment_ids,
            total_amount=total,
            currency=currency,
        )

    # Student views

    def get_appointment_for_student(self, appointment_id: str, student_id: str) -> Appointment:
        appointment = self.repository.get_by_id(appointment_id)
        if appointment is None or appointment.student_id != student_id:
            raise NotFoundException("Appointment not found", code="APPOINTMENT_NOT_FOUND")
        return appointment

    @BaseService.measure_operation("list_appointments_for_student")
    def list_appointments_for_student(
        self,
        student_id: str,
        *,
        status: Optional[AppointmentStatus] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        cursor: Optional[str] = None,
        limit: int = 20,
    ) -> AppointmentPage:
        """
        Newest-first appointments of a student.

        PENDING appointments are hidden unless explicitly requested through
        ``status``. Date bounds are inclusive local dates.
        """
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        statuses = (
            [status.value]
            if status is not None
            else [
                AppointmentStatus.CONFIRMED.value,
                AppointmentStatus.COMPLETED.value,
                AppointmentStatus.CANCELLED.value,
            ]
        )
        tz = self.availability_service.business_hours.timezone
        lower = localize_business_time(date_from, time.min, tz) if date_from else None
        upper = (
            localize_business_time(date_to + timedelta(days=1), time.min, tz) if date_to else None
        )
        rows = self.repository.list_for_student(
            student_id,
            statuses=statuses,
            date_from=lower,
            date_to=upper,
            cursor=cursor,
            limit=limit,
        )
        has_more = len(rows) > limit
        items = rows[:limit]
        return AppointmentPage(
            items=items,
            next_cursor=items[-1].id if has_more and items else None,
            has_more=has_more,
        )
