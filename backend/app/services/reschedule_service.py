# backend/app/services/reschedule_service.py
"""
Reschedule and cancellation policy.

Rescheduling moves an active appointment to another slot of the same
course while the original start is more than the cutoff away. Price,
payment reference, status and duration never change on a move; every move
appends an audit line to the appointment notes.
"""

from datetime import datetime, timedelta
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.course_lock import course_schedule_lock
from ..core.exceptions import (
    NotFoundException,
    PolicyViolationException,
    RepositoryException,
    SlotConflictException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc, utc_now
from ..models.appointment import Appointment, AppointmentStatus
from ..repositories.factory import RepositoryFactory
from .availability_service import AvailabilityService
from .base import BaseService
from .booking_service import LOCK_BUSY_MESSAGE
from .conflict_checker import as_slot_conflict, assert_no_overlaps
from .notification_dispatcher import AppointmentNotificationDispatcher

logger = logging.getLogger(__name__)


def reschedule_note(previous_start: datetime, new_start: datetime, reason: str) -> str:
    return f"[Rescheduled {previous_start.isoformat()} -> {new_start.isoformat()}] {reason}"


class ReschedulePolicyEngine(BaseService):
    def __init__(
        self,
        db: Session,
        availability_service: AvailabilityService,
        dispatcher: AppointmentNotificationDispatcher,
        *,
        config: Optional[Settings] = None,
    ):
        super().__init__(db)
        self.config = config or default_settings
        self.availability_service = availability_service
        self.dispatcher = dispatcher
        self.repository = RepositoryFactory.create_appointment_repository(db)

    def _load_owned(self, appointment_id: str, requester_id: str) -> Appointment:
        appointment = self.repository.get_for_update(appointment_id)
        if appointment is None or appointment.student_id != requester_id:
            raise NotFoundException("Appointment not found", code="APPOINTMENT_NOT_FOUND")
        return appointment

    def _check_cutoff(self, appointment: Appointment, now: datetime) -> None:
        cutoff = appointment.scheduled_at - timedelta(hours=self.config.reschedule_cutoff_hours)
        if now >= cutoff:
            raise PolicyViolationException(
                f"Appointments can only be rescheduled more than "
                f"{self.config.reschedule_cutoff_hours} hours before they start",
                code="RESCHEDULE_CUTOFF",
                details={
                    "scheduled_at": appointment.scheduled_at.isoformat(),
                    "cutoff_at": cutoff.isoformat(),
                },
            )

    @BaseService.measure_operation("reschedule")
    def reschedule(
        self,
        appointment_id: str,
        requester_id: str,
        new_start: datetime,
        reason: str,
        *,
        now: Optional[datetime] = None,
    ) -> Appointment:
        """
        Move an appointment to ``new_start`` keeping its duration.

        Raises:
            ValidationException: reason too short
            NotFoundException: unknown appointment or not the requester's
            PolicyViolationException: not active, or inside the cutoff window
            SlotConflictException: the new slot is not available
        """
        reason = (reason or "").strip()
        if len(reason) < self.config.reschedule_reason_min_length:
            raise ValidationException(
                f"Please provide a reason of at least "
                f"{self.config.reschedule_reason_min_length} characters",
                code="REASON_TOO_SHORT",
            )
        now = ensure_utc(now) if now is not None else utc_now()
        new_start = ensure_utc(new_start)

        # Course id is needed for the mutex before the locked read
        current = self.repository.get_by_id(appointment_id)
        if current is None or current.student_id != requester_id:
            raise NotFoundException("Appointment not found", code="APPOINTMENT_NOT_FOUND")
        course_id = current.course_id

        with course_schedule_lock(course_id) as acquired:
            if not acquired:
                raise SlotConflictException(LOCK_BUSY_MESSAGE, details={"retryable": True})
            try:
                with self.transaction():
                    self.repository.lock_course_schedule(course_id)
                    appointment = self._load_owned(appointment_id, requester_id)
                    if not appointment.is_active:
                        raise PolicyViolationException(
                            "This appointment can no longer be rescheduled",
                            code="APPOINTMENT_NOT_RESCHEDULABLE",
                            details={"status": appointment.status},
                        )
                    self._check_cutoff(appointment, now)

                    unavailable = self.availability_service.check_slot(
                        course_id,
                        new_start,
                        appointment.duration_minutes,
                        now=now,
                        exclude_appointment_id=appointment.id,
                    )
                    if unavailable is not None:
                        raise SlotConflictException(
                            "The requested time slot is not available",
                            details={"start": new_start.isoformat(), "reason": unavailable},
                        )

                    previous_start = appointment.scheduled_at
                    appointment.move_to(new_start)
                    appointment.append_note(reschedule_note(previous_start, new_start, reason))
                    self.repository.flush()
                    assert_no_overlaps(self.repository, [appointment])
            except (SQLAlchemyError, RepositoryException) as exc:
                conflict = as_slot_conflict(exc, details={"start": new_start.isoformat()})
                if conflict is None:
                    raise
                raise conflict from exc

        self.logger.info(
            f"Appointment {appointment.id} rescheduled from {previous_start.isoformat()} "
            f"to {new_start.isoformat()}"
        )
        self.dispatcher.appointment_rescheduled(appointment, previous_start, reason)
        return appointment

    @BaseService.measure_operation("cancel")
    def cancel(
        self,
        appointment_id: str,
        requester_id: str,
        reason: Optional[str] = None,
        *,
        now: Optional[datetime] = None,
    ) -> Appointment:
        """
        Cancel an active appointment. Cancelling twice is a no-op.

        Refunds are handled outside this service.
        """
        now = ensure_utc(now) if now is not None else utc_now()
        with self.transaction():
            appointment = self._load_owned(appointment_id, requester_id)
            if appointment.status == AppointmentStatus.CANCELLED.value:
                return appointment
            if not appointment.is_cancellable:
                raise PolicyViolationException(
                    "This appointment can no longer be cancelled",
                    code="APPOINTMENT_NOT_CANCELLABLE",
                    details={"status": appointment.status},
                )
            appointment.cancel(reason=(reason or "").strip() or None, cancelled_at=now)
            appointment.updated_at = now

        self.dispatcher.appointment_cancelled(appointment)
        return appointment
