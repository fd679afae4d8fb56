# backend/app/models/appointment.py
"""
Appointment model.

An appointment is a paid, time-boxed one-on-one session for a course.
Rows are created PENDING by checkout, become CONFIRMED once the payment
gateway reports success, and may later be CANCELLED or COMPLETED.

Several appointments bought in one checkout share the same
``payment_reference``.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
import logging
from typing import Any, Optional

from sqlalchemy import CheckConstraint, Column, Index, Integer, Numeric, String, Text, text
import ulid

from ..database import Base
from .types import UTCDateTime

logger = logging.getLogger(__name__)


class AppointmentStatus(str, Enum):
    """Appointment lifecycle statuses."""

    PENDING = "PENDING"  # Awaiting payment confirmation
    CONFIRMED = "CONFIRMED"  # Paid
    COMPLETED = "COMPLETED"  # Session delivered
    CANCELLED = "CANCELLED"  # Terminal


# Statuses that occupy their time range on the course schedule
ACTIVE_STATUSES = (AppointmentStatus.PENDING.value, AppointmentStatus.CONFIRMED.value)

_ACTIVE_STATUS_SQL = "status IN ('PENDING', 'CONFIRMED')"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    student_id = Column(String(64), nullable=False, index=True)
    course_id = Column(String(64), nullable=False, index=True)

    scheduled_at = Column(UTCDateTime, nullable=False)
    ends_at = Column(UTCDateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False)

    status = Column(String(20), nullable=False, default=AppointmentStatus.PENDING.value, index=True)

    # Price snapshot, immutable after creation
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="cad")

    payment_reference = Column(
        String(255), nullable=True, index=True, comment="Gateway payment intent id"
    )

    notes = Column(Text, nullable=True)

    created_at = Column(UTCDateTime, nullable=False, default=_utcnow)
    updated_at = Column(UTCDateTime, nullable=True, onupdate=_utcnow)
    confirmed_at = Column(UTCDateTime, nullable=True)
    cancelled_at = Column(UTCDateTime, nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'COMPLETED', 'CANCELLED')",
            name="ck_appointments_status",
        ),
        CheckConstraint("duration_minutes > 0", name="ck_appointments_duration_positive"),
        CheckConstraint("amount >= 0", name="ck_appointments_amount_non_negative"),
        CheckConstraint("ends_at > scheduled_at", name="ck_appointments_time_order"),
        Index(
            "uq_appointments_course_start_active",
            "course_id",
            "scheduled_at",
            unique=True,
            postgresql_where=text(_ACTIVE_STATUS_SQL),
            sqlite_where=text(_ACTIVE_STATUS_SQL),
        ),
        Index("ix_appointments_course_window", "course_id", "scheduled_at", "ends_at"),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if self.status is None:
            self.status = AppointmentStatus.PENDING.value
        if self.scheduled_at is not None and self.duration_minutes and self.ends_at is None:
            self.ends_at = self.scheduled_at + timedelta(minutes=self.duration_minutes)

    def __repr__(self) -> str:
        return (
            f"<Appointment {self.id}: course={self.course_id} student={self.student_id} "
            f"{self.scheduled_at} ({self.duration_minutes}min) {self.status}>"
        )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_cancellable(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def move_to(self, new_start: datetime) -> None:
        """Shift the appointment keeping its duration."""
        self.scheduled_at = new_start
        self.ends_at = new_start + timedelta(minutes=self.duration_minutes)
        self.updated_at = _utcnow()

    def append_note(self, line: str) -> None:
        self.notes = f"{self.notes}\n{line}" if self.notes else line

    def cancel(self, reason: Optional[str] = None, cancelled_at: Optional[datetime] = None) -> None:
        self.status = AppointmentStatus.CANCELLED.value
        self.cancelled_at = cancelled_at or _utcnow()
        self.cancellation_reason = reason
        logger.info(f"Appointment {self.id} cancelled")
