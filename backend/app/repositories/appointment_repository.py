# backend/app/repositories/appointment_repository.py
"""
Appointment Repository

Data access for appointments: overlap queries used by availability and
conflict detection, payment reference lookups used by reconciliation and
the per-course schedule lock taken by mutating flows.
"""

from datetime import datetime, timezone
import logging
from typing import List, Optional, Sequence, cast

from sqlalchemy import and_, or_, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.appointment import ACTIVE_STATUSES, Appointment, AppointmentStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AppointmentRepository(BaseRepository[Appointment]):
    def __init__(self, db: Session):
        super().__init__(db, Appointment)
        self.logger = logging.getLogger(__name__)

    # Schedule queries

    def get_overlapping(
        self,
        course_id: str,
        start: datetime,
        end: datetime,
        *,
        exclude_ids: Optional[Sequence[str]] = None,
    ) -> List[Appointment]:
        """
        Active appointments of a course overlapping ``[start, end)``.

        Overlap is half-open: ``scheduled_at < end AND ends_at > start``.
        """
        try:
            query = self.db.query(Appointment).filter(
                Appointment.course_id == course_id,
                Appointment.status.in_(ACTIVE_STATUSES),
                Appointment.scheduled_at < end,
                Appointment.ends_at > start,
            )
            if exclude_ids:
                query = query.filter(Appointment.id.notin_(list(exclude_ids)))
            return cast(List[Appointment], query.order_by(Appointment.scheduled_at).all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting overlapping appointments: {str(e)}")
            raise RepositoryException(f"Failed to get overlapping appointments: {str(e)}") from e

    def lock_course_schedule(self, course_id: str) -> None:
        """
        Serialize schedule mutations for one course until the transaction ends.

        PostgreSQL takes a transaction-scoped advisory lock. Other backends
        rely on constraint checks and the post-write overlap re-check.
        """
        if self.dialect_name != "postgresql":
            return
        self.db.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:lock_key))"),
            {"lock_key": f"course-schedule:{course_id}"},
        )

    def get_for_update(self, appointment_id: str) -> Optional[Appointment]:
        query = self.db.query(Appointment).filter(Appointment.id == appointment_id)
        if self.dialect_name == "postgresql":
            query = query.with_for_update().populate_existing()
        return cast(Optional[Appointment], query.first())

    # Payment reference queries

    def get_by_ids(self, appointment_ids: Sequence[str]) -> List[Appointment]:
        if not appointment_ids:
            return []
        return cast(
            List[Appointment],
            self.db.query(Appointment)
            .filter(Appointment.id.in_(list(appointment_ids)))
            .order_by(Appointment.scheduled_at)
            .all(),
        )

    def get_by_payment_reference(
        self, payment_reference: str, *, student_id: Optional[str] = None
    ) -> List[Appointment]:
        query = self.db.query(Appointment).filter(
            Appointment.payment_reference == payment_reference
        )
        if student_id is not None:
            query = query.filter(Appointment.student_id == student_id)
        return cast(List[Appointment], query.order_by(Appointment.scheduled_at).all())

    def attach_payment_reference(
        self, appointment_ids: Sequence[str], payment_reference: str
    ) -> int:
        """Set the gateway reference on rows that do not have one yet."""
        updated = (
            self.db.query(Appointment)
            .filter(
                Appointment.id.in_(list(appointment_ids)),
                Appointment.payment_reference.is_(None),
            )
            .update(
                {
                    Appointment.payment_reference: payment_reference,
                    Appointment.updated_at: datetime.now(timezone.utc),
                },
                synchronize_session="fetch",
            )
        )
        return int(updated or 0)

    def confirm_if_pending(self, appointment_id: str, confirmed_at: datetime) -> bool:
        """
        Conditionally move one row from PENDING to CONFIRMED.

        Returns True only when this call performed the transition, so two
        racing confirmations never both report the same row.
        """
        updated = (
            self.db.query(Appointment)
            .filter(
                Appointment.id == appointment_id,
                Appointment.status == AppointmentStatus.PENDING.value,
            )
            .update(
                {
                    Appointment.status: AppointmentStatus.CONFIRMED.value,
                    Appointment.confirmed_at: confirmed_at,
                    Appointment.updated_at: confirmed_at,
                },
                synchronize_session="fetch",
            )
        )
        return bool(updated)

    # Student views

    def list_for_student(
        self,
        student_id: str,
        *,
        statuses: Optional[Sequence[str]] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        cursor: Optional[str] = None,
        limit: int = 20,
    ) -> List[Appointment]:
        """
        Newest-first page of a student's appointments.

        ``cursor`` is the id of the last appointment of the previous page.
        Fetches ``limit + 1`` rows so callers can tell whether more exist.
        """
        query = self.db.query(Appointment).filter(Appointment.student_id == student_id)
        if statuses:
            query = query.filter(Appointment.status.in_(list(statuses)))
        if date_from is not None:
            query = query.filter(Appointment.scheduled_at >= date_from)
        if date_to is not None:
            query = query.filter(Appointment.scheduled_at < date_to)
        if cursor:
            anchor = self.db.execute(
                select(Appointment.scheduled_at, Appointment.id).where(
                    Appointment.id == cursor, Appointment.student_id == student_id
                )
            ).first()
            if anchor is not None:
                query = query.filter(
                    or_(
                        Appointment.scheduled_at < anchor.scheduled_at,
                        and_(
                            Appointment.scheduled_at == anchor.scheduled_at,
                            Appointment.id < anchor.id,
                        ),
                    )
                )
        return cast(
            List[Appointment],
            query.order_by(Appointment.scheduled_at.desc(), Appointment.id.desc())
            .limit(limit + 1)
            .all(),
        )
