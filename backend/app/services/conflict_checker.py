# backend/app/services/conflict_checker.py
"""
Schedule conflict detection at write time.

The availability check before a write can be stale by the time the write
lands. The helpers here catch the losing side of a race: a post-flush
overlap query inside the same transaction, and translation of constraint
violations and lock conflicts raised by the database into SlotConflictException.
"""

import logging
from typing import Any, Dict, Optional, Sequence

from sqlalchemy.exc import DBAPIError, IntegrityError

from ..core.exceptions import RepositoryException, SlotConflictException
from ..database.session_utils import is_concurrency_conflict
from ..models.appointment import Appointment
from ..repositories.appointment_repository import AppointmentRepository

logger = logging.getLogger(__name__)

GENERIC_CONFLICT_MESSAGE = "This time slot is no longer available"
OVERLAP_CONSTRAINTS = ("appointments_no_overlap_per_course", "uq_appointments_course_start_active")


def _constraint_name(integrity_error: IntegrityError) -> str:
    orig = getattr(integrity_error, "orig", None)
    diag = getattr(orig, "diag", None)
    name = getattr(diag, "constraint_name", "") if diag is not None else ""
    if name:
        return str(name)
    text = str(orig or integrity_error)
    for candidate in OVERLAP_CONSTRAINTS:
        if candidate in text:
            return candidate
    if "UNIQUE constraint failed: appointments.course_id, appointments.scheduled_at" in text:
        return "uq_appointments_course_start_active"
    return ""


def as_slot_conflict(
    exc: BaseException, details: Optional[Dict[str, Any]] = None
) -> Optional[SlotConflictException]:
    """
    Translate a storage error caused by a competing writer into a conflict.

    Returns None for errors that are not schedule conflicts; callers re-raise
    those unchanged.
    """
    cause: BaseException = exc
    if isinstance(exc, RepositoryException) and exc.__cause__ is not None:
        cause = exc.__cause__

    if isinstance(cause, IntegrityError):
        constraint = _constraint_name(cause)
        if constraint and constraint not in OVERLAP_CONSTRAINTS:
            return None
        logger.info(f"Schedule write rejected by constraint {constraint or 'unknown'}")
        return SlotConflictException(
            GENERIC_CONFLICT_MESSAGE,
            details={**(details or {}), "constraint": constraint or None},
        )
    if isinstance(cause, DBAPIError) and is_concurrency_conflict(cause):
        logger.info("Schedule write lost a concurrency race: %s", cause)
        return SlotConflictException(GENERIC_CONFLICT_MESSAGE, details=details)
    return None


def assert_no_overlaps(
    repository: AppointmentRepository, appointments: Sequence[Appointment]
) -> None:
    """
    Re-check freshly written rows against everything else in the store.

    Runs after flush in the writing transaction; raises SlotConflictException
    naming the first appointment that now overlaps another active one.
    """
    own_ids = [a.id for a in appointments]
    for appointment in appointments:
        overlapping = repository.get_overlapping(
            appointment.course_id,
            appointment.scheduled_at,
            appointment.ends_at,
            exclude_ids=own_ids,
        )
        if overlapping:
            logger.warning(
                f"Post-write overlap detected for course {appointment.course_id} at "
                f"{appointment.scheduled_at.isoformat()}"
            )
            raise SlotConflictException(
                GENERIC_CONFLICT_MESSAGE,
                details={
                    "start": appointment.scheduled_at.isoformat(),
                    "reason": "overlaps_existing",
                },
            )
