"""
Database models for the scheduling backend.

The appointment table is the only persisted entity. Courses, students and
rates live in upstream services and are referenced by opaque ids.
"""

from .appointment import ACTIVE_STATUSES, Appointment, AppointmentStatus

__all__ = [
    "ACTIVE_STATUSES",
    "Appointment",
    "AppointmentStatus",
]
