# backend/app/repositories/__init__.py
"""
Repository layer for data access.

Usage:
    from app.repositories import RepositoryFactory

    repository = RepositoryFactory.create_appointment_repository(db)
    overlapping = repository.get_overlapping(course_id, start, end)
"""

from .appointment_repository import AppointmentRepository
from .base_repository import BaseRepository
from .factory import RepositoryFactory

__all__ = [
    "AppointmentRepository",
    "BaseRepository",
    "RepositoryFactory",
]
