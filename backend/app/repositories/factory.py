# backend/app/repositories/factory.py
"""
Repository Factory

Provides centralized creation of repository instances so services never
construct data access objects directly.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

if TYPE_CHECKING:
    from .appointment_repository import AppointmentRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_appointment_repository(db: Session) -> "AppointmentRepository":
        """Create repository for appointment scheduling operations."""
        from .appointment_repository import AppointmentRepository

        return AppointmentRepository(db)
