# backend/app/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from ...database import get_db
from .auth import get_current_user_id
from .services import (
    get_availability_service,
    get_booking_service,
    get_notification_dispatcher,
    get_payment_gateway,
    get_payment_reconciler,
    get_rate_provider,
    get_reschedule_engine,
)

__all__ = [
    # Auth
    "get_current_user_id",
    # Database
    "get_db",
    # Services
    "get_availability_service",
    "get_booking_service",
    "get_notification_dispatcher",
    "get_payment_gateway",
    "get_payment_reconciler",
    "get_rate_provider",
    "get_reschedule_engine",
]
