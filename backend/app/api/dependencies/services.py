# backend/app/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected. Tests replace any of
them through ``app.dependency_overrides``.
"""

from functools import lru_cache
import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.config import settings
from ...database import get_db
from ...integrations import (
    CatalogCourseRateProvider,
    CourseRateProvider,
    PaymentGateway,
    StaticCourseRateProvider,
    StripePaymentGateway,
)
from ...services.availability_service import AvailabilityService
from ...services.booking_service import BookingService
from ...services.notification_dispatcher import AppointmentNotificationDispatcher
from ...services.payment_reconciler import PaymentReconciler
from ...services.reschedule_service import ReschedulePolicyEngine

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_payment_gateway() -> PaymentGateway:
    """Process-wide Stripe gateway."""
    return StripePaymentGateway(
        api_key=settings.stripe_secret_key,
        webhook_secrets=settings.webhook_secrets,
    )


@lru_cache(maxsize=1)
def get_rate_provider() -> CourseRateProvider:
    """Catalog-backed rates when a catalog URL is configured, static rates otherwise."""
    if settings.course_catalog_url:
        logger.info(f"Using course catalog at {settings.course_catalog_url} for rates")
        return CatalogCourseRateProvider(
            base_url=settings.course_catalog_url,
            timeout=settings.course_catalog_timeout_seconds,
        )
    return StaticCourseRateProvider(settings.course_hourly_rates)


def get_notification_dispatcher() -> AppointmentNotificationDispatcher:
    return AppointmentNotificationDispatcher()


def get_availability_service(
    db: Session = Depends(get_db),
    rate_provider: CourseRateProvider = Depends(get_rate_provider),
) -> AvailabilityService:
    """Get AvailabilityService instance with proper dependencies."""
    return AvailabilityService(db, rate_provider)


def get_booking_service(
    db: Session = Depends(get_db),
    availability_service: AvailabilityService = Depends(get_availability_service),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway),
) -> BookingService:
    """Get BookingService instance with proper dependencies."""
    return BookingService(db, availability_service, payment_gateway)


def get_payment_reconciler(
    db: Session = Depends(get_db),
    payment_gateway: PaymentGateway = Depends(get_payment_gateway),
    dispatcher: AppointmentNotificationDispatcher = Depends(get_notification_dispatcher),
) -> PaymentReconciler:
    """Get PaymentReconciler instance with proper dependencies."""
    return PaymentReconciler(db, payment_gateway, dispatcher)


def get_reschedule_engine(
    db: Session = Depends(get_db),
    availability_service: AvailabilityService = Depends(get_availability_service),
    dispatcher: AppointmentNotificationDispatcher = Depends(get_notification_dispatcher),
) -> ReschedulePolicyEngine:
    """Get ReschedulePolicyEngine instance with proper dependencies."""
    return ReschedulePolicyEngine(db, availability_service, dispatcher)
