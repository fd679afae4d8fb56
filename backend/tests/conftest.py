# backend/tests/conftest.py
"""
Pytest configuration for the scheduling backend.

Tests run against an in-memory SQLite database, a fake payment gateway, a
static course rate provider and a notification dispatcher that records
hand-offs instead of enqueueing Celery tasks.
"""

import os
import sys

# CRITICAL: Set testing configuration BEFORE any app imports!
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("REDIS_URL", None)
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "false")

# Add the backend directory (for app) and this directory (for support) to the path
tests_dir = os.path.dirname(os.path.abspath(__file__))
backend_dir = os.path.dirname(tests_dir)
sys.path.insert(0, backend_dir)
sys.path.insert(0, tests_dir)

from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import Settings
from app.database import Base
from app.domain.slots import SlotRequest
from app.integrations.course_rates import StaticCourseRateProvider
from app.models.appointment import Appointment
from app.services.availability_service import AvailabilityService
from app.services.booking_service import BookingService
from app.services.notification_dispatcher import AppointmentNotificationDispatcher
from app.services.payment_reconciler import PaymentReconciler
from app.services.reschedule_service import ReschedulePolicyEngine
from support import (
    COURSE_ID,
    MONDAY,
    NOW,
    STUDENT_ID,
    TEST_RATES,
    FakePaymentGateway,
    RecordingEnqueue,
    local_slot,
)


@pytest.fixture
def db() -> Session:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(
        autocommit=False, autoflush=False, bind=engine, expire_on_commit=False
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        redis_url=None,
        scheduling_timezone="America/Toronto",
        course_hourly_rates=TEST_RATES,
        closed_dates=[],
    )


@pytest.fixture
def rate_provider() -> StaticCourseRateProvider:
    return StaticCourseRateProvider(TEST_RATES)


@pytest.fixture
def payment_gateway() -> FakePaymentGateway:
    return FakePaymentGateway()


@pytest.fixture
def enqueue() -> RecordingEnqueue:
    return RecordingEnqueue()


@pytest.fixture
def dispatcher(enqueue: RecordingEnqueue) -> AppointmentNotificationDispatcher:
    return AppointmentNotificationDispatcher(enqueue=enqueue)


@pytest.fixture
def availability_service(db, rate_provider, test_settings) -> AvailabilityService:
    return AvailabilityService(db, rate_provider, config=test_settings)


@pytest.fixture
def booking_service(db, availability_service, payment_gateway, test_settings) -> BookingService:
    return BookingService(db, availability_service, payment_gateway, config=test_settings)


@pytest.fixture
def reconciler(db, payment_gateway, dispatcher) -> PaymentReconciler:
    return PaymentReconciler(db, payment_gateway, dispatcher)


@pytest.fixture
def reschedule_engine(db, availability_service, dispatcher, test_settings) -> ReschedulePolicyEngine:
    return ReschedulePolicyEngine(db, availability_service, dispatcher, config=test_settings)


@pytest.fixture
def checkout(booking_service):
    """Book slots for STUDENT_ID on COURSE_ID at a fixed NOW."""

    def _checkout(*starts: datetime, duration: int = 60, student_id: str = STUDENT_ID, **kwargs):
        slots = [SlotRequest(start=s, duration_minutes=duration) for s in starts]
        return booking_service.create_checkout(
            student_id, kwargs.pop("course_id", COURSE_ID), slots, now=NOW, **kwargs
        )

    return _checkout


@pytest.fixture
def confirmed_appointment(checkout, payment_gateway, reconciler, db):
    """A single CONFIRMED 60-minute appointment on Monday at 10:00 local."""
    result = checkout(local_slot(MONDAY, 10))
    payment_gateway.mark(result.payment_reference, "succeeded")
    reconciler.confirm_payment(result.payment_reference, STUDENT_ID)
    return db.get(Appointment, result.appointment_ids[0])
