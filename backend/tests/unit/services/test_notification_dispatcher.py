"""Notification hand-off payloads."""

from datetime import datetime, timezone
from decimal import Decimal

from app.integrations.notifier import EVENT_CANCELLED, EVENT_PAYMENT_CONFIRMED, EVENT_RESCHEDULED
from app.models.appointment import Appointment, AppointmentStatus
from app.services.notification_dispatcher import (
    AppointmentNotificationDispatcher,
    build_appointment_details,
)
from app.tasks.notification_tasks import DELIVER_TASK_NAME
from support import COURSE_ID, STUDENT_ID

START = datetime(2030, 1, 7, 15, 0, tzinfo=timezone.utc)


def _appointment(**overrides) -> Appointment:
    fields = dict(
        id="01HZZZZZZZZZZZZZZZZZZZZZZZ",
        student_id=STUDENT_ID,
        course_id=COURSE_ID,
        scheduled_at=START,
        duration_minutes=90,
        status=AppointmentStatus.CONFIRMED.value,
        amount=Decimal("120.00"),
        currency="cad",
        payment_reference="pi_test_1",
    )
    fields.update(overrides)
    return Appointment(**fields)


class TestBuildAppointmentDetails:
    def test_snapshot_fields(self):
        details = build_appointment_details(_appointment())
        assert details["student_id"] == STUDENT_ID
        assert details["course_id"] == COURSE_ID
        assert details["duration_minutes"] == 90
        assert details["amount"] == "120.00"
        assert details["payment_reference"] == "pi_test_1"
        assert details["local_date"] == "2030-01-07"
        assert details["local_time"] == "10:00"
        assert details["timezone"] == "America/Toronto"


class TestDispatcher:
    def test_confirmed_event(self, dispatcher, enqueue):
        confirmed_at = datetime(2030, 1, 6, 12, 5, tzinfo=timezone.utc)
        assert dispatcher.appointment_confirmed(_appointment(confirmed_at=confirmed_at))

        call = enqueue.calls[0]
        event_type, appointment_id, details = call["args"]
        assert call["task_name"] == DELIVER_TASK_NAME
        assert event_type == EVENT_PAYMENT_CONFIRMED
        assert appointment_id == "01HZZZZZZZZZZZZZZZZZZZZZZZ"
        assert details["confirmed_at"] == confirmed_at.isoformat()

    def test_rescheduled_event(self, dispatcher, enqueue):
        previous = datetime(2030, 1, 6, 15, 0, tzinfo=timezone.utc)
        dispatcher.appointment_rescheduled(_appointment(), previous, "Moved for a dentist visit")
        _, _, details = enqueue.calls[0]["args"]
        assert enqueue.events() == [EVENT_RESCHEDULED]
        assert details["reason"] == "Moved for a dentist visit"
        assert details["previous_scheduled_at"].startswith("2030-01-06T15:00:00")

    def test_cancelled_event(self, dispatcher, enqueue):
        appointment = _appointment(
            status=AppointmentStatus.CANCELLED.value, cancellation_reason="Sick"
        )
        dispatcher.appointment_cancelled(appointment)
        _, _, details = enqueue.calls[0]["args"]
        assert enqueue.events() == [EVENT_CANCELLED]
        assert details["status"] == "CANCELLED"
        assert details["cancellation_reason"] == "Sick"

    def test_enqueue_failure_is_swallowed(self, enqueue):
        enqueue.fail = True
        dispatcher = AppointmentNotificationDispatcher(enqueue=enqueue)
        assert dispatcher.appointment_confirmed(_appointment()) is False
        assert enqueue.calls == []

    def test_custom_task_name(self, enqueue):
        dispatcher = AppointmentNotificationDispatcher(enqueue=enqueue, task_name="custom.deliver")
        dispatcher.appointment_cancelled(_appointment())
        assert enqueue.calls[0]["task_name"] == "custom.deliver"
