# backend/app/services/notification_dispatcher.py
"""
Hands appointment events to the background delivery queue.

Called after the owning transaction commits. A failed hand-off is logged
and never changes the outcome of the operation that triggered it.
"""

from datetime import datetime, timezone
import logging
from typing import Any, Callable, Dict, Optional

from ..core.timezone_utils import format_business_datetime
from ..integrations.notifier import EVENT_CANCELLED, EVENT_PAYMENT_CONFIRMED, EVENT_RESCHEDULED
from ..models.appointment import Appointment
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

Enqueue = Callable[..., Any]


def _default_enqueue(*args: Any, **kwargs: Any) -> Any:
    from ..tasks.enqueue import enqueue_task

    return enqueue_task(*args, **kwargs)


def build_appointment_details(appointment: Appointment) -> Dict[str, Any]:
    """Serializable snapshot of an appointment for outbound events."""
    scheduled = format_business_datetime(appointment.scheduled_at)
    return {
        "student_id": appointment.student_id,
        "course_id": appointment.course_id,
        "scheduled_at": scheduled["utc"],
        "local_date": scheduled["local_date"],
        "local_time": scheduled["local_time"],
        "timezone": scheduled["timezone"],
        "duration_minutes": appointment.duration_minutes,
        "status": appointment.status,
        "amount": str(appointment.amount),
        "currency": appointment.currency,
        "payment_reference": appointment.payment_reference,
    }


class AppointmentNotificationDispatcher:
    """Fire-and-forget producer for appointment events."""

    def __init__(self, enqueue: Optional[Enqueue] = None, task_name: Optional[str] = None):
        from ..tasks.notification_tasks import DELIVER_TASK_NAME

        self._enqueue = enqueue or _default_enqueue
        self._task_name = task_name or DELIVER_TASK_NAME

    def appointment_confirmed(self, appointment: Appointment) -> bool:
        details = build_appointment_details(appointment)
        details["confirmed_at"] = (
            appointment.confirmed_at or datetime.now(timezone.utc)
        ).isoformat()
        return self._dispatch(EVENT_PAYMENT_CONFIRMED, appointment.id, details)

    def appointment_rescheduled(
        self, appointment: Appointment, previous_start: datetime, reason: str
    ) -> bool:
        details = build_appointment_details(appointment)
        details["previous_scheduled_at"] = format_business_datetime(previous_start)["utc"]
        details["reason"] = reason
        return self._dispatch(EVENT_RESCHEDULED, appointment.id, details)

    def appointment_cancelled(self, appointment: Appointment) -> bool:
        details = build_appointment_details(appointment)
        details["cancellation_reason"] = appointment.cancellation_reason
        return self._dispatch(EVENT_CANCELLED, appointment.id, details)

    def _dispatch(self, event_type: str, appointment_id: str, details: Dict[str, Any]) -> bool:
        try:
            self._enqueue(self._task_name, args=(event_type, appointment_id, details))
        except Exception as exc:
            prometheus_metrics.record_notification("enqueue", event_type, "error")
            logger.error(
                f"Failed to enqueue {event_type} for appointment {appointment_id}: {exc}",
                extra={"event_type": event_type, "appointment_id": appointment_id},
                exc_info=True,
            )
            return False
        prometheus_metrics.record_notification("enqueue", event_type, "queued")
        return True
