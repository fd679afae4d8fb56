# backend/app/tasks/notification_tasks.py
"""
Celery task delivering appointment events to the notifier.

Temporary failures retry with backoff; permanent rejections are logged and
dropped. Delivery never touches appointment state.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from celery.app.task import Task  # noqa: F401 - used for type hints
from celery.utils.log import get_task_logger

from app.core.config import settings
from app.integrations.notifier import (
    AppointmentNotifier,
    NotifierPermanentError,
    NotifierTemporaryError,
    build_notifier,
)
from app.monitoring.prometheus_metrics import prometheus_metrics
from app.tasks.celery_app import celery_app

logger = get_task_logger(__name__)

DELIVER_TASK_NAME = "appointments.deliver_notification"
MAX_DELIVERY_ATTEMPTS = 5
BACKOFF_SECONDS = [30, 120, 600, 1800, 7200]

_notifier: Optional[AppointmentNotifier] = None


def _next_backoff(attempt_number: int) -> int:
    """Return backoff delay for the given attempt (1-indexed)."""
    index = max(0, min(attempt_number - 1, len(BACKOFF_SECONDS) - 1))
    return BACKOFF_SECONDS[index]


def get_notifier() -> AppointmentNotifier:
    global _notifier
    if _notifier is None:
        _notifier = build_notifier(
            settings.notification_webhook_url, settings.notification_timeout_seconds
        )
    return _notifier


def set_notifier(notifier: Optional[AppointmentNotifier]) -> None:
    """Swap the process-wide notifier (worker bootstrap and tests)."""
    global _notifier
    _notifier = notifier


@celery_app.task(
    name=DELIVER_TASK_NAME,
    bind=True,
    max_retries=MAX_DELIVERY_ATTEMPTS,
    queue="notifications",
)
def deliver_appointment_notification(
    self: "Task[Any, Any]", event_type: str, appointment_id: str, details: Dict[str, Any]
) -> Optional[str]:
    """Deliver one appointment event."""
    attempt_number = self.request.retries + 1
    try:
        get_notifier().send(event_type, appointment_id, details)
    except NotifierPermanentError as exc:
        prometheus_metrics.record_notification("deliver", event_type, "rejected")
        logger.error(
            "Notification %s for appointment %s rejected: %s",
            event_type,
            appointment_id,
            exc,
        )
        return None
    except NotifierTemporaryError as exc:
        if attempt_number > MAX_DELIVERY_ATTEMPTS:
            prometheus_metrics.record_notification("deliver", event_type, "failed")
            logger.error(
                "Notification %s for appointment %s failed after %s attempts",
                event_type,
                appointment_id,
                attempt_number,
            )
            return None
        backoff = _next_backoff(attempt_number)
        prometheus_metrics.record_notification("deliver", event_type, "retry")
        logger.warning(
            "Retrying notification %s for appointment %s attempt=%s backoff=%ss",
            event_type,
            appointment_id,
            attempt_number,
            backoff,
        )
        raise self.retry(countdown=backoff, exc=exc)

    prometheus_metrics.record_notification("deliver", event_type, "sent")
    return appointment_id
