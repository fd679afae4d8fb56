"""Outbound delivery of appointment events (calendar/automation webhook)."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, Dict, Optional, Protocol

import httpx

logger = logging.getLogger(__name__)

EVENT_PAYMENT_CONFIRMED = "appointment.payment.confirmed"
EVENT_RESCHEDULED = "appointment.rescheduled"
EVENT_CANCELLED = "appointment.cancelled"


class NotifierError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NotifierTemporaryError(NotifierError):
    """Delivery failed in a way worth retrying (timeouts, 5xx)."""


class NotifierPermanentError(NotifierError):
    """Delivery was rejected and retrying will not help (4xx)."""


class AppointmentNotifier(Protocol):
    def send(self, event_type: str, appointment_id: str, details: Dict[str, Any]) -> None:
        ...


class WebhookNotifier:
    """POSTs ``{"event": ..., "data": ...}`` to a configured webhook URL."""

    def __init__(
        self,
        *,
        url: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not url:
            raise ValueError("Notification webhook URL must be provided")
        self._url = url
        self._timeout = timeout
        self._transport = transport

    def send(self, event_type: str, appointment_id: str, details: Dict[str, Any]) -> None:
        body = {
            "event": event_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "data": {"appointment_id": appointment_id, **details},
        }
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(self._url, json=body)
        except httpx.HTTPError as exc:
            logger.warning(
                "Notification webhook transport error for %s %s: %s",
                event_type,
                appointment_id,
                exc,
            )
            raise NotifierTemporaryError(f"Webhook unreachable: {exc}") from exc

        if response.status_code >= 500 or response.status_code == 429:
            raise NotifierTemporaryError(
                f"Webhook returned {response.status_code}", status_code=response.status_code
            )
        if response.status_code >= 400:
            raise NotifierPermanentError(
                f"Webhook rejected event with {response.status_code}",
                status_code=response.status_code,
            )
        logger.info(f"Delivered {event_type} for appointment {appointment_id}")


class LoggingNotifier:
    """Used when no webhook is configured; records the event in the log only."""

    def send(self, event_type: str, appointment_id: str, details: Dict[str, Any]) -> None:
        logger.info(
            f"Notification webhook not configured; {event_type} for {appointment_id} logged only",
            extra={"event_type": event_type, "appointment_id": appointment_id},
        )


def build_notifier(url: Optional[str], timeout: float = 10.0) -> AppointmentNotifier:
    if url:
        return WebhookNotifier(url=url, timeout=timeout)
    return LoggingNotifier()
