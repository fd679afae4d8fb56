# backend/tests/support.py
"""Shared constants and test doubles for the scheduling tests."""

from datetime import date, datetime, time, timezone
from decimal import Decimal
import itertools
import json
from typing import Any, Dict, List, Optional

from app.core.timezone_utils import get_business_timezone, localize_business_time
from app.integrations.payment_gateway import (
    GatewayPaymentStatus,
    PaymentGatewayError,
    PaymentIntentHandle,
    WebhookSignatureError,
)

# 2030-01-06 is a Sunday; 2030-01-07 is a Monday (Toronto is UTC-5 in January)
NOW = datetime(2030, 1, 6, 12, 0, tzinfo=timezone.utc)
MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)
SATURDAY = date(2030, 1, 12)

STUDENT_ID = "student-1"
OTHER_STUDENT_ID = "student-2"
COURSE_ID = "course-python"
OTHER_COURSE_ID = "course-sql"
UNPRICED_COURSE_ID = "course-draft"

TEST_RATES = {COURSE_ID: Decimal("80.00"), OTHER_COURSE_ID: Decimal("33.33")}

VALID_SIGNATURE = "t=1,v1=valid"


def local_slot(day: date, hour: int, minute: int = 0) -> datetime:
    """UTC instant of a wall-clock time in the business timezone."""
    return localize_business_time(day, time(hour, minute), get_business_timezone("America/Toronto"))


class FakePaymentGateway:
    """In-memory PaymentGateway recording every call."""

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self.created: List[Dict[str, Any]] = []
        self.statuses: Dict[str, GatewayPaymentStatus] = {}
        self.fail_create = False
        self.fail_retrieve = False

    def create_payment_intent(
        self,
        amount: Decimal,
        currency: str,
        metadata: Dict[str, str],
        *,
        idempotency_key: Optional[str] = None,
    ) -> PaymentIntentHandle:
        if self.fail_create:
            raise PaymentGatewayError("gateway down")
        reference = f"pi_test_{next(self._counter)}"
        self.created.append(
            {
                "reference": reference,
                "amount": amount,
                "currency": currency,
                "metadata": dict(metadata),
                "idempotency_key": idempotency_key,
            }
        )
        self.statuses[reference] = GatewayPaymentStatus(
            reference=reference,
            status="requires_payment_method",
            amount=amount,
            currency=currency,
            metadata=dict(metadata),
        )
        return PaymentIntentHandle(reference=reference, client_handle=f"{reference}_secret")

    def mark(self, reference: str, status: str, amount: Optional[Decimal] = None) -> None:
        current = self.statuses[reference]
        self.statuses[reference] = GatewayPaymentStatus(
            reference=reference,
            status=status,
            amount=current.amount if amount is None else amount,
            currency=current.currency,
            metadata=current.metadata,
        )

    def retrieve_payment_status(self, reference: str) -> GatewayPaymentStatus:
        if self.fail_retrieve:
            raise PaymentGatewayError("gateway timeout")
        status = self.statuses.get(reference)
        if status is None:
            raise PaymentGatewayError(f"no such intent {reference}", retryable=False)
        return status

    def construct_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        if signature != VALID_SIGNATURE:
            raise WebhookSignatureError("Invalid webhook signature")
        return dict(json.loads(payload))


class RecordingEnqueue:
    """Stands in for enqueue_task; keeps every hand-off."""

    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []
        self.fail = False

    def __call__(self, task_name: str, args: Any = None, kwargs: Any = None, **options: Any):
        if self.fail:
            raise ConnectionError("broker unavailable")
        self.calls.append({"task_name": task_name, "args": tuple(args or ())})
        return None

    def events(self) -> List[str]:
        return [call["args"][0] for call in self.calls]


