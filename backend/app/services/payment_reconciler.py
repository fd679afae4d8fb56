# backend/app/services/payment_reconciler.py
"""
Payment Reconciler.

Moves the appointments behind a gateway payment reference from PENDING to
CONFIRMED once the gateway reports success. Safe to run any number of times
from any trigger (client confirmation call, gateway webhook): each row
transitions at most once and each transition produces exactly one
notification hand-off.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..integrations.payment_gateway import (
    GatewayPaymentStatus,
    PaymentGateway,
    PaymentGatewayError,
    status_from_intent,
)
from ..models.appointment import Appointment, AppointmentStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .notification_dispatcher import AppointmentNotificationDispatcher

logger = logging.getLogger(__name__)


class ReconciliationOutcome(str, Enum):
    CONFIRMED = "confirmed"
    ALREADY_CONFIRMED = "already_confirmed"
    NOT_FOUND = "not_found"
    DECLINED = "declined"
    AMOUNT_MISMATCH = "amount_mismatch"
    DEFERRED = "deferred"


@dataclass(frozen=True)
class ReconciliationResult:
    outcome: ReconciliationOutcome
    payment_reference: str
    appointment_ids: List[str] = field(default_factory=list)
    newly_confirmed_ids: List[str] = field(default_factory=list)
    gateway_status: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome in (
            ReconciliationOutcome.CONFIRMED,
            ReconciliationOutcome.ALREADY_CONFIRMED,
        )


class PaymentReconciler(BaseService):
    def __init__(
        self,
        db: Session,
        payment_gateway: PaymentGateway,
        dispatcher: AppointmentNotificationDispatcher,
    ):
        super().__init__(db)
        self.payment_gateway = payment_gateway
        self.dispatcher = dispatcher
        self.repository = RepositoryFactory.create_appointment_repository(db)

    def _result(self, outcome: ReconciliationOutcome, reference: str, **kwargs: Any):
        prometheus_metrics.record_reconciliation(outcome.value)
        return ReconciliationResult(outcome=outcome, payment_reference=reference, **kwargs)

    @staticmethod
    def _checkout_total(rows: List[Appointment]) -> Decimal:
        """Amount the payment intent was opened for: every row sharing the reference."""
        return sum((Decimal(r.amount) for r in rows), Decimal("0.00"))

    @BaseService.measure_operation("confirm_payment")
    def confirm_payment(
        self,
        payment_reference: str,
        requester_id: str,
        *,
        gateway_status: Optional[GatewayPaymentStatus] = None,
    ) -> ReconciliationResult:
        """
        Confirm the requester's appointments paid by ``payment_reference``.

        The gateway is queried (when no status is supplied) before any
        transaction opens. Rows are matched by the stored reference and the
        requester, never by identifiers carried in gateway metadata.
        """
        if gateway_status is None:
            try:
                gateway_status = self.payment_gateway.retrieve_payment_status(payment_reference)
            except PaymentGatewayError as exc:
                self.logger.warning(
                    f"Deferring confirmation of {payment_reference}; gateway unavailable: {exc}"
                )
                return self._result(ReconciliationOutcome.DEFERRED, payment_reference)

        if not gateway_status.succeeded:
            self.logger.info(
                f"Payment {payment_reference} not succeeded (status={gateway_status.status})"
            )
            return self._result(
                ReconciliationOutcome.DECLINED,
                payment_reference,
                gateway_status=gateway_status.status,
            )

        confirmed_at = datetime.now(timezone.utc)
        with self.transaction():
            rows = self.repository.get_by_payment_reference(
                payment_reference, student_id=requester_id
            )
            if not rows:
                self.logger.info(
                    f"No appointments for payment {payment_reference} and requester {requester_id}"
                )
                return self._result(
                    ReconciliationOutcome.NOT_FOUND,
                    payment_reference,
                    gateway_status=gateway_status.status,
                )

            row_ids = [r.id for r in rows]
            expected = self._checkout_total(rows)
            if gateway_status.amount is not None and gateway_status.amount != expected:
                self.logger.error(
                    f"Amount mismatch for payment {payment_reference}: gateway "
                    f"{gateway_status.amount} vs appointments {expected}",
                    extra={"payment_reference": payment_reference, "appointment_ids": row_ids},
                )
                return self._result(
                    ReconciliationOutcome.AMOUNT_MISMATCH,
                    payment_reference,
                    appointment_ids=row_ids,
                    gateway_status=gateway_status.status,
                )

            newly_confirmed = [
                r.id
                for r in rows
                if r.status == AppointmentStatus.PENDING.value
                and self.repository.confirm_if_pending(r.id, confirmed_at)
            ]

        if not newly_confirmed:
            # Rows that were PENDING here lost the conditional update to a concurrent confirmer
            settled = any(r.status != AppointmentStatus.CANCELLED.value for r in rows)
            outcome = (
                ReconciliationOutcome.ALREADY_CONFIRMED
                if settled
                else ReconciliationOutcome.NOT_FOUND
            )
            return self._result(
                outcome,
                payment_reference,
                appointment_ids=row_ids,
                gateway_status=gateway_status.status,
            )

        self.logger.info(
            f"Confirmed {len(newly_confirmed)} appointment(s) for payment {payment_reference}"
        )
        by_id = {r.id: r for r in rows}
        for appointment_id in newly_confirmed:
            self.dispatcher.appointment_confirmed(by_id[appointment_id])

        return self._result(
            ReconciliationOutcome.CONFIRMED,
            payment_reference,
            appointment_ids=row_ids,
            newly_confirmed_ids=newly_confirmed,
            gateway_status=gateway_status.status,
        )

    @BaseService.measure_operation("handle_gateway_event")
    def handle_gateway_event(self, event: Dict[str, Any]) -> Optional[ReconciliationResult]:
        """
        Process an already-verified gateway webhook event.

        Only appointment payment intents are reconciled; other events are
        acknowledged and ignored.
        """
        event_type = event.get("type", "")
        self.logger.info(f"Processing webhook event: {event_type}")

        if not event_type.startswith("payment_intent."):
            self.logger.info(f"Unhandled webhook event type: {event_type}")
            return None

        intent = (event.get("data") or {}).get("object") or {}
        status = status_from_intent(intent)
        if status.metadata.get("type") != "appointment":
            self.logger.info(f"Ignoring non-appointment payment intent {status.reference}")
            return None

        if event_type == "payment_intent.succeeded":
            requester_id = status.metadata.get("student_id")
            if not requester_id:
                self.logger.warning(f"Payment intent {status.reference} has no student metadata")
                return self._result(ReconciliationOutcome.NOT_FOUND, status.reference)
            return self.confirm_payment(status.reference, requester_id, gateway_status=status)

        if event_type in ("payment_intent.payment_failed", "payment_intent.canceled"):
            self.logger.info(f"Payment {status.reference} failed with status {status.status}")
            return self._result(
                ReconciliationOutcome.DECLINED, status.reference, gateway_status=status.status
            )

        return None
