"""Payment gateway boundary and its Stripe implementation."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol

from pydantic import SecretStr
import stripe

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "succeeded"


class PaymentGatewayError(RuntimeError):
    """Raised when the payment gateway call fails or is unreachable."""

    def __init__(self, message: str, *, retryable: bool = True) -> None:
        super().__init__(message)
        self.retryable = retryable


class WebhookSignatureError(ValueError):
    """Raised when an inbound gateway event fails signature verification."""


@dataclass(frozen=True)
class PaymentIntentHandle:
    reference: str
    client_handle: str
    status: str = "requires_payment_method"


@dataclass(frozen=True)
class GatewayPaymentStatus:
    reference: str
    status: str
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == PAYMENT_SUCCEEDED


class PaymentGateway(Protocol):
    def create_payment_intent(
        self,
        amount: Decimal,
        currency: str,
        metadata: Mapping[str, str],
        *,
        idempotency_key: Optional[str] = None,
    ) -> PaymentIntentHandle:
        ...

    def retrieve_payment_status(self, reference: str) -> GatewayPaymentStatus:
        ...

    def construct_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        ...


def to_minor_units(amount: Decimal) -> int:
    """Convert a decimal amount to integer cents."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> Decimal:
    return (Decimal(int(amount)) / Decimal(100)).quantize(Decimal("0.01"))


def _plain_dict(value: Any) -> Dict[str, str]:
    if value is None:
        return {}
    to_dict = getattr(value, "to_dict", None)
    raw = to_dict() if callable(to_dict) else value
    return {str(k): str(v) for k, v in dict(raw).items()}


def status_from_intent(intent: Any) -> GatewayPaymentStatus:
    """Build a status snapshot from a Stripe PaymentIntent object or event payload."""

    def _get(key: str) -> Any:
        if isinstance(intent, Mapping):
            return intent.get(key)
        return getattr(intent, key, None)

    amount = _get("amount_received") or _get("amount")
    return GatewayPaymentStatus(
        reference=str(_get("id")),
        status=str(_get("status") or ""),
        amount=from_minor_units(amount) if amount is not None else None,
        currency=_get("currency"),
        metadata=_plain_dict(_get("metadata")),
    )


class StripePaymentGateway:
    """Card-only PaymentIntents through the Stripe SDK."""

    def __init__(
        self,
        *,
        api_key: str | SecretStr,
        webhook_secrets: Optional[List[str]] = None,
        payment_method_types: Optional[List[str]] = None,
    ) -> None:
        secret_value = api_key.get_secret_value() if isinstance(api_key, SecretStr) else api_key
        self._api_key = secret_value
        self._webhook_secrets = [s for s in (webhook_secrets or []) if s]
        self._payment_method_types = payment_method_types or ["card"]

    def _check_configured(self) -> None:
        if not self._api_key:
            raise PaymentGatewayError(
                "Stripe secret key not configured. Please set STRIPE_SECRET_KEY.",
                retryable=False,
            )

    def create_payment_intent(
        self,
        amount: Decimal,
        currency: str,
        metadata: Mapping[str, str],
        *,
        idempotency_key: Optional[str] = None,
    ) -> PaymentIntentHandle:
        self._check_configured()
        amount_cents = to_minor_units(amount)
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self._api_key,
                amount=amount_cents,
                currency=currency,
                payment_method_types=self._payment_method_types,
                metadata=dict(metadata),
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe error creating payment intent: {str(e)}")
            raise PaymentGatewayError(f"Failed to create payment intent: {str(e)}") from e

        logger.info(f"Created payment intent {intent.id} for {amount_cents} {currency}")
        return PaymentIntentHandle(
            reference=intent.id,
            client_handle=intent.client_secret,
            status=intent.status,
        )

    def retrieve_payment_status(self, reference: str) -> GatewayPaymentStatus:
        self._check_configured()
        try:
            intent = stripe.PaymentIntent.retrieve(reference, api_key=self._api_key)
        except stripe.StripeError as e:
            logger.error(f"Stripe error retrieving payment intent {reference}: {str(e)}")
            raise PaymentGatewayError(f"Failed to retrieve payment intent: {str(e)}") from e
        return status_from_intent(intent)

    def construct_event(self, payload: bytes, signature: str) -> Dict[str, Any]:
        """
        Verify a webhook payload against each configured secret.

        Returns the decoded event as a plain dictionary.
        """
        if not signature:
            raise WebhookSignatureError("Missing Stripe-Signature header")
        if not self._webhook_secrets:
            raise WebhookSignatureError("Webhook secret not configured")

        last_error: Optional[Exception] = None
        for secret in self._webhook_secrets:
            try:
                stripe.Webhook.construct_event(payload, signature, secret)
            except stripe.SignatureVerificationError as e:
                last_error = e
                continue
            except ValueError as e:
                raise WebhookSignatureError(f"Invalid webhook payload: {e}") from e
            return dict(json.loads(payload))

        raise WebhookSignatureError(f"Invalid webhook signature: {last_error}")
