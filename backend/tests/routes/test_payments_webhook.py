"""Stripe webhook endpoint."""

import json

from app.integrations.notifier import EVENT_PAYMENT_CONFIRMED
from app.models.appointment import Appointment
from support import MONDAY, STUDENT_ID, VALID_SIGNATURE, local_slot

URL = "/api/v1/payments/webhooks/stripe"


def _event(reference, event_type="payment_intent.succeeded", status="succeeded", amount=8000):
    return {
        "id": "evt_test",
        "type": event_type,
        "data": {
            "object": {
                "id": reference,
                "object": "payment_intent",
                "status": status,
                "amount": amount,
                "amount_received": amount if status == "succeeded" else 0,
                "currency": "cad",
                "metadata": {"type": "appointment", "student_id": STUDENT_ID},
            }
        },
    }


def _post(client, event, signature=VALID_SIGNATURE):
    return client.post(
        URL,
        content=json.dumps(event).encode(),
        headers={"stripe-signature": signature, "content-type": "application/json"},
    )


class TestStripeWebhook:
    def test_succeeded_event_confirms(self, client, checkout, db, enqueue):
        result = checkout(local_slot(MONDAY, 9))

        response = _post(client, _event(result.payment_reference))

        assert response.status_code == 200
        assert response.json() == {
            "status": "processed",
            "event_type": "payment_intent.succeeded",
            "outcome": "confirmed",
        }
        assert db.get(Appointment, result.appointment_ids[0]).status == "CONFIRMED"
        assert enqueue.events() == [EVENT_PAYMENT_CONFIRMED]

    def test_redelivery_is_harmless(self, client, checkout, enqueue):
        result = checkout(local_slot(MONDAY, 9))
        _post(client, _event(result.payment_reference))

        again = _post(client, _event(result.payment_reference))

        assert again.status_code == 200
        assert again.json()["outcome"] == "already_confirmed"
        assert len(enqueue.calls) == 1

    def test_amount_mismatch_is_acknowledged(self, client, checkout, db):
        result = checkout(local_slot(MONDAY, 9))
        response = _post(client, _event(result.payment_reference, amount=100))
        assert response.status_code == 200
        assert response.json()["outcome"] == "amount_mismatch"
        assert db.get(Appointment, result.appointment_ids[0]).status == "PENDING"

    def test_failed_payment(self, client, checkout):
        result = checkout(local_slot(MONDAY, 9))
        event = _event(
            result.payment_reference,
            event_type="payment_intent.payment_failed",
            status="requires_payment_method",
        )
        assert _post(client, event).json()["outcome"] == "declined"

    def test_unrelated_event_ignored(self, client):
        response = _post(client, {"id": "evt_x", "type": "charge.refunded", "data": {}})
        assert response.status_code == 200
        assert response.json()["status"] == "ignored"

    def test_bad_signature(self, client, checkout, db):
        result = checkout(local_slot(MONDAY, 9))
        response = _post(client, _event(result.payment_reference), signature="t=1,v1=forged")
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid signature"
        assert db.get(Appointment, result.appointment_ids[0]).status == "PENDING"

    def test_no_authentication_needed(self, client, current_user):
        current_user.user_id = None
        response = _post(client, {"id": "evt_x", "type": "customer.created", "data": {}})
        assert response.status_code == 200
