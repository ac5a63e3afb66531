from unittest.mock import patch

import pytest
import stripe

from models import db
from models.payment import Payment, READY, PAID, FAILED
from models.reservation import Reservation, CONFIRMED, PENDING


@pytest.fixture
def ready_payment(make_package, customer, make_reservation, booking_day):
    r = make_reservation(make_package(), customer, booking_day)
    payment = Payment(payment_key="pi_hook", order_id="ORDER_1_hook", reservation_id=r.id,
                      user_id=customer.id, amount=r.final_amount, status=READY)
    db.session.add(payment)
    db.session.commit()
    return payment


def _event(event_type, payment, amount=None, **extra):
    obj = {
        "id": payment.payment_key,
        "status": "succeeded" if event_type.endswith("succeeded") else "requires_payment_method",
        "amount": payment.amount if amount is None else amount,
        "amount_received": payment.amount if amount is None else amount,
        "metadata": {"order_id": payment.order_id},
        "payment_method_types": ["card"],
    }
    obj.update(extra)
    return {"type": event_type, "data": {"object": obj}}


def _post(app, event):
    with patch("stripe.Webhook.construct_event", return_value=event):
        return app.test_client().post("/webhooks/stripe", data=b"{}", headers={"Stripe-Signature": "t=1,v1=x"})


def test_bad_signature_is_rejected(app):
    err = stripe.SignatureVerificationError("bad signature", "t=1,v1=x")
    with patch("stripe.Webhook.construct_event", side_effect=err):
        resp = app.test_client().post("/webhooks/stripe", data=b"{}", headers={"Stripe-Signature": "t=1,v1=x"})
    assert resp.status_code == 400


def test_missing_secret(app):
    app.config["STRIPE_WEBHOOK_SECRET"] = None
    assert app.test_client().post("/webhooks/stripe", data=b"{}").status_code == 500


def test_succeeded_event_confirms(app, ready_payment):
    event = _event("payment_intent.succeeded", ready_payment)
    with patch("stripe.PaymentIntent.retrieve", return_value=event["data"]["object"]):
        resp = _post(app, event)
        again = _post(app, event)

    assert resp.status_code == 200
    assert resp.get_json() == {"received": True}
    assert again.status_code == 200
    assert ready_payment.status == PAID
    assert db.session.get(Reservation, ready_payment.reservation_id).status == CONFIRMED


def test_mismatched_amount_is_acknowledged_but_not_applied(app, ready_payment):
    resp = _post(app, _event("payment_intent.succeeded", ready_payment, amount=1))
    assert resp.status_code == 200
    assert resp.get_json() == {"received": True, "applied": False}
    assert ready_payment.status == READY
    assert db.session.get(Reservation, ready_payment.reservation_id).status == PENDING


def test_failed_event_marks_payment(app, ready_payment):
    event = _event("payment_intent.payment_failed", ready_payment,
                   last_payment_error={"message": "Your card was declined."})
    assert _post(app, event).status_code == 200
    assert ready_payment.status == FAILED
    assert ready_payment.fail_reason == "Your card was declined."
    assert db.session.get(Reservation, ready_payment.reservation_id).status == PENDING


def test_unknown_payment_is_acknowledged(app, ready_payment):
    event = _event("payment_intent.payment_failed", ready_payment, id="pi_unknown")
    assert _post(app, event).get_json() == {"received": True, "applied": False}


def test_other_events_are_ignored(app):
    event = {"type": "charge.refunded", "data": {"object": {"id": "ch_1"}}}
    assert _post(app, event).get_json() == {"received": True}
