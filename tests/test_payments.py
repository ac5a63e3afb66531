from unittest.mock import patch

import pytest
import stripe

from models import db
from models.payment import Payment, READY, PAID, FAILED, PARTIAL_CANCELLED, CANCELLED as PAYMENT_CANCELLED
from models.reservation import PENDING, CONFIRMED, CANCELLED as RESERVATION_CANCELLED
from services import payments
from services.errors import AmountMismatch, InvalidState, NotFound, ProviderError, ValidationError


def _intent(payment, status="succeeded", amount=None, order_id=None):
    amount = payment.amount if amount is None else amount
    return {
        "id": payment.payment_key,
        "status": status,
        "amount": amount,
        "amount_received": amount,
        "metadata": {"order_id": order_id or payment.order_id},
        "payment_method_types": ["card"],
    }


@pytest.fixture
def pending_reservation(make_package, customer, make_reservation, booking_day):
    return make_reservation(make_package(), customer, booking_day)


@pytest.fixture
def prepared(pending_reservation, customer):
    with patch("stripe.PaymentIntent.create", return_value={"id": "pi_123", "client_secret": "pi_123_secret"}):
        payments.prepare_payment(pending_reservation.id, customer.id)
    return Payment.query.filter_by(payment_key="pi_123").one()


def test_prepare_creates_ready_payment(pending_reservation, customer):
    with patch("stripe.PaymentIntent.create", return_value={"id": "pi_123", "client_secret": "sec"}) as create:
        checkout = payments.prepare_payment(pending_reservation.id, customer.id)

    kwargs = create.call_args.kwargs
    assert kwargs["amount"] == 120000
    assert kwargs["currency"] == "krw"
    assert kwargs["metadata"]["order_id"] == checkout["orderId"]
    assert checkout["paymentKey"] == "pi_123"
    assert checkout["clientSecret"] == "sec"
    assert checkout["orderId"].startswith("ORDER_")

    payment = Payment.query.one()
    assert payment.status == READY
    assert payment.amount == pending_reservation.final_amount


def test_prepare_resumes_existing_intent(prepared, pending_reservation, customer):
    with patch("stripe.PaymentIntent.create") as create, \
            patch("stripe.PaymentIntent.retrieve", return_value={"id": "pi_123", "client_secret": "again"}):
        checkout = payments.prepare_payment(pending_reservation.id, customer.id)
    create.assert_not_called()
    assert checkout["orderId"] == prepared.order_id
    assert checkout["clientSecret"] == "again"
    assert Payment.query.count() == 1


def test_prepare_rejects_foreign_or_confirmed(pending_reservation, customer, make_user):
    other = make_user()
    with pytest.raises(NotFound):
        payments.prepare_payment(pending_reservation.id, other.id)

    pending_reservation.status = CONFIRMED
    db.session.commit()
    with pytest.raises(InvalidState):
        payments.prepare_payment(pending_reservation.id, customer.id)


def test_prepare_needs_secret_key(app, pending_reservation, customer):
    app.config["STRIPE_SECRET_KEY"] = None
    with pytest.raises(ProviderError):
        payments.prepare_payment(pending_reservation.id, customer.id)


def test_confirm_marks_paid_and_confirms(prepared, pending_reservation):
    with patch("stripe.PaymentIntent.retrieve", return_value=_intent(prepared)):
        payment = payments.confirm_payment("pi_123", prepared.order_id, prepared.amount)

    assert payment.status == PAID
    assert payment.paid_at is not None
    assert pending_reservation.status == CONFIRMED
    assert pending_reservation.payment_id == payment.id

    # a second signal (webhook after redirect) is a no-op
    with patch("stripe.PaymentIntent.retrieve") as retrieve:
        again = payments.confirm_payment("pi_123", prepared.order_id, prepared.amount)
    retrieve.assert_not_called()
    assert again.id == payment.id


def test_confirm_rejects_wrong_amount(prepared, pending_reservation):
    with pytest.raises(AmountMismatch):
        payments.confirm_payment("pi_123", prepared.order_id, prepared.amount - 1)
    with pytest.raises(AmountMismatch):
        payments.confirm_payment("pi_123", prepared.order_id, str(prepared.amount))
    with pytest.raises(ValidationError):
        payments.confirm_payment("pi_other", prepared.order_id, prepared.amount)
    with pytest.raises(NotFound):
        payments.confirm_payment("pi_123", "ORDER_missing", prepared.amount)

    assert prepared.status == READY
    assert pending_reservation.status == PENDING


def test_confirm_provider_mismatch_fails_payment(prepared, pending_reservation):
    with patch("stripe.PaymentIntent.retrieve", return_value=_intent(prepared, amount=1)):
        with pytest.raises(AmountMismatch):
            payments.confirm_payment("pi_123", prepared.order_id, prepared.amount)
    assert prepared.status == FAILED
    assert pending_reservation.status == PENDING


def test_confirm_unsucceeded_intent(prepared, pending_reservation):
    with patch("stripe.PaymentIntent.retrieve", return_value=_intent(prepared, status="requires_payment_method")):
        with pytest.raises(ProviderError):
            payments.confirm_payment("pi_123", prepared.order_id, prepared.amount)
    assert prepared.status == FAILED
    assert pending_reservation.status == PENDING


def test_confirm_provider_outage(prepared):
    with patch("stripe.PaymentIntent.retrieve", side_effect=stripe.APIConnectionError("down")):
        with pytest.raises(ProviderError):
            payments.confirm_payment("pi_123", prepared.order_id, prepared.amount)
    assert prepared.status == FAILED


def test_mark_failed_only_touches_ready(prepared):
    payments.mark_failed("pi_123", "card declined")
    assert prepared.status == FAILED
    assert prepared.fail_reason == "card declined"
    with pytest.raises(NotFound):
        payments.mark_failed("pi_missing")


def _paid(prepared):
    with patch("stripe.PaymentIntent.retrieve", return_value=_intent(prepared)):
        return payments.confirm_payment("pi_123", prepared.order_id, prepared.amount)


def test_partial_and_full_cancel(prepared):
    payment = _paid(prepared)

    with patch("stripe.Refund.create", return_value={"id": "re_1", "status": "succeeded"}) as refund:
        payments.cancel_payment("pi_123", "3 days out", 96000)
    assert refund.call_args.kwargs["amount"] == 96000
    assert payment.status == PARTIAL_CANCELLED
    assert payment.cancelled_total == 96000
    assert payment.cancels[0].transaction_key == "re_1"

    with pytest.raises(InvalidState):
        payments.cancel_payment("pi_123", "again")


def test_cancel_validates_amount(prepared):
    _paid(prepared)
    with pytest.raises(ValidationError):
        payments.cancel_payment("pi_123", "too much", prepared.amount + 1)

    with patch("stripe.Refund.create", return_value={"id": "re_2", "status": "succeeded"}):
        payment = payments.cancel_payment("pi_123", "full")
    assert payment.status == PAYMENT_CANCELLED


def test_refund_provider_error(prepared):
    _paid(prepared)
    with patch("stripe.Refund.create", side_effect=stripe.InvalidRequestError("nope", "amount")):
        with pytest.raises(ProviderError):
            payments.cancel_payment("pi_123", "x", 1000)
    assert prepared.status == PAID


def test_failed_refund_keeps_payment_paid(prepared):
    payment = _paid(prepared)
    with patch("stripe.Refund.create", return_value={"id": "re_f", "status": "failed"}):
        with pytest.raises(ProviderError) as exc:
            payments.cancel_payment("pi_123", "declined", 1000)
    assert exc.value.status_code == 502

    db.session.refresh(payment)
    assert payment.status == PAID
    assert payment.cancels[0].refund_status == "failed"
    assert payment.cancels[0].transaction_key == "re_f"
    assert payment.cancelled_total == 0


def test_owed_refund_needs_cancelled_reservation(prepared, pending_reservation):
    payment = _paid(prepared)
    with pytest.raises(InvalidState):
        payments.owed_refund(payment)

    pending_reservation.status = RESERVATION_CANCELLED
    pending_reservation.refund_amount = 96000
    db.session.commit()
    assert payments.owed_refund(payment) == 96000


def test_payment_history_skips_ready(prepared, customer):
    rows, total = payments.list_for_user(customer.id)
    assert total == 0
    _paid(prepared)
    rows, total = payments.list_for_user(customer.id)
    assert [p.payment_key for p in rows] == ["pi_123"]
