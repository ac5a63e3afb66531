"""Boundary between the reservation lifecycle and Stripe.

A `ready` Payment row is created when checkout starts (keyed by the Stripe
PaymentIntent id and our own order id); confirmation flips it to `paid` and the
reservation to `confirmed` in one commit.
"""
import logging
from datetime import datetime
from typing import Optional

import stripe
from flask import current_app
from sqlalchemy.exc import IntegrityError

from models import db
from models.payment import (
    Payment, PaymentCancel, READY, PAID, CANCELLED, PARTIAL_CANCELLED, FAILED,
)
from models.reservation import Reservation, PENDING, CANCELLED as RESERVATION_CANCELLED
from services.errors import (
    AmountMismatch, DuplicateIdentifier, InvalidState, NotFound, ProviderError, ValidationError,
)
from services.identifiers import generate_order_id
from services.reservations import apply_confirmation

log = logging.getLogger(__name__)


def _configure_stripe():
    stripe.api_key = current_app.config.get("STRIPE_SECRET_KEY")
    if not stripe.api_key:
        raise ProviderError("Stripe secret key missing (STRIPE_SECRET_KEY)")


def _provider_message(exc: Exception) -> str:
    return getattr(exc, "user_message", None) or str(exc) or exc.__class__.__name__


def checkout_payload(payment: Payment, reservation: Reservation, client_secret: Optional[str] = None):
    return {
        "paymentKey": payment.payment_key,
        "orderId": payment.order_id,
        "amount": payment.amount,
        "currency": payment.currency,
        "orderName": reservation.package.name if reservation.package else None,
        "customerName": reservation.patient.name,
        "clientSecret": client_secret,
    }


def prepare_payment(reservation_id: int, user_id: int):
    """Start (or resume) checkout for a pending reservation owned by `user_id`."""
    reservation = Reservation.query.filter_by(id=reservation_id, user_id=user_id).first()
    if not reservation:
        raise NotFound("Reservation not found")

    existing = (
        Payment.query
        .filter(Payment.reservation_id == reservation.id, Payment.status.in_((READY, PAID)))
        .order_by(Payment.id.desc())
        .first()
    )
    if existing and existing.status == PAID:
        raise InvalidState("This reservation has already been paid")
    if reservation.status != PENDING:
        raise InvalidState("Only pending reservations can be paid", status=reservation.status)

    _configure_stripe()

    if existing:
        try:
            intent = stripe.PaymentIntent.retrieve(existing.payment_key)
        except stripe.StripeError as exc:
            raise ProviderError(_provider_message(exc))
        return checkout_payload(existing, reservation, intent.get("client_secret"))

    currency = current_app.config.get("PAYMENT_CURRENCY", "krw")
    attempts = max(1, int(current_app.config.get("RESERVATION_NUMBER_RETRIES", 5)))
    for attempt in range(1, attempts + 1):
        order_id = generate_order_id()
        try:
            intent = stripe.PaymentIntent.create(
                amount=reservation.final_amount,
                currency=currency,
                metadata={
                    "order_id": order_id,
                    "reservation_id": str(reservation.id),
                    "reservation_number": reservation.reservation_number,
                    "user_id": str(user_id),
                },
            )
        except stripe.StripeError as exc:
            raise ProviderError(_provider_message(exc))

        payment = Payment(
            payment_key=intent["id"],
            order_id=order_id,
            reservation_id=reservation.id,
            user_id=user_id,
            amount=reservation.final_amount,
            currency=currency,
            status=READY,
        )
        db.session.add(payment)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            log.warning("order id collision, regenerating (attempt %s/%s)", attempt, attempts)
            continue
        return checkout_payload(payment, reservation, intent.get("client_secret"))

    raise DuplicateIdentifier("Could not allocate an order id, please retry")


def _mark_failed(payment: Payment, reason: str):
    payment.status = FAILED
    payment.failed_at = datetime.utcnow()
    payment.fail_reason = (reason or "payment failed")[:255]
    db.session.commit()


def confirm_payment(payment_key: str, order_id: str, amount: int) -> Payment:
    """Apply a 'payment succeeded' signal from the client redirect or the webhook."""
    payment = Payment.query.filter_by(order_id=order_id).first()
    if not payment:
        raise NotFound("Payment not found")

    if not isinstance(amount, int) or isinstance(amount, bool) or amount != payment.amount:
        log.warning("amount mismatch for order %s: expected %s got %r", order_id, payment.amount, amount)
        raise AmountMismatch("Payment amount does not match")

    if payment_key != payment.payment_key:
        raise ValidationError("Payment key does not match this order")

    if payment.status == PAID:
        return payment
    if payment.status != READY:
        raise InvalidState("Payment cannot be confirmed", status=payment.status)

    _configure_stripe()
    try:
        intent = stripe.PaymentIntent.retrieve(payment_key)
    except stripe.StripeError as exc:
        reason = _provider_message(exc)
        _mark_failed(payment, reason)
        raise ProviderError(reason)

    metadata = intent.get("metadata") or {}
    if intent.get("status") != "succeeded":
        reason = f"payment intent status {intent.get('status')}"
        _mark_failed(payment, reason)
        raise ProviderError("Payment was not approved", status=intent.get("status"))
    if intent.get("amount_received", intent.get("amount")) != payment.amount or metadata.get("order_id") != order_id:
        reason = "provider amount/order mismatch"
        _mark_failed(payment, reason)
        raise AmountMismatch("Payment amount does not match")

    reservation = db.session.get(Reservation, payment.reservation_id)
    if reservation is None:
        raise NotFound("Reservation not found")

    try:
        payment.status = PAID
        payment.paid_at = datetime.utcnow()
        payment.method = (intent.get("payment_method_types") or ["card"])[0]
        charge = intent.get("latest_charge")
        if isinstance(charge, dict):
            payment.receipt_url = charge.get("receipt_url")
        payment.raw_response = {
            "id": intent.get("id"),
            "status": intent.get("status"),
            "amount_received": intent.get("amount_received"),
        }
        apply_confirmation(reservation, payment.id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    log.info("payment %s confirmed for reservation %s", payment.order_id, reservation.reservation_number)
    return payment


def mark_failed(payment_key: str, reason: Optional[str] = None) -> Payment:
    """Provider reported failure. The reservation stays pending."""
    payment = Payment.query.filter_by(payment_key=payment_key).first()
    if not payment:
        raise NotFound("Payment not found")
    if payment.status != READY:
        return payment
    _mark_failed(payment, reason)
    log.info("payment %s failed: %s", payment.order_id, payment.fail_reason)
    return payment


def cancel_payment(payment_key: str, reason: Optional[str], cancel_amount: Optional[int] = None) -> Payment:
    """Refund a paid payment fully or partially. Reservation status is not touched."""
    reason = reason[:255] if reason else None
    payment = Payment.query.filter_by(payment_key=payment_key).first()
    if not payment or payment.status != PAID:
        raise InvalidState("No cancellable payment found")

    amount = payment.amount if cancel_amount is None else cancel_amount
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0 or amount > payment.amount:
        raise ValidationError("cancelAmount must be between 1 and the paid amount")

    _configure_stripe()
    try:
        refund = stripe.Refund.create(
            payment_intent=payment_key,
            amount=amount,
            metadata={"order_id": payment.order_id, "reason": reason or ""},
        )
    except stripe.StripeError as exc:
        log.warning("refund failed for %s: %s", payment.order_id, exc)
        raise ProviderError(_provider_message(exc))

    refund_status = refund.get("status")
    refunded = refund_status in ("succeeded", "pending", None)
    payment.cancels.append(PaymentCancel(
        amount=amount,
        reason=reason,
        refund_status="completed" if refunded else "failed",
        transaction_key=refund.get("id"),
    ))
    if refunded:
        payment.status = CANCELLED if amount == payment.amount else PARTIAL_CANCELLED
    db.session.commit()

    if not refunded:
        # the attempt is kept on record; the payment stays paid
        log.warning("refund %s for %s ended as %s", refund.get("id"), payment.order_id, refund_status)
        raise ProviderError("Refund was not completed", status=refund_status)
    return payment


def owed_refund(payment: Payment) -> int:
    """Refund a customer may still claim: what cancellation granted minus what was already returned."""
    reservation = db.session.get(Reservation, payment.reservation_id)
    if reservation is None or reservation.status != RESERVATION_CANCELLED:
        raise InvalidState("Cancel the reservation to request a refund",
                           status=reservation.status if reservation else None)
    return max(0, (reservation.refund_amount or 0) - payment.cancelled_total)


def get_by_payment_key(payment_key: str, user_id: Optional[int] = None) -> Payment:
    q = Payment.query.filter_by(payment_key=payment_key)
    if user_id is not None:
        q = q.filter_by(user_id=user_id)
    payment = q.first()
    if not payment:
        raise NotFound("Payment not found")
    return payment


def paid_payment_for(reservation: Reservation) -> Optional[Payment]:
    if reservation.payment_id:
        payment = db.session.get(Payment, reservation.payment_id)
        if payment and payment.status == PAID:
            return payment
    return Payment.query.filter_by(reservation_id=reservation.id, status=PAID).first()


def list_for_user(user_id: int, page: int = 1, limit: int = 10):
    page = max(1, page or 1)
    limit = min(100, max(1, limit or 10))
    q = Payment.query.filter(Payment.user_id == user_id, Payment.status != READY)
    total = q.count()
    rows = q.order_by(Payment.created_at.desc(), Payment.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return rows, total
