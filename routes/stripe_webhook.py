import stripe
from flask import Blueprint, request, jsonify, current_app

from services import payments
from services.errors import BookingError
from utils.audit import log_event

webhook_bp = Blueprint("webhook", __name__, url_prefix="/webhooks")


@webhook_bp.post("/stripe")
def stripe_webhook():
    endpoint_secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    sig_header = request.headers.get("Stripe-Signature")
    payload = request.data

    if not endpoint_secret:
        return jsonify(error="Webhook secret not configured"), 500

    try:
        event = stripe.Webhook.construct_event(payload, sig_header, endpoint_secret)
    except (ValueError, stripe.SignatureVerificationError):
        return jsonify(error="Invalid webhook signature"), 400

    event_type = event.get("type")
    intent = event["data"]["object"]
    payment_key = intent.get("id")
    order_id = (intent.get("metadata") or {}).get("order_id")

    if event_type == "payment_intent.succeeded":
        try:
            payment = payments.confirm_payment(payment_key, order_id, intent.get("amount"))
        except BookingError as exc:
            # acknowledge so Stripe stops retrying; the failure is in the audit trail
            log_event("PAYMENT_WEBHOOK_REJECTED", entity="payment", entity_id=order_id,
                      metadata={"event": event_type, "code": exc.code, "error": exc.message})
            return jsonify(received=True, applied=False), 200
        log_event("PAYMENT_PAID", entity="payment", entity_id=payment.id,
                  metadata={"order_id": order_id, "via": "webhook"})

    elif event_type == "payment_intent.payment_failed":
        error = intent.get("last_payment_error") or {}
        try:
            payment = payments.mark_failed(payment_key, error.get("message") or "payment failed")
        except BookingError as exc:
            log_event("PAYMENT_WEBHOOK_REJECTED", entity="payment", entity_id=order_id,
                      metadata={"event": event_type, "code": exc.code, "error": exc.message})
            return jsonify(received=True, applied=False), 200
        log_event("PAYMENT_FAILED", entity="payment", entity_id=payment.id,
                  metadata={"order_id": order_id, "reason": payment.fail_reason})

    return jsonify(received=True), 200
