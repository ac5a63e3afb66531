from flask import Blueprint, request, jsonify, g

from security.rbac import ADMIN, has_role, owner_scope
from services import payments
from services.errors import BookingError, InvalidState, ValidationError
from utils.audit import log_event
from utils.auth_context import login_required
from utils.parsing import parse_int

payments_bp = Blueprint("payments", __name__, url_prefix="/payments")


@payments_bp.post("/prepare")
@login_required
def prepare_payment():
    data = request.get_json(silent=True) or {}
    reservation_id = parse_int(data.get("reservationId"), "reservationId")

    checkout = payments.prepare_payment(reservation_id, g.user.id)

    log_event("PAYMENT_PREPARED", user_id=g.user.id, entity="reservation", entity_id=reservation_id,
              metadata={"order_id": checkout["orderId"]})
    return jsonify(checkout), 200


# Client redirect after Stripe confirms the PaymentIntent
@payments_bp.post("/confirm")
@login_required
def confirm_payment():
    data = request.get_json(silent=True) or {}
    payment_key = data.get("paymentKey") or ""
    order_id = data.get("orderId") or ""
    amount = data.get("amount")

    try:
        payment = payments.confirm_payment(payment_key, order_id, amount)
    except BookingError as exc:
        log_event("PAYMENT_CONFIRM_FAIL", user_id=g.user.id, entity="payment", entity_id=order_id,
                  metadata={"code": exc.code, "error": exc.message})
        raise

    log_event("PAYMENT_PAID", user_id=g.user.id, entity="payment", entity_id=payment.id,
              metadata={"order_id": order_id, "reservation_id": payment.reservation_id})
    return jsonify(payment.to_dict()), 200


@payments_bp.post("/<string:payment_key>/cancel")
@login_required
def cancel_payment(payment_key: str):
    data = request.get_json(silent=True) or {}
    reason = (data.get("cancelReason") or "").strip() or "Customer request"
    amount = data.get("cancelAmount")
    if amount is not None:
        amount = parse_int(amount, "cancelAmount")

    payment = payments.get_by_payment_key(payment_key, user_id=owner_scope())
    if not has_role(ADMIN):
        # customers only collect the refund their cancellation granted
        owed = payments.owed_refund(payment)
        if owed <= 0:
            raise InvalidState("No refund is owed for this reservation")
        if amount is None:
            amount = owed
        elif amount > owed:
            raise ValidationError("cancelAmount exceeds the refund owed", owed=owed)

    payment = payments.cancel_payment(payment_key, reason, amount)

    log_event("PAYMENT_CANCEL", user_id=g.user.id, entity="payment", entity_id=payment.id,
              metadata={"amount": amount, "status": payment.status})
    return jsonify(payment.to_dict()), 200


@payments_bp.get("/me")
@login_required
def my_payments():
    page = parse_int(request.args.get("page"), "page", default=1)
    limit = parse_int(request.args.get("limit"), "limit", default=10)
    rows, total = payments.list_for_user(g.user.id, page, limit)
    return jsonify(items=[p.to_dict() for p in rows], total=total, page=page, limit=limit), 200


@payments_bp.get("/<string:payment_key>")
@login_required
def get_payment(payment_key: str):
    user_id = owner_scope()
    return jsonify(payments.get_by_payment_key(payment_key, user_id=user_id).to_dict()), 200
