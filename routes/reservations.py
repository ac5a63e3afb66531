import logging
from datetime import date, timedelta

from flask import Blueprint, request, jsonify, current_app, g

from services import payments, reservations
from services.errors import AdmissionError, ProviderError, ValidationError
from utils.audit import log_event
from utils.auth_context import login_required
from utils.parsing import parse_date, parse_int, parse_patient

log = logging.getLogger(__name__)

reservations_bp = Blueprint("reservations", __name__, url_prefix="/reservations")


def _check_booking_window(day: date):
    today = date.today()
    earliest = today + timedelta(days=current_app.config.get("BOOKING_MIN_DAYS_AHEAD", 1))
    latest = today + timedelta(days=current_app.config.get("BOOKING_MAX_DAYS_AHEAD", 90))
    if day < earliest or day > latest:
        raise ValidationError(
            f"Reservations can be made from {earliest.isoformat()} to {latest.isoformat()}"
        )


# ---------- CUSTOMER: book a slot (admission is atomic per cell) ----------
@reservations_bp.post("")
@login_required
def create_reservation():
    data = request.get_json(silent=True) or {}
    package_id = parse_int(data.get("packageId"), "packageId")
    day = parse_date(data.get("reservationDate"), "reservationDate")
    time = data.get("reservationTime")
    patient = parse_patient(data.get("patientInfo"))
    memo = (data.get("memo") or "").strip() or None

    _check_booking_window(day)

    try:
        reservation = reservations.create_reservation(
            package_id, day, time, patient, user_id=g.user.id, memo=memo,
        )
    except AdmissionError as exc:
        log_event(
            "RESERVATION_FAIL_" + exc.code,
            user_id=g.user.id,
            entity="package",
            entity_id=package_id,
            metadata={"date": day.isoformat(), "time": time},
        )
        raise

    log_event(
        "RESERVATION_CREATE",
        user_id=g.user.id,
        entity="reservation",
        entity_id=reservation.id,
        metadata={"number": reservation.reservation_number, "status": reservation.status},
    )
    return jsonify(reservation.to_dict()), 201


# ---------- CUSTOMER: my reservations ----------
@reservations_bp.get("/me")
@login_required
def my_reservations():
    page = parse_int(request.args.get("page"), "page", default=1)
    limit = parse_int(request.args.get("limit"), "limit", default=10)
    status = request.args.get("status")

    rows, total = reservations.list_for_user(g.user.id, page, limit, status)
    return jsonify(items=[r.to_dict() for r in rows], total=total, page=page, limit=limit), 200


@reservations_bp.get("/<int:reservation_id>")
@login_required
def get_reservation(reservation_id: int):
    reservation = reservations.get_reservation(reservation_id, user_id=g.user.id)
    return jsonify(reservation.to_dict()), 200


@reservations_bp.get("/number/<string:reservation_number>")
@login_required
def get_by_number(reservation_number: str):
    reservation = reservations.get_by_number(reservation_number, user_id=g.user.id)
    return jsonify(reservation.to_dict()), 200


@reservations_bp.patch("/<int:reservation_id>/notes")
@login_required
def update_notes(reservation_id: int):
    data = request.get_json(silent=True) or {}
    reservation = reservations.get_reservation(reservation_id, user_id=g.user.id)
    reservation = reservations.update_notes(reservation, data.get("specialNotes"))
    return jsonify(reservation.to_dict()), 200


# ---------- CUSTOMER: cancel with tiered refund ----------
@reservations_bp.post("/<int:reservation_id>/cancel")
@login_required
def cancel_reservation(reservation_id: int):
    data = request.get_json(silent=True) or {}
    reason = (data.get("reason") or "").strip() or None

    reservation = reservations.get_reservation(reservation_id, user_id=g.user.id)
    reservation, refund = reservations.cancel_reservation(reservation, reason)

    refund_status = "not_required"
    payment = payments.paid_payment_for(reservation)
    if payment and refund > 0:
        try:
            payments.cancel_payment(payment.payment_key, reason or "Customer cancellation", refund)
            refund_status = "completed"
        except ProviderError as exc:
            # reservation stays cancelled; the owed refund can still be collected later
            log.warning("refund for reservation %s failed: %s", reservation.reservation_number, exc)
            refund_status = "failed"
            log_event(
                "REFUND_FAIL",
                user_id=g.user.id,
                entity="payment",
                entity_id=payment.id,
                metadata={"amount": refund, "error": exc.message},
            )

    log_event(
        "RESERVATION_CANCEL",
        user_id=g.user.id,
        entity="reservation",
        entity_id=reservation.id,
        metadata={"reason": reason, "refund": refund, "refund_status": refund_status},
    )
    return jsonify(reservation=reservation.to_dict(), refundAmount=refund, refundStatus=refund_status), 200
