from flask import Blueprint, jsonify, g, request

from models.user import User
from security.rbac import require_admin
from services import admin_overrides, reservations
from services.errors import AdmissionError, NotFound
from models import db
from utils.audit import log_event
from utils.parsing import parse_date, parse_int, parse_optional_date, parse_patient

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def _optional_package_id(value):
    if value in (None, ""):
        return None
    return parse_int(value, "packageId")


# ---------- reservations ----------
@admin_bp.get("/reservations")
@require_admin
def list_reservations():
    page = parse_int(request.args.get("page"), "page", default=1)
    limit = parse_int(request.args.get("limit"), "limit", default=20)
    rows, total = reservations.list_reservations(
        page=page,
        limit=limit,
        status=request.args.get("status") or None,
        start=parse_optional_date(request.args.get("startDate"), "startDate"),
        end=parse_optional_date(request.args.get("endDate"), "endDate"),
        search=request.args.get("search") or None,
    )
    return jsonify(items=[r.to_dict(include_admin=True) for r in rows], total=total, page=page, limit=limit), 200


@admin_bp.post("/reservations")
@require_admin
def create_reservation():
    """Book on behalf of a customer; confirmed unless told otherwise."""
    data = request.get_json(silent=True) or {}
    user_id = parse_int(data.get("userId"), "userId")
    if db.session.get(User, user_id) is None:
        raise NotFound("User not found")

    reservation = admin_overrides.create_reservation_for_user(
        user_id=user_id,
        package_id=parse_int(data.get("packageId"), "packageId"),
        day=parse_date(data.get("reservationDate"), "reservationDate"),
        time=data.get("reservationTime"),
        patient=parse_patient(data.get("patientInfo")),
        memo=(data.get("memo") or "").strip() or None,
        status=data.get("status") or "confirmed",
    )

    log_event("ADMIN_RESERVATION_CREATE", user_id=g.user.id, entity="reservation", entity_id=reservation.id,
              metadata={"for_user": user_id, "status": reservation.status})
    return jsonify(reservation.to_dict(include_admin=True)), 201


@admin_bp.patch("/reservations/<int:reservation_id>/status")
@require_admin
def update_status(reservation_id: int):
    data = request.get_json(silent=True) or {}
    new_status = (data.get("status") or "").strip().lower()
    memo = (data.get("memo") or "").strip() or None

    reservation = admin_overrides.update_status(reservation_id, new_status, memo)

    log_event("ADMIN_RESERVATION_STATUS", user_id=g.user.id, entity="reservation", entity_id=reservation_id,
              metadata={"status": new_status, "memo": memo})
    return jsonify(reservation.to_dict(include_admin=True)), 200


@admin_bp.patch("/reservations/<int:reservation_id>/reschedule")
@require_admin
def reschedule(reservation_id: int):
    data = request.get_json(silent=True) or {}
    new_day = parse_date(data.get("date"), "date")
    new_time = data.get("time")

    try:
        reservation = admin_overrides.reschedule(reservation_id, new_day, new_time)
    except AdmissionError as exc:
        log_event("ADMIN_RESCHEDULE_FAIL_" + exc.code, user_id=g.user.id, entity="reservation",
                  entity_id=reservation_id, metadata={"date": new_day.isoformat(), "time": new_time})
        raise

    log_event("ADMIN_RESCHEDULE", user_id=g.user.id, entity="reservation", entity_id=reservation_id,
              metadata={"date": new_day.isoformat(), "time": reservation.reservation_time})
    return jsonify(reservation.to_dict(include_admin=True)), 200


@admin_bp.delete("/reservations/<int:reservation_id>")
@require_admin
def delete_reservation(reservation_id: int):
    admin_overrides.delete_reservation(reservation_id)
    log_event("ADMIN_RESERVATION_DELETE", user_id=g.user.id, entity="reservation", entity_id=reservation_id)
    return jsonify(message="Reservation deleted"), 200


# ---------- blocked slots ----------
@admin_bp.get("/blocked-slots")
@require_admin
def list_blocked_slots():
    start = parse_date(request.args.get("startDate"), "startDate")
    end = parse_optional_date(request.args.get("endDate"), "endDate") or start
    rows = admin_overrides.list_blocks(start, end, _optional_package_id(request.args.get("packageId")))
    return jsonify([b.to_dict() for b in rows]), 200


@admin_bp.post("/blocked-slots")
@require_admin
def create_blocked_slots():
    # accepts {"time": "10:00"} or {"times": ["10:00", "10:30"]}
    data = request.get_json(silent=True) or {}
    day = parse_date(data.get("date"), "date")
    times = data.get("times")
    if times is None and data.get("time"):
        times = [data.get("time")]
    package_id = _optional_package_id(data.get("packageId"))
    reason = (data.get("reason") or "").strip() or None

    rows = admin_overrides.create_blocks(day, times or [], package_id, reason, created_by=g.user.id)

    log_event("SLOT_BLOCK", user_id=g.user.id, entity="blocked_slot", entity_id=day.isoformat(),
              metadata={"times": [b.time for b in rows], "package_id": package_id, "reason": reason})
    return jsonify([b.to_dict() for b in rows]), 201


@admin_bp.delete("/blocked-slots/<int:block_id>")
@require_admin
def delete_blocked_slot(block_id: int):
    admin_overrides.delete_block(block_id)
    log_event("SLOT_UNBLOCK", user_id=g.user.id, entity="blocked_slot", entity_id=block_id)
    return jsonify(message="Block removed"), 200


@admin_bp.delete("/blocked-slots")
@require_admin
def clear_blocked_slots():
    day = parse_date(request.args.get("date"), "date")
    package_id = _optional_package_id(request.args.get("packageId"))
    removed = admin_overrides.clear_blocks(day, package_id)
    log_event("SLOT_UNBLOCK_DATE", user_id=g.user.id, entity="blocked_slot", entity_id=day.isoformat(),
              metadata={"package_id": package_id, "removed": removed})
    return jsonify(message="Blocks cleared", removed=removed), 200


# ---------- packages ----------
def _package_payload(data: dict) -> dict:
    mapping = {
        "name": "name",
        "description": "description",
        "category": "category",
        "price": "price",
        "discountPrice": "discount_price",
        "duration": "duration",
        "availableDays": "available_days",
        "maxReservationsPerSlot": "max_reservations_per_slot",
        "isActive": "is_active",
        "displayOrder": "display_order",
    }
    return {field: data[key] for key, field in mapping.items() if key in data}


@admin_bp.post("/packages")
@require_admin
def create_package():
    pkg = admin_overrides.create_package(_package_payload(request.get_json(silent=True) or {}))
    log_event("PACKAGE_CREATE", user_id=g.user.id, entity="package", entity_id=pkg.id)
    return jsonify(pkg.to_dict()), 201


@admin_bp.patch("/packages/<int:package_id>")
@require_admin
def update_package(package_id: int):
    payload = _package_payload(request.get_json(silent=True) or {})
    pkg = admin_overrides.update_package(package_id, payload)
    log_event("PACKAGE_UPDATE", user_id=g.user.id, entity="package", entity_id=pkg.id,
              metadata={"fields": sorted(payload)})
    return jsonify(pkg.to_dict()), 200
