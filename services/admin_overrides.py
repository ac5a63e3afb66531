"""Privileged mutations. No ownership checks here, callers gate on the ADMIN role."""
from datetime import date
from typing import Iterable, Optional

from models import db
from models.blocked_slot import scope_for
from models.package import Package
from models.payment import Payment
from models.reservation import Reservation, PatientInfo, CANCELLED, CONFIRMED
from services import blocks, reservations
from services.errors import InvalidState, NotFound, ValidationError

PACKAGE_CATEGORIES = ("basic", "standard", "premium", "specialized", "custom")
PACKAGE_FIELDS = (
    "name", "description", "category", "price", "discount_price", "duration",
    "available_days", "max_reservations_per_slot", "is_active", "display_order",
)


def _reservation(reservation_id: int) -> Reservation:
    return reservations.get_reservation(reservation_id)


def reschedule(reservation_id: int, new_day: date, new_time: str) -> Reservation:
    return reservations.reschedule(_reservation(reservation_id), new_day, new_time)


def update_status(reservation_id: int, new_status: str, memo: Optional[str] = None) -> Reservation:
    return reservations.update_status(_reservation(reservation_id), new_status, memo)


def delete_reservation(reservation_id: int) -> None:
    """Purge a cancelled reservation with its payments and their cancel records."""
    reservation = _reservation(reservation_id)
    if reservation.status != CANCELLED:
        raise InvalidState("Only cancelled reservations can be deleted", status=reservation.status)
    for payment in Payment.query.filter_by(reservation_id=reservation.id).all():
        db.session.delete(payment)
    db.session.flush()
    db.session.delete(reservation)
    db.session.commit()


def create_reservation_for_user(user_id: int, package_id: int, day: date, time: str,
                                patient: PatientInfo, memo: Optional[str] = None,
                                status: str = CONFIRMED) -> Reservation:
    return reservations.create_reservation(
        package_id, day, time, patient, user_id=user_id, memo=memo, status=status,
    )


# ---------- slot blocks ----------

def create_blocks(day: date, times: Iterable[str], package_id: Optional[int] = None,
                  reason: Optional[str] = None, created_by: Optional[int] = None):
    return blocks.bulk_create_blocks(day, times, scope_for(package_id), reason, created_by)


def delete_block(block_id: int) -> None:
    blocks.delete_block(block_id)


def clear_blocks(day: date, package_id: Optional[int] = None) -> int:
    return blocks.clear_blocks(day, package_id)


def list_blocks(start: date, end: date, package_id: Optional[int] = None):
    if end < start:
        raise ValidationError("endDate must not be before startDate")
    return blocks.list_blocks(start, end, package_id)


# ---------- package catalog ----------

def _validate_package_fields(data: dict, partial: bool) -> dict:
    clean = {k: data[k] for k in PACKAGE_FIELDS if k in data}

    if not partial:
        for required in ("name", "price"):
            if clean.get(required) in (None, ""):
                raise ValidationError(f"{required} is required")

    if "name" in clean and not str(clean["name"] or "").strip():
        raise ValidationError("name is required")
    if "category" in clean and clean["category"] not in PACKAGE_CATEGORIES:
        raise ValidationError("Unknown category")

    for key in ("price", "duration", "max_reservations_per_slot", "display_order"):
        if key in clean:
            value = clean[key]
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValidationError(f"{key} must be a non-negative integer")

    if "max_reservations_per_slot" in clean and clean["max_reservations_per_slot"] < 1:
        raise ValidationError("max_reservations_per_slot must be at least 1")

    if "discount_price" in clean and clean["discount_price"] is not None:
        value = clean["discount_price"]
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise ValidationError("discount_price must be a non-negative integer")

    if "available_days" in clean:
        days = clean["available_days"]
        if not isinstance(days, list) or any(not isinstance(d, int) or d < 0 or d > 6 for d in days):
            raise ValidationError("available_days must be a list of weekday indices 0-6")
        clean["available_days"] = sorted(set(days))

    return clean


def _check_discount(pkg: Package):
    if pkg.discount_price is not None and pkg.discount_price > pkg.price:
        raise ValidationError("discount_price cannot exceed price")


def create_package(data: dict) -> Package:
    clean = _validate_package_fields(data, partial=False)
    pkg = Package(**clean)
    _check_discount(pkg)
    db.session.add(pkg)
    db.session.commit()
    return pkg


def update_package(package_id: int, data: dict) -> Package:
    pkg = db.session.get(Package, package_id)
    if not pkg:
        raise NotFound("Package not found")
    clean = _validate_package_fields(data, partial=True)
    for key, value in clean.items():
        setattr(pkg, key, value)
    try:
        _check_discount(pkg)
    except ValidationError:
        db.session.rollback()
        raise
    db.session.commit()
    return pkg
