"""Reservation lifecycle: admission, cancellation, status changes, reschedule.

Every admission (create and the target cell of a reschedule) runs under the
cell lock and inside a single transaction that counts and writes before the
lock is released.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Optional, Tuple

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from models import db
from models.package import Package
from models.payment import Payment, READY as PAYMENT_READY, FAILED as PAYMENT_FAILED
from models.reservation import (
    Reservation, PatientInfo, RESERVATION_STATUSES,
    PENDING, CONFIRMED, COMPLETED, CANCELLED, NO_SHOW,
)
from services import blocks, capacity
from services.errors import (
    Blocked, DuplicateIdentifier, InvalidSlot, InvalidState, NotFound, SlotFull, ValidationError,
)
from services.identifiers import generate_reservation_number
from services.locks import cell_lock
from services.refunds import refund_amount
from services.slot_calendar import calendar_settings, parse_time_label, slots_for

log = logging.getLogger(__name__)

GENDERS = ("male", "female")

# admin status overrides; cancellation goes through cancel_reservation
STATUS_TRANSITIONS = {
    PENDING: {CONFIRMED, CANCELLED, COMPLETED, NO_SHOW},
    CONFIRMED: {CANCELLED, COMPLETED, NO_SHOW},
    COMPLETED: {NO_SHOW},
    NO_SHOW: {COMPLETED},
    CANCELLED: set(),
}


def normalize_time(time: str) -> str:
    try:
        hour, minute = parse_time_label(time)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid time '{time}'. Use HH:MM")
    return f"{hour:02d}:{minute:02d}"


def validate_patient(patient: PatientInfo) -> PatientInfo:
    if not isinstance(patient, PatientInfo):
        raise ValidationError("patientInfo is required")
    name = (patient.name or "").strip()
    phone = (patient.phone or "").replace("-", "").strip()
    if not name or not phone:
        raise ValidationError("Patient name and phone are required")
    if not isinstance(patient.birth_date, date):
        raise ValidationError("Patient birthDate is required")
    if patient.gender not in GENDERS:
        raise ValidationError("Patient gender must be male or female")
    return PatientInfo(name=name, phone=phone, birth_date=patient.birth_date, gender=patient.gender)


def compute_amounts(package: Package) -> Tuple[int, int, int]:
    """(total, discount, final) with final == total - discount."""
    total = package.price
    final = package.effective_price
    return total, total - final, final


def _lock_package(package_id: int) -> Optional[Package]:
    return (
        db.session.query(Package)
        .filter(Package.id == package_id)
        .with_for_update()
        .one_or_none()
    )


def _admit(package: Package, day: date, time: str, exclude_reservation_id: Optional[int] = None):
    """Raise unless the cell can take one more active reservation."""
    if time not in slots_for(package, day, **calendar_settings(current_app.config)):
        raise InvalidSlot(f"{day.isoformat()} {time} is not a bookable slot for this package")
    if blocks.is_blocked(package.id, day, time):
        raise Blocked("This time slot is not available", date=day.isoformat(), time=time)
    if capacity.remaining(package, day, time, exclude_reservation_id) <= 0:
        raise SlotFull("This time slot is fully booked", date=day.isoformat(), time=time)


def _is_number_collision(exc: IntegrityError) -> bool:
    return "reservation_number" in str(getattr(exc, "orig", exc))


def create_reservation(package_id: int, day: date, time: str, patient: PatientInfo, user_id: int,
                       memo: Optional[str] = None, status: Optional[str] = None) -> Reservation:
    if status not in (None, PENDING, CONFIRMED):
        raise ValidationError("Initial status must be pending or confirmed")
    if not isinstance(day, date):
        raise ValidationError("reservationDate is required")
    time = normalize_time(time)
    patient = validate_patient(patient)

    attempts = max(1, int(current_app.config.get("RESERVATION_NUMBER_RETRIES", 5)))
    with cell_lock(package_id, day, time):
        for attempt in range(1, attempts + 1):
            try:
                package = _lock_package(package_id)
                if package is None or not package.is_active:
                    raise NotFound("Package not found")

                _admit(package, day, time)

                total, discount, final = compute_amounts(package)
                initial = status or (CONFIRMED if final == 0 else PENDING)
                reservation = Reservation(
                    reservation_number=generate_reservation_number(),
                    user_id=user_id,
                    package_id=package.id,
                    reservation_date=day,
                    reservation_time=time,
                    patient=patient,
                    total_amount=total,
                    discount_amount=discount,
                    final_amount=final,
                    status=initial,
                    memo=memo,
                )
                db.session.add(reservation)
                db.session.commit()
                return reservation
            except IntegrityError as exc:
                db.session.rollback()
                if not _is_number_collision(exc):
                    raise
                log.warning("reservation number collision, regenerating (attempt %s/%s)", attempt, attempts)
            except Exception:
                db.session.rollback()
                raise

    raise DuplicateIdentifier("Could not allocate a reservation number, please retry")


def cancel_reservation(reservation: Reservation, reason: Optional[str] = None,
                       today: Optional[date] = None) -> Tuple[Reservation, int]:
    """Cancel and compute the refund owed. The refund itself is executed by the caller."""
    if not reservation.is_active:
        raise InvalidState("This reservation cannot be cancelled", status=reservation.status)

    refund = refund_amount(reservation.final_amount, reservation.reservation_date, today or date.today())

    reservation.status = CANCELLED
    reservation.cancelled_at = datetime.utcnow()
    reservation.cancel_reason = reason[:255] if reason else None
    reservation.refund_amount = refund
    db.session.commit()
    return reservation, refund


def apply_confirmation(reservation: Reservation, payment_id: Optional[int] = None) -> Reservation:
    """pending -> confirmed without committing; the caller owns the transaction."""
    if reservation.status == CONFIRMED and payment_id is not None and reservation.payment_id == payment_id:
        return reservation
    if reservation.status != PENDING:
        raise InvalidState("Only pending reservations can be confirmed", status=reservation.status)
    reservation.status = CONFIRMED
    if payment_id is not None:
        reservation.payment_id = payment_id
    return reservation


def confirm_reservation(reservation: Reservation, payment_id: Optional[int] = None) -> Reservation:
    apply_confirmation(reservation, payment_id)
    db.session.commit()
    return reservation


def update_status(reservation: Reservation, new_status: str, memo: Optional[str] = None,
                  today: Optional[date] = None) -> Reservation:
    if new_status not in RESERVATION_STATUSES:
        raise ValidationError(f"Unknown status '{new_status}'")

    if new_status == reservation.status:
        if memo:
            reservation.admin_memo = memo
            db.session.commit()
        return reservation

    if new_status not in STATUS_TRANSITIONS[reservation.status]:
        raise InvalidState(
            f"Cannot change status from {reservation.status} to {new_status}",
            status=reservation.status,
        )

    if memo:
        reservation.admin_memo = memo

    if new_status == CANCELLED:
        cancelled, _ = cancel_reservation(reservation, reason=memo or "Admin cancellation", today=today)
        return cancelled

    if new_status == CONFIRMED:
        apply_confirmation(reservation)
    else:
        reservation.status = new_status
    db.session.commit()
    return reservation


def reschedule(reservation: Reservation, new_day: date, new_time: str) -> Reservation:
    """Move an active reservation to another cell of the same package.

    Number, patient snapshot and amounts are left untouched.
    """
    if not isinstance(new_day, date):
        raise ValidationError("date is required")
    new_time = normalize_time(new_time)

    with cell_lock(reservation.package_id, new_day, new_time):
        try:
            db.session.refresh(reservation, with_for_update=True)
            if not reservation.is_active:
                raise InvalidState("Only pending or confirmed reservations can be rescheduled",
                                   status=reservation.status)

            package = _lock_package(reservation.package_id)
            if package is None:
                raise NotFound("Package not found")

            _admit(package, new_day, new_time, exclude_reservation_id=reservation.id)

            reservation.reservation_date = new_day
            reservation.reservation_time = new_time
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
    return reservation


def update_notes(reservation: Reservation, special_notes: Optional[str]) -> Reservation:
    reservation.special_notes = (special_notes or "").strip() or None
    db.session.commit()
    return reservation


def sweep_stale_pending(older_than: timedelta, now: Optional[datetime] = None):
    """Cancel pending reservations created before now - older_than.

    Only run on demand (flask sweep-pending); nothing expires automatically.
    """
    cutoff = (now or datetime.utcnow()) - older_than
    stale = (
        Reservation.query
        .filter(Reservation.status == PENDING, Reservation.created_at < cutoff)
        .order_by(Reservation.created_at.asc())
        .all()
    )
    for r in stale:
        r.status = CANCELLED
        r.cancelled_at = datetime.utcnow()
        r.cancel_reason = "Payment not completed"
        r.refund_amount = 0
        Payment.query.filter_by(reservation_id=r.id, status=PAYMENT_READY).update(
            {"status": PAYMENT_FAILED, "failed_at": datetime.utcnow(), "fail_reason": "expired"},
            synchronize_session=False,
        )
    db.session.commit()
    if stale:
        log.info("cancelled %s stale pending reservation(s) created before %s", len(stale), cutoff)
    return stale


# ---------- lookups ----------

def get_reservation(reservation_id: int, user_id: Optional[int] = None) -> Reservation:
    reservation = db.session.get(Reservation, reservation_id)
    if not reservation or (user_id is not None and reservation.user_id != user_id):
        raise NotFound("Reservation not found")
    return reservation


def get_by_number(reservation_number: str, user_id: Optional[int] = None) -> Reservation:
    q = Reservation.query.filter_by(reservation_number=reservation_number)
    if user_id is not None:
        q = q.filter_by(user_id=user_id)
    reservation = q.first()
    if not reservation:
        raise NotFound("Reservation not found")
    return reservation


def _page(q, page: int, limit: int):
    page = max(1, page or 1)
    limit = min(100, max(1, limit or 10))
    total = q.count()
    rows = (
        q.order_by(Reservation.created_at.desc(), Reservation.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total


def list_for_user(user_id: int, page: int = 1, limit: int = 10, status: Optional[str] = None):
    q = Reservation.query.filter_by(user_id=user_id)
    if status:
        q = q.filter_by(status=status)
    return _page(q, page, limit)


def list_reservations(page: int = 1, limit: int = 10, status: Optional[str] = None,
                      start: Optional[date] = None, end: Optional[date] = None,
                      search: Optional[str] = None):
    q = Reservation.query
    if status:
        q = q.filter(Reservation.status == status)
    if start:
        q = q.filter(Reservation.reservation_date >= start)
    if end:
        q = q.filter(Reservation.reservation_date <= end)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(
            Reservation.reservation_number.ilike(like),
            Reservation.patient_name.ilike(like),
            Reservation.patient_phone.ilike(like),
        ))
    return _page(q, page, limit)
