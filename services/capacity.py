from collections import Counter
from datetime import date
from typing import Dict, Optional

from sqlalchemy import func

from models import db
from models.reservation import Reservation, ACTIVE_STATUSES


def count_active(package_id: int, day: date, time: str,
                 exclude_reservation_id: Optional[int] = None) -> int:
    """Reservations holding capacity in one (package, date, time) cell.

    Run it inside the same transaction as the write that depends on it.
    """
    q = (
        db.session.query(func.count(Reservation.id))
        .filter(
            Reservation.package_id == package_id,
            Reservation.reservation_date == day,
            Reservation.reservation_time == time,
            Reservation.status.in_(ACTIVE_STATUSES),
        )
    )
    if exclude_reservation_id is not None:
        q = q.filter(Reservation.id != exclude_reservation_id)
    return q.scalar() or 0


def count_active_by_time(package_id: int, day: date) -> Dict[str, int]:
    rows = (
        db.session.query(Reservation.reservation_time, func.count(Reservation.id))
        .filter(
            Reservation.package_id == package_id,
            Reservation.reservation_date == day,
            Reservation.status.in_(ACTIVE_STATUSES),
        )
        .group_by(Reservation.reservation_time)
        .all()
    )
    return Counter({time: count for time, count in rows})


def remaining(package, day: date, time: str,
              exclude_reservation_id: Optional[int] = None) -> int:
    return package.capacity - count_active(package.id, day, time, exclude_reservation_id)
