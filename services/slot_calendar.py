"""Fixed daily slot grid.

Weekday indices follow the stored package convention: 0=Sunday .. 6=Saturday.
Nothing in here touches the database.
"""
from datetime import date, datetime, timedelta
from typing import Iterable, List, Sequence, Tuple

DEFAULT_BANDS = (("09:00", "12:00"), ("13:00", "18:00"))
DEFAULT_INTERVAL_MINUTES = 30
DEFAULT_CLOSED_WEEKDAYS = (0,)  # Sunday


def weekday_index(day: date) -> int:
    # date.weekday() is Monday=0; shift so Sunday=0
    return (day.weekday() + 1) % 7


def parse_time_label(label: str) -> Tuple[int, int]:
    parsed = datetime.strptime(label, "%H:%M")
    return parsed.hour, parsed.minute


def build_grid(bands: Iterable[Sequence[str]] = DEFAULT_BANDS,
               interval_minutes: int = DEFAULT_INTERVAL_MINUTES) -> List[str]:
    """Expand (start, end) bands into "HH:MM" labels; end is exclusive."""
    if interval_minutes <= 0:
        raise ValueError("interval_minutes must be positive")

    step = timedelta(minutes=interval_minutes)
    labels = []
    for start, end in bands:
        current = datetime.combine(date.min, datetime.strptime(start, "%H:%M").time())
        stop = datetime.combine(date.min, datetime.strptime(end, "%H:%M").time())
        while current < stop:
            labels.append(current.strftime("%H:%M"))
            current += step
    return sorted(set(labels))


def is_closed(day: date, closed_weekdays: Iterable[int] = DEFAULT_CLOSED_WEEKDAYS) -> bool:
    return weekday_index(day) in set(closed_weekdays)


def slots_for(package, day: date,
              bands: Iterable[Sequence[str]] = DEFAULT_BANDS,
              interval_minutes: int = DEFAULT_INTERVAL_MINUTES,
              closed_weekdays: Iterable[int] = DEFAULT_CLOSED_WEEKDAYS) -> List[str]:
    """Bookable time labels for `package` on `day`, in grid order."""
    if is_closed(day, closed_weekdays):
        return []
    available_days = set(package.available_days or [])
    if weekday_index(day) not in available_days:
        return []
    return build_grid(bands, interval_minutes)


def calendar_settings(config) -> dict:
    """Pull grid settings out of a Flask config mapping."""
    return {
        "bands": config.get("SLOT_BANDS") or DEFAULT_BANDS,
        "interval_minutes": config.get("SLOT_INTERVAL_MINUTES") or DEFAULT_INTERVAL_MINUTES,
        "closed_weekdays": config.get("CLOSED_WEEKDAYS", DEFAULT_CLOSED_WEEKDAYS),
    }
