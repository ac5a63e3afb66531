from datetime import date
from typing import Dict, List

from flask import current_app

from services import capacity, blocks
from services.slot_calendar import build_grid, calendar_settings, is_closed, slots_for


def available_slots(package, day: date, settings: Dict = None) -> List[Dict]:
    """Open/closed view of every slot for `package` on `day`, in grid order.

    Works for any date; callers decide which dates customers may pick.
    """
    settings = settings if settings is not None else calendar_settings(current_app.config)

    if is_closed(day, settings["closed_weekdays"]):
        grid = build_grid(settings["bands"], settings["interval_minutes"])
        return [{"time": t, "available": False, "remainingSlots": 0} for t in grid]

    times = slots_for(package, day, **settings)
    if not times:
        return []

    blocked = blocks.blocked_times(package.id, day)
    counts = capacity.count_active_by_time(package.id, day)

    out = []
    for t in times:
        if t in blocked:
            out.append({"time": t, "available": False, "remainingSlots": 0})
            continue
        left = package.capacity - counts.get(t, 0)
        out.append({"time": t, "available": left > 0, "remainingSlots": max(0, left)})
    return out
