from datetime import timedelta

import pytest

from models.blocked_slot import AllPackages, SpecificPackage
from models.reservation import CANCELLED, CONFIRMED
from services import blocks
from services.availability import available_slots
from services.capacity import count_active, remaining
from services.errors import NotFound, ValidationError
from services.slot_calendar import weekday_index


def _by_time(slots):
    return {s["time"]: s for s in slots}


def test_empty_day_is_fully_open(make_package, booking_day):
    pkg = make_package(max_reservations_per_slot=4)
    slots = available_slots(pkg, booking_day)
    assert len(slots) == 16
    assert all(s["available"] and s["remainingSlots"] == 4 for s in slots)


def test_only_active_reservations_consume_capacity(make_package, customer, make_reservation, booking_day):
    pkg = make_package(max_reservations_per_slot=2)
    make_reservation(pkg, customer, booking_day, "10:00")
    make_reservation(pkg, customer, booking_day, "10:00", status=CANCELLED)

    assert count_active(pkg.id, booking_day, "10:00") == 1
    assert remaining(pkg, booking_day, "10:00") == 1
    assert _by_time(available_slots(pkg, booking_day))["10:00"]["remainingSlots"] == 1

    make_reservation(pkg, customer, booking_day, "10:00", status=CONFIRMED)
    slot = _by_time(available_slots(pkg, booking_day))["10:00"]
    assert slot == {"time": "10:00", "available": False, "remainingSlots": 0}


def test_blocked_slot_shows_unavailable(make_package, booking_day):
    pkg = make_package()
    other = make_package(name="Other")
    blocks.bulk_create_blocks(booking_day, ["11:00"])
    blocks.bulk_create_blocks(booking_day, ["13:00"], SpecificPackage(other.id))

    slots = _by_time(available_slots(pkg, booking_day))
    assert slots["11:00"] == {"time": "11:00", "available": False, "remainingSlots": 0}
    assert slots["13:00"]["available"] is True

    assert _by_time(available_slots(other, booking_day))["13:00"]["available"] is False


def test_closed_day_lists_grid_as_unavailable(make_package, booking_day):
    pkg = make_package()
    sunday = booking_day + timedelta(days=(7 - weekday_index(booking_day)) % 7)
    slots = available_slots(pkg, sunday)
    assert len(slots) == 16
    assert not any(s["available"] for s in slots)


def test_package_off_day_has_no_slots(make_package, booking_day):
    weekday = weekday_index(booking_day)
    pkg = make_package(available_days=[d for d in range(1, 7) if d != weekday])
    assert available_slots(pkg, booking_day) == []


def test_bulk_block_is_idempotent(make_package, booking_day):
    pkg = make_package()
    first = blocks.bulk_create_blocks(booking_day, ["09:00", "9:30", "09:00"], SpecificPackage(pkg.id), "staff")
    assert [b.time for b in first] == ["09:00", "09:30"]

    again = blocks.bulk_create_blocks(booking_day, ["09:00"], SpecificPackage(pkg.id))
    assert again[0].id == first[0].id
    assert len(blocks.list_blocks(booking_day, booking_day)) == 2


def test_block_validation(make_package, booking_day):
    with pytest.raises(ValidationError):
        blocks.bulk_create_blocks(booking_day, [])
    with pytest.raises(ValidationError):
        blocks.bulk_create_blocks(booking_day, ["25:00"])
    with pytest.raises(NotFound):
        blocks.bulk_create_blocks(booking_day, ["10:00"], SpecificPackage(999))
    with pytest.raises(NotFound):
        blocks.delete_block(999)


def test_clear_by_package_keeps_wildcard_blocks(make_package, booking_day):
    pkg = make_package()
    blocks.bulk_create_blocks(booking_day, ["10:00"], AllPackages())
    blocks.bulk_create_blocks(booking_day, ["10:30", "11:00"], SpecificPackage(pkg.id))

    assert blocks.clear_blocks(booking_day, pkg.id) == 2
    assert blocks.is_blocked(pkg.id, booking_day, "10:00")
    assert blocks.clear_blocks(booking_day) == 1
    assert blocks.blocked_times(pkg.id, booking_day) == set()
