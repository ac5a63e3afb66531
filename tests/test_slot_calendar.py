from datetime import date
from types import SimpleNamespace

import pytest

from services.slot_calendar import build_grid, calendar_settings, is_closed, slots_for, weekday_index

SUNDAY = date(2030, 6, 2)
MONDAY = date(2030, 6, 3)
SATURDAY = date(2030, 6, 8)


def _pkg(days):
    return SimpleNamespace(available_days=days)


def test_weekday_index_counts_from_sunday():
    assert weekday_index(SUNDAY) == 0
    assert weekday_index(MONDAY) == 1
    assert weekday_index(SATURDAY) == 6


def test_default_grid_skips_lunch():
    grid = build_grid()
    assert grid[0] == "09:00"
    assert grid[-1] == "17:30"
    assert "11:30" in grid
    assert "12:00" not in grid and "12:30" not in grid
    assert len(grid) == 16


def test_grid_merges_overlapping_bands():
    grid = build_grid([("09:00", "10:00"), ("09:30", "10:30")], 30)
    assert grid == ["09:00", "09:30", "10:00"]


def test_grid_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        build_grid(interval_minutes=0)


def test_sunday_is_closed():
    assert is_closed(SUNDAY)
    assert not is_closed(MONDAY)
    assert slots_for(_pkg([0, 1, 2, 3, 4, 5, 6]), SUNDAY) == []


def test_slots_follow_package_weekdays():
    weekdays_only = _pkg([1, 2, 3, 4, 5])
    assert slots_for(weekdays_only, SATURDAY) == []
    assert slots_for(weekdays_only, MONDAY) == build_grid()


def test_calendar_settings_reads_config():
    settings = calendar_settings({
        "SLOT_BANDS": [("10:00", "11:00")],
        "SLOT_INTERVAL_MINUTES": 20,
        "CLOSED_WEEKDAYS": [0, 6],
    })
    assert slots_for(_pkg([1, 6]), MONDAY, **settings) == ["10:00", "10:20", "10:40"]
    assert slots_for(_pkg([1, 6]), SATURDAY, **settings) == []
