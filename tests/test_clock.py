from datetime import datetime, timezone

import pytest

from branchboard.services.clock import CivilClock, parse_civil_date, parse_hhmm


def test_today_uses_civil_timezone(clock):
    assert clock.today() == "2025-06-10"
    assert clock.tomorrow() == "2025-06-11"
    assert clock.time_of_day() == (8, 31)


def test_civil_date_differs_from_utc_near_midnight(frozen, clock):
    # 23:30 UTC on the 9th is already the 10th in Berlin
    frozen.value = datetime(2025, 6, 9, 22, 30, tzinfo=timezone.utc)
    assert clock.today() == "2025-06-10"
    assert clock.civil_date_of(datetime(2025, 6, 9, 22, 30)) == "2025-06-10"
    assert clock.civil_date_of(datetime(2025, 6, 9, 21, 59)) == "2025-06-09"


def test_deadline_checks(clock):
    assert clock.is_past(8, 30)
    assert clock.is_past(8, 31)
    assert not clock.is_past(8, 32)
    assert clock.seconds_until(8, 30) == 0
    assert clock.seconds_until(9, 0) == 29 * 60


def test_seconds_until_midnight(clock):
    assert clock.seconds_until_midnight() == 15 * 3600 + 29 * 60


def test_seconds_until_midnight_on_dst_day(frozen, clock):
    # 2025-03-30 00:30 CET; clocks jump forward at 02:00 so the day is 23 hours long
    frozen.value = datetime(2025, 3, 29, 23, 30, tzinfo=timezone.utc)
    assert clock.today() == "2025-03-30"
    assert clock.seconds_until_midnight() == 22.5 * 3600


def test_day_bounds_utc(clock):
    start, end = clock.day_bounds_utc("2025-06-10")
    assert start == datetime(2025, 6, 9, 22, 0)
    assert end == datetime(2025, 6, 10, 22, 0)
    winter_start, _ = clock.day_bounds_utc("2025-01-15")
    assert winter_start == datetime(2025, 1, 14, 23, 0)


def test_naive_now_is_treated_as_utc():
    clock = CivilClock("Europe/Berlin", now=lambda: datetime(2025, 6, 10, 6, 31))
    assert clock.time_of_day() == (8, 31)


def test_parse_hhmm():
    assert parse_hhmm("08:30") == (8, 30)
    with pytest.raises(ValueError):
        parse_hhmm("24:00")


def test_parse_civil_date_requires_zero_padding():
    assert parse_civil_date("2025-06-10").isoformat() == "2025-06-10"
    for value in ("2025-6-10", "2025-06-1", "25-06-10", "2025-06-10T00:00", "2025-02-30"):
        with pytest.raises(ValueError):
            parse_civil_date(value)
