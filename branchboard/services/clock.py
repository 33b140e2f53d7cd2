"""
Civil clock for the branch.
Every "today", deadline and midnight computation goes through here so the
server's own timezone never leaks into business rules.
"""
from datetime import datetime, date, time, timedelta, timezone
from typing import Callable, Optional, Tuple
import pytz


DATE_FMT = "%Y-%m-%d"


def parse_civil_date(value: str) -> date:
    """Parse a zero-padded YYYY-MM-DD civil date; anything else is a ValueError."""
    parsed = datetime.strptime(value, DATE_FMT).date()
    if parsed.strftime(DATE_FMT) != value:
        raise ValueError(f"not a YYYY-MM-DD date: {value}")
    return parsed


def parse_hhmm(value: str) -> Tuple[int, int]:
    """Parse "HH:MM" into (hour, minute)."""
    hour_s, minute_s = value.split(":", 1)
    hour, minute = int(hour_s), int(minute_s)
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"invalid time of day: {value}")
    return hour, minute


class CivilClock:
    def __init__(self, timezone_str: str, now: Optional[Callable[[], datetime]] = None) -> None:
        self.tz = pytz.timezone(timezone_str)
        self._now = now

    def now(self) -> datetime:
        """Current instant, timezone-aware UTC."""
        current = self._now() if self._now else datetime.now(timezone.utc)
        if current.tzinfo is None:
            current = current.replace(tzinfo=pytz.UTC)
        return current.astimezone(pytz.UTC)

    def utcnow(self) -> datetime:
        """Current instant as naive UTC, the storage format."""
        return self.now().replace(tzinfo=None)

    def local_now(self) -> datetime:
        return self.now().astimezone(self.tz)

    def today(self) -> str:
        return self.local_now().strftime(DATE_FMT)

    def tomorrow(self) -> str:
        return (self.local_now().date() + timedelta(days=1)).strftime(DATE_FMT)

    def civil_date_of(self, dt: datetime) -> str:
        """Civil date of a stored timestamp (naive values are UTC)."""
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=pytz.UTC)
        return dt.astimezone(self.tz).strftime(DATE_FMT)

    def time_of_day(self) -> Tuple[int, int]:
        local = self.local_now()
        return local.hour, local.minute

    def _localize(self, day: date, at: time) -> datetime:
        return self.tz.localize(datetime.combine(day, at))

    def seconds_until(self, hour: int, minute: int) -> int:
        """Whole seconds until HH:MM civil time today; 0 once it has passed."""
        local = self.local_now()
        target = self._localize(local.date(), time(hour, minute))
        if local >= target:
            return 0
        return int((target - local).total_seconds())

    def is_past(self, hour: int, minute: int) -> bool:
        local = self.local_now()
        return local >= self._localize(local.date(), time(hour, minute))

    def seconds_until_midnight(self) -> float:
        local = self.local_now()
        next_midnight = self._localize(local.date() + timedelta(days=1), time(0, 0))
        return max(0.0, (next_midnight - local).total_seconds())

    def day_bounds_utc(self, civil_date: str) -> Tuple[datetime, datetime]:
        """Naive UTC [start, end) of a civil day."""
        day = parse_civil_date(civil_date)
        start = self._localize(day, time(0, 0)).astimezone(pytz.UTC)
        end = self._localize(day + timedelta(days=1), time(0, 0)).astimezone(pytz.UTC)
        return start.replace(tzinfo=None), end.replace(tzinfo=None)
