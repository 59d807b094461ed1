from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DayCalendar:
    """Time zone context for every day-granularity computation."""

    tz: tzinfo = timezone.utc

    @classmethod
    def for_zone(cls, name: str) -> DayCalendar:
        return cls(ZoneInfo(name))

    def local(self, moment: datetime) -> datetime:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(self.tz)

    def day_of(self, moment: datetime) -> date:
        return self.local(moment).date()

    def is_same_day(self, first: datetime, second: datetime) -> bool:
        return self.day_of(first) == self.day_of(second)

    def start_of_day(self, day: date) -> datetime:
        return datetime.combine(day, time.min, tzinfo=self.tz)

    def time_of_day(self, moment: datetime) -> time:
        local = self.local(moment)
        return time(local.hour, local.minute)

    def at(self, day: date, clock_time: time) -> datetime:
        return datetime.combine(day, clock_time.replace(tzinfo=None), tzinfo=self.tz)


def add_months(base: date, months: int) -> date:
    year = base.year + (base.month - 1 + months) // 12
    month = (base.month - 1 + months) % 12 + 1
    day = min(base.day, days_in_month(year, month))
    return date(year, month, day)


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - timedelta(days=1)).day


def weekday_number(day: date) -> int:
    """Weekday as 1 = Sunday ... 7 = Saturday."""
    return day.isoweekday() % 7 + 1
