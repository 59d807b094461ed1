"""Recurrence rules and their occurrence arithmetic.

A rule is a pure value. It is stored inside its template task as JSON of
the shape ``{"frequency", "interval", "daysOfWeek"?, "dayOfMonth"?,
"endDate"?}`` with ``endDate`` written as an ISO-8601 UTC timestamp of the
start of that day in the owner's calendar. Only this module reads or
writes that format.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .calendar import DayCalendar, add_months, days_in_month, weekday_number
from .enums import MonthOverflowPolicy, RecurrenceFrequency
from .errors import DecodeError

DEFAULT_OCCURRENCE_LIMIT = 100
MAX_INTERVAL = 1000

WEEKDAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")

_UTC = DayCalendar()


class _RuleWire(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    frequency: RecurrenceFrequency
    interval: int = Field(ge=1, le=MAX_INTERVAL)
    days_of_week: list[int] | None = Field(default=None, alias="daysOfWeek")
    day_of_month: int | None = Field(default=None, alias="dayOfMonth", ge=1, le=31)
    end_date: str | None = Field(default=None, alias="endDate")

    @field_validator("days_of_week")
    @classmethod
    def check_weekdays(cls, value: list[int] | None) -> list[int] | None:
        if value is not None and any(day < 1 or day > 7 for day in value):
            raise ValueError("weekday numbers run from 1 (Sunday) to 7 (Saturday)")
        return value

    @field_validator("end_date")
    @classmethod
    def check_end_date(cls, value: str | None) -> str | None:
        if value is not None:
            datetime.fromisoformat(value)
        return value


@dataclass(frozen=True)
class RecurrenceRule:
    frequency: RecurrenceFrequency
    interval: int = 1
    days_of_week: frozenset[int] | None = None
    day_of_month: int | None = None
    end_date: date | None = None

    def __post_init__(self) -> None:
        if not 1 <= self.interval <= MAX_INTERVAL:
            raise ValueError(f"interval must be between 1 and {MAX_INTERVAL}")
        if self.days_of_week is not None:
            if not isinstance(self.days_of_week, frozenset):
                object.__setattr__(self, "days_of_week", frozenset(self.days_of_week))
            if any(day < 1 or day > 7 for day in self.days_of_week):
                raise ValueError("weekday numbers run from 1 (Sunday) to 7 (Saturday)")
        if self.day_of_month is not None and not 1 <= self.day_of_month <= 31:
            raise ValueError("day_of_month must be between 1 and 31")

    def next_occurrence(
        self,
        after: date,
        overflow: MonthOverflowPolicy = MonthOverflowPolicy.ROLLOVER,
    ) -> date | None:
        if self.end_date is not None and after >= self.end_date:
            return None

        # Dates past the calendar range end the sequence.
        try:
            return self._advance(after, overflow)
        except (OverflowError, ValueError):
            return None

    def occurrences(
        self,
        start: date,
        end: date,
        limit: int = DEFAULT_OCCURRENCE_LIMIT,
        overflow: MonthOverflowPolicy = MonthOverflowPolicy.ROLLOVER,
    ) -> list[date]:
        dates: list[date] = []
        current = start
        while len(dates) < limit:
            upcoming = self.next_occurrence(current, overflow)
            if upcoming is None or upcoming > end:
                break
            dates.append(upcoming)
            current = upcoming
        return dates

    def describe(self) -> str:
        if self.frequency == RecurrenceFrequency.DAILY:
            return "Daily" if self.interval == 1 else f"Every {self.interval} days"
        if self.frequency == RecurrenceFrequency.WEEKLY:
            if self.days_of_week:
                names = ", ".join(WEEKDAY_NAMES[day - 1] for day in sorted(self.days_of_week))
                if self.interval == 1:
                    return f"Weekly on {names}"
                return f"Every {self.interval} weeks on {names}"
            return "Weekly" if self.interval == 1 else f"Every {self.interval} weeks"
        if self.day_of_month is not None:
            if self.interval == 1:
                return f"Monthly on day {self.day_of_month}"
            return f"Every {self.interval} months on day {self.day_of_month}"
        return "Monthly" if self.interval == 1 else f"Every {self.interval} months"

    def to_json(self, calendar: DayCalendar = _UTC) -> str:
        end_date = None
        if self.end_date is not None:
            start = calendar.start_of_day(self.end_date).astimezone(timezone.utc)
            end_date = start.strftime("%Y-%m-%dT%H:%M:%SZ")
        wire = _RuleWire(
            frequency=self.frequency,
            interval=self.interval,
            days_of_week=sorted(self.days_of_week) if self.days_of_week is not None else None,
            day_of_month=self.day_of_month,
            end_date=end_date,
        )
        return wire.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_json(cls, payload: str, calendar: DayCalendar = _UTC) -> RecurrenceRule:
        try:
            wire = _RuleWire.model_validate_json(payload)
        except ValidationError as exc:
            raise DecodeError(f"invalid recurrence rule: {exc}") from exc

        end_date = None
        if wire.end_date is not None:
            moment = datetime.fromisoformat(wire.end_date)
            end_date = calendar.day_of(moment) if moment.tzinfo else moment.date()

        return cls(
            frequency=wire.frequency,
            interval=wire.interval,
            days_of_week=frozenset(wire.days_of_week) if wire.days_of_week is not None else None,
            day_of_month=wire.day_of_month,
            end_date=end_date,
        )

    def _advance(self, after: date, overflow: MonthOverflowPolicy) -> date:
        if self.frequency == RecurrenceFrequency.DAILY:
            return after + timedelta(days=self.interval)

        if self.frequency == RecurrenceFrequency.WEEKLY:
            if not self.days_of_week:
                return after + timedelta(weeks=self.interval)
            return self._next_weekday_match(after)

        if self.day_of_month is not None:
            return self._next_month_day(after, overflow)
        return add_months(after, self.interval)

    def _next_weekday_match(self, after: date) -> date:
        # Non-matching weekdays are walked one day at a time. Each matching
        # weekday met before interval - 1 weeks are consumed jumps a week.
        candidate = after + timedelta(days=1)
        weeks_consumed = 0
        while True:
            if weekday_number(candidate) not in self.days_of_week:
                candidate += timedelta(days=1)
            elif weeks_consumed < self.interval - 1:
                candidate += timedelta(weeks=1)
                weeks_consumed += 1
            else:
                return candidate

    def _next_month_day(self, after: date, overflow: MonthOverflowPolicy) -> date:
        if overflow == MonthOverflowPolicy.CLAMP:
            target = add_months(date(after.year, after.month, 1), self.interval)
            last_day = days_in_month(target.year, target.month)
            return target.replace(day=min(self.day_of_month, last_day))
        # Day numbers past the month end spill into the next month first,
        # then the interval is added with month-end clamping.
        candidate = date(after.year, after.month, 1) + timedelta(days=self.day_of_month - 1)
        return add_months(candidate, self.interval)
