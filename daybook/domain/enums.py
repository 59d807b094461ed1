from __future__ import annotations

from enum import StrEnum


class TaskStatus(StrEnum):
    NORMAL = "normal"
    IN_PROGRESS = "inProgress"
    COMPLETE = "complete"
    NOT_COMPLETED = "notCompleted"

    def cycled(self) -> TaskStatus:
        return _STATUS_CYCLE[self]


_STATUS_CYCLE = {
    TaskStatus.NORMAL: TaskStatus.IN_PROGRESS,
    TaskStatus.IN_PROGRESS: TaskStatus.COMPLETE,
    TaskStatus.COMPLETE: TaskStatus.NOT_COMPLETED,
    TaskStatus.NOT_COMPLETED: TaskStatus.NORMAL,
}


class RecurrenceFrequency(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class MonthOverflowPolicy(StrEnum):
    """How a monthly day-of-month past the end of a month is resolved.

    ROLLOVER spills the surplus days into the following month before the
    interval is added (Feb 31 -> Mar 3). CLAMP pins the day to the last day
    of the target month (Feb 31 -> Feb 28).
    """

    ROLLOVER = "rollover"
    CLAMP = "clamp"
