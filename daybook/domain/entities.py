from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from .enums import TaskStatus
from .errors import DecodeError, InvalidTaskError
from .recurrence import RecurrenceRule


@dataclass(frozen=True)
class TaskEntity:
    id: int
    name: str
    notes: str
    tags: str
    status: TaskStatus
    day: Optional[date]
    created_at: datetime
    modified_at: datetime
    reminder_time: Optional[datetime] = None
    notification_id: str | None = None
    is_recurring: bool = False
    recurrence_rule: str | None = None
    recurrence_end_date: Optional[date] = None
    source_template_id: int | None = None
    is_anchor: bool = False
    anchor_source_id: int | None = None
    anchor_day_count: int | None = None
    sort_order: int = 0

    @property
    def chain_root_id(self) -> int:
        """Root of the carry-forward chain this task belongs to."""
        return self.anchor_source_id if self.anchor_source_id is not None else self.id


@dataclass(frozen=True)
class DayLogEntity:
    id: int
    date: date
    notes: str = ""
    tasks: tuple[TaskEntity, ...] = field(default_factory=tuple)


def require_identity(task_id, name, context: str) -> None:
    if task_id is None:
        raise DecodeError(f"{context}: missing id")
    if not (name or "").strip():
        raise DecodeError(f"{context} {task_id}: missing name")


def validate_task_fields(data: dict) -> None:
    """Check a full task field set before it is written to the store."""
    if not (data.get("name") or "").strip():
        raise InvalidTaskError("task name is required")

    is_recurring = bool(data.get("is_recurring"))
    rule = data.get("recurrence_rule")
    if is_recurring and not rule:
        raise InvalidTaskError("recurring task needs a recurrence rule")
    if rule and not is_recurring:
        raise InvalidTaskError("recurrence rule set on a non-recurring task")
    if is_recurring and data.get("is_anchor"):
        raise InvalidTaskError("a task cannot be both recurring and an anchor")
    if rule:
        try:
            RecurrenceRule.from_json(rule)
        except DecodeError as exc:
            raise InvalidTaskError(str(exc)) from exc

    day_count = data.get("anchor_day_count")
    if day_count is not None and day_count < 1:
        raise InvalidTaskError("anchor day count starts at 1")
