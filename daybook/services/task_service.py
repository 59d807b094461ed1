from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import AbstractContextManager, nullcontext
from dataclasses import replace
from datetime import date, datetime, timedelta

from daybook.domain.calendar import DayCalendar, utc_now
from daybook.domain.entities import DayLogEntity, TaskEntity
from daybook.domain.enums import TaskStatus
from daybook.domain.errors import NotificationSchedulingError
from daybook.infra.notifications import NotificationScheduler
from daybook.infra.repository import DayLogRepository
from daybook.services.recurrence_generator import GenerationReport, RecurrenceGenerator

logger = logging.getLogger(__name__)


class TaskService:
    """User edit flow around the day registry.

    Saving a recurring template fills its occurrences up to the configured
    horizon.
    """

    def __init__(
        self,
        repo: DayLogRepository,
        generator: RecurrenceGenerator,
        scheduler: NotificationScheduler,
        calendar: DayCalendar,
        horizon_days: int = 365,
        clock: Callable[[], datetime] = utc_now,
        lock: AbstractContextManager | None = None,
    ) -> None:
        self._repo = repo
        self._generator = generator
        self._scheduler = scheduler
        self._calendar = calendar
        self._horizon_days = horizon_days
        self._clock = clock
        self._lock = lock if lock is not None else nullcontext()

    def get_day(self, day: date) -> DayLogEntity | None:
        return self._repo.get_day(day)

    def get_task(self, task_id: int) -> TaskEntity | None:
        return self._repo.get_task(task_id)

    def create_task(self, day: date, data: dict) -> TaskEntity:
        with self._lock:
            task = self._repo.add_task(day, self._normalize_data(data))
        task = self._schedule_own_reminder(task)
        if task.is_recurring:
            self.fill_recurrences()
        return task

    def update_task(self, task_id: int, data: dict) -> TaskEntity | None:
        normalized = self._normalize_data(data)
        with self._lock:
            task = self._repo.update_task(task_id, normalized)
        if not task:
            return None
        if "reminder_time" in normalized:
            if task.notification_id:
                self._scheduler.cancel(task.notification_id)
                self._repo.set_notification_id(task.id, None)
                task = replace(task, notification_id=None)
            task = self._schedule_own_reminder(task)
        if task.is_recurring:
            self.fill_recurrences()
        return task

    def cycle_status(self, task_id: int) -> TaskEntity | None:
        task = self._repo.get_task(task_id)
        if not task:
            return None
        return self.update_task(task_id, {"status": task.status.cycled()})

    def delete_task(self, task_id: int) -> None:
        task = self._repo.get_task(task_id)
        if not task:
            return
        if task.notification_id:
            self._scheduler.cancel(task.notification_id)
        with self._lock:
            self._repo.delete_task(task_id)

    def fill_recurrences(self) -> GenerationReport:
        today = self._calendar.day_of(self._clock())
        return self._generator.generate(today + timedelta(days=self._horizon_days))

    def _normalize_data(self, data: dict) -> dict:
        normalized = dict(data)
        if "status" in normalized and isinstance(normalized["status"], TaskStatus):
            normalized["status"] = normalized["status"].value
        return normalized

    def _schedule_own_reminder(self, task: TaskEntity) -> TaskEntity:
        if task.reminder_time is None:
            return task
        try:
            handle = self._scheduler.schedule(task, self._calendar.local(task.reminder_time))
        except NotificationSchedulingError:
            logger.warning("Reminder for task %s was not scheduled", task.id, exc_info=True)
            return task
        if handle is None:
            return task
        self._repo.set_notification_id(task.id, handle)
        return self._repo.get_task(task.id) or task
