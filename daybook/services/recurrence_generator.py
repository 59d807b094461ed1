from __future__ import annotations

import logging
from contextlib import AbstractContextManager, nullcontext
from dataclasses import dataclass, field, replace
from datetime import date

from daybook.domain.calendar import DayCalendar
from daybook.domain.entities import TaskEntity
from daybook.domain.enums import MonthOverflowPolicy, TaskStatus
from daybook.domain.errors import DecodeError, NotificationSchedulingError, PersistenceError
from daybook.domain.recurrence import DEFAULT_OCCURRENCE_LIMIT, RecurrenceRule
from daybook.infra.notifications import NotificationScheduler
from daybook.infra.repository import DayLogRepository

logger = logging.getLogger(__name__)


@dataclass
class GenerationReport:
    created: list[TaskEntity] = field(default_factory=list)
    skipped_template_ids: list[int] = field(default_factory=list)
    failed_template_ids: list[int] = field(default_factory=list)


class RecurrenceGenerator:
    """Materializes task instances for every recurring template.

    Runs are additive and idempotent: an instance is only created for a
    (template, day) pair that has none yet, and nothing previously
    materialized is touched.
    """

    def __init__(
        self,
        repo: DayLogRepository,
        scheduler: NotificationScheduler,
        calendar: DayCalendar,
        overflow: MonthOverflowPolicy = MonthOverflowPolicy.ROLLOVER,
        occurrence_limit: int = DEFAULT_OCCURRENCE_LIMIT,
        lock: AbstractContextManager | None = None,
    ) -> None:
        self._repo = repo
        self._scheduler = scheduler
        self._calendar = calendar
        self._overflow = overflow
        self._occurrence_limit = occurrence_limit
        self._lock = lock if lock is not None else nullcontext()

    def generate(self, horizon: date) -> GenerationReport:
        report = GenerationReport()
        with self._lock:
            try:
                templates = self._repo.list_recurring_templates()
            except PersistenceError:
                logger.exception("Could not load recurring templates")
                return report

            for template in templates:
                try:
                    created = self._materialize(template, horizon)
                except DecodeError:
                    logger.warning("Skipping template %s", template.id, exc_info=True)
                    report.skipped_template_ids.append(template.id)
                    continue
                except PersistenceError:
                    logger.exception("Materializing template %s failed", template.id)
                    report.failed_template_ids.append(template.id)
                    continue
                report.created.extend(created)

        # Reminders are requested after the instances are committed.
        report.created = [self._schedule_reminder(task) for task in report.created]
        if report.created:
            logger.info("Created %d recurring task instance(s) up to %s", len(report.created), horizon)
        return report

    def _materialize(self, template: TaskEntity, horizon: date) -> list[TaskEntity]:
        if template.day is None:
            raise DecodeError(f"template {template.id} has no owning day")
        rule = RecurrenceRule.from_json(template.recurrence_rule, self._calendar)

        occurrences = rule.occurrences(
            template.day,
            horizon,
            limit=self._occurrence_limit,
            overflow=self._overflow,
        )
        existing = self._repo.existing_instance_days(template.id, occurrences)
        entries = [
            (day, self._instance_data(template, day))
            for day in occurrences
            if day not in existing
        ]
        return self._repo.add_tasks(entries)

    def _instance_data(self, template: TaskEntity, day: date) -> dict:
        data = {
            "name": template.name,
            "notes": template.notes,
            "tags": template.tags,
            "status": TaskStatus.NORMAL,
            "source_template_id": template.id,
        }
        if template.reminder_time is not None:
            clock_time = self._calendar.time_of_day(template.reminder_time)
            data["reminder_time"] = self._calendar.at(day, clock_time)
        return data

    def _schedule_reminder(self, task: TaskEntity) -> TaskEntity:
        if task.reminder_time is None:
            return task
        when = self._calendar.local(task.reminder_time)
        try:
            handle = self._scheduler.schedule(task, when)
        except NotificationSchedulingError:
            logger.warning("Reminder for task %s was not scheduled", task.id, exc_info=True)
            return task
        if handle is None:
            return task
        try:
            self._repo.set_notification_id(task.id, handle)
        except PersistenceError:
            logger.exception("Could not store reminder handle for task %s", task.id)
            return task
        return replace(task, notification_id=handle)
