from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload, sessionmaker

from daybook.domain.entities import DayLogEntity, TaskEntity, require_identity, validate_task_fields
from daybook.domain.enums import TaskStatus
from daybook.domain.errors import DecodeError, PersistenceError

from .models import DayLogModel, RunMarkerModel, TaskModel

logger = logging.getLogger(__name__)

TASK_FIELDS = (
    "name",
    "notes",
    "tags",
    "status",
    "reminder_time",
    "notification_id",
    "is_recurring",
    "recurrence_rule",
    "recurrence_end_date",
    "source_template_id",
    "is_anchor",
    "anchor_source_id",
    "anchor_day_count",
    "sort_order",
)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _to_task_entity(model: TaskModel, day: Optional[date]) -> TaskEntity:
    require_identity(model.id, model.name, "task")
    try:
        status = TaskStatus(model.status)
    except ValueError as exc:
        raise DecodeError(f"task {model.id}: unknown status {model.status!r}") from exc

    return TaskEntity(
        id=model.id,
        name=model.name,
        notes=model.notes or "",
        tags=model.tags or "",
        status=status,
        day=day,
        created_at=_aware(model.created_at),
        modified_at=_aware(model.modified_at),
        reminder_time=_aware(model.reminder_time),
        notification_id=model.notification_id,
        is_recurring=bool(model.is_recurring),
        recurrence_rule=model.recurrence_rule,
        recurrence_end_date=model.recurrence_end_date,
        source_template_id=model.source_template_id,
        is_anchor=bool(model.is_anchor),
        anchor_source_id=model.anchor_source_id,
        anchor_day_count=model.anchor_day_count,
        sort_order=model.sort_order,
    )


def _to_day_entity(model: DayLogModel) -> DayLogEntity:
    tasks = []
    for task in model.tasks:
        try:
            tasks.append(_to_task_entity(task, model.date))
        except DecodeError:
            logger.warning("Skipping corrupt task %s in day %s", task.id, model.date, exc_info=True)
    return DayLogEntity(id=model.id, date=model.date, notes=model.notes or "", tasks=tuple(tasks))


def _to_columns(data: dict) -> dict:
    columns = {key: value for key, value in data.items() if key in TASK_FIELDS}
    if isinstance(columns.get("status"), TaskStatus):
        columns["status"] = columns["status"].value
    if "reminder_time" in columns:
        columns["reminder_time"] = _naive_utc(columns["reminder_time"])
    return columns


def _current_fields(model: TaskModel) -> dict:
    return {key: getattr(model, key) for key in TASK_FIELDS}


class DayLogRepository:
    """Date-indexed store of day logs and the tasks they own."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            raise PersistenceError(str(exc)) from exc

    def get_day(self, day: date) -> Optional[DayLogEntity]:
        with self._session() as session:
            stmt = (
                select(DayLogModel)
                .where(DayLogModel.date == day)
                .options(selectinload(DayLogModel.tasks))
            )
            model = session.scalar(stmt)
            return _to_day_entity(model) if model else None

    def get_or_create_day(self, day: date) -> DayLogEntity:
        self._ensure_days([day])
        day_log = self.get_day(day)
        if day_log is None:
            raise PersistenceError(f"day log for {day} vanished after creation")
        return day_log

    def list_recurring_templates(self) -> list[TaskEntity]:
        """Recurring templates with a stored rule, in id order.

        A template whose day log is missing is returned with ``day=None``;
        rows missing their identity are logged and left out.
        """
        with self._session() as session:
            stmt = (
                select(TaskModel)
                .where(TaskModel.is_recurring.is_(True), TaskModel.recurrence_rule.is_not(None))
                .options(selectinload(TaskModel.day_log))
                .order_by(TaskModel.id.asc())
            )
            templates = []
            for model in session.scalars(stmt):
                day = model.day_log.date if model.day_log else None
                try:
                    templates.append(_to_task_entity(model, day))
                except DecodeError:
                    logger.warning("Skipping corrupt recurring template %s", model.id, exc_info=True)
            return templates

    def existing_instance_days(self, template_id: int, days: Iterable[date]) -> set[date]:
        wanted = set(days)
        if not wanted:
            return set()
        with self._session() as session:
            stmt = (
                select(DayLogModel.date)
                .join(TaskModel, TaskModel.day_log_id == DayLogModel.id)
                .where(TaskModel.source_template_id == template_id, DayLogModel.date.in_(sorted(wanted)))
            )
            return set(session.scalars(stmt))

    def get_task(self, task_id: int) -> Optional[TaskEntity]:
        with self._session() as session:
            task = session.get(TaskModel, task_id)
            if not task:
                return None
            return _to_task_entity(task, task.day_log.date if task.day_log else None)

    def add_task(self, day: date, data: dict) -> TaskEntity:
        return self.add_tasks([(day, data)])[0]

    def add_tasks(self, entries: list[tuple[date, dict]]) -> list[TaskEntity]:
        """Insert tasks into their days in a single commit."""
        if not entries:
            return []
        for _, data in entries:
            validate_task_fields(data)

        days = {day for day, _ in entries}
        self._ensure_days(days)

        with self._session() as session:
            day_logs = {
                model.date: model
                for model in session.scalars(select(DayLogModel).where(DayLogModel.date.in_(sorted(days))))
            }
            created: list[tuple[TaskModel, date]] = []
            for day, data in entries:
                columns = _to_columns(data)
                day_log = day_logs[day]
                if columns.get("sort_order") is None:
                    columns["sort_order"] = self._next_sort_order(session, day_log.id)
                task = TaskModel(day_log_id=day_log.id, **columns)
                session.add(task)
                session.flush()
                created.append((task, day))
            session.commit()
            for task, _ in created:
                session.refresh(task)
            return [_to_task_entity(task, day) for task, day in created]

    def update_task(self, task_id: int, data: dict) -> Optional[TaskEntity]:
        with self._session() as session:
            task = session.get(TaskModel, task_id)
            if not task:
                return None

            merged = _current_fields(task)
            merged.update(data)
            validate_task_fields(merged)

            for key, value in _to_columns(data).items():
                setattr(task, key, value)
            session.commit()
            session.refresh(task)
            return _to_task_entity(task, task.day_log.date if task.day_log else None)

    def set_notification_id(self, task_id: int, handle: str | None) -> None:
        with self._session() as session:
            task = session.get(TaskModel, task_id)
            if not task:
                return
            task.notification_id = handle
            session.commit()

    def delete_task(self, task_id: int) -> None:
        with self._session() as session:
            task = session.get(TaskModel, task_id)
            if not task:
                return
            session.delete(task)
            session.commit()

    def get_marker(self, key: str) -> Optional[datetime]:
        with self._session() as session:
            marker = session.get(RunMarkerModel, key)
            return _aware(marker.value) if marker else None

    def set_marker(self, key: str, value: datetime) -> None:
        with self._session() as session:
            session.merge(RunMarkerModel(key=key, value=_naive_utc(value)))
            session.commit()

    def _ensure_days(self, days: Iterable[date]) -> None:
        wanted = set(days)
        with self._session() as session:
            existing = set(
                session.scalars(select(DayLogModel.date).where(DayLogModel.date.in_(sorted(wanted))))
            )

        # One commit per day so a concurrent insert only loses that day's row;
        # the unique date column keeps a single day log per date.
        for day in sorted(wanted - existing):
            with self._session() as session:
                session.add(DayLogModel(date=day, notes=""))
                try:
                    session.commit()
                except IntegrityError:
                    session.rollback()
                    logger.debug("Day log for %s was created concurrently", day)

    @staticmethod
    def _next_sort_order(session: Session, day_log_id: int) -> int:
        max_order = session.scalar(
            select(func.max(TaskModel.sort_order)).where(TaskModel.day_log_id == day_log_id)
        )
        return (max_order or 0) + 1
