"""Notification scheduling collaborators.

The engine only needs two calls: ``schedule`` returns an opaque handle (or
``None`` when the platform declines) and ``cancel`` drops a pending one.
Implementations signal failures with ``NotificationSchedulingError``.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Protocol

from daybook.domain.entities import TaskEntity
from daybook.domain.errors import NotificationSchedulingError

logger = logging.getLogger(__name__)


class NotificationScheduler(Protocol):
    def schedule(self, task: TaskEntity, when: datetime) -> str | None: ...

    def cancel(self, handle: str) -> None: ...


class LogNotificationScheduler:
    """Keeps pending reminders in memory and reports them to the log."""

    def __init__(self) -> None:
        self.pending: dict[str, tuple[int, datetime]] = {}

    def schedule(self, task: TaskEntity, when: datetime) -> str | None:
        if when.tzinfo is None:
            raise NotificationSchedulingError(f"reminder for task {task.id} has no time zone")
        handle = uuid.uuid4().hex
        self.pending[handle] = (task.id, when)
        logger.info("Scheduled reminder %s for task %s at %s", handle, task.id, when.isoformat())
        return handle

    def cancel(self, handle: str) -> None:
        if self.pending.pop(handle, None) is not None:
            logger.info("Cancelled reminder %s", handle)
