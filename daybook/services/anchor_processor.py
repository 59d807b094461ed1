"""Carry-forward of unfinished anchor tasks.

An anchor task follows the user from day to day until it is completed.
Each run copies yesterday's incomplete anchors into today. Copies record
the root task of their chain and their 1-based position in it, so the
third day of an anchor reads ``anchor_source_id=<root>, anchor_day_count=3``.

Only yesterday is inspected. After several days without a run, only the
most recent incomplete state is carried into today.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import AbstractContextManager, nullcontext
from datetime import date, datetime, timedelta

from daybook.domain.calendar import DayCalendar, utc_now
from daybook.domain.entities import TaskEntity
from daybook.domain.enums import TaskStatus
from daybook.domain.errors import PersistenceError
from daybook.infra.repository import DayLogRepository

logger = logging.getLogger(__name__)

ANCHOR_CHECK_MARKER = "anchor_check"


def carry_forward_data(task: TaskEntity) -> dict:
    return {
        "name": task.name,
        "notes": task.notes,
        "tags": task.tags,
        "status": TaskStatus.NORMAL,
        "is_anchor": True,
        "anchor_source_id": task.chain_root_id,
        "anchor_day_count": (task.anchor_day_count or 1) + 1,
    }


class AnchorCarryForwardProcessor:
    def __init__(
        self,
        repo: DayLogRepository,
        calendar: DayCalendar,
        clock: Callable[[], datetime] = utc_now,
        lock: AbstractContextManager | None = None,
    ) -> None:
        self._repo = repo
        self._calendar = calendar
        self._clock = clock
        self._lock = lock if lock is not None else nullcontext()

    def process(self) -> list[TaskEntity]:
        """Copy yesterday's incomplete anchors into today.

        Safe to call repeatedly: a chain that already has a copy in today's
        log is left alone. Returns the copies created by this call.
        """
        today = self._calendar.day_of(self._clock())
        yesterday = today - timedelta(days=1)

        with self._lock:
            try:
                return self._carry_forward(yesterday, today)
            except PersistenceError:
                logger.exception("Anchor processing for %s failed", today)
                return []

    def process_if_new_day(self) -> list[TaskEntity]:
        """Run ``process`` at most once per calendar day.

        The first call ever only records a baseline.
        """
        now = self._clock()
        try:
            last_check = self._repo.get_marker(ANCHOR_CHECK_MARKER)
            if last_check is None:
                logger.info("First anchor check, recording baseline")
                self._repo.set_marker(ANCHOR_CHECK_MARKER, now)
                return []
            if self._calendar.is_same_day(last_check, now):
                logger.debug("Anchors already processed today")
                return []
            self._repo.set_marker(ANCHOR_CHECK_MARKER, now)
        except PersistenceError:
            logger.exception("Could not read or update the anchor check marker")
            return []
        return self.process()

    def _carry_forward(self, yesterday: date, today: date) -> list[TaskEntity]:
        yesterday_log = self._repo.get_day(yesterday)
        if yesterday_log is None:
            logger.info("No day log for %s", yesterday)
            return []

        candidates = [
            task
            for task in yesterday_log.tasks
            if task.is_anchor and task.status != TaskStatus.COMPLETE
        ]
        if not candidates:
            logger.info("No incomplete anchors on %s", yesterday)
            return []

        today_log = self._repo.get_day(today)
        carried_roots = {
            task.anchor_source_id
            for task in (today_log.tasks if today_log else ())
            if task.anchor_source_id is not None
        }

        entries = []
        for candidate in candidates:
            root = candidate.chain_root_id
            if root in carried_roots:
                logger.info("Anchor %s already carried into %s", root, today)
                continue
            carried_roots.add(root)
            entries.append((today, carry_forward_data(candidate)))

        created = self._repo.add_tasks(entries)
        for task in created:
            logger.info("Carried anchor %r into %s (day %s)", task.name, today, task.anchor_day_count)
        return created
