from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine

from daybook.domain.calendar import DayCalendar
from daybook.domain.entities import TaskEntity
from daybook.domain.errors import NotificationSchedulingError
from daybook.infra import models  # noqa: F401
from daybook.infra.db import Base, make_session_factory
from daybook.infra.repository import DayLogRepository


class FakeScheduler:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.scheduled: list[tuple[int, datetime]] = []
        self.cancelled: list[str] = []

    def schedule(self, task: TaskEntity, when: datetime) -> str | None:
        if self.fail:
            raise NotificationSchedulingError("notifications are disabled")
        self.scheduled.append((task.id, when))
        return f"reminder-{task.id}"

    def cancel(self, handle: str) -> None:
        self.cancelled.append(handle)


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'daybook.db'}")
    Base.metadata.create_all(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def repo(session_factory) -> DayLogRepository:
    return DayLogRepository(session_factory)


@pytest.fixture
def calendar() -> DayCalendar:
    return DayCalendar(timezone.utc)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc))


def task_data(name: str = "Write journal", **overrides) -> dict:
    data = {"name": name, "notes": "", "tags": "personal"}
    data.update(overrides)
    return data
