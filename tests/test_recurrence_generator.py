from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import select

from conftest import FakeScheduler, task_data
from daybook.domain.calendar import DayCalendar
from daybook.domain.enums import RecurrenceFrequency, TaskStatus
from daybook.domain.errors import PersistenceError
from daybook.domain.recurrence import RecurrenceRule
from daybook.infra.models import TaskModel
from daybook.services.recurrence_generator import RecurrenceGenerator

DAILY = RecurrenceRule(RecurrenceFrequency.DAILY).to_json()


def _instances(repo, template_id: int) -> list[tuple[date, str]]:
    result = []
    for offset in range(1, 40):
        day_log = repo.get_day(date.fromordinal(date(2026, 3, 1).toordinal() + offset))
        if day_log is None:
            continue
        for task in day_log.tasks:
            if task.source_template_id == template_id:
                result.append((day_log.date, task.name))
    return result


def test_materializes_each_occurrence(repo, scheduler, calendar) -> None:
    template = repo.add_task(
        date(2026, 3, 1),
        task_data("Stretch", notes="10 minutes", is_recurring=True, recurrence_rule=DAILY),
    )
    generator = RecurrenceGenerator(repo, scheduler, calendar)

    report = generator.generate(date(2026, 3, 4))

    assert [task.day for task in report.created] == [date(2026, 3, 2), date(2026, 3, 3), date(2026, 3, 4)]
    instance = report.created[0]
    assert instance.source_template_id == template.id
    assert instance.name == "Stretch"
    assert instance.notes == "10 minutes"
    assert instance.tags == "personal"
    assert not instance.is_recurring
    assert instance.recurrence_rule is None


def test_second_run_creates_nothing(repo, scheduler, calendar) -> None:
    template = repo.add_task(date(2026, 3, 1), task_data(is_recurring=True, recurrence_rule=DAILY))
    generator = RecurrenceGenerator(repo, scheduler, calendar)

    generator.generate(date(2026, 3, 10))
    report = generator.generate(date(2026, 3, 10))

    assert report.created == []
    days = [day for day, _ in _instances(repo, template.id)]
    assert len(days) == len(set(days)) == 9


def test_extending_the_horizon_only_adds_new_days(repo, scheduler, calendar) -> None:
    template = repo.add_task(date(2026, 3, 1), task_data(is_recurring=True, recurrence_rule=DAILY))
    generator = RecurrenceGenerator(repo, scheduler, calendar)

    generator.generate(date(2026, 3, 3))
    report = generator.generate(date(2026, 3, 5))

    assert [task.day for task in report.created] == [date(2026, 3, 4), date(2026, 3, 5)]
    assert len(_instances(repo, template.id)) == 4


def test_instances_start_normal_whatever_the_template_status(repo, scheduler, calendar) -> None:
    repo.add_task(
        date(2026, 3, 1),
        task_data(status=TaskStatus.COMPLETE, is_recurring=True, recurrence_rule=DAILY),
    )

    report = RecurrenceGenerator(repo, scheduler, calendar).generate(date(2026, 3, 2))

    assert [task.status for task in report.created] == [TaskStatus.NORMAL]


def test_existing_instances_are_never_modified(repo, scheduler, calendar) -> None:
    template = repo.add_task(date(2026, 3, 1), task_data(is_recurring=True, recurrence_rule=DAILY))
    generator = RecurrenceGenerator(repo, scheduler, calendar)
    first = generator.generate(date(2026, 3, 2)).created[0]
    repo.update_task(first.id, {"status": TaskStatus.COMPLETE, "name": "Renamed"})

    weekly = RecurrenceRule(RecurrenceFrequency.WEEKLY, interval=1).to_json()
    repo.update_task(template.id, {"recurrence_rule": weekly})
    generator.generate(date(2026, 3, 8))

    kept = repo.get_task(first.id)
    assert kept.status == TaskStatus.COMPLETE
    assert kept.name == "Renamed"
    assert [day for day, _ in _instances(repo, template.id)] == [date(2026, 3, 2), date(2026, 3, 8)]


def test_undecodable_template_is_skipped(repo, scheduler, calendar, session_factory) -> None:
    good = repo.add_task(date(2026, 3, 1), task_data("Good", is_recurring=True, recurrence_rule=DAILY))
    day_log = repo.get_or_create_day(date(2026, 3, 1))
    with session_factory() as session:
        bad = TaskModel(name="Bad", is_recurring=True, recurrence_rule="{broken", day_log_id=day_log.id)
        session.add(bad)
        session.commit()
        bad_id = bad.id

    report = RecurrenceGenerator(repo, scheduler, calendar).generate(date(2026, 3, 2))

    assert report.skipped_template_ids == [bad_id]
    assert [task.source_template_id for task in report.created] == [good.id]


def test_template_without_day_is_skipped(repo, scheduler, calendar, session_factory) -> None:
    with session_factory() as session:
        orphan = TaskModel(name="Orphan", is_recurring=True, recurrence_rule=DAILY)
        session.add(orphan)
        session.commit()
        orphan_id = orphan.id

    report = RecurrenceGenerator(repo, scheduler, calendar).generate(date(2026, 3, 2))

    assert report.skipped_template_ids == [orphan_id]
    assert report.created == []


def test_persistence_failure_only_aborts_that_template(repo, scheduler, calendar, monkeypatch) -> None:
    first = repo.add_task(date(2026, 3, 1), task_data("First", is_recurring=True, recurrence_rule=DAILY))
    second = repo.add_task(date(2026, 3, 1), task_data("Second", is_recurring=True, recurrence_rule=DAILY))
    original = repo.add_tasks

    def flaky_add_tasks(entries):
        if entries and entries[0][1]["source_template_id"] == first.id:
            raise PersistenceError("disk full")
        return original(entries)

    monkeypatch.setattr(repo, "add_tasks", flaky_add_tasks)

    report = RecurrenceGenerator(repo, scheduler, calendar).generate(date(2026, 3, 2))

    assert report.failed_template_ids == [first.id]
    assert [task.source_template_id for task in report.created] == [second.id]


def test_occurrence_limit_bounds_a_run(repo, scheduler, calendar) -> None:
    repo.add_task(date(2026, 3, 1), task_data(is_recurring=True, recurrence_rule=DAILY))

    report = RecurrenceGenerator(repo, scheduler, calendar, occurrence_limit=3).generate(date(2027, 3, 1))

    assert len(report.created) == 3


def test_reminder_time_of_day_moves_to_each_occurrence(repo, calendar) -> None:
    scheduler = FakeScheduler()
    reminder = datetime(2026, 3, 1, 7, 15, tzinfo=timezone.utc)
    repo.add_task(
        date(2026, 3, 1),
        task_data(is_recurring=True, recurrence_rule=DAILY, reminder_time=reminder),
    )

    report = RecurrenceGenerator(repo, scheduler, calendar).generate(date(2026, 3, 3))

    expected = [
        datetime(2026, 3, 2, 7, 15, tzinfo=timezone.utc),
        datetime(2026, 3, 3, 7, 15, tzinfo=timezone.utc),
    ]
    assert [when for _, when in scheduler.scheduled] == expected
    assert [task.notification_id for task in report.created] == [
        f"reminder-{task.id}" for task in report.created
    ]
    assert repo.get_task(report.created[0].id).notification_id == f"reminder-{report.created[0].id}"


def test_reminder_keeps_local_wall_clock_time(repo) -> None:
    scheduler = FakeScheduler()
    new_york = DayCalendar(ZoneInfo("America/New_York"))
    # 08:00 in New York before the DST switch on 2026-03-08.
    reminder = datetime(2026, 3, 7, 13, 0, tzinfo=timezone.utc)
    repo.add_task(
        date(2026, 3, 7),
        task_data(is_recurring=True, recurrence_rule=DAILY, reminder_time=reminder),
    )

    RecurrenceGenerator(repo, scheduler, new_york).generate(date(2026, 3, 9))

    local_times = [when.astimezone(new_york.tz) for _, when in scheduler.scheduled]
    assert [(when.day, when.hour, when.minute) for when in local_times] == [(8, 8, 0), (9, 8, 0)]
    assert scheduler.scheduled[1][1].astimezone(timezone.utc).hour == 12


def test_scheduler_failure_keeps_the_instance(repo, calendar, session_factory) -> None:
    scheduler = FakeScheduler(fail=True)
    repo.add_task(
        date(2026, 3, 1),
        task_data(
            is_recurring=True,
            recurrence_rule=DAILY,
            reminder_time=datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc),
        ),
    )

    report = RecurrenceGenerator(repo, scheduler, calendar).generate(date(2026, 3, 2))

    assert len(report.created) == 1
    assert report.created[0].notification_id is None
    with session_factory() as session:
        stored = session.scalar(select(TaskModel).where(TaskModel.id == report.created[0].id))
        assert stored.reminder_time == datetime(2026, 3, 2, 9, 0)
        assert stored.notification_id is None


def test_out_of_range_rules_do_not_stop_the_batch(repo, scheduler, calendar, session_factory) -> None:
    good = repo.add_task(date(2026, 3, 1), task_data("Good", is_recurring=True, recurrence_rule=DAILY))
    far_future = repo.get_or_create_day(date(9999, 12, 30))
    start_day = repo.get_day(date(2026, 3, 1))
    with session_factory() as session:
        huge = TaskModel(
            name="Huge interval",
            is_recurring=True,
            recurrence_rule='{"frequency":"daily","interval":5000000}',
            day_log_id=start_day.id,
        )
        session.add(huge)
        session.add(
            TaskModel(
                name="End of calendar",
                is_recurring=True,
                recurrence_rule=DAILY,
                day_log_id=far_future.id,
            )
        )
        session.commit()
        huge_id = huge.id

    report = RecurrenceGenerator(repo, scheduler, calendar).generate(date(2026, 3, 2))

    assert report.skipped_template_ids == [huge_id]
    assert report.failed_template_ids == []
    assert [task.source_template_id for task in report.created] == [good.id]


def test_blank_named_template_is_ignored(repo, scheduler, calendar, session_factory) -> None:
    good = repo.add_task(date(2026, 3, 1), task_data("Good", is_recurring=True, recurrence_rule=DAILY))
    start_day = repo.get_day(date(2026, 3, 1))
    with session_factory() as session:
        session.add(TaskModel(name="   ", is_recurring=True, recurrence_rule=DAILY, day_log_id=start_day.id))
        session.commit()

    report = RecurrenceGenerator(repo, scheduler, calendar).generate(date(2026, 3, 2))

    assert [task.source_template_id for task in report.created] == [good.id]
