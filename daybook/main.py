from __future__ import annotations

import argparse
import logging
import sys
import threading
from dataclasses import dataclass
from datetime import timedelta

from daybook.config import Settings, load_settings
from daybook.domain.calendar import DayCalendar, utc_now
from daybook.infra.db import init_db, make_engine, make_session_factory
from daybook.infra.logging import setup_logging
from daybook.infra.notifications import LogNotificationScheduler, NotificationScheduler
from daybook.infra.repository import DayLogRepository
from daybook.services.anchor_processor import AnchorCarryForwardProcessor
from daybook.services.recurrence_generator import RecurrenceGenerator
from daybook.services.task_service import TaskService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Services:
    calendar: DayCalendar
    repo: DayLogRepository
    generator: RecurrenceGenerator
    anchors: AnchorCarryForwardProcessor
    tasks: TaskService


def build_services(
    settings: Settings,
    repo: DayLogRepository,
    scheduler: NotificationScheduler,
) -> Services:
    calendar = DayCalendar.for_zone(settings.timezone)
    # Generator runs, anchor runs and user edits share one mutator lock.
    lock = threading.Lock()
    generator = RecurrenceGenerator(
        repo,
        scheduler,
        calendar,
        overflow=settings.month_overflow,
        occurrence_limit=settings.occurrence_limit,
        lock=lock,
    )
    anchors = AnchorCarryForwardProcessor(repo, calendar, lock=lock)
    tasks = TaskService(
        repo,
        generator,
        scheduler,
        calendar,
        horizon_days=settings.recurrence_horizon_days,
        lock=lock,
    )
    return Services(calendar, repo, generator, anchors, tasks)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="daybook", description="Recurring task and anchor maintenance")
    commands = parser.add_subparsers(dest="command", required=True)

    anchors = commands.add_parser("anchors", help="carry yesterday's unfinished anchors into today")
    anchors.add_argument("--force", action="store_true", help="run even if today was already processed")

    generate = commands.add_parser("generate", help="materialize recurring task instances")
    generate.add_argument("--days", type=int, default=None, help="horizon in days from today")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = load_settings()
    setup_logging(settings)

    engine = make_engine(settings.database_url)
    try:
        init_db(engine)
    except Exception:  # noqa: BLE001
        logger.exception("Database is not reachable")
        return 1

    repo = DayLogRepository(make_session_factory(engine))
    services = build_services(settings, repo, LogNotificationScheduler())

    if args.command == "anchors":
        runner = services.anchors.process if args.force else services.anchors.process_if_new_day
        created = runner()
        logger.info("%d anchor task(s) carried forward", len(created))
        return 0

    days = args.days if args.days is not None else settings.recurrence_horizon_days
    horizon = services.calendar.day_of(utc_now()) + timedelta(days=days)
    report = services.generator.generate(horizon)
    logger.info(
        "%d instance(s) created, %d template(s) skipped, %d failed",
        len(report.created),
        len(report.skipped_template_ids),
        len(report.failed_template_ids),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
