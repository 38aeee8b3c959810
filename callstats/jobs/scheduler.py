"""Scheduler process for the recurring call statistics report.

Run separately from CLI/manual flows using:
    python -m callstats.jobs.scheduler
"""

from __future__ import annotations

import argparse
import logging
from datetime import datetime, timedelta, tzinfo

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobExecutionEvent
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.base import BaseTrigger
from apscheduler.triggers.combining import OrTrigger
from apscheduler.triggers.cron import CronTrigger

from callstats.config import AppConfig, ScheduleSpec, load_config
from callstats.jobs.tasks import call_statistics_job
from callstats.utils.logging import OUTGOING, configure_activity_log, get_activity_logger, log_activity

JOB_ID = "call_statistics_report"
MISFIRE_GRACE_SECONDS = 1800

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Configure process-wide logging for scheduler mode."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def configure_runtime(config: AppConfig) -> None:
    configure_logging()
    configure_activity_log(
        config.activity_log_path,
        max_lines=config.activity_log_max_lines,
        locale=config.report_locale,
        tz=config.tz,
    )


def build_trigger(schedule: ScheduleSpec, tz: tzinfo) -> BaseTrigger:
    """One cron trigger per run time, combined when there are several."""
    triggers = [
        CronTrigger(day_of_week=schedule.day_of_week, hour=run_at.hour, minute=run_at.minute, timezone=tz)
        for run_at in schedule.times
    ]
    if len(triggers) == 1:
        return triggers[0]
    return OrTrigger(triggers)


def next_fire_time(schedule: ScheduleSpec, now: datetime, tz: tzinfo) -> datetime | None:
    """Return the first scheduled run strictly after ``now``."""
    trigger = build_trigger(schedule, tz)
    return trigger.get_next_fire_time(None, now + timedelta(microseconds=1))


def upcoming_fire_times(schedule: ScheduleSpec, now: datetime, tz: tzinfo, count: int = 1) -> list[datetime]:
    times: list[datetime] = []
    cursor = now
    while len(times) < count:
        fire_time = next_fire_time(schedule, cursor, tz)
        if fire_time is None:
            break
        times.append(fire_time)
        cursor = fire_time
    return times


def _log_job_state(scheduler: BlockingScheduler, event: JobExecutionEvent, config: AppConfig) -> None:
    """Report how the tick ended and when the report fires next."""
    tz = config.tz
    job = scheduler.get_job(event.job_id)
    upcoming = getattr(job, "next_run_time", None) or next_fire_time(config.schedule, datetime.now(tz=tz), tz)
    wake_at = upcoming.astimezone(tz).isoformat() if upcoming else "never"
    fired_at = (event.scheduled_run_time or datetime.now(tz=tz)).astimezone(tz).isoformat()

    if event.exception is not None:
        logger.error("Report tick at %s raised; waking again at %s", fired_at, wake_at, exc_info=event.exception)
    else:
        logger.info("Report tick at %s finished; waking again at %s", fired_at, wake_at)
    log_activity(get_activity_logger(), direction=OUTGOING, message=f"Sleeping until {wake_at}")


def build_scheduler(config: AppConfig) -> BlockingScheduler:
    """Build and configure the scheduler instance."""
    tz = config.tz
    scheduler = BlockingScheduler(timezone=tz)

    trigger = build_trigger(config.schedule, tz)
    scheduler.add_job(
        call_statistics_job,
        trigger=trigger,
        kwargs={"config": config},
        id=JOB_ID,
        replace_existing=True,
        coalesce=True,
        max_instances=1,
        misfire_grace_time=MISFIRE_GRACE_SECONDS,
    )

    scheduler.add_listener(
        lambda event: _log_job_state(scheduler, event, config),
        EVENT_JOB_EXECUTED | EVENT_JOB_ERROR,
    )

    next_run = next_fire_time(config.schedule, datetime.now(tz=tz), tz)
    logger.info(
        "Registered %s for %s %s (next run: %s)",
        JOB_ID,
        config.schedule.describe(),
        config.timezone,
        next_run.isoformat() if next_run else "none",
    )

    return scheduler


def main() -> None:
    """Entrypoint for a dedicated scheduler process."""
    parser = argparse.ArgumentParser(description="Run the call statistics report scheduler")
    parser.add_argument(
        "--once",
        action="store_true",
        help=f"Execute {JOB_ID} immediately and exit (manual mode)",
    )
    args = parser.parse_args()

    config = load_config()
    configure_runtime(config)

    if args.once:
        logger.info("Running in manual mode: executing %s once", JOB_ID)
        call_statistics_job(config=config)
        logger.info("Manual execution of %s completed", JOB_ID)
        return

    scheduler = build_scheduler(config)
    log_activity(
        get_activity_logger(),
        direction=OUTGOING,
        message=f"Scheduler started, reporting to {', '.join(config.destinations)}",
    )
    scheduler.start()


if __name__ == "__main__":
    main()
