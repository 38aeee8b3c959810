from __future__ import annotations

from datetime import datetime, time
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest
from apscheduler.events import EVENT_JOB_EXECUTED, JobExecutionEvent

from callstats.config import ScheduleSpec, load_config, parse_run_times, resolve_work_days
from callstats.errors import ConfigurationError
from callstats.jobs import scheduler
from callstats.jobs.tasks import call_statistics_job, resolve_window

MSK = ZoneInfo("Europe/Moscow")

BASE_ENV = {
    "CALLSTATS_WEBHOOK_URL": "https://portal.example/rest/1/token/",
    "CALLSTATS_DESTINATIONS": "199421, chat77",
}


def test_resolve_work_days_expands_ranges_and_lists() -> None:
    assert resolve_work_days("mon-fri") == ("mon", "tue", "wed", "thu", "fri")
    assert resolve_work_days("Fri,mon") == ("mon", "fri")
    assert resolve_work_days("*") == ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


def test_resolve_work_days_rejects_unknown_tokens() -> None:
    with pytest.raises(ConfigurationError):
        resolve_work_days("tue,garbage")


def test_parse_run_times_sorts_and_validates() -> None:
    assert parse_run_times("18:00, 09:30") == (time(9, 30), time(18, 0))
    with pytest.raises(ConfigurationError):
        parse_run_times("25:00")
    with pytest.raises(ConfigurationError):
        parse_run_times("noon")


def test_load_config_defaults() -> None:
    config = load_config(BASE_ENV)

    assert config.webhook_url == "https://portal.example/rest/1/token"
    assert config.destinations == ("199421", "chat77")
    assert config.schedule.times == (time(12, 0),)
    assert config.schedule.day_of_week == "mon,tue,wed,thu,fri"
    assert config.missed_code == "304"
    assert config.success_code == "200"
    assert config.policy == "dedup"
    assert config.department_ids == (47,)
    assert config.activity_log_path == Path("logs/history_daily.log")
    assert config.http_timeout == 60.0


def test_load_config_twice_daily_variant() -> None:
    config = load_config(
        {
            **BASE_ENV,
            "CALLSTATS_RUN_TIMES": "09:00,18:00",
            "CALLSTATS_WORK_DAYS": "*",
            "CALLSTATS_POLICY": "simple",
            "CALLSTATS_DEPARTMENT_IDS": "47, 12",
            "CALLSTATS_SOURCE_LINE_IDS": "74112243067,reg114284",
            "CALLSTATS_HTTP_TIMEOUT": "none",
        }
    )

    assert config.schedule.times == (time(9, 0), time(18, 0))
    assert config.schedule.day_of_week == "*"
    assert config.policy == "simple"
    assert config.department_ids == (47, 12)
    assert config.source_line_ids == ("74112243067", "reg114284")
    assert config.http_timeout is None


@pytest.mark.parametrize(
    "overrides",
    [
        {"CALLSTATS_WEBHOOK_URL": ""},
        {"CALLSTATS_DESTINATIONS": " , "},
        {"CALLSTATS_POLICY": "fancy"},
        {"CALLSTATS_DEPARTMENT_IDS": "47,sales"},
        {"CALLSTATS_TIMEZONE": "Mars/Olympus"},
        {"CALLSTATS_MISSED_CODE": "200"},
        {"CALLSTATS_ACTIVITY_LOG_MAX_LINES": "0"},
        {"CALLSTATS_REPORT_LOCALE": "de"},
        {"CALLSTATS_HTTP_TIMEOUT": "soon"},
        {"CALLSTATS_HTTP_TIMEOUT": "-5"},
        {"CALLSTATS_HTTP_TIMEOUT": "0"},
        {"CALLSTATS_HTTP_TIMEOUT": "nan"},
        {"CALLSTATS_HTTP_TIMEOUT": "inf"},
        {"CALLSTATS_HTTP_TIMEOUT": ""},
        {"CALLSTATS_PHONE_PREFIX": "+7"},
        {"CALLSTATS_PHONE_PREFIX": "abc"},
        {"CALLSTATS_ROLE_FILTER": ""},
    ],
)
def test_load_config_rejects_malformed_settings(overrides: dict[str, str]) -> None:
    with pytest.raises(ConfigurationError):
        load_config({**BASE_ENV, **overrides})


def test_next_fire_time_skips_weekend() -> None:
    schedule = ScheduleSpec(times=(time(12, 0),), work_days=resolve_work_days("mon-fri"))
    friday_afternoon = datetime(2026, 10, 16, 13, 0, tzinfo=MSK)

    assert scheduler.next_fire_time(schedule, friday_afternoon, MSK) == datetime(2026, 10, 19, 12, 0, tzinfo=MSK)


def test_next_fire_time_same_day_before_run_time() -> None:
    schedule = ScheduleSpec(times=(time(12, 0),), work_days=resolve_work_days("mon-fri"))
    monday_morning = datetime(2026, 10, 19, 8, 30, tzinfo=MSK)

    assert scheduler.next_fire_time(schedule, monday_morning, MSK) == datetime(2026, 10, 19, 12, 0, tzinfo=MSK)


def test_next_fire_time_is_strictly_after_now() -> None:
    schedule = ScheduleSpec(times=(time(12, 0),), work_days=resolve_work_days("mon-fri"))
    exactly_noon = datetime(2026, 10, 19, 12, 0, tzinfo=MSK)

    assert scheduler.next_fire_time(schedule, exactly_noon, MSK) == datetime(2026, 10, 20, 12, 0, tzinfo=MSK)


def test_twice_daily_schedule_runs_every_day() -> None:
    schedule = ScheduleSpec(times=(time(9, 0), time(18, 0)), work_days=resolve_work_days("*"))
    saturday_noon = datetime(2026, 10, 17, 12, 0, tzinfo=MSK)

    upcoming = scheduler.upcoming_fire_times(schedule, saturday_noon, MSK, count=3)

    assert upcoming == [
        datetime(2026, 10, 17, 18, 0, tzinfo=MSK),
        datetime(2026, 10, 18, 9, 0, tzinfo=MSK),
        datetime(2026, 10, 18, 18, 0, tzinfo=MSK),
    ]


def test_build_scheduler_registers_single_coalescing_job(app_config) -> None:
    built = scheduler.build_scheduler(app_config)

    job = built.get_job(scheduler.JOB_ID)
    assert job is not None
    assert job.coalesce is True
    assert job.kwargs == {"config": app_config}


def test_resolve_window_today_runs_from_midnight_to_now() -> None:
    now = datetime(2026, 10, 19, 12, 0, 5, tzinfo=MSK)

    window = resolve_window(MSK, now=now)

    assert window.date_from == "2026-10-19T00:00:00"
    assert window.date_to == "2026-10-19T12:00:05"


def test_resolve_window_past_date_covers_whole_day() -> None:
    now = datetime(2026, 10, 19, 12, 0, tzinfo=MSK)

    window = resolve_window(MSK, now=now, report_date=datetime(2026, 10, 16).date())

    assert window.date_from == "2026-10-16T00:00:00"
    assert window.date_to == "2026-10-17T00:00:00"


def test_job_never_raises_on_configuration_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CALLSTATS_WEBHOOK_URL", raising=False)

    assert call_statistics_job() is None


def test_load_config_accepts_positive_timeout_and_digit_prefix() -> None:
    config = load_config({**BASE_ENV, "CALLSTATS_HTTP_TIMEOUT": "12.5", "CALLSTATS_PHONE_PREFIX": "380"})

    assert config.http_timeout == 12.5
    assert config.phone_prefix == "380"


def test_job_state_listener_logs_next_wakeup(app_config, caplog: pytest.LogCaptureFixture) -> None:
    built = scheduler.build_scheduler(app_config)
    event = JobExecutionEvent(
        EVENT_JOB_EXECUTED,
        scheduler.JOB_ID,
        "default",
        datetime(2026, 10, 19, 12, 0, tzinfo=MSK),
    )

    with caplog.at_level("INFO"):
        scheduler._log_job_state(built, event, app_config)

    messages = [record.getMessage() for record in caplog.records]
    assert any(message.startswith("Report tick at 2026-10-19T12:00:00+03:00 finished") for message in messages)
    assert any(message.startswith("Sleeping until ") for message in messages)
