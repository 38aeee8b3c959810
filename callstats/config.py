"""Deployment settings resolved from ``CALLSTATS_*`` environment variables."""

from __future__ import annotations

import logging
import math
import os
import re
from dataclasses import dataclass, field
from datetime import time
from pathlib import Path
from typing import Mapping
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from callstats.errors import ConfigurationError

logger = logging.getLogger(__name__)

WEEKDAYS: tuple[str, ...] = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
POLICIES: tuple[str, ...] = ("dedup", "simple")
LOCALES: tuple[str, ...] = ("en", "ru")

DEFAULT_SOURCE_LINE_IDS = ("74112243067", "reg114284", "73832349859", "79014699873")
DEFAULT_ROLE_FILTER = "хантер"
DEFAULT_DEPARTMENT_IDS = (47,)
DEFAULT_TIMEZONE = "Europe/Moscow"
DEFAULT_RUN_TIMES = "12:00"
DEFAULT_WORK_DAYS = "mon-fri"
DEFAULT_ACTIVITY_LOG_PATH = "logs/history_daily.log"


@dataclass(slots=True, frozen=True)
class ScheduleSpec:
    times: tuple[time, ...]
    work_days: tuple[str, ...] = WEEKDAYS

    @property
    def day_of_week(self) -> str:
        """Cron ``day_of_week`` expression for the configured days."""
        if set(self.work_days) == set(WEEKDAYS):
            return "*"
        return ",".join(self.work_days)

    def describe(self) -> str:
        clock = ", ".join(t.strftime("%H:%M") for t in self.times)
        return f"{clock} on {self.day_of_week}"


@dataclass(slots=True, frozen=True)
class AppConfig:
    webhook_url: str
    destinations: tuple[str, ...]
    schedule: ScheduleSpec
    source_line_ids: tuple[str, ...] = DEFAULT_SOURCE_LINE_IDS
    role_filter: str = DEFAULT_ROLE_FILTER
    department_ids: tuple[int, ...] = DEFAULT_DEPARTMENT_IDS
    missed_code: str = "304"
    success_code: str = "200"
    timezone: str = DEFAULT_TIMEZONE
    policy: str = "dedup"
    phone_prefix: str = "7"
    report_locale: str = "en"
    activity_log_path: Path = field(default_factory=lambda: Path(DEFAULT_ACTIVITY_LOG_PATH))
    activity_log_max_lines: int = 5000
    http_timeout: float | None = 60.0

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def _split(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_run_times(value: str) -> tuple[time, ...]:
    times: list[time] = []
    for token in _split(value):
        match = re.fullmatch(r"(\d{1,2}):(\d{2})", token)
        if not match:
            raise ConfigurationError(f"Run time must be HH:MM, got {token!r}")
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour > 23 or minute > 59:
            raise ConfigurationError(f"Run time out of range: {token!r}")
        times.append(time(hour, minute))
    if not times:
        raise ConfigurationError("At least one run time is required")
    return tuple(sorted(set(times)))


def resolve_work_days(value: str) -> tuple[str, ...]:
    """Expand ``*``, ranges such as ``mon-fri`` and comma lists into weekday tokens."""
    value = value.strip().lower()
    if value in ("", "*"):
        return WEEKDAYS

    days: list[str] = []
    for token in _split(value):
        if "-" in token:
            first, _, last = token.partition("-")
            if first not in WEEKDAYS or last not in WEEKDAYS:
                raise ConfigurationError(f"Unknown weekday range: {token!r}")
            start, end = WEEKDAYS.index(first), WEEKDAYS.index(last)
            if start > end:
                raise ConfigurationError(f"Weekday range runs backwards: {token!r}")
            days.extend(WEEKDAYS[start : end + 1])
        elif token in WEEKDAYS:
            days.append(token)
        else:
            raise ConfigurationError(f"Unknown weekday: {token!r}")
    return tuple(day for day in WEEKDAYS if day in days)


def _parse_int_list(name: str, value: str) -> tuple[int, ...]:
    try:
        return tuple(int(item) for item in _split(value))
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a comma-separated list of integers") from exc


def _parse_choice(name: str, value: str, choices: tuple[str, ...]) -> str:
    value = value.strip().lower()
    if value not in choices:
        raise ConfigurationError(f"{name} must be one of {', '.join(choices)}; got {value!r}")
    return value


def _parse_timeout(value: str) -> float | None:
    """Seconds to wait on each REST call; the literal ``none`` waits forever."""
    if value.strip().lower() == "none":
        return None
    try:
        timeout = float(value)
    except ValueError as exc:
        raise ConfigurationError(f"CALLSTATS_HTTP_TIMEOUT must be a number, got {value!r}") from exc
    if not math.isfinite(timeout) or timeout <= 0:
        raise ConfigurationError(f"CALLSTATS_HTTP_TIMEOUT must be a positive number or 'none', got {value!r}")
    return timeout


def load_config(environ: Mapping[str, str] | None = None) -> AppConfig:
    """Build and validate :class:`AppConfig` from the environment.

    Raises :class:`ConfigurationError` on the first malformed setting so the
    process refuses to start instead of failing at the first scheduled run.
    """
    env = os.environ if environ is None else environ

    def get(name: str, default: str = "") -> str:
        return env.get(name, default).strip()

    webhook_url = get("CALLSTATS_WEBHOOK_URL")
    if not webhook_url:
        raise ConfigurationError("CALLSTATS_WEBHOOK_URL is required")

    destinations = tuple(_split(get("CALLSTATS_DESTINATIONS")))
    if not destinations:
        raise ConfigurationError("CALLSTATS_DESTINATIONS must list at least one chat id")

    timezone_name = get("CALLSTATS_TIMEZONE", DEFAULT_TIMEZONE)
    try:
        ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigurationError(f"Unknown timezone: {timezone_name!r}") from exc

    source_line_ids = tuple(_split(get("CALLSTATS_SOURCE_LINE_IDS"))) or DEFAULT_SOURCE_LINE_IDS
    department_ids = (
        _parse_int_list("CALLSTATS_DEPARTMENT_IDS", get("CALLSTATS_DEPARTMENT_IDS"))
        or DEFAULT_DEPARTMENT_IDS
    )

    max_lines_raw = get("CALLSTATS_ACTIVITY_LOG_MAX_LINES", "5000")
    if not max_lines_raw.isdigit() or int(max_lines_raw) < 1:
        raise ConfigurationError("CALLSTATS_ACTIVITY_LOG_MAX_LINES must be a positive integer")

    missed_code = get("CALLSTATS_MISSED_CODE", "304")
    success_code = get("CALLSTATS_SUCCESS_CODE", "200")
    if not missed_code or not success_code or missed_code == success_code:
        raise ConfigurationError("Missed and success failure codes must be distinct and non-empty")

    phone_prefix = get("CALLSTATS_PHONE_PREFIX", "7")
    if not re.fullmatch(r"\d+", phone_prefix, flags=re.ASCII):
        raise ConfigurationError(f"CALLSTATS_PHONE_PREFIX must be digits only, got {phone_prefix!r}")

    role_filter = get("CALLSTATS_ROLE_FILTER", DEFAULT_ROLE_FILTER)
    if not role_filter:
        raise ConfigurationError("CALLSTATS_ROLE_FILTER must not be empty")

    config = AppConfig(
        webhook_url=webhook_url.rstrip("/"),
        destinations=destinations,
        schedule=ScheduleSpec(
            times=parse_run_times(get("CALLSTATS_RUN_TIMES", DEFAULT_RUN_TIMES)),
            work_days=resolve_work_days(get("CALLSTATS_WORK_DAYS", DEFAULT_WORK_DAYS)),
        ),
        source_line_ids=source_line_ids,
        role_filter=role_filter,
        department_ids=department_ids,
        missed_code=missed_code,
        success_code=success_code,
        timezone=timezone_name,
        policy=_parse_choice("CALLSTATS_POLICY", get("CALLSTATS_POLICY", "dedup"), POLICIES),
        phone_prefix=phone_prefix,
        report_locale=_parse_choice("CALLSTATS_REPORT_LOCALE", get("CALLSTATS_REPORT_LOCALE", "en"), LOCALES),
        activity_log_path=Path(get("CALLSTATS_ACTIVITY_LOG_PATH", DEFAULT_ACTIVITY_LOG_PATH)),
        activity_log_max_lines=int(max_lines_raw),
        http_timeout=_parse_timeout(get("CALLSTATS_HTTP_TIMEOUT", "60")),
    )
    logger.info(
        "Resolved config (timezone=%s, policy=%s, schedule=%s, destinations=%s)",
        config.timezone,
        config.policy,
        config.schedule.describe(),
        ",".join(config.destinations),
    )
    return config
