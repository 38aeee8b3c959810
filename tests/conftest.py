from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

import pytest

from callstats.config import AppConfig, ScheduleSpec, parse_run_times, resolve_work_days
from callstats.domain.models import AttributedCall, Direction
from callstats.utils.logging import ActivityLogHandler, get_activity_logger

BASE_TIME = datetime(2026, 10, 19, 9, 0, tzinfo=timezone(timedelta(hours=3)))


class FakeBitrix:
    """In-memory stand-in for the REST webhook.

    ``responses`` maps a method name to a list of payloads returned in order;
    the last payload repeats once the list is exhausted.
    """

    def __init__(self, responses: dict[str, list[dict[str, Any]]] | None = None) -> None:
        self.responses = responses or {}
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def call(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((method, params))
        queue = self.responses.get(method) or [{"result": []}]
        seen = sum(1 for name, _ in self.calls if name == method)
        return queue[min(seen, len(queue)) - 1]

    def params_for(self, method: str) -> list[dict[str, Any]]:
        return [params for name, params in self.calls if name == method]


def make_call(
    agent: str,
    phone: str,
    *,
    minute: int = 0,
    inbound: bool = True,
    code: str | None = "200",
    agent_id: str | None = None,
) -> AttributedCall:
    return AttributedCall(
        agent_id=agent_id or agent,
        agent_name=agent,
        normalized_phone=phone,
        duration_seconds=30,
        start_timestamp=BASE_TIME + timedelta(minutes=minute),
        direction=Direction.INBOUND if inbound else Direction.OUTBOUND,
        failure_code=code,
    )


def make_row(
    row_id: int,
    *,
    user_id: str | None = "1",
    phone: str = "+7 (916) 123-45-67",
    start: str = "2026-10-19T09:00:00+03:00",
    call_type: int = 2,
    code: str | None = "200",
) -> dict[str, Any]:
    return {
        "ID": str(row_id),
        "PORTAL_USER_ID": user_id,
        "PORTAL_NUMBER": "74112243067",
        "PHONE_NUMBER": phone,
        "CALL_DURATION": "42",
        "CALL_START_DATE": start,
        "CALL_TYPE": str(call_type),
        "CALL_FAILED_CODE": code,
    }


def pages(rows: Iterable[dict[str, Any]], size: int) -> list[dict[str, Any]]:
    """Split ``rows`` into portal-style pages with ``next`` offsets."""
    rows = list(rows)
    chunks = [rows[i : i + size] for i in range(0, len(rows), size)] or [[]]
    payloads = []
    for index, chunk in enumerate(chunks):
        payload: dict[str, Any] = {"result": chunk, "total": len(rows)}
        if index < len(chunks) - 1:
            payload["next"] = (index + 1) * size
        payloads.append(payload)
    return payloads


@pytest.fixture
def fake_bitrix() -> FakeBitrix:
    return FakeBitrix()


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    return AppConfig(
        webhook_url="https://portal.example/rest/1/token",
        destinations=("199421", "chat77"),
        schedule=ScheduleSpec(times=parse_run_times("12:00"), work_days=resolve_work_days("mon-fri")),
        source_line_ids=("74112243067",),
        department_ids=(47,),
        activity_log_path=tmp_path / "logs" / "history_daily.log",
    )


@pytest.fixture(autouse=True)
def _reset_activity_logger():
    yield
    logger = get_activity_logger()
    for handler in list(logger.handlers):
        if isinstance(handler, ActivityLogHandler):
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(logging.NOTSET)
