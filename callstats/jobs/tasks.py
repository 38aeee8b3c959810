"""Task functions executed by the scheduler."""

from __future__ import annotations

import logging
from contextlib import ExitStack
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any

from callstats.adapters.bitrix import BitrixClient, RestCaller
from callstats.config import AppConfig, load_config
from callstats.errors import DeliveryError
from callstats.notify.chat import send_message
from callstats.pipeline.agents import resolve_agents
from callstats.pipeline.attribution import attribute_calls
from callstats.pipeline.fetcher import fetch_raw_calls
from callstats.reporting.report import render_text
from callstats.reporting.statistics import aggregate, build_policy
from callstats.utils.logging import OUTGOING, get_activity_logger, log_activity

logger = logging.getLogger(__name__)

PORTAL_DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


@dataclass(slots=True, frozen=True)
class RunWindow:
    report_date: date
    start: datetime
    end: datetime

    @property
    def date_from(self) -> str:
        return self.start.strftime(PORTAL_DATETIME_FORMAT)

    @property
    def date_to(self) -> str:
        return self.end.strftime(PORTAL_DATETIME_FORMAT)


def resolve_window(tz: tzinfo, *, now: datetime | None = None, report_date: date | None = None) -> RunWindow:
    """Return the local-time window to report on.

    Today's report covers local midnight up to ``now``; a past date covers the
    whole day up to the following midnight.
    """
    now = (now or datetime.now(tz=tz)).astimezone(tz)
    target = report_date or now.date()
    start = datetime.combine(target, time.min, tzinfo=tz)
    end = now if target == now.date() else datetime.combine(target + timedelta(days=1), time.min, tzinfo=tz)
    return RunWindow(report_date=target, start=start, end=end)


def run_call_statistics(
    config: AppConfig,
    *,
    rest_client: RestCaller | None = None,
    now: datetime | None = None,
    report_date: date | None = None,
    dry_run: bool = False,
) -> dict[str, Any]:
    """Fetch, attribute, aggregate and render one report, then deliver it.

    Retrieval errors propagate to the caller. A delivery failure is logged and
    the remaining destinations are still attempted. A client built here is
    closed when the run ends; an injected ``rest_client`` is left to its owner.
    """
    with ExitStack() as stack:
        client = rest_client
        if client is None:
            client = stack.enter_context(BitrixClient(config.webhook_url, timeout=config.http_timeout))
        return _build_and_deliver(config, client, now=now, report_date=report_date, dry_run=dry_run)


def _build_and_deliver(
    config: AppConfig,
    client: RestCaller,
    *,
    now: datetime | None,
    report_date: date | None,
    dry_run: bool,
) -> dict[str, Any]:
    activity = get_activity_logger()
    window = resolve_window(config.tz, now=now, report_date=report_date)
    log_activity(activity, direction=OUTGOING, message=f"Date range: from {window.date_from} to {window.date_to}")

    raw_calls = fetch_raw_calls(
        client,
        date_from=window.date_from,
        date_to=window.date_to,
        source_line_ids=config.source_line_ids,
    )
    roster = resolve_agents(client, role_filter=config.role_filter, department_ids=config.department_ids)
    calls = attribute_calls(raw_calls, roster, phone_prefix=config.phone_prefix, default_tz=config.tz)
    policy = build_policy(config.policy, missed_code=config.missed_code, success_code=config.success_code)
    snapshot = aggregate(calls, policy)
    report = render_text(snapshot, window.report_date, config.report_locale)
    logger.info(
        "Aggregated %s calls for %s agents under %s policy",
        snapshot.total_calls,
        len(snapshot.agents),
        snapshot.policy,
    )

    delivered: list[str] = []
    failed: list[str] = []
    if dry_run:
        logger.info("Dry-run: report for %s not sent", window.report_date.isoformat())
    else:
        for destination in config.destinations:
            try:
                send_message(client, report, destination)
            except DeliveryError as exc:
                logger.error("Delivery to %s failed: %s", exc.destination, exc)
                failed.append(exc.destination)
                continue
            delivered.append(str(destination))

    return {
        "report_date": window.report_date.isoformat(),
        "policy": snapshot.policy,
        "raw_calls": len(raw_calls),
        "attributed_calls": len(calls),
        "snapshot": snapshot,
        "report": report,
        "delivered": delivered,
        "failed": failed,
    }


def call_statistics_job(
    *,
    config: AppConfig | None = None,
    rest_client: RestCaller | None = None,
) -> dict[str, Any] | None:
    """Scheduled entrypoint: run once, log any failure and never raise."""
    activity = get_activity_logger()
    log_activity(activity, direction=OUTGOING, message="Starting scheduled call statistics run")
    try:
        resolved = config or load_config()
        result = run_call_statistics(resolved, rest_client=rest_client)
    except Exception as exc:  # the next scheduled tick is the retry
        log_activity(activity, direction=OUTGOING, message=f"Run failed: {exc}", level=logging.ERROR)
        logger.exception("Call statistics run failed")
        return None

    logger.info(
        "Run completed: report_date=%s attributed=%s delivered=%s failed=%s",
        result["report_date"],
        result["attributed_calls"],
        ",".join(result["delivered"]) or "none",
        ",".join(result["failed"]) or "none",
    )
    return result
