"""Paginated retrieval of call-detail records."""

from __future__ import annotations

from typing import Any, Sequence

from callstats.adapters.bitrix import RestCaller, error_description
from callstats.domain.models import RawCallRecord
from callstats.errors import RetrievalError
from callstats.utils.logging import INCOMING, OUTGOING, get_activity_logger, log_activity

STATISTIC_METHOD = "voximplant.statistic.get"


def fetch_raw_calls(
    client: RestCaller,
    *,
    date_from: str,
    date_to: str,
    source_line_ids: Sequence[str],
) -> list[RawCallRecord]:
    """Return every record started in ``[date_from, date_to)`` on the given lines.

    Pages are requested one after another using the ``next`` offset from the
    previous response until the portal stops returning one. An error payload on
    any page fails the whole retrieval.
    """
    activity = get_activity_logger()
    records: list[RawCallRecord] = []
    start = 0

    while True:
        params = {
            "FILTER": {
                ">=CALL_START_DATE": date_from,
                "<CALL_START_DATE": date_to,
                "PORTAL_NUMBER": list(source_line_ids),
            },
            "SORT": "CALL_START_DATE",
            "ORDER": "DESC",
            "start": start,
        }
        log_activity(activity, direction=OUTGOING, message=f"{STATISTIC_METHOD} (start={start})")
        response = client.call(STATISTIC_METHOD, params)

        if "error" in response:
            description = error_description(response)
            log_activity(activity, direction=OUTGOING, message=f"Failed to fetch calls: {description}")
            raise RetrievalError(
                f"Error fetching calls: {description}",
                method=STATISTIC_METHOD,
                error=str(response.get("error")),
                description=description,
            )

        records.extend(RawCallRecord.from_payload(row) for row in response.get("result") or [])

        next_start = _as_cursor(response.get("next"))
        if next_start <= 0:
            break
        start = next_start

    log_activity(activity, direction=INCOMING, message=f"Received {len(records)} raw call records")
    return records


def _as_cursor(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
