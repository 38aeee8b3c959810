"""Attribute raw records to known agents and order them chronologically."""

from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from typing import Iterable, Mapping

from callstats.domain.models import INBOUND_CALL_TYPE, AttributedCall, Direction, RawCallRecord
from callstats.utils.logging import INCOMING, get_activity_logger, log_activity
from callstats.utils.phone import DEFAULT_PREFIX, normalize_phone

logger = logging.getLogger(__name__)


def parse_start_timestamp(value: str, default_tz: tzinfo = timezone.utc) -> datetime:
    """Parse a portal timestamp; naive values are read in ``default_tz``.

    Unparseable values sort before every real call.
    """
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        logger.warning("Unparseable call start timestamp %r", value)
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=default_tz)
    return parsed


def classify_direction(call_type_code: int) -> Direction:
    return Direction.INBOUND if call_type_code == INBOUND_CALL_TYPE else Direction.OUTBOUND


def attribute_calls(
    records: Iterable[RawCallRecord],
    roster: Mapping[str, str],
    *,
    phone_prefix: str = DEFAULT_PREFIX,
    default_tz: tzinfo = timezone.utc,
) -> list[AttributedCall]:
    """Keep calls placed by roster agents, oldest first.

    Records whose user id is missing or outside ``roster`` are dropped. The sort
    is stable, so calls sharing a start time keep the provider's order.
    """
    attributed: list[AttributedCall] = []
    for record in records:
        agent_id = record.calling_user_id
        if not agent_id or agent_id not in roster:
            continue
        attributed.append(
            AttributedCall(
                agent_id=agent_id,
                agent_name=roster[agent_id],
                normalized_phone=normalize_phone(record.external_phone_number, phone_prefix),
                duration_seconds=record.duration_seconds,
                start_timestamp=parse_start_timestamp(record.start_timestamp, default_tz),
                direction=classify_direction(record.call_type_code),
                failure_code=record.failure_code,
            )
        )

    attributed.sort(key=lambda call: call.start_timestamp)
    log_activity(
        get_activity_logger(),
        direction=INCOMING,
        message=f"Kept {len(attributed)} calls placed by roster agents",
    )
    return attributed
