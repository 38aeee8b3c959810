from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping


class Direction(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


INBOUND_CALL_TYPE = 2


@dataclass(slots=True, frozen=True)
class RawCallRecord:
    id: str
    calling_user_id: str | None
    external_phone_number: str
    duration_seconds: int
    start_timestamp: str
    call_type_code: int
    failure_code: str | None = None
    portal_number: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> RawCallRecord:
        """Map a ``voximplant.statistic.get`` row onto a record."""
        user_id = payload.get("PORTAL_USER_ID")
        failure_code = payload.get("CALL_FAILED_CODE")
        return cls(
            id=str(payload.get("ID") or ""),
            calling_user_id=str(user_id) if user_id not in (None, "", 0, "0") else None,
            external_phone_number=str(payload.get("PHONE_NUMBER") or ""),
            duration_seconds=_as_int(payload.get("CALL_DURATION")),
            start_timestamp=str(payload.get("CALL_START_DATE") or ""),
            call_type_code=_as_int(payload.get("CALL_TYPE")),
            failure_code=str(failure_code) if failure_code not in (None, "") else None,
            portal_number=str(payload["PORTAL_NUMBER"]) if payload.get("PORTAL_NUMBER") else None,
        )


@dataclass(slots=True, frozen=True)
class Agent:
    id: str
    display_name: str


@dataclass(slots=True, frozen=True)
class AttributedCall:
    agent_id: str
    agent_name: str
    normalized_phone: str
    duration_seconds: int
    start_timestamp: datetime
    direction: Direction
    failure_code: str | None = None

    @property
    def is_inbound(self) -> bool:
        return self.direction is Direction.INBOUND


@dataclass(slots=True, frozen=True)
class AgentStats:
    total_calls: int = 0
    inbound: int = 0
    outbound: int = 0
    missed_inbound: int = 0
    missed_outbound: int = 0
    unique_numbers: int = 0
    unanswered_numbers: tuple[str, ...] | None = None

    @property
    def unanswered_count(self) -> int | None:
        if self.unanswered_numbers is None:
            return None
        return len(self.unanswered_numbers)


@dataclass(slots=True, frozen=True)
class StatisticsSnapshot:
    policy: str
    total_calls: int = 0
    total_inbound: int = 0
    total_outbound: int = 0
    missed_inbound: int = 0
    missed_outbound: int = 0
    unique_numbers: int = 0
    unanswered_count: int | None = None
    agents: Mapping[str, AgentStats] = field(default_factory=lambda: MappingProxyType({}))


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
