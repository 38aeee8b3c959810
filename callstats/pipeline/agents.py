"""Active agent roster lookup."""

from __future__ import annotations

from typing import Sequence

from callstats.adapters.bitrix import RestCaller, error_description
from callstats.domain.models import Agent
from callstats.errors import RetrievalError
from callstats.utils.logging import INCOMING, OUTGOING, get_activity_logger, log_activity

USER_METHOD = "user.get"


def fetch_agents(
    client: RestCaller,
    *,
    role_filter: str,
    department_ids: Sequence[int],
) -> list[Agent]:
    activity = get_activity_logger()
    params = {
        "FILTER": {
            "ACTIVE": "Y",
            "%WORK_POSITION": role_filter,
            "UF_DEPARTMENT": list(department_ids),
        },
        "SELECT": ["ID", "NAME", "LAST_NAME"],
    }
    log_activity(activity, direction=OUTGOING, message=f"{USER_METHOD} for the agent roster")
    response = client.call(USER_METHOD, params)

    if "error" in response:
        description = error_description(response)
        log_activity(activity, direction=OUTGOING, message=f"Failed to fetch agents: {description}")
        raise RetrievalError(
            f"Error fetching agents: {description}",
            method=USER_METHOD,
            error=str(response.get("error")),
            description=description,
        )

    agents = [
        Agent(
            id=str(row.get("ID")),
            display_name=f"{row.get('NAME') or ''} {row.get('LAST_NAME') or ''}".strip(),
        )
        for row in response.get("result") or []
        if row.get("ID") is not None
    ]
    log_activity(activity, direction=INCOMING, message=f"Received {len(agents)} agents")
    return agents


def resolve_agents(
    client: RestCaller,
    *,
    role_filter: str,
    department_ids: Sequence[int],
) -> dict[str, str]:
    """Return the roster as an ``agent id -> display name`` mapping."""
    agents = fetch_agents(client, role_filter=role_filter, department_ids=department_ids)
    return {agent.id: agent.display_name for agent in agents}
