"""Deliver rendered reports to portal chats."""

from __future__ import annotations

from callstats.adapters.bitrix import RestCaller, error_description
from callstats.errors import DeliveryError
from callstats.utils.logging import INCOMING, OUTGOING, get_activity_logger, log_activity

MESSAGE_METHOD = "im.message.add"


def send_message(client: RestCaller, message: str, destination: str | int, *, system: bool = True) -> None:
    """Post ``message`` to one chat; raise :class:`DeliveryError` if the portal refuses it."""
    activity = get_activity_logger()
    dialog_id = str(destination)
    params = {
        "DIALOG_ID": dialog_id,
        "MESSAGE": message,
        "SYSTEM": "Y" if system else "N",
    }
    log_activity(activity, direction=OUTGOING, message=f"Sending report to chat {dialog_id}")
    response = client.call(MESSAGE_METHOD, params)

    if "error" in response:
        description = error_description(response)
        log_activity(activity, direction=OUTGOING, message=f"Failed to send to chat {dialog_id}: {description}")
        raise DeliveryError(
            f"Error sending message to {dialog_id}: {description}",
            destination=dialog_id,
            method=MESSAGE_METHOD,
            error=str(response.get("error")),
            description=description,
        )

    log_activity(activity, direction=INCOMING, message=f"Report delivered to chat {dialog_id}")
