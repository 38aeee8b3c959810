"""Bitrix24 inbound-webhook REST transport."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import requests

logger = logging.getLogger(__name__)

Payload = dict[str, Any]


class RestCaller(Protocol):
    def call(self, method: str, params: Payload) -> Payload: ...


def error_description(payload: Payload) -> str:
    return str(payload.get("error_description") or payload.get("error") or "unknown error")


class BitrixClient:
    """Call REST methods through an inbound webhook URL.

    Every response is returned in the portal's own shape: ``{"result": ..., "next": N}``
    on success or ``{"error": ..., "error_description": ...}`` on failure. Transport
    problems are folded into the error shape so callers check a single key.
    """

    def __init__(
        self,
        webhook_url: str,
        *,
        timeout: float | None = 60.0,
        session: requests.Session | None = None,
    ) -> None:
        self.webhook_url = webhook_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def call(self, method: str, params: Payload) -> Payload:
        url = f"{self.webhook_url}/{method}.json"
        logger.debug("POST %s", method)
        try:
            response = self.session.post(url, json=params, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("Transport failure calling %s: %s", method, exc)
            return {"error": "TRANSPORT_ERROR", "error_description": str(exc)}

        try:
            payload = response.json()
        except ValueError:
            return {
                "error": f"HTTP_{response.status_code}",
                "error_description": f"Non-JSON response from {method} (status {response.status_code})",
            }

        if not isinstance(payload, dict):
            return {"error": "INVALID_RESPONSE", "error_description": f"Unexpected payload type from {method}"}
        if response.status_code >= 400 and "error" not in payload:
            payload = {"error": f"HTTP_{response.status_code}", "error_description": response.reason or ""}
        return payload

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> BitrixClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
