"""Exception types raised by the call statistics job."""

from __future__ import annotations


class CallStatsError(RuntimeError):
    """Base class for failures raised while producing a report."""


class ConfigurationError(CallStatsError):
    """Raised at startup when deployment settings are missing or malformed."""


class RemoteCallError(CallStatsError):
    """A REST method answered with an error payload."""

    def __init__(self, message: str, *, method: str, error: str | None = None, description: str | None = None) -> None:
        super().__init__(message)
        self.method = method
        self.error = error
        self.description = description


class RetrievalError(RemoteCallError):
    """Raised when call records or the agent roster cannot be loaded."""


class DeliveryError(RemoteCallError):
    """Raised when a report cannot be posted to one destination."""

    def __init__(self, message: str, *, destination: str, **kwargs: str | None) -> None:
        super().__init__(message, **kwargs)
        self.destination = destination
