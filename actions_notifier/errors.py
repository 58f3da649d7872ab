"""Exception taxonomy for the notifier runtime."""
from __future__ import annotations

from typing import Any


class NotifierError(RuntimeError):
    """Base error; `code` names the failure kind for run annotations."""

    code = "NOTIFIER_ERROR"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(NotifierError):
    code = "CONFIGURATION_ERROR"

    def __init__(self, message: str, missing_fields: list[str] | None = None):
        self.missing_fields = list(missing_fields or [])
        super().__init__(message, details={"missing_fields": self.missing_fields})


class PayloadValidationError(NotifierError):
    """Inbound payload is missing fields required by its event kind."""

    code = "PAYLOAD_VALIDATION_ERROR"

    def __init__(self, message: str, *, fields: list[str] | None = None):
        self.fields = list(fields or [])
        super().__init__(message, details={"fields": self.fields})


class UpstreamAPIError(NotifierError):
    code = "UPSTREAM_API_ERROR"

    def __init__(
        self,
        message: str,
        *,
        endpoint: str = "",
        status: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.endpoint = endpoint
        self.status = status
        merged = {"endpoint": endpoint, "status": status}
        merged.update(details or {})
        super().__init__(message, details=merged)


class GitHubAPIError(UpstreamAPIError):
    code = "GITHUB_API_ERROR"


class CommentNotFoundError(GitHubAPIError):
    """Review comment could not be located in the pull request threads."""

    code = "COMMENT_NOT_FOUND"


class SlackAPIError(UpstreamAPIError):
    code = "SLACK_API_ERROR"


class NotificationDeliveryError(SlackAPIError):
    """One or more sends failed after every send was attempted."""

    code = "NOTIFICATION_DELIVERY_ERROR"

    def __init__(self, failures: list[tuple[str, Exception]]):
        self.failures = list(failures)
        parts = [f"{channel}: {exc}" for channel, exc in self.failures]
        super().__init__(
            f"failed to deliver {len(self.failures)} notification(s): " + "; ".join(parts),
            endpoint="chat.postMessage",
            details={"channels": sorted({channel for channel, _exc in self.failures})},
        )


class UnknownEventKindError(NotifierError):
    code = "UNKNOWN_EVENT_KIND"

    def __init__(self, kind: str, supported: list[str]):
        self.kind = kind
        self.supported = list(supported)
        super().__init__(
            f"unknown event kind {kind!r}; supported kinds: {', '.join(self.supported)}",
            details={"kind": kind, "supported": self.supported},
        )
