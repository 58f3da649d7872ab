"""Slack Web API gateway for the user directory and channel messages."""
from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field, field_validator
from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError

from ..errors import SlackAPIError
from ..models import SlackIdentity
from ..retry import RetryPolicy, call_with_retry

USERS_PAGE_LIMIT = 200


class SlackGateway:
    """Slack gateway with real Web API calls."""

    def __init__(
        self,
        *,
        bot_token: str,
        timeout_seconds: float = 30.0,
        retry_policy: RetryPolicy | None = None,
        client: WebClient | None = None,
    ):
        self.bot_token = bot_token
        self.logger = logging.getLogger("slack_gateway")
        self.timeout_seconds = timeout_seconds
        self.retry_policy = retry_policy or RetryPolicy()
        if client is None and not self.bot_token:
            raise SlackAPIError("SLACK_TOKEN must be configured for SlackGateway.")
        self.client = client or WebClient(token=self.bot_token, timeout=int(self.timeout_seconds))

    def list_all_users(self) -> list[SlackIdentity]:
        members: list[SlackIdentity] = []
        cursor: str | None = None
        while True:
            response = self._call(
                "users.list",
                lambda cursor=cursor: self.client.users_list(cursor=cursor, limit=USERS_PAGE_LIMIT),
            )
            for raw in response.get("members") or []:
                identity = _identity_from_member(raw)
                if identity is not None:
                    members.append(identity)
            cursor = (response.get("response_metadata") or {}).get("next_cursor") or None
            if not cursor:
                break
        self.logger.info("loaded slack directory members=%s", len(members))
        return members

    def post_message(
        self,
        channel_id: str,
        text: str,
        attachments: list[dict[str, Any]] | None = None,
    ) -> dict[str, str]:
        message = SlackMessageInput.model_validate(
            {"channel_id": channel_id, "text": text, "attachments": attachments or []}
        )
        response = self._call(
            "chat.postMessage",
            lambda: self.client.chat_postMessage(
                channel=message.channel_id,
                text=message.text,
                attachments=message.attachments,
                mrkdwn=True,
            ),
        )
        if not response.get("ok", True):
            raise SlackAPIError(
                f"Slack API chat.postMessage failed: {response.get('error')}",
                endpoint="chat.postMessage",
                details={"channel": message.channel_id},
            )
        return _message_ts_from_response(response=response, method_name="chat.postMessage")

    def _call(self, method_name: str, fn: Any) -> Any:
        try:
            return call_with_retry(
                fn,
                policy=self.retry_policy,
                is_retryable=_is_retryable,
                on_retry=lambda attempt, exc: self.logger.warning(
                    "retrying slack %s attempt=%s error=%s", method_name, attempt, _slack_error_code(exc)
                ),
            )
        except SlackApiError as exc:
            raise _api_error_from_slack(method_name, exc) from exc


def _identity_from_member(raw: Any) -> SlackIdentity | None:
    if not isinstance(raw, dict) or not raw.get("id"):
        return None
    profile = raw.get("profile") or {}
    display_name = str(profile.get("display_name") or "").strip() or None
    return SlackIdentity(
        id=str(raw["id"]),
        real_name=str(raw.get("real_name") or profile.get("real_name") or "").strip(),
        display_name=display_name,
        is_deleted=bool(raw.get("deleted")),
    )


def _is_retryable(exc: Exception) -> bool:
    if not isinstance(exc, SlackApiError):
        return False
    status_code = getattr(getattr(exc, "response", None), "status_code", None)
    return status_code == 429 or (isinstance(status_code, int) and status_code >= 500)


def _slack_error_code(exc: Exception) -> str:
    response = getattr(exc, "response", None)
    if response is None:
        return str(exc)
    code = response.get("error")
    return str(code or str(exc))


def _api_error_from_slack(method_name: str, exc: SlackApiError) -> SlackAPIError:
    response = getattr(exc, "response", None)
    if response is None:
        return SlackAPIError(f"Slack API {method_name} failed: {exc}", endpoint=method_name)
    status_code = getattr(response, "status_code", None)
    error_code = response.get("error")
    if status_code:
        return SlackAPIError(
            f"Slack API {method_name} failed with HTTP {status_code}: {error_code}",
            endpoint=method_name,
            status=status_code,
        )
    return SlackAPIError(f"Slack API {method_name} failed: {error_code}", endpoint=method_name)


def _message_ts_from_response(*, response: Any, method_name: str) -> dict[str, str]:
    message_ts = response.get("ts")
    if not message_ts:
        raise SlackAPIError(f"Slack API {method_name} did not return message ts.", endpoint=method_name)
    return {"message_ts": str(message_ts)}


class SlackMessageInput(BaseModel):
    channel_id: str = Field(..., min_length=1, description="Target Slack channel id.")
    text: str = Field(..., min_length=1, description="Message body.")
    attachments: list[dict[str, Any]] = Field(default_factory=list, description="Legacy attachments.")

    @field_validator("channel_id", "text")
    @classmethod
    def _strip_required(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("must be non-empty")
        return stripped
