"""Shared steps of every notification pipeline."""
from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from .formatter import PullRequestRef, SlackMessage
from .models import PullRequest, Recipient, mentions_string
from .payloads import PullRequestPayload, RepositoryPayload
from .recipients import dedupe_recipients
from .services import NotifierServices
from .text_utils import convert_images_to_slack, convert_mentions_to_slack, extract_github_mentions


@dataclass
class ActionContext:
    """One GitHub Actions invocation: the event payload plus run metadata and action inputs."""

    payload: dict[str, Any]
    run_id: int | None = None
    ref: str = ""
    sha: str = ""
    inputs: dict[str, str] = field(default_factory=dict)

    def input(self, name: str) -> str:
        return str(self.inputs.get(name) or "").strip()


def pull_request_ref(repository: RepositoryPayload, pr: PullRequest | PullRequestPayload) -> PullRequestRef:
    url = pr.html_url or f"{repository.url}/pull/{pr.number}"
    return PullRequestRef(url=url, title=pr.title or f"#{pr.number}")


class EventPipeline:
    """Resolve recipients -> group by channel -> one message per channel."""

    logger_name = "event_pipeline"

    def __init__(self, services: NotifierServices):
        self.services = services
        self.logger = logging.getLogger(self.logger_name)

    async def resolve_recipients(self, recipients: list[Recipient]) -> list[Recipient]:
        slack_ids = await self.services.identity.resolve_batch(
            (recipient.github_login for recipient in recipients), "id"
        )
        return [
            Recipient(github_login=recipient.github_login, slack_id=slack_ids.get(recipient.github_login))
            for recipient in recipients
        ]

    async def display_name(self, github_login: str) -> str:
        return await self.services.identity.resolve_one(github_login, "realName")

    async def render_body(self, body: str | None) -> str:
        text = body or ""
        try:
            logins = extract_github_mentions(text)
            if logins:
                slack_ids = await self.services.identity.resolve_batch(logins, "id")
                text = convert_mentions_to_slack(text, slack_ids)
            return convert_images_to_slack(text)
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("comment body rewrite failed error=%s; sending as-is", exc)
            return body or ""

    async def notify_recipients(
        self,
        recipients: list[Recipient],
        build_message: Callable[[str], SlackMessage],
        *,
        label: str,
    ) -> int:
        """Send `build_message(mentions)` to each recipient channel; returns the message count."""
        recipients = dedupe_recipients(recipients)
        if not recipients:
            self.logger.info("no recipients for %s; nothing to send", label)
            return 0
        resolved = await self.resolve_recipients(recipients)
        groups = await self.services.router.group_by_channel(resolved)
        messages = {
            channel_id: build_message(mentions_string(members))
            for channel_id, members in groups.items()
        }
        self.logger.info(
            "sending %s channels=%s recipients=%s",
            label,
            list(messages),
            [recipient.github_login for recipient in resolved],
        )
        await self.services.sender.send_groups(messages)
        return len(messages)
