"""Posts formatted messages to Slack channels."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from .errors import NotificationDeliveryError
from .formatter import SlackMessage


class MessagePoster(Protocol):
    def post_message(
        self,
        channel_id: str,
        text: str,
        attachments: list[dict[str, Any]] | None = None,
    ) -> dict[str, str]: ...


class NotificationSender:
    def __init__(self, *, poster: MessagePoster):
        self.poster = poster
        self.logger = logging.getLogger("notification_sender")

    async def send(self, channel_id: str, message: SlackMessage) -> dict[str, str]:
        result = await asyncio.to_thread(
            self.poster.post_message,
            channel_id,
            message.text,
            message.attachments,
        )
        self.logger.info("notification sent channel=%s ts=%s", channel_id, result.get("message_ts"))
        return result

    async def send_many(self, deliveries: Sequence[tuple[str, SlackMessage]]) -> list[dict[str, str]]:
        """Send every (channel, message) pair concurrently; failures are raised after all attempts."""
        outcomes = await asyncio.gather(
            *(self.send(channel_id, message) for channel_id, message in deliveries),
            return_exceptions=True,
        )
        delivered: list[dict[str, str]] = []
        failures: list[tuple[str, Exception]] = []
        for (channel_id, _message), outcome in zip(deliveries, outcomes):
            if isinstance(outcome, Exception):
                self.logger.error("notification failed channel=%s error=%s", channel_id, outcome)
                failures.append((channel_id, outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                delivered.append(outcome)
        if failures:
            raise NotificationDeliveryError(failures)
        return delivered

    async def send_groups(self, messages: Mapping[str, SlackMessage]) -> list[dict[str, str]]:
        return await self.send_many(list(messages.items()))
