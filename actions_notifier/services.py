"""Wires gateways, caches and pipelines for one notifier run."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from .channel_router import ChannelRouter
from .config_loader import NotifierConfig
from .identity_service import IdentityResolutionService
from .notification_sender import NotificationSender
from .recipients import RecipientAggregator
from .tools.github_tools import GitHubGateway
from .tools.slack_tools import SlackGateway


@dataclass
class NotifierServices:
    config: NotifierConfig
    github: GitHubGateway
    slack: SlackGateway
    identity: IdentityResolutionService
    router: ChannelRouter
    aggregator: RecipientAggregator
    sender: NotificationSender

    def clear_caches(self) -> None:
        self.identity.clear_cache()
        self.router.clear_cache()


def build_services(
    config: NotifierConfig,
    *,
    github: GitHubGateway | None = None,
    slack: SlackGateway | None = None,
) -> NotifierServices:
    github = github or GitHubGateway(
        token=config.github_token,
        organization=config.organization,
        timeout_seconds=config.timeout_seconds,
        retry_policy=config.retry_policy,
    )
    slack = slack or SlackGateway(
        bot_token=config.slack_token,
        timeout_seconds=config.timeout_seconds,
        retry_policy=config.retry_policy,
    )
    services = NotifierServices(
        config=config,
        github=github,
        slack=slack,
        identity=IdentityResolutionService(
            slack_directory=slack,
            github_directory=github,
            skip_users=config.skip_users,
            name_priority=config.name_priority,
        ),
        router=ChannelRouter(
            team_directory=github,
            team_slugs=config.team_slugs,
            team_channels=config.team_channels,
            default_channel_id=config.default_channel_id,
        ),
        aggregator=RecipientAggregator(github=github),
        sender=NotificationSender(poster=slack),
    )
    logging.getLogger("services").info(
        "notifier services ready organization=%s teams=%s",
        config.organization,
        len(config.team_slugs),
    )
    return services
