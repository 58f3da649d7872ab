"""Team-based Slack channel routing."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from .concurrency import SingleFlight
from .models import ChannelGroup, GitHubIdentity, Recipient

TEAMS_KEY = "team_members"


class TeamDirectory(Protocol):
    def fetch_team_members(self, team_slug: str) -> list[GitHubIdentity]: ...


class ChannelRouter:
    """Maps GitHub logins to channels via the first routed team they belong to."""

    def __init__(
        self,
        *,
        team_directory: TeamDirectory,
        team_slugs: Iterable[str],
        team_channels: Mapping[str, str],
        default_channel_id: str,
    ):
        self.team_directory = team_directory
        self.team_slugs = list(team_slugs)
        self.team_channels = dict(team_channels)
        self.default_channel_id = default_channel_id
        self.logger = logging.getLogger("channel_router")
        self._flights = SingleFlight()
        self._members: dict[str, frozenset[str]] | None = None

    async def select_channel(self, github_login: str | None) -> str:
        if not github_login:
            self.logger.warning("empty github login for channel selection; using default channel")
            return self.default_channel_id
        try:
            team_slug = await self.find_team_slug(github_login)
        except Exception as exc:  # noqa: BLE001
            self.logger.error("channel selection failed login=%s error=%s", github_login, exc)
            return self.default_channel_id
        return self.channel_for_team(team_slug)

    def channel_for_team(self, team_slug: str | None) -> str:
        if team_slug and team_slug in self.team_channels:
            return self.team_channels[team_slug]
        return self.default_channel_id

    async def find_team_slug(self, github_login: str) -> str | None:
        members = await self.load_team_members()
        for team_slug in self.team_slugs:
            if github_login in members.get(team_slug, frozenset()):
                return team_slug
        return None

    async def group_by_channel(self, recipients: list[Recipient]) -> ChannelGroup:
        channels = await asyncio.gather(
            *(self.select_channel(recipient.github_login) for recipient in recipients)
        )
        groups: ChannelGroup = {}
        for recipient, channel_id in zip(recipients, channels):
            groups.setdefault(channel_id, []).append(recipient)
        return groups

    async def load_team_members(self) -> dict[str, frozenset[str]]:
        if self._members is not None:
            return self._members
        return await self._flights.do(TEAMS_KEY, self._fetch_all_teams)

    def clear_cache(self) -> None:
        self._members = None
        self.logger.info("team membership cache cleared")

    def cache_stats(self) -> dict[str, Any]:
        return {
            "loaded": self._members is not None,
            "teams": {slug: len(members) for slug, members in (self._members or {}).items()},
        }

    async def _fetch_all_teams(self) -> dict[str, frozenset[str]]:
        results = await asyncio.gather(*(self._fetch_team(slug) for slug in self.team_slugs))
        self._members = dict(zip(self.team_slugs, results))
        self.logger.info("team memberships loaded teams=%s", len(self._members))
        return self._members

    async def _fetch_team(self, team_slug: str) -> frozenset[str]:
        try:
            members = await asyncio.to_thread(self.team_directory.fetch_team_members, team_slug)
        except Exception as exc:  # noqa: BLE001
            self.logger.error("failed to load team members team=%s error=%s", team_slug, exc)
            return frozenset()
        return frozenset(member.login for member in members if member.login)
