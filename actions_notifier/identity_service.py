"""GitHub login -> Slack identity resolution with a per-run directory cache."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from typing import Any, Protocol

from .concurrency import SingleFlight
from .models import SlackIdentity, SlackProperty
from .name_matching import find_best_match

DIRECTORY_KEY = "slack_directory"


class SlackDirectory(Protocol):
    def list_all_users(self) -> list[SlackIdentity]: ...


class GitHubUserDirectory(Protocol):
    def fetch_user_real_name(self, login: str) -> str: ...


class IdentityResolutionService:
    """Resolves Slack ids / display names for GitHub logins.

    The Slack directory is loaded once and frozen for the lifetime of the
    service. Resolved values are memoized per (login, property) until
    `clear_cache` is called. Every failure degrades to the login itself.
    """

    def __init__(
        self,
        *,
        slack_directory: SlackDirectory,
        github_directory: GitHubUserDirectory,
        skip_users: Iterable[str] = (),
        name_priority: Mapping[str, str] | None = None,
    ):
        self.slack_directory = slack_directory
        self.github_directory = github_directory
        self.skip_users = list(skip_users)
        self.name_priority = dict(name_priority or {})
        self.logger = logging.getLogger("identity_resolution")
        self._flights = SingleFlight()
        self._directory: list[SlackIdentity] | None = None
        self._real_names: dict[str, str] = {}
        self._resolved: dict[tuple[str, str], str] = {}

    async def resolve_one(self, github_login: str, prop: SlackProperty = "id") -> str:
        if not github_login:
            self.logger.error("invalid github login for resolution: %r", github_login)
            return github_login
        cache_key = (github_login, prop)
        if cache_key in self._resolved:
            return self._resolved[cache_key]
        try:
            return await self._flights.do(cache_key, lambda: self._resolve_uncached(github_login, prop))
        except Exception as exc:  # noqa: BLE001
            self.logger.warning(
                "identity resolution failed login=%s property=%s error=%s; using login",
                github_login,
                prop,
                exc,
            )
            return github_login

    async def resolve_batch(self, github_logins: Iterable[str], prop: SlackProperty = "id") -> dict[str, str]:
        logins = list(dict.fromkeys(login for login in github_logins if login))
        values = await asyncio.gather(*(self.resolve_one(login, prop) for login in logins))
        return dict(zip(logins, values))

    async def load_directory(self) -> list[SlackIdentity]:
        if self._directory is not None:
            return self._directory
        return await self._flights.do(DIRECTORY_KEY, self._fetch_directory)

    def clear_cache(self) -> None:
        self._directory = None
        self._real_names.clear()
        self._resolved.clear()
        self.logger.info("identity cache cleared")

    def cache_stats(self) -> dict[str, Any]:
        return {
            "directory_loaded": self._directory is not None,
            "directory_size": len(self._directory or []),
            "resolved_entries": len(self._resolved),
            "real_name_entries": len(self._real_names),
        }

    async def _fetch_directory(self) -> list[SlackIdentity]:
        members = await asyncio.to_thread(self.slack_directory.list_all_users)
        self._directory = list(members)
        self.logger.info("slack directory cached members=%s", len(self._directory))
        return self._directory

    async def _real_name(self, github_login: str) -> str:
        if github_login not in self._real_names:
            self._real_names[github_login] = await asyncio.to_thread(
                self.github_directory.fetch_user_real_name, github_login
            )
        return self._real_names[github_login]

    async def _resolve_uncached(self, github_login: str, prop: SlackProperty) -> str:
        self.logger.info("resolving identity login=%s property=%s", github_login, prop)
        directory, real_name = await asyncio.gather(self.load_directory(), self._real_name(github_login))
        match = find_best_match(
            directory,
            real_name,
            self.name_priority,
            skip_users=self.skip_users,
        )
        if match is None:
            self.logger.warning(
                "no slack identity for login=%s real_name=%r; using login",
                github_login,
                real_name,
            )
            value = github_login
        else:
            value = match.identity.property_value(prop)
            self.logger.info(
                "resolved login=%s property=%s slack_id=%s match=%s",
                github_login,
                prop,
                match.identity.id,
                match.match_type.value,
            )
        self._resolved[(github_login, prop)] = value
        return value
