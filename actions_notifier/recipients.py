"""Recipient set computation for comment and review events."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from typing import Protocol

from .models import GitHubIdentity, PullRequest, Recipient, Review


class PullRequestDirectory(Protocol):
    def fetch_team_members(self, team_slug: str) -> list[GitHubIdentity]: ...

    def fetch_pull_request_details(self, repo: str, pr_number: int) -> PullRequest: ...

    def fetch_pull_request_reviews(self, repo: str, pr_number: int) -> list[Review]: ...

    def fetch_comment_thread_participants(
        self, repo: str, pr_number: int, comment_id: int, is_code_comment: bool
    ) -> list[str]: ...


def dedupe_logins(logins: Iterable[str]) -> list[str]:
    """Drop empty and repeated logins; the first occurrence keeps its position."""
    return list(dict.fromkeys(login for login in logins if login))


def dedupe_recipients(recipients: Iterable[Recipient]) -> list[Recipient]:
    seen: set[str] = set()
    result: list[Recipient] = []
    for recipient in recipients:
        if not recipient.github_login or recipient.github_login in seen:
            continue
        seen.add(recipient.github_login)
        result.append(recipient)
    return result


def to_recipients(logins: Iterable[str]) -> list[Recipient]:
    return [Recipient(github_login=login) for login in dedupe_logins(logins)]


def collect_reviewers(
    requested_reviewers: Iterable[str],
    requested_team_members: Iterable[Iterable[str]],
    reviews: Iterable[Review],
) -> list[str]:
    """Individually requested, then requested-team members, then submitted reviewers."""
    ordered: list[str] = list(requested_reviewers)
    for members in requested_team_members:
        ordered.extend(members)
    ordered.extend(review.reviewer for review in reviews)
    return dedupe_logins(ordered)


def thread_reply_recipients(participants: Iterable[str], comment_author: str, pr_author: str) -> list[str]:
    distinct = dedupe_logins(participants)
    if len(distinct) <= 1:
        return [pr_author] if pr_author and pr_author != comment_author else []
    return [login for login in distinct if login != comment_author]


def pr_comment_recipients(reviewers: Iterable[str], commenter: str, pr_author: str) -> list[str]:
    reviewer_set = dedupe_logins(reviewers)
    if commenter == pr_author:
        return [login for login in reviewer_set if login != pr_author]
    others = [login for login in reviewer_set if login != commenter]
    if pr_author and pr_author not in reviewer_set:
        return dedupe_logins([pr_author, *others])
    return others


def team_review_recipients(team_members: Iterable[str], pr_author: str) -> list[str]:
    return [login for login in dedupe_logins(team_members) if login != pr_author]


class RecipientAggregator:
    """Fetches the GitHub data each event kind needs and applies the recipient rules."""

    def __init__(self, *, github: PullRequestDirectory):
        self.github = github
        self.logger = logging.getLogger("recipient_aggregator")

    async def team_member_logins(self, team_slug: str) -> list[str]:
        try:
            members = await asyncio.to_thread(self.github.fetch_team_members, team_slug)
        except Exception as exc:  # noqa: BLE001
            self.logger.error("failed to fetch team members team=%s error=%s", team_slug, exc)
            return []
        return dedupe_logins(member.login for member in members)

    async def reviewer_logins(self, repo: str, pr: PullRequest) -> list[str]:
        reviews, team_members = await asyncio.gather(
            asyncio.to_thread(self.github.fetch_pull_request_reviews, repo, pr.number),
            asyncio.gather(*(self.team_member_logins(slug) for slug in pr.requested_teams)),
        )
        return collect_reviewers(pr.requested_reviewers, team_members, reviews)

    async def code_comment_recipients(
        self,
        *,
        repo: str,
        pr_number: int,
        comment_id: int,
        comment_author: str,
        pr_author: str,
    ) -> list[Recipient]:
        participants = await asyncio.to_thread(
            self.github.fetch_comment_thread_participants,
            repo,
            pr_number,
            comment_id,
            True,
        )
        logins = thread_reply_recipients(participants, comment_author, pr_author)
        self.logger.info(
            "code comment recipients comment=%s participants=%s recipients=%s",
            comment_id,
            len(participants),
            logins,
        )
        return to_recipients(logins)

    async def pr_comment_recipients(
        self,
        *,
        repo: str,
        pr: PullRequest,
        commenter: str,
    ) -> list[Recipient]:
        reviewers = await self.reviewer_logins(repo, pr)
        logins = pr_comment_recipients(reviewers, commenter, pr.author)
        self.logger.info(
            "pr comment recipients pr=%s reviewers=%s recipients=%s",
            pr.number,
            reviewers,
            logins,
        )
        return to_recipients(logins)

    async def team_review_recipients(self, *, team_slug: str, pr_author: str) -> list[Recipient]:
        members = await self.team_member_logins(team_slug)
        return to_recipients(team_review_recipients(members, pr_author))
