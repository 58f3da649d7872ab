"""Review lifecycle notifications: approvals, change requests, review requests, reminders."""
from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from .errors import PayloadValidationError
from .event_pipeline import EventPipeline, pull_request_ref
from .formatter import (
    SlackMessage,
    approval_message,
    changes_requested_message,
    review_request_message,
    scheduled_review_message,
)
from .models import PullRequest, Review, ReviewState
from .payloads import (
    GitHubUserPayload,
    RepositoryEvent,
    RepositoryPayload,
    ReviewEvent,
    ReviewRequestedEvent,
    parse_payload,
)
from .recipients import team_review_recipients, to_recipients


def reviewer_statuses(requested_reviewers: Iterable[str], reviews: Iterable[Review]) -> dict[str, str]:
    """Latest submitted state per reviewer, then still-requested reviewers as AWAITING."""
    statuses: dict[str, str] = {}
    for review in sorted(reviews, key=lambda item: item.submitted_at or ""):
        statuses.pop(review.reviewer, None)
        statuses[review.reviewer] = review.state
    for login in requested_reviewers:
        statuses.setdefault(login, ReviewState.AWAITING.value)
    return statuses


@dataclass
class ReviewReminder:
    pr: PullRequest
    status_line: str
    team_slug: str | None


class ReviewEventPipeline(EventPipeline):
    logger_name = "review_events"

    async def handle_approve(self, payload: Any) -> int:
        return await self._handle_review(payload, kind="approve")

    async def handle_changes_requested(self, payload: Any) -> int:
        return await self._handle_review(payload, kind="changes_requested")

    async def _handle_review(self, payload: Any, *, kind: str) -> int:
        event = parse_payload(ReviewEvent, payload, kind=kind)
        pr_author = _pr_author(event.pull_request.user, kind=kind)
        reviewer = event.review.user.login
        self.logger.info(
            "%s event repo=%s pr=%s reviewer=%s",
            kind,
            event.repository.name,
            event.pull_request.number,
            reviewer,
        )
        recipients = to_recipients(team_review_recipients([pr_author], reviewer))
        if not recipients:
            self.logger.info("reviewer %s is the PR author; nothing to send", reviewer)
            return 0
        reviewer_name, body = await asyncio.gather(
            self.display_name(reviewer),
            self.render_body(event.review.body),
        )
        ref = pull_request_ref(event.repository, event.pull_request)
        build = approval_message if kind == "approve" else changes_requested_message
        return await self.notify_recipients(
            recipients,
            lambda mentions: build(
                ref,
                reviewer_name=reviewer_name,
                mentions=mentions,
                review_body=body,
                review_url=event.review.html_url,
            ),
            label=kind,
        )

    async def handle_review_requested(self, payload: Any) -> int:
        event = parse_payload(ReviewRequestedEvent, payload, kind="review_requested")
        pr_author = _pr_author(event.pull_request.user, kind="review_requested")
        requester = event.sender.login if event.sender is not None else pr_author
        if event.requested_team is not None:
            self.logger.info(
                "team review requested repo=%s pr=%s team=%s",
                event.repository.name,
                event.pull_request.number,
                event.requested_team.slug,
            )
            recipients = await self.services.aggregator.team_review_recipients(
                team_slug=event.requested_team.slug,
                pr_author=pr_author,
            )
        elif event.requested_reviewer is not None:
            self.logger.info(
                "review requested repo=%s pr=%s reviewer=%s",
                event.repository.name,
                event.pull_request.number,
                event.requested_reviewer.login,
            )
            recipients = to_recipients(team_review_recipients([event.requested_reviewer.login], pr_author))
        else:
            raise PayloadValidationError(
                "review_requested payload needs requested_reviewer or requested_team",
                fields=["requested_reviewer", "requested_team"],
            )
        if not recipients:
            self.logger.info("review request on PR %s has no recipients", event.pull_request.number)
            return 0
        requester_name = await self.display_name(requester)
        ref = pull_request_ref(event.repository, event.pull_request)
        return await self.notify_recipients(
            recipients,
            lambda mentions: review_request_message(ref, requester_name=requester_name, mentions=mentions),
            label="review request",
        )

    async def handle_schedule(self, payload: Any) -> int:
        event = parse_payload(RepositoryEvent, payload, kind="schedule")
        repo = event.repository.name
        pull_requests = await asyncio.to_thread(self.services.github.fetch_open_pull_requests, repo)
        ready = [pr for pr in pull_requests if not pr.draft]
        self.logger.info(
            "scheduled review reminder repo=%s open=%s ready=%s",
            repo,
            len(pull_requests),
            len(ready),
        )
        if not ready:
            return 0
        reminders = await asyncio.gather(*(self._reminder(repo, pr) for pr in ready))
        deliveries = self._order_by_team(event.repository, reminders)
        await self.services.sender.send_many(deliveries)
        return len(deliveries)

    async def _reminder(self, repo: str, pr: PullRequest) -> ReviewReminder:
        details, reviews = await asyncio.gather(
            asyncio.to_thread(self.services.github.fetch_pull_request_details, repo, pr.number),
            asyncio.to_thread(self.services.github.fetch_pull_request_reviews, repo, pr.number),
        )
        statuses = reviewer_statuses(details.requested_reviewers, reviews)
        slack_ids = await self.services.identity.resolve_batch(statuses, "id")
        status_line = ", ".join(
            f"<@{slack_ids.get(login) or login}> ({state})" for login, state in statuses.items()
        )
        team_slug: str | None = None
        if details.author:
            try:
                team_slug = await self.services.router.find_team_slug(details.author)
            except Exception as exc:  # noqa: BLE001
                self.logger.error("team lookup failed author=%s error=%s", details.author, exc)
        return ReviewReminder(pr=details, status_line=status_line, team_slug=team_slug)

    def _order_by_team(
        self,
        repository: RepositoryPayload,
        reminders: list[ReviewReminder],
    ) -> list[tuple[str, SlackMessage]]:
        order = {slug: index for index, slug in enumerate(self.services.router.team_slugs)}
        ranked = sorted(
            reminders,
            key=lambda reminder: order.get(reminder.team_slug or "", len(order)),
        )
        return [
            (
                self.services.router.channel_for_team(reminder.team_slug),
                scheduled_review_message(
                    pull_request_ref(repository, reminder.pr),
                    status_line=reminder.status_line,
                ),
            )
            for reminder in ranked
        ]


def _pr_author(user: GitHubUserPayload | None, *, kind: str) -> str:
    if user is None or not user.login:
        raise PayloadValidationError(f"{kind} payload is missing pull_request.user", fields=["pull_request.user"])
    return user.login
