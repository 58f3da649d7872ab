"""Pull request comment notifications: code review threads and PR-page comments."""
from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any

from .errors import CommentNotFoundError
from .event_pipeline import EventPipeline, pull_request_ref
from .formatter import code_comment_message, pr_comment_message
from .models import PullRequest
from .payloads import CommentEvent, CommentPayload, parse_payload, resolve_pr_number


class CommentKind(str, Enum):
    CODE = "code"
    PR_PAGE = "pr_page"
    UNKNOWN = "unknown"


def classify_comment(comment: CommentPayload) -> CommentKind:
    if comment.diff_hunk or comment.pull_request_review_id:
        return CommentKind.CODE
    if comment.issue_url:
        return CommentKind.PR_PAGE
    return CommentKind.UNKNOWN


class CommentEventPipeline(EventPipeline):
    logger_name = "comment_events"

    async def handle(self, payload: Any) -> int:
        event = parse_payload(CommentEvent, payload, kind="comment")
        pr_number = resolve_pr_number(event)
        kind = classify_comment(event.comment)
        self.logger.info(
            "comment event repo=%s pr=%s comment=%s kind=%s",
            event.repository.name,
            pr_number,
            event.comment.id,
            kind.value,
        )
        if kind is CommentKind.PR_PAGE:
            return await self.handle_pr_page_comment(event, pr_number)
        try:
            return await self.handle_code_comment(event, pr_number)
        except CommentNotFoundError as exc:
            # Single reclassification; the PR-page path never re-enters the code path.
            self.logger.warning(
                "comment %s not found among review comments (%s); retrying as PR-page comment",
                event.comment.id,
                exc,
            )
            return await self.handle_pr_page_comment(event, pr_number)

    async def handle_code_comment(self, event: CommentEvent, pr_number: int) -> int:
        repo = event.repository.name
        comment = event.comment
        pr = await self._pull_request(event, pr_number)
        recipients = await self.services.aggregator.code_comment_recipients(
            repo=repo,
            pr_number=pr_number,
            comment_id=comment.id,
            comment_author=comment.user.login,
            pr_author=pr.author,
        )
        if not recipients:
            self.logger.info("code comment %s has no recipients", comment.id)
            return 0
        author_name, body = await asyncio.gather(
            self.display_name(comment.user.login),
            self.render_body(comment.body),
        )
        ref = pull_request_ref(event.repository, pr)
        return await self.notify_recipients(
            recipients,
            lambda mentions: code_comment_message(
                ref,
                author_name=author_name,
                mentions=mentions,
                comment_body=body,
                comment_url=comment.html_url,
                code_snippet=comment.diff_hunk,
            ),
            label="code comment",
        )

    async def handle_pr_page_comment(self, event: CommentEvent, pr_number: int) -> int:
        repo = event.repository.name
        comment = event.comment
        pr = await asyncio.to_thread(self.services.github.fetch_pull_request_details, repo, pr_number)
        recipients = await self.services.aggregator.pr_comment_recipients(
            repo=repo,
            pr=pr,
            commenter=comment.user.login,
        )
        if not recipients:
            self.logger.info("PR comment %s has no recipients", comment.id)
            return 0
        author_name, body = await asyncio.gather(
            self.display_name(comment.user.login),
            self.render_body(comment.body),
        )
        ref = pull_request_ref(event.repository, pr)
        return await self.notify_recipients(
            recipients,
            lambda mentions: pr_comment_message(
                ref,
                author_name=author_name,
                mentions=mentions,
                comment_body=body,
                comment_url=comment.html_url,
            ),
            label="PR comment",
        )

    async def _pull_request(self, event: CommentEvent, pr_number: int) -> PullRequest:
        embedded = event.pull_request
        if embedded is not None and embedded.user is not None:
            return PullRequest(
                number=embedded.number,
                title=embedded.title,
                html_url=embedded.html_url,
                author=embedded.user.login,
                draft=embedded.draft,
            )
        return await asyncio.to_thread(
            self.services.github.fetch_pull_request_details,
            event.repository.name,
            pr_number,
        )
