"""Pydantic contracts for the GitHub event payloads the notifier consumes."""
from __future__ import annotations

import re
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError, field_validator

from .errors import PayloadValidationError

PULL_URL_RE = re.compile(r"/pulls?/(\d+)/?$")

PayloadModel = TypeVar("PayloadModel", bound=BaseModel)


class GitHubUserPayload(BaseModel):
    login: str


class RepositoryPayload(BaseModel):
    name: str
    full_name: str = ""
    html_url: str = ""

    @field_validator("name")
    @classmethod
    def _strip_required(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("must be a non-empty string")
        return normalized

    @property
    def url(self) -> str:
        if self.html_url:
            return self.html_url
        return f"https://github.com/{self.full_name or self.name}"


class PullRequestLinkPayload(BaseModel):
    url: str = ""
    html_url: str = ""


class PullRequestPayload(BaseModel):
    number: int
    title: str = ""
    html_url: str = ""
    draft: bool = False
    user: GitHubUserPayload | None = None


class IssuePayload(BaseModel):
    number: int
    title: str = ""
    html_url: str = ""
    user: GitHubUserPayload | None = None
    pull_request: PullRequestLinkPayload | None = None


class CommentPayload(BaseModel):
    id: int
    user: GitHubUserPayload
    body: str | None = ""
    html_url: str = ""
    diff_hunk: str | None = None
    pull_request_review_id: int | None = None
    pull_request_url: str | None = None
    issue_url: str | None = None


class ReviewPayload(BaseModel):
    user: GitHubUserPayload
    body: str | None = ""
    html_url: str = ""
    state: str = ""


class TeamPayload(BaseModel):
    slug: str
    name: str = ""


class RepositoryEvent(BaseModel):
    repository: RepositoryPayload


class CommentEvent(RepositoryEvent):
    comment: CommentPayload
    pull_request: PullRequestPayload | None = None
    issue: IssuePayload | None = None


class ReviewEvent(RepositoryEvent):
    pull_request: PullRequestPayload
    review: ReviewPayload


class ReviewRequestedEvent(RepositoryEvent):
    pull_request: PullRequestPayload
    requested_reviewer: GitHubUserPayload | None = None
    requested_team: TeamPayload | None = None
    sender: GitHubUserPayload | None = None


def parse_payload(model: type[PayloadModel], payload: Any, *, kind: str) -> PayloadModel:
    if not isinstance(payload, dict):
        raise PayloadValidationError(f"{kind} payload must be a JSON object", fields=["<root>"])
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        fields = [".".join(str(part) for part in error["loc"]) for error in exc.errors()]
        raise PayloadValidationError(
            f"invalid {kind} payload: " + ", ".join(fields),
            fields=fields,
        ) from exc


def pr_number_from_url(url: str | None) -> int | None:
    if not url:
        return None
    match = PULL_URL_RE.search(url)
    return int(match.group(1)) if match else None


def resolve_pr_number(event: CommentEvent) -> int:
    """PR number from the embedded PR, the PR-backed issue, or a pull URL on the comment."""
    if event.pull_request is not None:
        return event.pull_request.number
    if event.issue is not None and event.issue.pull_request is not None:
        return event.issue.number
    number = pr_number_from_url(event.comment.pull_request_url)
    if number is None:
        raise PayloadValidationError(
            "comment payload has no resolvable pull request number",
            fields=["pull_request.number", "comment.pull_request_url"],
        )
    return number
