"""Identity and recipient models shared across the notifier."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal

SlackProperty = Literal["id", "realName"]


class ReviewState(str, Enum):
    AWAITING = "AWAITING"
    COMMENTED = "COMMENTED"
    APPROVED = "APPROVED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    DISMISSED = "DISMISSED"
    PENDING = "PENDING"


class MatchType(str, Enum):
    EXACT = "exact"
    PREFIX = "prefix"


@dataclass(frozen=True)
class GitHubIdentity:
    login: str
    real_name: str | None = None


@dataclass(frozen=True)
class SlackIdentity:
    id: str
    real_name: str = ""
    display_name: str | None = None
    is_deleted: bool = False

    def candidate_names(self) -> list[str]:
        return [name for name in (self.real_name, self.display_name) if name]

    def property_value(self, prop: SlackProperty) -> str:
        if prop == "id":
            return self.id
        return self.display_name or self.real_name


@dataclass(frozen=True)
class MatchCandidate:
    identity: SlackIdentity
    matched_raw_name: str
    match_type: MatchType


@dataclass(frozen=True)
class Recipient:
    github_login: str
    slack_id: str | None = None

    @property
    def mention(self) -> str:
        return f"<@{self.slack_id or self.github_login}>"


# channel id -> recipients in assignment order
ChannelGroup = dict[str, list[Recipient]]


@dataclass
class PullRequest:
    number: int
    title: str = ""
    html_url: str = ""
    author: str = ""
    draft: bool = False
    requested_reviewers: list[str] = field(default_factory=list)
    requested_teams: list[str] = field(default_factory=list)


@dataclass
class Review:
    reviewer: str
    state: str = ReviewState.COMMENTED.value
    submitted_at: str | None = None


@dataclass
class WorkflowRun:
    run_id: int
    name: str = ""
    html_url: str = ""
    actor: str = ""
    run_started_at: str | None = None
    status: str = "unknown"
    conclusion: str | None = None


def mentions_string(recipients: list[Recipient]) -> str:
    return ", ".join(recipient.mention for recipient in recipients)
