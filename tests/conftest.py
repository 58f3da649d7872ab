from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest

from actions_notifier.config_loader import NotifierConfig
from actions_notifier.errors import CommentNotFoundError, SlackAPIError
from actions_notifier.models import GitHubIdentity, PullRequest, Review, SlackIdentity, WorkflowRun
from actions_notifier.services import NotifierServices, build_services


@dataclass
class DummyGitHub:
    real_names: dict[str, str] = field(default_factory=dict)
    teams: dict[str, list[str]] = field(default_factory=dict)
    pull_requests: dict[int, PullRequest] = field(default_factory=dict)
    reviews: dict[int, list[Review]] = field(default_factory=dict)
    threads: dict[int, list[str]] = field(default_factory=dict)
    workflow_runs: dict[int, WorkflowRun] = field(default_factory=dict)
    calls: list[tuple[Any, ...]] = field(default_factory=list)

    def fetch_team_members(self, team_slug: str) -> list[GitHubIdentity]:
        self.calls.append(("team", team_slug))
        return [GitHubIdentity(login=login) for login in self.teams.get(team_slug, [])]

    def fetch_pull_request_details(self, repo: str, pr_number: int) -> PullRequest:
        self.calls.append(("pr", repo, pr_number))
        return self.pull_requests[pr_number]

    def fetch_pull_request_reviews(self, repo: str, pr_number: int) -> list[Review]:
        self.calls.append(("reviews", repo, pr_number))
        return list(self.reviews.get(pr_number, []))

    def fetch_open_pull_requests(self, repo: str) -> list[PullRequest]:
        self.calls.append(("open", repo))
        return list(self.pull_requests.values())

    def fetch_comment_thread_participants(
        self, repo: str, pr_number: int, comment_id: int, is_code_comment: bool
    ) -> list[str]:
        self.calls.append(("thread", repo, pr_number, comment_id, is_code_comment))
        if comment_id not in self.threads:
            raise CommentNotFoundError(f"review comment {comment_id} not found")
        return list(self.threads[comment_id])

    def fetch_user_real_name(self, login: str) -> str:
        return self.real_names.get(login, login)

    def fetch_workflow_run(self, repo: str, run_id: int) -> WorkflowRun:
        self.calls.append(("run", repo, run_id))
        return self.workflow_runs[run_id]


@dataclass
class DummySlack:
    members: list[SlackIdentity] = field(default_factory=list)
    failing_channels: set[str] = field(default_factory=set)
    posted: list[dict[str, Any]] = field(default_factory=list)

    def list_all_users(self) -> list[SlackIdentity]:
        return list(self.members)

    def post_message(
        self,
        channel_id: str,
        text: str,
        attachments: list[dict[str, Any]] | None = None,
    ) -> dict[str, str]:
        if channel_id in self.failing_channels:
            raise SlackAPIError(f"post to {channel_id} failed", endpoint="chat.postMessage")
        self.posted.append({"channel": channel_id, "text": text, "attachments": attachments or []})
        return {"message_ts": f"{len(self.posted)}.000"}

    def channels(self) -> list[str]:
        return [post["channel"] for post in self.posted]


def notifier_config() -> NotifierConfig:
    return NotifierConfig(
        organization="acme",
        github_token="ghp-test",
        slack_token="xoxb-test",
        default_channel_id="C_DEFAULT",
        deploy_channel_id="C_DEPLOY",
        team_slugs=["SE", "Platform-frontend", "Platform-backend"],
        team_channels={"SE": "C_SE", "Platform-frontend": "C_FE", "Platform-backend": "C_BE"},
        skip_users=["john (이주호)"],
    )


@pytest.fixture
def github() -> DummyGitHub:
    return DummyGitHub(
        real_names={
            "alice": "Alice Park",
            "bob": "Bob Choi",
            "carol": "Carol Han",
            "dave": "Dave Seo",
            "erin": "Erin Yoo",
        },
        teams={"SE": ["alice"], "Platform-frontend": ["bob", "carol"], "Platform-backend": ["dave"]},
    )


@pytest.fixture
def slack() -> DummySlack:
    return DummySlack(
        members=[
            SlackIdentity(id="U_ALICE", real_name="Alice Park"),
            SlackIdentity(id="U_BOB", real_name="Bob Choi", display_name="bobby"),
            SlackIdentity(id="U_CAROL", real_name="Carol Han"),
            SlackIdentity(id="U_DAVE", real_name="Dave Seo (DevOps)"),
        ]
    )


@pytest.fixture
def services(github: DummyGitHub, slack: DummySlack) -> NotifierServices:
    return build_services(notifier_config(), github=github, slack=slack)


@pytest.fixture
def config() -> NotifierConfig:
    return notifier_config()
