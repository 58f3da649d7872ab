from __future__ import annotations

from typing import Any

import pytest

from actions_notifier.errors import CommentNotFoundError, GitHubAPIError
from actions_notifier.retry import RetryPolicy
from actions_notifier.tools.github_tools import GitHubGateway, thread_participants


def _gateway(**kwargs) -> GitHubGateway:  # noqa: ANN003
    return GitHubGateway(
        token="test-token",
        organization="acme",
        retry_policy=RetryPolicy(max_attempts=3, base_delay_seconds=0.0, max_delay_seconds=0.0),
        **kwargs,
    )


def _comment(comment_id: int, login: str, reply_to: int | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"id": comment_id, "user": {"login": login}}
    if reply_to is not None:
        payload["in_reply_to_id"] = reply_to
    return payload


def test_thread_participants_follow_reply_chain() -> None:
    comments = [
        _comment(1, "reviewer"),
        _comment(2, "author", reply_to=1),
        _comment(3, "other"),
        _comment(4, "third", reply_to=2),
        _comment(5, "reviewer", reply_to=1),
    ]

    assert thread_participants(comments, 5) == ["reviewer", "author", "third"]
    assert thread_participants(comments, 3) == ["other"]


def test_thread_participants_missing_comment_raises() -> None:
    with pytest.raises(CommentNotFoundError):
        thread_participants([_comment(1, "reviewer")], 99)


def test_thread_participants_with_deleted_root() -> None:
    comments = [_comment(2, "author", reply_to=1), _comment(3, "reviewer", reply_to=1), _comment(4, "x")]

    assert thread_participants(comments, 3) == ["author", "reviewer"]


def test_fetch_pull_request_details_maps_payload(monkeypatch) -> None:  # noqa: ANN001
    gateway = _gateway()
    seen_paths: list[str] = []

    def fake_request_json(*, method: str, path: str, payload: dict[str, Any] | None = None):  # noqa: ANN202, ARG001
        seen_paths.append(path)
        return {
            "number": 12,
            "title": "Add search",
            "html_url": "https://github.com/acme/api/pull/12",
            "user": {"login": "alice"},
            "draft": False,
            "requested_reviewers": [{"login": "bob"}, {"login": ""}],
            "requested_teams": [{"slug": "Platform-backend"}],
        }

    monkeypatch.setattr(gateway, "_request_json", fake_request_json)

    pr = gateway.fetch_pull_request_details("api", 12)

    assert seen_paths == ["/repos/acme/api/pulls/12"]
    assert pr.author == "alice"
    assert pr.requested_reviewers == ["bob"]
    assert pr.requested_teams == ["Platform-backend"]


def test_paginate_stops_on_short_page(monkeypatch) -> None:  # noqa: ANN001
    gateway = _gateway()
    pages: list[str] = []

    def fake_request_json(*, method: str, path: str, payload: dict[str, Any] | None = None):  # noqa: ANN202, ARG001
        pages.append(path)
        if path.endswith("&page=1"):
            return [{"login": f"user{i}"} for i in range(100)]
        return [{"login": "last"}]

    monkeypatch.setattr(gateway, "_request_json", fake_request_json)

    members = gateway.fetch_team_members("SE")

    assert len(members) == 101
    assert len(pages) == 2
    assert pages[0].startswith("/orgs/acme/teams/SE/members?")


def test_fetch_comment_author_maps_404_to_comment_not_found(monkeypatch) -> None:  # noqa: ANN001
    gateway = _gateway()

    def fake_send(*, method: str, path: str, payload: dict[str, Any] | None):  # noqa: ANN202, ARG001
        raise GitHubAPIError("GitHub API error 404: Not Found", endpoint=f"{method} {path}", status=404)

    monkeypatch.setattr(gateway, "_send", fake_send)

    with pytest.raises(CommentNotFoundError):
        gateway.fetch_comment_author("api", 55, True)


def test_request_retries_server_errors(monkeypatch) -> None:  # noqa: ANN001
    gateway = _gateway()
    attempts: list[int] = []

    def fake_send(*, method: str, path: str, payload: dict[str, Any] | None):  # noqa: ANN202, ARG001
        attempts.append(1)
        if len(attempts) < 3:
            raise GitHubAPIError("GitHub API error 502: bad gateway", status=502)
        return {"name": "Alice Park"}

    monkeypatch.setattr(gateway, "_send", fake_send)

    assert gateway.fetch_user_real_name("alice") == "Alice Park"
    assert len(attempts) == 3


def test_request_does_not_retry_client_errors(monkeypatch) -> None:  # noqa: ANN001
    gateway = _gateway()
    attempts: list[int] = []

    def fake_send(*, method: str, path: str, payload: dict[str, Any] | None):  # noqa: ANN202, ARG001
        attempts.append(1)
        raise GitHubAPIError("GitHub API error 403: forbidden", status=403)

    monkeypatch.setattr(gateway, "_send", fake_send)

    with pytest.raises(GitHubAPIError):
        gateway.fetch_workflow_run("api", 1)
    assert len(attempts) == 1


def test_user_real_name_falls_back_to_login(monkeypatch) -> None:  # noqa: ANN001
    gateway = _gateway()
    monkeypatch.setattr(gateway, "_request_json", lambda **_: {"login": "alice", "name": None})

    assert gateway.fetch_user_real_name("alice") == "alice"


def test_pr_page_comment_participants_is_comment_author(monkeypatch) -> None:  # noqa: ANN001
    gateway = _gateway()
    paths: list[str] = []

    def fake_request_json(*, method: str, path: str, payload: dict[str, Any] | None = None):  # noqa: ANN202, ARG001
        paths.append(path)
        return {"id": 8, "user": {"login": "carol"}}

    monkeypatch.setattr(gateway, "_request_json", fake_request_json)

    assert gateway.fetch_comment_thread_participants("api", 3, 8, False) == ["carol"]
    assert paths == ["/repos/acme/api/issues/comments/8"]


def test_unconfigured_gateway_raises() -> None:
    gateway = GitHubGateway(token="", organization="acme")

    with pytest.raises(GitHubAPIError):
        gateway.fetch_open_pull_requests("api")
