"""GitHub REST gateway for pull requests, reviews, teams and workflow runs."""
from __future__ import annotations

import json
import logging
from typing import Any
from urllib import error, parse, request

from ..errors import CommentNotFoundError, GitHubAPIError
from ..models import GitHubIdentity, PullRequest, Review, ReviewState, WorkflowRun
from ..retry import RetryPolicy, call_with_retry

PER_PAGE = 100
MAX_PAGES = 20


class GitHubGateway:
    """Small GitHub gateway using REST API, scoped to one organization."""

    def __init__(
        self,
        *,
        token: str,
        organization: str,
        timeout_seconds: float = 30.0,
        retry_policy: RetryPolicy | None = None,
    ):
        self.token = str(token or "").strip()
        self.organization = str(organization or "").strip()
        self.timeout_seconds = timeout_seconds
        self.retry_policy = retry_policy or RetryPolicy()
        self.base_url = "https://api.github.com"
        self.logger = logging.getLogger("github_gateway")

    def fetch_team_members(self, team_slug: str) -> list[GitHubIdentity]:
        slug = parse.quote(str(team_slug), safe="")
        items = self._paginate(f"/orgs/{self.organization}/teams/{slug}/members")
        return [GitHubIdentity(login=_login(item)) for item in items if _login(item)]

    def fetch_pull_request_details(self, repo: str, pr_number: int) -> PullRequest:
        data = self._request_json(method="GET", path=f"{self._repo_path(repo)}/pulls/{int(pr_number)}")
        return _pull_request_from_payload(_require_object(data, "pull request"))

    def fetch_pull_request_reviews(self, repo: str, pr_number: int) -> list[Review]:
        items = self._paginate(f"{self._repo_path(repo)}/pulls/{int(pr_number)}/reviews")
        return [
            Review(
                reviewer=_login(item.get("user")),
                state=str(item.get("state") or ReviewState.COMMENTED.value),
                submitted_at=item.get("submitted_at"),
            )
            for item in items
            if _login(item.get("user"))
        ]

    def fetch_open_pull_requests(self, repo: str) -> list[PullRequest]:
        items = self._paginate(f"{self._repo_path(repo)}/pulls", query={"state": "open"})
        return [_pull_request_from_payload(item) for item in items]

    def list_review_comments(self, repo: str, pr_number: int) -> list[dict[str, Any]]:
        return self._paginate(f"{self._repo_path(repo)}/pulls/{int(pr_number)}/comments")

    def fetch_comment_thread_participants(
        self,
        repo: str,
        pr_number: int,
        comment_id: int,
        is_code_comment: bool,
    ) -> list[str]:
        if not is_code_comment:
            return [self.fetch_comment_author(repo, comment_id, False)]
        comments = self.list_review_comments(repo, pr_number)
        return thread_participants(comments, int(comment_id))

    def fetch_comment_author(self, repo: str, comment_id: int, is_code_comment: bool) -> str:
        kind = "pulls" if is_code_comment else "issues"
        path = f"{self._repo_path(repo)}/{kind}/comments/{int(comment_id)}"
        try:
            data = self._request_json(method="GET", path=path)
        except GitHubAPIError as exc:
            if exc.status == 404:
                raise CommentNotFoundError(
                    f"comment {comment_id} not found in {repo}",
                    endpoint=path,
                    status=404,
                ) from exc
            raise
        login = _login(_require_object(data, "comment").get("user"))
        if not login:
            raise GitHubAPIError(f"comment {comment_id} has no author", endpoint=path)
        return login

    def fetch_user_real_name(self, login: str) -> str:
        data = self._request_json(method="GET", path=f"/users/{parse.quote(str(login), safe='')}")
        name = _require_object(data, "user").get("name")
        return str(name).strip() if isinstance(name, str) and name.strip() else login

    def fetch_workflow_run(self, repo: str, run_id: int) -> WorkflowRun:
        data = self._request_json(method="GET", path=f"{self._repo_path(repo)}/actions/runs/{int(run_id)}")
        return _run_from_payload(_require_object(data, "workflow run"))

    def _repo_path(self, repo: str) -> str:
        self._require_configured()
        name = str(repo or "").strip()
        if not name:
            raise GitHubAPIError("repository name must be non-empty")
        return f"/repos/{self.organization}/{parse.quote(name, safe='')}"

    def _paginate(self, path: str, *, query: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        results: list[dict[str, Any]] = []
        for page in range(1, MAX_PAGES + 1):
            params = dict(query or {})
            params.update({"per_page": PER_PAGE, "page": page})
            data = self._request_json(method="GET", path=f"{path}?{parse.urlencode(params)}")
            if not isinstance(data, list):
                raise GitHubAPIError(f"GitHub API returned non-list payload for {path}", endpoint=path)
            results.extend(item for item in data if isinstance(item, dict))
            if len(data) < PER_PAGE:
                break
        return results

    def _request_json(
        self,
        *,
        method: str,
        path: str,
        payload: dict[str, Any] | None = None,
    ) -> Any:
        self._require_configured()
        return call_with_retry(
            lambda: self._send(method=method, path=path, payload=payload),
            policy=self.retry_policy,
            is_retryable=_is_retryable,
            on_retry=lambda attempt, exc: self.logger.warning(
                "retrying %s %s attempt=%s error=%s", method, path, attempt, exc
            ),
        )

    def _send(self, *, method: str, path: str, payload: dict[str, Any] | None) -> Any:
        url = self.base_url + path
        body = None
        if payload is not None:
            body = json.dumps(payload, ensure_ascii=True).encode("utf-8")
        req = request.Request(url=url, data=body, method=method)
        req.add_header("Accept", "application/vnd.github+json")
        req.add_header("Authorization", f"Bearer {self.token}")
        req.add_header("X-GitHub-Api-Version", "2022-11-28")
        if body is not None:
            req.add_header("Content-Type", "application/json")
        try:
            with request.urlopen(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read().decode("utf-8")
        except error.HTTPError as exc:
            details = exc.read().decode("utf-8", errors="replace")
            raise GitHubAPIError(
                f"GitHub API error {exc.code}: {details}",
                endpoint=f"{method} {path}",
                status=exc.code,
            ) from exc
        except error.URLError as exc:
            raise GitHubAPIError(
                f"GitHub API request failed: {exc.reason}",
                endpoint=f"{method} {path}",
            ) from exc
        if not raw.strip():
            return {}
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise GitHubAPIError("GitHub API returned invalid JSON", endpoint=f"{method} {path}") from exc

    def _require_configured(self) -> None:
        if not self.organization:
            raise GitHubAPIError("GitHub organization is not configured")
        if not self.token:
            raise GitHubAPIError("GitHub token is not configured")


def thread_participants(comments: list[dict[str, Any]], comment_id: int) -> list[str]:
    """Distinct authors of the review thread containing `comment_id`, in order."""
    by_id: dict[int, dict[str, Any]] = {}
    for comment in comments:
        raw_id = comment.get("id")
        if isinstance(raw_id, int):
            by_id[raw_id] = comment
    if comment_id not in by_id:
        raise CommentNotFoundError(f"review comment {comment_id} not found in pull request comments")

    def root_of(current: int) -> int:
        seen = {current}
        while True:
            parent = by_id.get(current, {}).get("in_reply_to_id")
            if not isinstance(parent, int) or parent in seen:
                return current
            if parent not in by_id:
                # parent deleted; its id still identifies the thread
                return parent
            seen.add(parent)
            current = parent

    thread_root = root_of(comment_id)
    participants: list[str] = []
    for raw_id, comment in by_id.items():
        if root_of(raw_id) != thread_root:
            continue
        login = _login(comment.get("user"))
        if login and login not in participants:
            participants.append(login)
    return participants


def _is_retryable(exc: Exception) -> bool:
    if not isinstance(exc, GitHubAPIError):
        return False
    return exc.status is None or exc.status == 429 or exc.status >= 500


def _login(user: Any) -> str:
    if not isinstance(user, dict):
        return ""
    return str(user.get("login") or "").strip()


def _require_object(data: Any, label: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise GitHubAPIError(f"GitHub API returned non-object {label} payload")
    return data


def _pull_request_from_payload(payload: dict[str, Any]) -> PullRequest:
    number = int(payload.get("number") or 0)
    if number <= 0:
        raise GitHubAPIError("GitHub pull request payload missing number")
    return PullRequest(
        number=number,
        title=str(payload.get("title") or ""),
        html_url=str(payload.get("html_url") or ""),
        author=_login(payload.get("user")),
        draft=bool(payload.get("draft")),
        requested_reviewers=[
            _login(user) for user in payload.get("requested_reviewers") or [] if _login(user)
        ],
        requested_teams=[
            str(team.get("slug"))
            for team in payload.get("requested_teams") or []
            if isinstance(team, dict) and team.get("slug")
        ],
    )


def _run_from_payload(payload: dict[str, Any]) -> WorkflowRun:
    run_id = int(payload.get("id") or 0)
    if run_id <= 0:
        raise GitHubAPIError("GitHub workflow run payload missing id")
    status = str(payload.get("status") or "").strip() or "unknown"
    conclusion_raw = payload.get("conclusion")
    conclusion = str(conclusion_raw).strip() if isinstance(conclusion_raw, str) else None
    return WorkflowRun(
        run_id=run_id,
        name=str(payload.get("name") or ""),
        html_url=str(payload.get("html_url") or ""),
        actor=_login(payload.get("actor")),
        run_started_at=payload.get("run_started_at"),
        status=status,
        conclusion=conclusion,
    )
