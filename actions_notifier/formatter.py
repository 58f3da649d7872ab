"""Slack message layouts for each notification kind."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

COLOR_SUCCESS = "good"
COLOR_DANGER = "danger"
COLOR_WARNING = "warning"
COLOR_INFO = "#439FE0"

ICON_COMMENT = ":pencil:"
ICON_PR_COMMENT = ":speech_balloon:"
ICON_APPROVE = ":white_check_mark:"
ICON_CHANGES_REQUESTED = ":warning:"
ICON_REVIEW_REQUEST = ":eyes:"
ICON_SUCCESS = ":white_check_mark:"
ICON_FAILURE = ":x:"


@dataclass
class SlackMessage:
    text: str
    attachments: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class PullRequestRef:
    url: str
    title: str

    @property
    def link(self) -> str:
        return f"*<{self.url}|{self.title}>*"


@dataclass
class WorkflowNotice:
    status: str
    repo_name: str
    repo_url: str
    trigger_mention: str
    sha: str
    duration: str
    workflow_name: str
    workflow_url: str
    image_tag: str = ""
    ref: str = ""
    branch_name: str = ""
    server_name: str = ""
    failed_jobs: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


def attachment(color: str, text: str = "", fields: list[dict[str, Any]] | None = None) -> dict[str, Any]:
    return {"color": color, "text": text, "fields": fields or []}


def attachment_field(title: str, value: str, short: bool = False) -> dict[str, Any]:
    return {"title": title, "value": value, "short": short}


def code_comment_message(
    pr: PullRequestRef,
    *,
    author_name: str,
    mentions: str,
    comment_body: str,
    comment_url: str,
    code_snippet: str | None = None,
) -> SlackMessage:
    code_block = f"```{code_snippet}```\n" if code_snippet else ""
    body = f"{code_block}\n*Comment:*\n{comment_body}\n\n<{comment_url}|View comment>\n\n"
    text = f"{pr.link}\n{ICON_COMMENT} *{author_name}* left a comment! {mentions}:\n"
    return SlackMessage(text=text, attachments=[attachment(COLOR_SUCCESS, body)])


def pr_comment_message(
    pr: PullRequestRef,
    *,
    author_name: str,
    mentions: str,
    comment_body: str,
    comment_url: str,
) -> SlackMessage:
    body = f"*Comment:*\n{comment_body}\n\n<{comment_url}|View comment>"
    text = f"{pr.link}\n{ICON_PR_COMMENT} *{author_name}* left a comment! {mentions}"
    return SlackMessage(text=text, attachments=[attachment(COLOR_SUCCESS, body)])


def approval_message(
    pr: PullRequestRef,
    *,
    reviewer_name: str,
    mentions: str,
    review_body: str,
    review_url: str,
) -> SlackMessage:
    body = f"{review_body}\n\n<{review_url}|View review>."
    text = f"{pr.link}\n{ICON_APPROVE} *{reviewer_name}* approved! {mentions}:\n"
    return SlackMessage(text=text, attachments=[attachment(COLOR_SUCCESS, body)])


def changes_requested_message(
    pr: PullRequestRef,
    *,
    reviewer_name: str,
    mentions: str,
    review_body: str,
    review_url: str,
) -> SlackMessage:
    body = f"{review_body}\n\n<{review_url}|View review>."
    text = f"{pr.link}\n{ICON_CHANGES_REQUESTED} *{reviewer_name}* requested changes! {mentions}:\n"
    return SlackMessage(text=text, attachments=[attachment(COLOR_WARNING, body)])


def review_request_message(pr: PullRequestRef, *, requester_name: str, mentions: str) -> SlackMessage:
    body = f"\n<{pr.url}|View PR>."
    text = f"{pr.link}\n{ICON_REVIEW_REQUEST} *{requester_name}* requested a review! {mentions}:\n"
    return SlackMessage(text=text, attachments=[attachment(COLOR_SUCCESS, body)])


def scheduled_review_message(pr: PullRequestRef, *, status_line: str) -> SlackMessage:
    body = f"\n<{pr.url}|View PR>."
    text = f"{pr.link} is waiting for review. {status_line}\n"
    return SlackMessage(text=text, attachments=[attachment(COLOR_INFO, body)])


def _short_sha(sha: str) -> str:
    return sha[:7] if sha else "N/A"


def _status_header(notice: WorkflowNotice, title: str) -> tuple[str, str]:
    icon = ICON_SUCCESS if notice.succeeded else ICON_FAILURE
    status_text = "Succeeded" if notice.succeeded else "Failed"
    color = COLOR_SUCCESS if notice.succeeded else COLOR_DANGER
    return color, f"{icon}*{status_text}* *{title}*"


def deployment_message(notice: WorkflowNotice) -> SlackMessage:
    color, text = _status_header(notice, "GitHub Actions Deploy Notification")
    fields = [
        attachment_field("Deploy Info", ""),
        attachment_field("Repository", f"<{notice.repo_url}|{notice.repo_name}>", True),
        attachment_field("Deploy Server", f"https://{notice.server_name}", True),
        attachment_field("Author", notice.trigger_mention, True),
        attachment_field("Commit", f"<{notice.repo_url}/commit/{notice.sha}|{_short_sha(notice.sha)}>", True),
        attachment_field("Image Tag", notice.image_tag, True),
        attachment_field("Run Time", notice.duration, True),
        attachment_field("Workflow", f"<{notice.workflow_url}|{notice.workflow_name}>", True),
        attachment_field("Ref", notice.ref, True),
    ]
    return SlackMessage(text=text, attachments=[attachment(color, "", fields)])


def build_message(notice: WorkflowNotice) -> SlackMessage:
    color, text = _status_header(notice, "GitHub Actions Build Notification")
    fields = [attachment_field("Build Info", "")]
    if not notice.succeeded and notice.failed_jobs:
        jobs = "\n".join(f"`{job}`" for job in notice.failed_jobs)
        fields.append(attachment_field("Failed Jobs", jobs))
    fields.extend(
        [
            attachment_field("Repository", f"<{notice.repo_url}|{notice.repo_name}>", True),
            attachment_field("Branch", notice.branch_name or "N/A", True),
            attachment_field("Author", notice.trigger_mention, True),
            attachment_field("Commit", f"<{notice.repo_url}/commit/{notice.sha}|{_short_sha(notice.sha)}>", True),
        ]
    )
    if notice.image_tag:
        fields.append(attachment_field("Image Tag", notice.image_tag, True))
    fields.extend(
        [
            attachment_field("Run Time", notice.duration, True),
            attachment_field("Workflow", f"<{notice.workflow_url}|{notice.workflow_name}>", True),
        ]
    )
    return SlackMessage(text=text, attachments=[attachment(color, "", fields)])
