"""Comment body rewriting and duration helpers."""
from __future__ import annotations

import logging
import math
import re
from collections.abc import Mapping
from datetime import datetime, timezone
from urllib.parse import urlparse

GITHUB_MENTION_RE = re.compile(r"@([a-zA-Z0-9_-]+)")
IMG_TAG_RE = re.compile(r"<img[^>]+src=[\"']([^\"']+)[\"'][^>]*>", re.IGNORECASE)
MENTION_TERMINATOR = r"(?=$|\s|[.,?!:;\"'\-()\[\]{}])"

logger = logging.getLogger("text_utils")


def extract_github_mentions(text: str | None) -> list[str]:
    if not text or not isinstance(text, str):
        return []
    return list(dict.fromkeys(GITHUB_MENTION_RE.findall(text)))


def convert_mentions_to_slack(text: str, github_to_slack: Mapping[str, str]) -> str:
    """Replace `@login` with `<@SLACKID>` for logins that resolved to a Slack id."""
    mapping = {login: slack_id for login, slack_id in github_to_slack.items() if slack_id and slack_id != login}
    if not text or not mapping:
        return text
    # longest first so "@kim-a" is not shadowed by "@kim"
    alternatives = "|".join(re.escape(login) for login in sorted(mapping, key=len, reverse=True))
    pattern = re.compile(rf"@({alternatives}){MENTION_TERMINATOR}")
    return pattern.sub(lambda match: f"<@{mapping[match.group(1)]}>", text)


def is_github_attachment_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.hostname == "github.com" and "/user-attachments/assets/" in parsed.path


def convert_images_to_slack(text: str) -> str:
    if not text or not isinstance(text, str):
        return text

    def _replace(match: re.Match[str]) -> str:
        src = match.group(1)
        if is_github_attachment_url(src):
            return f"\n:camera: *Attached image:* {src}"
        return match.group(0)

    return IMG_TAG_RE.sub(_replace, text)


def duration_minutes(started_at: str | None, ended_at: datetime | None = None) -> float:
    if not started_at:
        return 0.0
    try:
        start = datetime.fromisoformat(started_at.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("unparseable run start time: %r", started_at)
        return 0.0
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    end = ended_at or datetime.now(timezone.utc)
    return max(0.0, (end - start).total_seconds() / 60)


def format_duration(total_minutes: float) -> str:
    minutes = math.floor(total_minutes)
    seconds = round((total_minutes - minutes) * 60)
    if seconds == 60:
        return f"{minutes + 1}m 0s"
    return f"{minutes}m {seconds}s"
