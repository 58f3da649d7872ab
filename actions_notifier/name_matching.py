"""Name normalization and GitHub-to-Slack user matching."""
from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from .models import MatchCandidate, MatchType, SlackIdentity

TRAILING_PARENTHETICAL_RE = re.compile(r"\s*\(.*?\)\Z", re.DOTALL)
ALIAS_SUFFIX_RE = re.compile(r"_.*\Z", re.DOTALL)
WHITESPACE_RE = re.compile(r"\s+")
MIN_PREFIX_KEY_LENGTH = 2

logger = logging.getLogger("name_matching")


def normalize_user_name(raw: Any) -> str:
    """Canonical comparison key: "Name (Nick)" / "Name_alias" / "Na me" -> "name"."""
    if not raw or not isinstance(raw, str):
        return ""
    value = raw
    # Cutting an alias can expose another trailing group: "a(b)_c" -> "a(b)" -> "a".
    while True:
        trimmed = value.strip()
        trimmed = TRAILING_PARENTHETICAL_RE.sub("", trimmed, count=1)
        trimmed = ALIAS_SUFFIX_RE.sub("", trimmed, count=1)
        if trimmed == value:
            break
        value = trimmed
    value = WHITESPACE_RE.sub("", value)
    return value.lower()


def _skip_keys(skip_users: Iterable[str]) -> set[str]:
    return {key for key in (normalize_user_name(name) for name in skip_users) if key}


def _is_skipped(identity: SlackIdentity, skip_keys: set[str]) -> bool:
    # Exact key equality only: "johnny" must never be skipped by "john".
    return any(normalize_user_name(name) in skip_keys for name in identity.candidate_names())


def is_skip_user(identity: SlackIdentity, skip_users: Iterable[str]) -> bool:
    keys = _skip_keys(skip_users)
    return bool(keys) and _is_skipped(identity, keys)


def find_best_match(
    candidates: Sequence[SlackIdentity],
    target_raw_name: str,
    priority_table: Mapping[str, str] | None = None,
    *,
    skip_users: Iterable[str] = (),
) -> MatchCandidate | None:
    key = normalize_user_name(target_raw_name)
    if not key:
        logger.warning("normalized name empty target=%r", target_raw_name)
        return None

    skip_keys = _skip_keys(skip_users)
    if key in skip_keys:
        logger.info("search target is a skip user target=%r", target_raw_name)
        return None

    exact: list[MatchCandidate] = []
    prefix: list[MatchCandidate] = []
    for identity in candidates:
        if identity.is_deleted:
            continue
        if skip_keys and _is_skipped(identity, skip_keys):
            continue
        for raw_name in identity.candidate_names():
            normalized = normalize_user_name(raw_name)
            if normalized == key:
                exact.append(MatchCandidate(identity, raw_name, MatchType.EXACT))
            elif len(key) >= MIN_PREFIX_KEY_LENGTH and normalized.startswith(key):
                prefix.append(MatchCandidate(identity, raw_name, MatchType.PREFIX))

    if exact:
        if len(_distinct_ids(exact)) > 1:
            logger.warning(
                "multiple exact matches, using first target=%r matches=%s",
                target_raw_name,
                _describe(exact),
            )
        return exact[0]

    if not prefix:
        logger.warning("no matching identity target=%r key=%r", target_raw_name, key)
        return None

    if len(_distinct_ids(prefix)) == 1:
        return prefix[0]

    preferred = (priority_table or {}).get(target_raw_name)
    if not preferred:
        logger.warning(
            "multiple matches, no priority mapping target=%r matches=%s",
            target_raw_name,
            _describe(prefix),
        )
        return None
    for candidate in prefix:
        if candidate.matched_raw_name == preferred:
            logger.info(
                "priority mapping applied target=%r preferred=%r slack_id=%s",
                target_raw_name,
                preferred,
                candidate.identity.id,
            )
            return candidate
    logger.warning(
        "priority-mapped user not found target=%r preferred=%r available=%s",
        target_raw_name,
        preferred,
        [candidate.matched_raw_name for candidate in prefix],
    )
    return None


def _distinct_ids(matches: list[MatchCandidate]) -> set[str]:
    return {match.identity.id for match in matches}


def _describe(matches: list[MatchCandidate]) -> list[str]:
    return [f"{match.identity.id}:{match.matched_raw_name}" for match in matches]
