"""Configuration helpers for the notifier runtime."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigurationError
from .retry import RetryPolicy

PACKAGE_ROOT = Path(__file__).resolve().parents[1]
CONFIG_PATH = PACKAGE_ROOT / "config.yaml"
CONFIG_PATH_ENV_VAR = "NOTIFIER_CONFIG"


@dataclass
class NotifierConfig:
    organization: str
    github_token: str
    slack_token: str
    default_channel_id: str
    deploy_channel_id: str
    team_slugs: list[str] = field(default_factory=list)
    team_channels: dict[str, str] = field(default_factory=dict)
    skip_users: list[str] = field(default_factory=list)
    name_priority: dict[str, str] = field(default_factory=dict)
    timeout_seconds: float = 30.0
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    log_level: str = "INFO"


def config_path() -> Path:
    override = os.getenv(CONFIG_PATH_ENV_VAR, "").strip()
    return Path(override) if override else CONFIG_PATH


def load_config(path: Path | None = None) -> dict:
    """Load the YAML configuration file."""
    target = path or config_path()
    if not target.exists():
        raise ConfigurationError(f"Missing config file at {target}", [str(target)])
    with target.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config file {target} must contain a mapping")
    return raw


def resolve_env_value(raw_value: Any, *, fallback_env_vars: tuple[str, ...] = ()) -> str:
    value = str(raw_value or "").strip()
    if value.startswith("${") and value.endswith("}"):
        value = os.getenv(value[2:-1], "").strip()
    for env_var in fallback_env_vars:
        if value:
            break
        value = os.getenv(env_var, "").strip()
    return value


def load_notifier_config(config: dict) -> NotifierConfig:
    github = config.get("github") or {}
    slack = config.get("slack") or {}
    http = config.get("http") or {}
    retry = config.get("retry") or {}
    logging_cfg = config.get("logging") or {}

    organization = resolve_env_value(github.get("organization"), fallback_env_vars=("GITHUB_ORGANIZATION",))
    github_token = resolve_env_value(
        github.get("token"),
        fallback_env_vars=("INPUT_GITHUB_TOKEN", "GITHUB_TOKEN"),
    )
    slack_token = resolve_env_value(
        slack.get("token"),
        fallback_env_vars=("INPUT_SLACK_TOKEN", "SLACK_TOKEN"),
    )
    default_channel_id = resolve_env_value(slack.get("default_channel_id"))
    deploy_channel_id = resolve_env_value(slack.get("deploy_channel_id")) or default_channel_id

    missing = [
        name
        for name, value in (
            ("github.organization", organization),
            ("github.token", github_token),
            ("slack.token", slack_token),
            ("slack.default_channel_id", default_channel_id),
        )
        if not value
    ]
    if missing:
        raise ConfigurationError("Missing required settings: " + ", ".join(missing), missing)

    team_slugs = [str(slug).strip() for slug in github.get("team_slugs") or [] if str(slug).strip()]
    team_channels = {
        str(team): resolve_env_value(channel)
        for team, channel in (slack.get("channels") or {}).items()
        if resolve_env_value(channel)
    }

    return NotifierConfig(
        organization=organization,
        github_token=github_token,
        slack_token=slack_token,
        default_channel_id=default_channel_id,
        deploy_channel_id=deploy_channel_id,
        team_slugs=team_slugs,
        team_channels=team_channels,
        skip_users=[str(name) for name in slack.get("skip_users") or []],
        name_priority={str(k): str(v) for k, v in (slack.get("name_priority") or {}).items()},
        timeout_seconds=float(http.get("timeout_seconds", 30.0)),
        retry_policy=RetryPolicy(
            max_attempts=int(retry.get("max_attempts", 3)),
            base_delay_seconds=float(retry.get("base_delay_seconds", 1.0)),
            max_delay_seconds=float(retry.get("max_delay_seconds", 4.0)),
        ),
        log_level=str(os.getenv("LOG_LEVEL") or logging_cfg.get("level") or "INFO").upper(),
    )
