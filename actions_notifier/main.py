"""CLI entrypoint for the GitHub Actions Slack notifier."""
from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console

from .config_loader import load_config, load_notifier_config
from .dispatcher import EventDispatcher
from .errors import NotifierError, PayloadValidationError
from .event_pipeline import ActionContext
from .services import build_services

app = typer.Typer(help="Send Slack notifications for GitHub pull request and workflow events.")
console = Console()


def _configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _load_event_payload(event_path: Path | None) -> dict[str, Any]:
    if event_path is None:
        return {}
    try:
        raw = json.loads(event_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise PayloadValidationError(f"cannot read event payload {event_path}: {exc}", fields=["<root>"]) from exc
    if not isinstance(raw, dict):
        raise PayloadValidationError(f"event payload {event_path} must be a JSON object", fields=["<root>"])
    return raw


def _annotation(value: str) -> str:
    # workflow command values must stay on one line
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


@app.command()
def run(
    action_type: str = typer.Option(..., envvar=["INPUT_ACTION_TYPE", "ACTION_TYPE"], help="Event kind to handle."),
    event_path: Optional[Path] = typer.Option(None, envvar="GITHUB_EVENT_PATH", help="Event payload JSON file."),
    run_id: Optional[int] = typer.Option(None, envvar="GITHUB_RUN_ID"),
    ref: str = typer.Option("", envvar="GITHUB_REF"),
    sha: str = typer.Option("", envvar="GITHUB_SHA"),
    ec2_name: str = typer.Option("", envvar=["INPUT_EC2_NAME", "EC2_NAME"]),
    image_tag: str = typer.Option("", envvar=["INPUT_IMAGE_TAG", "IMAGE_TAG"]),
    job_status: str = typer.Option("", envvar=["INPUT_JOB_STATUS", "JOB_STATUS"]),
    branch_name: str = typer.Option("", envvar=["INPUT_BRANCH_NAME", "BRANCH_NAME"]),
    job_name: str = typer.Option("", envvar=["INPUT_JOB_NAME", "JOB_NAME"]),
) -> None:
    """Handle one GitHub Actions event and post the resulting Slack notifications."""
    logger = logging.getLogger("notifier")
    try:
        config = load_notifier_config(load_config())
        _configure_logging(config.log_level)
        context = ActionContext(
            payload=_load_event_payload(event_path),
            run_id=run_id,
            ref=ref,
            sha=sha,
            inputs={
                "EC2_NAME": ec2_name,
                "IMAGE_TAG": image_tag,
                "JOB_STATUS": job_status,
                "BRANCH_NAME": branch_name,
                "JOB_NAME": job_name,
            },
        )
        dispatcher = EventDispatcher(build_services(config))
        sent = asyncio.run(dispatcher.dispatch(action_type, context))
    except NotifierError as exc:
        _configure_logging()
        logger.error("notification failed code=%s error=%s details=%s", exc.code, exc, exc.details)
        typer.echo(f"::error title={exc.code}::{_annotation(str(exc))}")
        console.print(f"[red]Notification failed:[/] {exc}")
        raise typer.Exit(code=1) from exc
    console.print(f"[green]Notification complete.[/] action={action_type} messages={sent}")


if __name__ == "__main__":
    app()
