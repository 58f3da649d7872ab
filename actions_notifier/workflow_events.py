"""Deployment and CI build notifications for the deploy channel."""
from __future__ import annotations

import asyncio

from .errors import ConfigurationError
from .event_pipeline import ActionContext, EventPipeline
from .formatter import SlackMessage, WorkflowNotice, build_message, deployment_message
from .models import WorkflowRun
from .payloads import RepositoryEvent, parse_payload
from .text_utils import duration_minutes, format_duration

DEPLOY_INPUTS = ("EC2_NAME", "IMAGE_TAG", "JOB_STATUS")
CI_INPUTS = ("JOB_STATUS",)


def _require_inputs(context: ActionContext, names: tuple[str, ...], *, kind: str) -> None:
    missing = [name for name in names if not context.input(name)]
    if context.run_id is None:
        missing.append("GITHUB_RUN_ID")
    if missing:
        raise ConfigurationError(
            f"{kind} action is missing required inputs: " + ", ".join(missing),
            missing,
        )


def split_job_names(raw: str) -> list[str]:
    return [name.strip() for name in raw.split(",") if name.strip()]


class WorkflowEventPipeline(EventPipeline):
    logger_name = "workflow_events"

    async def handle_deploy(self, context: ActionContext) -> int:
        _require_inputs(context, DEPLOY_INPUTS, kind="deploy")
        event = parse_payload(RepositoryEvent, context.payload, kind="deploy")
        self.logger.info(
            "deploy event repo=%s server=%s status=%s",
            event.repository.name,
            context.input("EC2_NAME"),
            context.input("JOB_STATUS"),
        )
        run, trigger_mention = await self._run_and_actor(event.repository.name, context)
        notice = WorkflowNotice(
            status=context.input("JOB_STATUS"),
            repo_name=event.repository.name,
            repo_url=event.repository.url,
            trigger_mention=trigger_mention,
            sha=context.sha,
            duration=format_duration(duration_minutes(run.run_started_at)),
            workflow_name=run.name,
            workflow_url=run.html_url,
            image_tag=context.input("IMAGE_TAG"),
            ref=context.ref,
            server_name=context.input("EC2_NAME"),
        )
        return await self._post(deployment_message(notice), label="deploy")

    async def handle_ci(self, context: ActionContext) -> int:
        _require_inputs(context, CI_INPUTS, kind="ci")
        event = parse_payload(RepositoryEvent, context.payload, kind="ci")
        branch_name = context.input("BRANCH_NAME") or context.ref.removeprefix("refs/heads/")
        self.logger.info(
            "ci event repo=%s branch=%s status=%s",
            event.repository.name,
            branch_name,
            context.input("JOB_STATUS"),
        )
        run, trigger_mention = await self._run_and_actor(event.repository.name, context)
        notice = WorkflowNotice(
            status=context.input("JOB_STATUS"),
            repo_name=event.repository.name,
            repo_url=event.repository.url,
            trigger_mention=trigger_mention,
            sha=context.sha,
            duration=format_duration(duration_minutes(run.run_started_at)),
            workflow_name=run.name,
            workflow_url=run.html_url,
            image_tag=context.input("IMAGE_TAG"),
            branch_name=branch_name,
            failed_jobs=split_job_names(context.input("JOB_NAME")),
        )
        return await self._post(build_message(notice), label="ci")

    async def _run_and_actor(self, repo: str, context: ActionContext) -> tuple[WorkflowRun, str]:
        run = await asyncio.to_thread(self.services.github.fetch_workflow_run, repo, context.run_id)
        if not run.actor:
            return run, "N/A"
        slack_id = await self.services.identity.resolve_one(run.actor, "id")
        return run, f"<@{slack_id}>"

    async def _post(self, message: SlackMessage, *, label: str) -> int:
        channel_id = self.services.config.deploy_channel_id
        await self.services.sender.send(channel_id, message)
        self.logger.info("%s notification sent channel=%s", label, channel_id)
        return 1
