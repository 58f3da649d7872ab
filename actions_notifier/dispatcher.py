"""Routes an action type to its notification pipeline."""
from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from enum import Enum

from .comment_events import CommentEventPipeline
from .errors import UnknownEventKindError
from .event_pipeline import ActionContext
from .review_events import ReviewEventPipeline
from .services import NotifierServices
from .workflow_events import WorkflowEventPipeline

EventHandler = Callable[[ActionContext], Awaitable[int]]


class EventKind(str, Enum):
    COMMENT = "comment"
    APPROVE = "approve"
    REVIEW_REQUESTED = "review_requested"
    CHANGES_REQUESTED = "changes_requested"
    SCHEDULE = "schedule"
    DEPLOY = "deploy"
    CI = "ci"


class EventDispatcher:
    def __init__(self, services: NotifierServices):
        self.services = services
        self.logger = logging.getLogger("event_dispatcher")
        comments = CommentEventPipeline(services)
        reviews = ReviewEventPipeline(services)
        workflows = WorkflowEventPipeline(services)
        self._handlers: dict[EventKind, EventHandler] = {
            EventKind.COMMENT: lambda context: comments.handle(context.payload),
            EventKind.APPROVE: lambda context: reviews.handle_approve(context.payload),
            EventKind.REVIEW_REQUESTED: lambda context: reviews.handle_review_requested(context.payload),
            EventKind.CHANGES_REQUESTED: lambda context: reviews.handle_changes_requested(context.payload),
            EventKind.SCHEDULE: lambda context: reviews.handle_schedule(context.payload),
            EventKind.DEPLOY: workflows.handle_deploy,
            EventKind.CI: workflows.handle_ci,
        }

    @staticmethod
    def supported_kinds() -> list[str]:
        return [kind.value for kind in EventKind]

    @classmethod
    def parse_kind(cls, raw_kind: str) -> EventKind:
        normalized = str(raw_kind or "").strip().lower()
        try:
            return EventKind(normalized)
        except ValueError as exc:
            raise UnknownEventKindError(str(raw_kind), cls.supported_kinds()) from exc

    async def dispatch(self, raw_kind: str, context: ActionContext) -> int:
        """Run the pipeline for `raw_kind`; returns how many Slack messages were sent."""
        kind = self.parse_kind(raw_kind)
        self.logger.info("dispatching event kind=%s run_id=%s", kind.value, context.run_id)
        sent = await self._handlers[kind](context)
        self.logger.info("event handled kind=%s messages=%s", kind.value, sent)
        return sent
