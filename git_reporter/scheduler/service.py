"""ScheduleService: validated create/update/delete/toggle/run-now operations."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from git_reporter.errors import NotFoundError, ValidationError
from git_reporter.github.fetcher import parse_repo
from git_reporter.scheduler.cron import validate_cron
from git_reporter.scheduler.models import CHANNELS, ScheduleConfig, make_schedule_id

if TYPE_CHECKING:
    from git_reporter.scheduler.engine import SchedulerEngine
    from git_reporter.scheduler.executor import ExecutionResult
    from git_reporter.scheduler.store import ScheduleStore
    from git_reporter.templates.store import TemplateStore

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = frozenset({
    "repo_name",
    "cron_expression",
    "channel",
    "recipient",
    "template_id",
    "active",
})


class ScheduleService:
    """Entry point for callers that manage schedules on behalf of an owner.

    Every operation checks ownership and input before it reaches the
    SchedulerEngine.
    """

    def __init__(
        self,
        store: ScheduleStore,
        engine: SchedulerEngine,
        templates: TemplateStore | None = None,
    ) -> None:
        self._store = store
        self._engine = engine
        self._templates = templates

    async def list_schedules(self, owner_id: str) -> list[ScheduleConfig]:
        return await self._store.list_schedules(owner_id=owner_id)

    async def get_schedule(self, schedule_id: str, owner_id: str) -> ScheduleConfig:
        """Return the owner's schedule or raise NotFoundError."""
        config = await self._store.get_schedule(schedule_id)
        if config is None or config.owner_id != owner_id:
            msg = f"Schedule not found: {schedule_id}"
            raise NotFoundError(msg)
        return config

    async def create_schedule(
        self,
        owner_id: str,
        *,
        repo_name: str,
        cron_expression: str,
        channel: str,
        recipient: str,
        template_id: str | None = None,
    ) -> ScheduleConfig:
        required = {
            "repo_name": repo_name,
            "cron_expression": cron_expression,
            "channel": channel,
            "recipient": recipient,
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            msg = f"Missing required fields: {', '.join(missing)}"
            raise ValidationError(msg)

        config = ScheduleConfig(
            id=make_schedule_id(),
            owner_id=owner_id,
            repo_name=repo_name,
            cron_expression=cron_expression,
            channel=channel,
            recipient=recipient,
            template_id=template_id,
        )
        await self._check_fields(config)
        created = await self._engine.add_job(config)
        logger.info("Schedule %s created for %s by %s", created.id, repo_name, owner_id)
        return created

    async def update_schedule(
        self, schedule_id: str, owner_id: str, **changes: Any
    ) -> ScheduleConfig:
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            msg = f"Cannot update fields: {', '.join(sorted(unknown))}"
            raise ValidationError(msg)

        existing = await self.get_schedule(schedule_id, owner_id)
        updated = replace(existing, **changes)
        await self._check_fields(updated)
        return await self._engine.update_job(updated)

    async def toggle_schedule(self, schedule_id: str, owner_id: str) -> ScheduleConfig:
        """Flip the active flag."""
        existing = await self.get_schedule(schedule_id, owner_id)
        return await self.update_schedule(schedule_id, owner_id, active=not existing.active)

    async def delete_schedule(self, schedule_id: str, owner_id: str) -> None:
        await self.get_schedule(schedule_id, owner_id)
        self._engine.remove_job(schedule_id)
        await self._store.delete_schedule(schedule_id)
        logger.info("Schedule %s deleted by %s", schedule_id, owner_id)

    async def run_now(self, schedule_id: str, owner_id: str) -> ExecutionResult:
        await self.get_schedule(schedule_id, owner_id)
        return await self._engine.run_job(schedule_id)

    # -- Internal --------------------------------------------------------------

    async def _check_fields(self, config: ScheduleConfig) -> None:
        if config.channel not in CHANNELS:
            msg = f"Invalid channel '{config.channel}' (expected one of {', '.join(CHANNELS)})"
            raise ValidationError(msg)
        if not config.recipient:
            msg = "Recipient is required"
            raise ValidationError(msg)
        parse_repo(config.repo_name)
        validate_cron(config.cron_expression)
        if config.template_id and self._templates is not None:
            template = await self._templates.get_template(config.template_id)
            if template is None or (not template.builtin and template.owner_id != config.owner_id):
                msg = f"Template not found: {config.template_id}"
                raise NotFoundError(msg)
