"""SchedulerEngine: APScheduler lifecycle and report job management."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from git_reporter.config import settings
from git_reporter.errors import NotFoundError, ValidationError
from git_reporter.scheduler.cron import build_trigger, get_next_run, validate_cron

if TYPE_CHECKING:
    from git_reporter.scheduler.executor import ExecutionResult, ReportExecutor
    from git_reporter.scheduler.models import ScheduleConfig
    from git_reporter.scheduler.store import ScheduleStore

logger = logging.getLogger(__name__)


class SchedulerEngine:
    """Keeps one APScheduler job per active schedule.

    Each firing runs on APScheduler's asyncio executor as its own task, so a
    slow report never holds up other schedules.  Jobs use
    ``max_instances=1`` and the executor holds a per-schedule lock, so a
    schedule never runs concurrently with itself.

    Args:
        store: ScheduleStore for persistence.
        executor: ReportExecutor that runs the pipeline.
        timezone: IANA timezone string (default from settings).
        max_active: Active schedules allowed per owner (default from settings).
    """

    def __init__(
        self,
        store: ScheduleStore,
        executor: ReportExecutor,
        timezone: str | None = None,
        max_active: int | None = None,
    ) -> None:
        self._store = store
        self._executor = executor
        self._timezone = timezone or settings.scheduler_timezone
        self._max_active = max_active or settings.max_active_schedules
        self._scheduler = AsyncIOScheduler(timezone=self._timezone)
        self._initialized = False
        # Serializes validate -> persist -> register across add and update
        self._lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def timezone(self) -> str:
        return self._timezone

    # -- Lifecycle -------------------------------------------------------------

    async def initialize(self) -> None:
        """Load active schedules from the store, create jobs, and start the scheduler."""
        if self._initialized:
            logger.warning("Scheduler already initialized")
            return

        configs = await self._store.list_schedules(active=True)
        registered = 0
        for config in configs:
            try:
                next_run = self.get_next_run(config.cron_expression, self._reference_time(config))
            except ValidationError as exc:
                logger.error("Skipping schedule %s: %s", config.id, exc)
                continue
            self._register(config)
            await self._store.update_schedule(config.id, next_run=next_run)
            registered += 1

        if not self._scheduler.running:
            self._scheduler.start()
        self._initialized = True
        logger.info(
            "Scheduler initialized with %d job(s) (tz=%s)",
            registered,
            self._timezone,
        )

    async def shutdown(self) -> None:
        """Cancel every job and stop the scheduler. In-flight runs complete."""
        count = len(self._scheduler.get_jobs())
        self._scheduler.remove_all_jobs()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._initialized = False
        logger.info("Scheduler stopped (%d job(s) cancelled)", count)

    # -- Job management --------------------------------------------------------

    async def validate(self, config: ScheduleConfig) -> None:
        """Check the cron expression and the owner's active-schedule cap."""
        validate_cron(config.cron_expression)
        if config.active:
            count = await self._store.count_active(config.owner_id, exclude_id=config.id)
            if count >= self._max_active:
                msg = (
                    f"Active schedule limit reached ({self._max_active}) "
                    f"for owner {config.owner_id}"
                )
                raise ValidationError(msg)

    async def add_job(self, config: ScheduleConfig) -> ScheduleConfig:
        """Validate, persist, and register a job for an active schedule.

        The row is inserted if it does not exist yet; otherwise every mutable
        field is overwritten so the stored row matches the live timer.
        Nothing is changed when validation fails.
        """
        if not config.active:
            msg = f"Cannot schedule inactive schedule {config.id}"
            raise ValidationError(msg)
        async with self._lock:
            await self.validate(config)
            config.next_run = self.get_next_run(
                config.cron_expression, self._reference_time(config)
            )
            if await self._store.get_schedule(config.id) is None:
                await self._store.create_schedule(config)
            else:
                await self._save(config)
            self._register(config)
        logger.info(
            "Added job for schedule %s (%s, cron=%r, next_run=%s)",
            config.id,
            config.repo_name,
            config.cron_expression,
            config.next_run.isoformat(),
        )
        return config

    def remove_job(self, schedule_id: str) -> bool:
        """Cancel a schedule's job. Returns False if there was none."""
        try:
            self._scheduler.remove_job(schedule_id)
        except JobLookupError:
            logger.debug("Job %s not found in scheduler (may already be removed)", schedule_id)
            return False
        logger.info("Removed job for schedule %s", schedule_id)
        return True

    async def update_job(self, config: ScheduleConfig) -> ScheduleConfig:
        """Persist a changed schedule and swap its job.

        The job is re-registered only if the schedule is active.  Validation
        happens first, so a rejected update leaves the old job running.
        """
        async with self._lock:
            existing = await self._store.get_schedule(config.id)
            if existing is None:
                msg = f"Schedule not found: {config.id}"
                raise NotFoundError(msg)
            await self.validate(config)

            cron_changed = existing.cron_expression != config.cron_expression
            if config.active or cron_changed:
                config.next_run = self.get_next_run(
                    config.cron_expression, self._reference_time(config)
                )
            else:
                config.next_run = existing.next_run

            await self._save(config)
            if config.active:
                self._register(config)
            else:
                self.remove_job(config.id)
        logger.info(
            "Updated schedule %s (active=%s, cron_changed=%s)",
            config.id,
            config.active,
            cron_changed,
        )
        return config

    async def run_job(self, schedule_id: str) -> ExecutionResult:
        """Run a schedule's pipeline now, bypassing its timer."""
        logger.info("Running schedule %s manually", schedule_id)
        return await self._executor.execute(schedule_id, manual=True)

    def get_next_run(self, cron_expression: str, now: datetime | None = None) -> datetime:
        """First fire time strictly after *now* in the scheduler's timezone."""
        return get_next_run(cron_expression, now, self._timezone)

    # -- Introspection ---------------------------------------------------------

    def has_job(self, schedule_id: str) -> bool:
        return self._scheduler.get_job(schedule_id) is not None

    def job_ids(self) -> list[str]:
        return [job.id for job in self._scheduler.get_jobs()]

    def status(self) -> dict[str, Any]:
        jobs = self.job_ids()
        return {"initialized": self._initialized, "active_jobs": len(jobs), "jobs": jobs}

    # -- Internal --------------------------------------------------------------

    @staticmethod
    def _reference_time(config: ScheduleConfig) -> datetime:
        """max(last_run, created_at), never earlier than now."""
        now = datetime.now(UTC)
        reference = max(
            (t for t in (config.last_run, config.created_at) if t is not None),
            default=now,
        )
        return max(reference, now)

    async def _save(self, config: ScheduleConfig) -> None:
        await self._store.update_schedule(
            config.id,
            repo_name=config.repo_name,
            cron_expression=config.cron_expression,
            channel=config.channel,
            recipient=config.recipient,
            template_id=config.template_id,
            active=config.active,
            next_run=config.next_run,
        )

    def _register(self, config: ScheduleConfig) -> None:
        """Create (or replace) the APScheduler job for a schedule."""
        trigger = build_trigger(config.cron_expression, self._timezone)
        # Drop any existing job first: before start(), replace_existing does
        # not dedupe pending jobs
        if self._scheduler.get_job(config.id) is not None:
            self._scheduler.remove_job(config.id)
        self._scheduler.add_job(
            self._fire,
            trigger=trigger,
            id=config.id,
            name=f"report:{config.repo_name}",
            args=[config.id],
            max_instances=1,
            coalesce=True,
            misfire_grace_time=None,
            replace_existing=True,
        )

    async def _fire(self, schedule_id: str) -> None:
        """Callback invoked by APScheduler. Outcomes are only logged."""
        result = await self._executor.execute(schedule_id)
        logger.info(
            "Scheduled run for %s ended with status=%s (%dms)",
            schedule_id,
            result.status,
            result.elapsed_ms,
        )
