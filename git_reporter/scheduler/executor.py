"""ReportExecutor: runs the report pipeline for one schedule firing."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from git_reporter.config import settings
from git_reporter.errors import ExternalServiceError, NotFoundError, ValidationError
from git_reporter.github.fetcher import parse_repo
from git_reporter.reports.activity import aggregate, enrich_commits
from git_reporter.reports.context import build_context, default_report
from git_reporter.reports.history import ExecutionRecord
from git_reporter.scheduler.cron import get_next_run, validate_cron
from git_reporter.scheduler.models import CHANNELS
from git_reporter.templates.renderer import render

if TYPE_CHECKING:
    from git_reporter.github.fetcher import CommitFetcher
    from git_reporter.notifications.channels import DispatchResult, NotificationDispatcher
    from git_reporter.reports.history import ReportHistory
    from git_reporter.scheduler.models import ScheduleConfig
    from git_reporter.scheduler.store import ScheduleStore
    from git_reporter.templates.store import TemplateStore

logger = logging.getLogger(__name__)


@dataclass
class ExecutionResult:
    """Outcome of one pipeline run.

    ``status`` is one of ``sent``, ``dispatch_failed``, ``fetch_failed``,
    ``skipped`` or ``failed``.
    """

    schedule_id: str
    status: str
    record_id: str | None = None
    commit_count: int = 0
    error: str | None = None
    elapsed_ms: int = 0

    @property
    def success(self) -> bool:
        return self.status == "sent"


class _RunState:
    """Tracks the current stage and timing of a single execution."""

    def __init__(self, schedule_id: str) -> None:
        self.schedule_id = schedule_id
        self.stage = "reload"
        self._started = time.monotonic()

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self._started) * 1000)

    def result(self, status: str, **kwargs: Any) -> ExecutionResult:
        return ExecutionResult(self.schedule_id, status, elapsed_ms=self.elapsed_ms, **kwargs)


class ReportExecutor:
    """Runs the fetch → enrich → aggregate → render → dispatch → persist →
    reschedule pipeline for a schedule.

    At most one execution per schedule id runs at a time; a second request
    that arrives while one is in flight is skipped.

    Args:
        store: ScheduleStore holding schedule configurations.
        templates: TemplateStore for linked report templates.
        history: ReportHistory receiving one record per fetched window.
        fetcher: CommitFetcher for repository activity.
        dispatcher: NotificationDispatcher for delivery.
        timezone: IANA timezone for cron evaluation and report dates.
        lookback_hours: Window size when a schedule has never run.
        timeout: Seconds allowed for each external call.
        enrichment_concurrency: Parallel per-commit stats calls.
    """

    def __init__(
        self,
        store: ScheduleStore,
        templates: TemplateStore,
        history: ReportHistory,
        fetcher: CommitFetcher,
        dispatcher: NotificationDispatcher,
        *,
        timezone: str | None = None,
        lookback_hours: int | None = None,
        timeout: float | None = None,
        enrichment_concurrency: int | None = None,
    ) -> None:
        self._store = store
        self._templates = templates
        self._history = history
        self._fetcher = fetcher
        self._dispatcher = dispatcher
        self._timezone = timezone or settings.scheduler_timezone
        self._lookback = timedelta(hours=lookback_hours or settings.default_lookback_hours)
        self._timeout = timeout or settings.external_call_timeout
        self._concurrency = enrichment_concurrency or settings.enrichment_concurrency
        self._locks: dict[str, asyncio.Lock] = {}

    def is_running(self, schedule_id: str) -> bool:
        lock = self._locks.get(schedule_id)
        return lock is not None and lock.locked()

    async def execute(
        self,
        schedule_id: str,
        *,
        now: datetime | None = None,
        manual: bool = False,
    ) -> ExecutionResult:
        """Run the pipeline once for *schedule_id*.

        Pipeline failures are logged and reported in the result, never
        raised.  For manual runs, NotFoundError and ValidationError
        propagate to the caller.
        """
        lock = self._locks.setdefault(schedule_id, asyncio.Lock())
        if lock.locked():
            logger.warning("Schedule %s is already running; skipping this firing", schedule_id)
            return ExecutionResult(schedule_id, "skipped", error="already running")

        try:
            async with lock:
                state = _RunState(schedule_id)
                logger.info("Executing schedule %s (manual=%s)", schedule_id, manual)
                try:
                    return await self._run(state, now or datetime.now(UTC))
                except (NotFoundError, ValidationError) as exc:
                    logger.warning(
                        "Schedule %s rejected at stage=%s after %dms: %s",
                        schedule_id,
                        state.stage,
                        state.elapsed_ms,
                        exc,
                    )
                    if manual:
                        raise
                    return state.result("failed", error=str(exc))
                except Exception as exc:
                    logger.exception(
                        "Schedule %s failed at stage=%s after %dms",
                        schedule_id,
                        state.stage,
                        state.elapsed_ms,
                    )
                    return state.result("failed", error=str(exc))
        finally:
            # Nothing waits on a schedule lock; drop it once released
            if not lock.locked():
                self._locks.pop(schedule_id, None)

    # -- Pipeline --------------------------------------------------------------

    async def _run(self, state: _RunState, now: datetime) -> ExecutionResult:
        # 1. Reload from the store, never from a registration-time copy
        config = await self._store.get_schedule(state.schedule_id)
        if config is None:
            msg = f"Schedule not found: {state.schedule_id}"
            raise NotFoundError(msg)
        if not config.active:
            logger.info("Skipping inactive schedule %s", config.id)
            return state.result("skipped", error="inactive")
        self._check_config(config)

        template = None
        if config.template_id:
            template = await self._templates.get_template(config.template_id)
            if template is None:
                logger.warning(
                    "Template %s for schedule %s not found; using default format",
                    config.template_id,
                    config.id,
                )

        # 2. Window
        state.stage = "window"
        since = config.last_run or (now - self._lookback)
        until = now

        # 3. Fetch: on failure, leave last_run alone so the window is retried
        state.stage = "fetch"
        try:
            commits = await asyncio.wait_for(
                self._fetcher.list_commits(config.repo_name, since, until), self._timeout
            )
        except Exception as exc:
            error = (
                exc
                if isinstance(exc, ExternalServiceError)
                else ExternalServiceError("github", "fetch", str(exc) or type(exc).__name__)
            )
            logger.error(
                "Schedule %s: %s (stage=fetch, elapsed=%dms); window since %s kept for next run",
                config.id,
                error,
                state.elapsed_ms,
                since.isoformat(),
            )
            return state.result("fetch_failed", error=str(error))

        # 4. Enrich
        state.stage = "enrich"
        enriched, failures = await enrich_commits(
            self._fetcher,
            config.repo_name,
            commits,
            concurrency=self._concurrency,
            timeout=self._timeout,
        )

        # 5-6. Aggregate and build the render context
        state.stage = "aggregate"
        summary = aggregate(enriched, failures)
        context = build_context(
            config.repo_name,
            summary,
            since,
            until,
            timezone=self._timezone,
            date_format=settings.report_date_format,
        )

        # 7. Render
        state.stage = "render"
        if template is not None:
            content = render(template.content, context.as_pairs())
        else:
            content = default_report(context, summary)

        # 8. Dispatch: failures are logged, not retried
        state.stage = "dispatch"
        delivery = await self._dispatch(config, content, state)

        # 9. Persist, regardless of dispatch outcome
        state.stage = "persist"
        record = await self._history.append(
            ExecutionRecord(
                owner_id=config.owner_id,
                repositories=[config.repo_name],
                content=content,
                recipient=config.recipient,
                channel=config.channel,
            )
        )

        # 10. Reschedule
        state.stage = "reschedule"
        next_run = get_next_run(config.cron_expression, now, self._timezone)
        await self._store.update_schedule(config.id, last_run=now, next_run=next_run)

        status = "sent" if delivery is not None and delivery.ok else "dispatch_failed"
        logger.info(
            "Schedule %s finished: status=%s commits=%d enrichment_failures=%d "
            "elapsed=%dms next_run=%s",
            config.id,
            status,
            summary.commit_count,
            len(summary.failures),
            state.elapsed_ms,
            next_run.isoformat(),
        )
        return state.result(
            status,
            record_id=record.id,
            commit_count=summary.commit_count,
            error=None if status == "sent" else (delivery.error if delivery else "dispatch error"),
        )

    @staticmethod
    def _check_config(config: ScheduleConfig) -> None:
        if config.channel not in CHANNELS:
            msg = f"Unknown channel '{config.channel}' (expected one of {', '.join(CHANNELS)})"
            raise ValidationError(msg)
        if not config.recipient:
            msg = "Schedule has no recipient"
            raise ValidationError(msg)
        parse_repo(config.repo_name)
        validate_cron(config.cron_expression)

    async def _dispatch(
        self, config: ScheduleConfig, content: str, state: _RunState
    ) -> DispatchResult | None:
        """Send *content* over the schedule's channel. Returns None on error."""
        try:
            if config.channel == "email":
                coro = self._dispatcher.send_email(
                    config.recipient, f"Automated report - {config.repo_name}", content
                )
            else:
                coro = self._dispatcher.send_message(config.recipient, content)
            result = await asyncio.wait_for(coro, self._timeout)
        except Exception as exc:
            error = ExternalServiceError(config.channel, "dispatch", str(exc) or type(exc).__name__)
            logger.error(
                "Schedule %s: %s (elapsed=%dms)", config.id, error, state.elapsed_ms
            )
            return None

        if not result.ok:
            error = ExternalServiceError(config.channel, "dispatch", result.error or "rejected")
            logger.error(
                "Schedule %s: %s (elapsed=%dms)", config.id, error, state.elapsed_ms
            )
        else:
            logger.info(
                "Report for %s sent via %s to %s",
                config.repo_name,
                config.channel,
                config.recipient,
            )
        return result
