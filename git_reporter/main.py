"""Git Reporter entry point."""

import asyncio
import logging

from git_reporter.config import settings
from git_reporter.github.fetcher import GitHubCommitFetcher
from git_reporter.notifications import ChannelDispatcher, EmailChannel, MessageChannel
from git_reporter.reports.history import ReportHistory
from git_reporter.scheduler.engine import SchedulerEngine
from git_reporter.scheduler.executor import ReportExecutor
from git_reporter.scheduler.store import ScheduleStore
from git_reporter.templates.store import TemplateStore

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


def build_engine() -> tuple[SchedulerEngine, ChannelDispatcher, TemplateStore]:
    """Wire stores, fetcher, dispatcher, executor, and engine from settings."""
    store = ScheduleStore()
    templates = TemplateStore()
    dispatcher = ChannelDispatcher(
        email=EmailChannel() if settings.email_configured else None,
        message=MessageChannel() if settings.whatsapp_configured else None,
    )
    executor = ReportExecutor(
        store=store,
        templates=templates,
        history=ReportHistory(),
        fetcher=GitHubCommitFetcher(),
        dispatcher=dispatcher,
    )
    engine = SchedulerEngine(store=store, executor=executor)
    return engine, dispatcher, templates


async def serve() -> None:
    """Start the scheduler and run until cancelled."""
    engine, dispatcher, templates = build_engine()
    if not dispatcher.list_channels():
        logger.warning("No notification channels configured; reports will be recorded but not sent")
    if not settings.github_token:
        logger.warning("GITHUB_TOKEN is empty; every scheduled fetch will fail")

    await templates.seed_builtin()
    await engine.initialize()
    try:
        await asyncio.Event().wait()
    finally:
        await engine.shutdown()
        await dispatcher.close()


def main() -> None:
    """Run the report scheduler."""
    logger.info("Starting Git Reporter (tz=%s)...", settings.scheduler_timezone)
    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        logger.info("Git Reporter stopped")


if __name__ == "__main__":
    main()
