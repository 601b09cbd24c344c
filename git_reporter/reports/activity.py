"""Commit activity: enrichment with change stats and aggregation."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from git_reporter.errors import PartialEnrichmentFailure

if TYPE_CHECKING:
    from datetime import datetime

    from git_reporter.github.fetcher import CommitFetcher

logger = logging.getLogger(__name__)

COMMIT_GROUPS = ("feature", "fix", "docs", "other")

# Case-insensitive prefixes matched against the first line of a commit message
_GROUP_PREFIXES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("feature", ("feat", "feature")),
    ("fix", ("fix", "bug")),
    ("docs", ("docs", "doc")),
)


@dataclass
class CommitSummary:
    """A commit as listed by the fetcher, before enrichment."""

    sha: str
    message: str
    author: str = "Unknown"
    date: datetime | None = None
    url: str = ""

    @property
    def first_line(self) -> str:
        return self.message.splitlines()[0] if self.message else ""

    @property
    def short_sha(self) -> str:
        return self.sha[:7]


@dataclass
class CommitStats:
    additions: int = 0
    deletions: int = 0

    @property
    def total(self) -> int:
        return self.additions + self.deletions


@dataclass
class EnrichedCommit:
    """A commit paired with its change stats.

    ``enriched`` is False when the stats call failed and zeros were used.
    """

    commit: CommitSummary
    stats: CommitStats
    enriched: bool = True

    @property
    def sha(self) -> str:
        return self.commit.sha

    @property
    def message(self) -> str:
        return self.commit.message

    @property
    def author(self) -> str:
        return self.commit.author


@dataclass
class ActivitySummary:
    """Aggregate view of the commits in one report window."""

    commits: list[EnrichedCommit] = field(default_factory=list)
    commit_count: int = 0
    contributor_count: int = 0
    lines_added: int = 0
    lines_removed: int = 0
    groups: dict[str, list[EnrichedCommit]] = field(
        default_factory=lambda: {name: [] for name in COMMIT_GROUPS}
    )
    failures: list[PartialEnrichmentFailure] = field(default_factory=list)


def classify_commit(message: str) -> str:
    """Return the group (feature, fix, docs, other) for a commit message."""
    first_line = (message.splitlines()[0] if message else "").strip().lower()
    for group, prefixes in _GROUP_PREFIXES:
        if first_line.startswith(prefixes):
            return group
    return "other"


async def enrich_commits(
    fetcher: CommitFetcher,
    repo: str,
    commits: list[CommitSummary],
    *,
    concurrency: int = 5,
    timeout: float | None = None,
) -> tuple[list[EnrichedCommit], list[PartialEnrichmentFailure]]:
    """Fetch stats for every commit concurrently.

    A failed or timed-out stats call never aborts the batch: the commit is
    kept with zero stats and a PartialEnrichmentFailure is recorded.
    Output order matches *commits*.
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))
    failures: list[PartialEnrichmentFailure] = []

    async def _enrich_one(commit: CommitSummary) -> EnrichedCommit:
        async with semaphore:
            try:
                stats = await asyncio.wait_for(
                    fetcher.get_commit_detail(repo, commit.sha), timeout
                )
                return EnrichedCommit(commit=commit, stats=stats)
            except Exception as exc:
                failure = PartialEnrichmentFailure(commit.sha, exc)
                failures.append(failure)
                logger.warning("%s (repo=%s)", failure, repo)
                return EnrichedCommit(commit=commit, stats=CommitStats(), enriched=False)

    enriched = await asyncio.gather(*(_enrich_one(c) for c in commits))
    return list(enriched), failures


def aggregate(
    commits: list[EnrichedCommit],
    failures: list[PartialEnrichmentFailure] | None = None,
) -> ActivitySummary:
    """Compute counts, line totals, and commit groups."""
    summary = ActivitySummary(commits=list(commits), failures=list(failures or []))
    summary.commit_count = len(commits)
    summary.contributor_count = len({c.author for c in commits})
    for c in commits:
        summary.lines_added += c.stats.additions
        summary.lines_removed += c.stats.deletions
        summary.groups[classify_commit(c.message)].append(c)
    return summary
