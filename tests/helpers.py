"""Test doubles shared across test modules."""

from __future__ import annotations

from git_reporter.errors import ExternalServiceError
from git_reporter.reports.activity import CommitStats, CommitSummary


class FakeFetcher:
    """In-memory CommitFetcher.

    Stats default to +10/-5 per commit; shas in *fail_shas* raise on
    enrichment, and *list_error* is raised by list_commits when set.
    """

    def __init__(
        self,
        commits: list[CommitSummary] | None = None,
        *,
        stats: dict[str, CommitStats] | None = None,
        fail_shas: tuple[str, ...] = (),
        list_error: Exception | None = None,
    ) -> None:
        self.commits = commits or []
        self.stats = stats or {}
        self.fail_shas = set(fail_shas)
        self.list_error = list_error
        self.list_calls: list[tuple] = []
        self.detail_calls: list[str] = []

    async def list_commits(self, repo, since, until):
        self.list_calls.append((repo, since, until))
        if self.list_error is not None:
            raise self.list_error
        return list(self.commits)

    async def get_commit_detail(self, repo, sha):
        self.detail_calls.append(sha)
        if sha in self.fail_shas:
            raise ExternalServiceError("github", "enrich", "502 Bad Gateway")
        return self.stats.get(sha, CommitStats(additions=10, deletions=5))


def make_commits(*messages: str, author: str = "alice") -> list[CommitSummary]:
    """Build commits with predictable shas: c0000001..., c0000002..., ..."""
    return [
        CommitSummary(sha=f"c{i:07d}{'f' * 33}", message=msg, author=author)
        for i, msg in enumerate(messages, start=1)
    ]
