"""Commit fetcher: lists and enriches repository activity via PyGithub."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from github import Github, GithubException

from git_reporter.config import settings
from git_reporter.errors import ExternalServiceError, ValidationError
from git_reporter.reports.activity import CommitStats, CommitSummary

if TYPE_CHECKING:
    from datetime import datetime

logger = logging.getLogger(__name__)


@runtime_checkable
class CommitFetcher(Protocol):
    """Source of commit activity for a repository."""

    async def list_commits(
        self, repo: str, since: datetime, until: datetime
    ) -> list[CommitSummary]:
        """Return commits authored in ``[since, until)``."""
        ...

    async def get_commit_detail(self, repo: str, sha: str) -> CommitStats:
        """Return additions/deletions for a single commit."""
        ...


def parse_repo(repo: str) -> str:
    """Validate 'owner/repo' format and return it."""
    parts = (repo or "").split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        msg = f"Invalid repo format '{repo}'. Expected 'owner/repo'."
        raise ValidationError(msg)
    return repo


def _github_error_message(exc: GithubException) -> str:
    """Extract a human-readable message from a GithubException."""
    if exc.data and isinstance(exc.data, dict):
        return exc.data.get("message", str(exc))
    return str(exc)


class GitHubCommitFetcher:
    """CommitFetcher backed by the GitHub REST API.

    PyGithub is synchronous, so every call runs in a worker thread.

    Args:
        token: GitHub token (default from settings).
        max_commits: Upper bound on commits returned per window.
    """

    def __init__(self, token: str | None = None, max_commits: int | None = None) -> None:
        self._token = token if token is not None else settings.github_token
        self._max_commits = max_commits or settings.max_commits_per_report
        self._client: Github | None = None

    def _get_github(self) -> Github:
        """Lazily create and cache a PyGithub client."""
        if self._client is None:
            if not self._token:
                msg = "GITHUB_TOKEN is not configured."
                raise ExternalServiceError("github", "auth", msg)
            self._client = Github(self._token)
        return self._client

    async def list_commits(
        self, repo: str, since: datetime, until: datetime
    ) -> list[CommitSummary]:
        slug = parse_repo(repo)
        gh = self._get_github()

        def _collect() -> list[CommitSummary]:
            r = gh.get_repo(slug)
            commits = []
            for c in r.get_commits(since=since, until=until)[: self._max_commits]:
                author = c.commit.author
                date = author.date if author else None
                # GitHub's until is inclusive; keep the window half-open
                if date is not None and date >= until:
                    continue
                commits.append(
                    CommitSummary(
                        sha=c.sha,
                        message=c.commit.message,
                        author=(author.name if author and author.name else "Unknown"),
                        date=date,
                        url=c.html_url,
                    )
                )
            return commits

        try:
            commits = await asyncio.to_thread(_collect)
        except GithubException as exc:
            raise ExternalServiceError("github", "fetch", _github_error_message(exc)) from exc
        logger.info(
            "Fetched %d commit(s) for %s between %s and %s",
            len(commits),
            slug,
            since.isoformat(),
            until.isoformat(),
        )
        return commits

    async def get_commit_detail(self, repo: str, sha: str) -> CommitStats:
        slug = parse_repo(repo)
        gh = self._get_github()

        def _stats() -> CommitStats:
            c = gh.get_repo(slug).get_commit(sha)
            stats = c.stats
            if stats is None:
                return CommitStats()
            return CommitStats(additions=stats.additions or 0, deletions=stats.deletions or 0)

        try:
            return await asyncio.to_thread(_stats)
        except GithubException as exc:
            raise ExternalServiceError("github", "enrich", _github_error_message(exc)) from exc
