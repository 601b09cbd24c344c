"""GitHub activity source."""

from git_reporter.github.fetcher import CommitFetcher, GitHubCommitFetcher, parse_repo

__all__ = ["CommitFetcher", "GitHubCommitFetcher", "parse_repo"]
