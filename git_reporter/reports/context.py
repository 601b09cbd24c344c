"""Render context for report templates, and the template-less default report."""

from __future__ import annotations

import zoneinfo
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datetime import datetime

    from git_reporter.reports.activity import ActivitySummary, EnrichedCommit

_EMPTY_GROUP_TEXT = {
    "feature": "*No new features*",
    "fix": "*No bug fixes*",
    "docs": "*No documentation changes*",
    "other": "",
}


def format_commit_listing(commits: list[EnrichedCommit]) -> str:
    """Render commits as ``"<n>. <first line> (<short hash>)"`` lines."""
    return "\n".join(
        f"{i}. {c.commit.first_line} ({c.commit.short_sha})"
        for i, c in enumerate(commits, start=1)
    )


@dataclass
class ReportContext:
    """Variables available to report templates.

    The well-known variables are typed fields; ``extra`` carries any custom
    keys.  ``as_pairs()`` gives the ordered ``(name, value)`` list the
    renderer consumes, using the camelCase names templates reference.
    """

    repo_name: str
    commits: list[dict[str, str]]
    commit_count: int
    date: str
    date_range: str
    contributor_count: int
    lines_added: int
    lines_removed: int
    version: str
    feat_commits: str
    fix_commits: str
    docs_commits: str
    other_commits: str
    extra: dict[str, Any] = field(default_factory=dict)

    def as_pairs(self) -> list[tuple[str, Any]]:
        pairs: list[tuple[str, Any]] = [
            ("repoName", self.repo_name),
            ("commits", self.commits),
            ("commitCount", self.commit_count),
            ("date", self.date),
            ("dateRange", self.date_range),
            ("contributorCount", self.contributor_count),
            ("linesAdded", self.lines_added),
            ("linesRemoved", self.lines_removed),
            ("version", self.version),
            ("featCommits", self.feat_commits),
            ("fixCommits", self.fix_commits),
            ("docsCommits", self.docs_commits),
            ("otherCommits", self.other_commits),
        ]
        known = {name for name, _ in pairs}
        pairs.extend((k, v) for k, v in self.extra.items() if k not in known)
        return pairs


def build_context(
    repo_name: str,
    summary: ActivitySummary,
    since: datetime,
    until: datetime,
    *,
    timezone: str,
    date_format: str = "%Y-%m-%d",
) -> ReportContext:
    """Assemble the render context for one report window."""
    tz = zoneinfo.ZoneInfo(timezone)
    local_since = since.astimezone(tz)
    local_until = until.astimezone(tz)

    def _group(name: str) -> str:
        listing = format_commit_listing(summary.groups.get(name, []))
        return listing or _EMPTY_GROUP_TEXT[name]

    return ReportContext(
        repo_name=repo_name,
        commits=[
            {"message": c.commit.first_line, "sha": c.sha, "author": c.author}
            for c in summary.commits
        ],
        commit_count=summary.commit_count,
        date=local_until.strftime(date_format),
        date_range=f"{local_since.strftime(date_format)} - {local_until.strftime(date_format)}",
        contributor_count=summary.contributor_count,
        lines_added=summary.lines_added,
        lines_removed=summary.lines_removed,
        version=local_until.strftime("%Y.%m.%d"),
        feat_commits=_group("feature"),
        fix_commits=_group("fix"),
        docs_commits=_group("docs"),
        other_commits=_group("other"),
    )


def default_report(context: ReportContext, summary: ActivitySummary) -> str:
    """Minimal listing used when a schedule has no template."""
    lines = [
        f"# Automated report - {context.repo_name}",
        "",
        f"Date: {context.date}",
        f"Period: {context.date_range}",
        f"Commits: {context.commit_count}",
        f"Stats: +{context.lines_added} / -{context.lines_removed}",
        "",
        "## Commits",
    ]
    lines.extend(
        f"{i}. {c.commit.first_line} - {c.author}"
        for i, c in enumerate(summary.commits, start=1)
    )
    return "\n".join(lines)
