"""Builtin report templates seeded into every database."""

from __future__ import annotations

from git_reporter.templates.models import ReportTemplate, TemplateVariable

_FOOTER = "---\nGenerated automatically by Git Reporter"

DAILY_STANDUP = ReportTemplate(
    id="builtin-daily-standup",
    name="Daily Standup",
    description="Daily commit report",
    builtin=True,
    content="""# Daily Standup - {{date}}

## Repository: {{repoName}}

### Today's commits ({{commitCount}})

{{commits}}

""" + _FOOTER,
    variables=[
        TemplateVariable("date", "Report date", "2025-12-01"),
        TemplateVariable("repoName", "Repository name", "acme/api"),
        TemplateVariable("commitCount", "Number of commits", "5"),
        TemplateVariable("commits", "Commit list", "1. feat: add feature (a1b2c3d)"),
    ],
)

WEEKLY_REVIEW = ReportTemplate(
    id="builtin-weekly-review",
    name="Weekly Review",
    description="Weekly activity summary",
    builtin=True,
    content="""# Weekly Review - {{dateRange}}

## Summary

**Repository**: {{repoName}}
**Commits**: {{commitCount}}
**Contributors**: {{contributorCount}}

### Commits this week

{{commits}}

### Stats
- Lines added: {{linesAdded}}
- Lines removed: {{linesRemoved}}

""" + _FOOTER,
    variables=[
        TemplateVariable("dateRange", "Date range", "2025-11-25 - 2025-12-01"),
        TemplateVariable("repoName", "Repository name", "acme/api"),
        TemplateVariable("commitCount", "Number of commits", "25"),
        TemplateVariable("contributorCount", "Number of contributors", "3"),
        TemplateVariable("commits", "Commit list", "1. feat: add feature (a1b2c3d)"),
        TemplateVariable("linesAdded", "Lines added", "150"),
        TemplateVariable("linesRemoved", "Lines removed", "50"),
    ],
)

RELEASE_NOTES = ReportTemplate(
    id="builtin-release-notes",
    name="Release Notes",
    description="Release notes grouped by commit type",
    builtin=True,
    content="""# Release Notes - {{version}}

## New features

{{featCommits}}

## Bug fixes

{{fixCommits}}

## Documentation

{{docsCommits}}

---
Release date: {{date}}
Repository: {{repoName}}""",
    variables=[
        TemplateVariable("version", "Version label", "2025.12.01"),
        TemplateVariable("featCommits", "Feature commits", "1. feat: add login (a1b2c3d)"),
        TemplateVariable("fixCommits", "Fix commits", "1. fix: crash on start (d4e5f6a)"),
        TemplateVariable(
            "docsCommits", "Documentation commits", "1. docs: update README (b7c8d9e)"
        ),
        TemplateVariable("date", "Release date", "2025-12-01"),
        TemplateVariable("repoName", "Repository name", "acme/api"),
    ],
)

BUILTIN_TEMPLATES: tuple[ReportTemplate, ...] = (DAILY_STANDUP, WEEKLY_REVIEW, RELEASE_NOTES)
