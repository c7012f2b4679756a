"""
Report renderer: text/Markdown/CSV/JSON/HTML views of repository listings,
repository stats, repository analyses and contribution calendars.
HTML goes through the Jinja2 templates in report/templates.
"""

import csv
import io
import json
import os
from collections import OrderedDict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from jinja2 import Environment, FileSystemLoader, select_autoescape

from normalize.models import ContributionCalendar, RepositoryAnalysis, RepositoryStats, RepositorySummary

TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), 'templates')

ESTIMATE_NOTE = "Daily counts are estimated by spreading weekly commit totals evenly over each week."


def _env() -> Environment:
    return Environment(loader=FileSystemLoader(TEMPLATE_DIR), autoescape=select_autoescape(['html', 'xml', 'html.j2']))


def _week_label(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime('%Y-%m-%d')


def monthly_totals(calendar: ContributionCalendar) -> "OrderedDict[str, int]":
    """Sum calendar days per YYYY-MM, in calendar order."""
    totals: "OrderedDict[str, int]" = OrderedDict()
    for day in calendar.days:
        key = day.date.strftime('%Y-%m')
        totals[key] = totals.get(key, 0) + day.count
    return totals


# --- repositories ---

def _repositories_text(repos: Sequence[RepositorySummary]) -> str:
    if not repos:
        return "No repositories found."
    lines = [f"{len(repos)} repositories"]
    for r in repos:
        visibility = 'private' if r.is_private else 'public'
        lines.append(f"- {r.full_name} [{r.platform.value}, {visibility}] stars={r.stars} forks={r.forks} updated={r.updated_at or '-'}")
    return "\n".join(lines)


def _repositories_markdown(repos: Sequence[RepositorySummary]) -> str:
    md = ["# Repositories\n", "| Repository | Platform | Private | Stars | Forks | Updated |", "|---|---|---|---|---|---|"]
    for r in repos:
        md.append(f"| {r.full_name} | {r.platform.value} | {'yes' if r.is_private else 'no'} | {r.stars} | {r.forks} | {r.updated_at or ''} |")
    return "\n".join(md)


def _repositories_csv(repos: Sequence[RepositorySummary]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(['platform', 'full_name', 'name', 'is_private', 'stars', 'forks', 'default_branch', 'updated_at', 'url'])
    for r in repos:
        writer.writerow([r.platform.value, r.full_name, r.name, r.is_private, r.stars, r.forks, r.default_branch or '', r.updated_at or '', r.url or ''])
    return output.getvalue()


# --- stats ---

def _stats_text(label: str, stats: RepositoryStats) -> str:
    lines = [
        f"Repository: {label}",
        f"Commits: {stats.commits}",
        f"Pull Requests: {stats.pull_requests}",
        f"Issues: {stats.issues}",
        f"Stars: {stats.stars}",
        f"Forks: {stats.forks}",
        f"Commit activity ({stats.source}):",
    ]
    for b in stats.commit_activity:
        lines.append(f"  {_week_label(b.week)}  {b.total}")
    if stats.source == 'reconstructed':
        lines.append("Note: commit activity was reconstructed from recent commits; totals may undercount long histories.")
    return "\n".join(lines)


def _stats_markdown(label: str, stats: RepositoryStats) -> str:
    md = [f"# Repository Stats: {label}\n"]
    md.append(f"- Commits: **{stats.commits}**")
    md.append(f"- Pull Requests: **{stats.pull_requests}**")
    md.append(f"- Issues: **{stats.issues}**")
    md.append(f"- Stars: **{stats.stars}**")
    md.append(f"- Forks: **{stats.forks}**")
    md.append(f"- Activity source: `{stats.source}`\n")
    md.append("| Week | Commits |")
    md.append("|---|---|")
    for b in stats.commit_activity:
        md.append(f"| {_week_label(b.week)} | {b.total} |")
    return "\n".join(md)


def _stats_csv(stats: RepositoryStats) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(['week_start', 'week_epoch', 'total'])
    for b in stats.commit_activity:
        writer.writerow([_week_label(b.week), b.week, b.total])
    return output.getvalue()


# --- analysis ---

def _analysis_text(label: str, analysis: RepositoryAnalysis) -> str:
    lines = [
        f"Repository: {label}",
        f"Description: {analysis.description or '-'}",
        f"Created: {analysis.created_at or '-'}  Updated: {analysis.updated_at or '-'}",
        f"Stars: {analysis.stars}  Forks: {analysis.forks}  Watchers: {analysis.watchers}",
        f"Commits: {analysis.total_commits} ({analysis.average_commits_per_week:.2f} per week, {analysis.source})",
        f"Pull Requests: {analysis.pull_requests} ({analysis.open_pull_requests} open)",
        f"Issues: {analysis.issues} ({analysis.open_issues} open)",
    ]
    if analysis.languages:
        lines.append("Languages: " + ", ".join(f"{s.language} {s.percentage}%" for s in analysis.languages))
    lines.append(f"Contributors: {len(analysis.contributors)}")
    for c in analysis.contributors:
        lines.append(f"  {c.login}  commits={c.commits} +{c.additions} -{c.deletions} weeks_active={c.weeks_active}")
    return "\n".join(lines)


def _analysis_markdown(label: str, analysis: RepositoryAnalysis) -> str:
    md = [f"# Repository Analysis: {label}\n"]
    if analysis.description:
        md.append(f"{analysis.description}\n")
    md.append(f"- Commits: **{analysis.total_commits}** ({analysis.average_commits_per_week:.2f} per week)")
    md.append(f"- Pull Requests: **{analysis.pull_requests}** ({analysis.open_pull_requests} open)")
    md.append(f"- Issues: **{analysis.issues}** ({analysis.open_issues} open)")
    md.append(f"- Stars / Forks / Watchers: {analysis.stars} / {analysis.forks} / {analysis.watchers}")
    md.append(f"- Activity source: `{analysis.source}`\n")
    if analysis.languages:
        md.append("| Language | Share |")
        md.append("|---|---|")
        for s in analysis.languages:
            md.append(f"| {s.language} | {s.percentage}% |")
        md.append("")
    md.append("| Contributor | Commits | Additions | Deletions | Weeks active |")
    md.append("|---|---|---|---|---|")
    for c in analysis.contributors:
        md.append(f"| {c.login} | {c.commits} | {c.additions} | {c.deletions} | {c.weeks_active} |")
    return "\n".join(md)


def _analysis_csv(analysis: RepositoryAnalysis) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(['login', 'commits', 'additions', 'deletions', 'weeks_active'])
    for c in analysis.contributors:
        writer.writerow([c.login, c.commits, c.additions, c.deletions, c.weeks_active])
    return output.getvalue()


# --- calendar ---

def _calendar_text(calendar: ContributionCalendar) -> str:
    lines = [
        f"Contributions (estimated): {calendar.total_contributions}",
        f"Window: {calendar.start} to {calendar.end}",
    ]
    for month, total in monthly_totals(calendar).items():
        lines.append(f"  {month}  {total}")
    if calendar.failed_repositories:
        lines.append(f"Skipped repositories: {', '.join(calendar.failed_repositories)}")
    lines.append(ESTIMATE_NOTE)
    return "\n".join(lines)


def _calendar_markdown(calendar: ContributionCalendar) -> str:
    md = ["# Contribution Calendar\n"]
    md.append(f"- Total contributions: **{calendar.total_contributions}** (estimated)")
    md.append(f"- Window: {calendar.start} to {calendar.end}\n")
    md.append("| Month | Contributions |")
    md.append("|---|---|")
    for month, total in monthly_totals(calendar).items():
        md.append(f"| {month} | {total} |")
    if calendar.failed_repositories:
        md.append("\nSkipped repositories: " + ", ".join(f"`{r}`" for r in calendar.failed_repositories))
    md.append(f"\n_{ESTIMATE_NOTE}_")
    return "\n".join(md)


def _calendar_csv(calendar: ContributionCalendar) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(['date', 'count'])
    for day in calendar.days:
        writer.writerow([day.date.isoformat(), day.count])
    return output.getvalue()


def calendar_weeks(calendar: ContributionCalendar) -> List[List[Dict[str, Any]]]:
    """Group calendar days into columns of 7 for the HTML grid."""
    weeks: List[List[Dict[str, Any]]] = []
    peak = max((d.count for d in calendar.days), default=0)
    for i, day in enumerate(calendar.days):
        if i % 7 == 0:
            weeks.append([])
        level = 0 if not day.count or not peak else min(4, 1 + (4 * day.count - 1) // peak)
        weeks[-1].append({'date': day.date.isoformat(), 'count': day.count, 'level': level})
    return weeks


def render(
    fmt: str = 'text',
    repositories: Optional[Sequence[RepositorySummary]] = None,
    stats: Optional[RepositoryStats] = None,
    calendar: Optional[ContributionCalendar] = None,
    analysis: Optional[RepositoryAnalysis] = None,
    label: str = '',
    generated_at: Optional[str] = None,
) -> str:
    """Main render function. Exactly one of repositories, stats, calendar or analysis is rendered, in that order of preference."""
    fmt_l = (fmt or 'text').lower()
    generated_at = generated_at or datetime.now(timezone.utc).isoformat()

    if repositories is not None:
        if fmt_l in ('md', 'markdown'):
            return _repositories_markdown(repositories)
        if fmt_l == 'csv':
            return _repositories_csv(repositories)
        if fmt_l == 'json':
            return json.dumps([r.to_dict() for r in repositories], indent=2, default=str)
        if fmt_l in ('html', 'htm'):
            return _env().get_template('repositories.html.j2').render(repositories=repositories, generated_at=generated_at)
        return _repositories_text(repositories)

    if stats is not None:
        if fmt_l in ('md', 'markdown'):
            return _stats_markdown(label, stats)
        if fmt_l == 'csv':
            return _stats_csv(stats)
        if fmt_l == 'json':
            return json.dumps(dict(repository=label, **stats.to_dict()), indent=2)
        if fmt_l in ('html', 'htm'):
            weeks = [{'label': _week_label(b.week), 'total': b.total} for b in stats.commit_activity]
            return _env().get_template('stats.html.j2').render(label=label, stats=stats, weeks=weeks, generated_at=generated_at)
        return _stats_text(label, stats)

    if calendar is not None:
        if fmt_l in ('md', 'markdown'):
            return _calendar_markdown(calendar)
        if fmt_l == 'csv':
            return _calendar_csv(calendar)
        if fmt_l == 'json':
            return json.dumps(calendar.to_dict(), indent=2)
        if fmt_l in ('html', 'htm'):
            return _env().get_template('calendar.html.j2').render(
                calendar=calendar,
                weeks=calendar_weeks(calendar),
                months=monthly_totals(calendar),
                note=ESTIMATE_NOTE,
                generated_at=generated_at,
            )
        return _calendar_text(calendar)

    if analysis is not None:
        if fmt_l in ('md', 'markdown'):
            return _analysis_markdown(label, analysis)
        if fmt_l == 'csv':
            return _analysis_csv(analysis)
        if fmt_l == 'json':
            return json.dumps(dict(repository=label, **analysis.to_dict()), indent=2)
        if fmt_l in ('html', 'htm'):
            weeks = [{'label': _week_label(b.week), 'total': b.total} for b in analysis.commit_activity]
            return _env().get_template('analysis.html.j2').render(label=label, analysis=analysis, weeks=weeks, generated_at=generated_at)
        return _analysis_text(label, analysis)

    return ''
