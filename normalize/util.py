"""
Normalization utility helpers.
Small helpers to normalize raw platform payloads into normalize.models entities.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from normalize.models import PlatformId, RepositorySummary


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp as returned by the platforms ('Z' suffix or offset). Naive values are UTC."""
    if not value or not isinstance(value, str):
        return None
    try:
        dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def normalize_github_repo(raw: Dict[str, Any]) -> RepositorySummary:
    return RepositorySummary(
        id=raw.get('id'),
        name=raw.get('name') or '',
        full_name=raw.get('full_name') or '',
        description=raw.get('description'),
        is_private=bool(raw.get('private')),
        url=raw.get('html_url'),
        default_branch=raw.get('default_branch'),
        stars=_int(raw.get('stargazers_count')),
        forks=_int(raw.get('forks_count')),
        updated_at=raw.get('updated_at'),
        platform=PlatformId.GITHUB,
    )


def normalize_gitlab_project(raw: Dict[str, Any]) -> RepositorySummary:
    # GitLab reports visibility as a string; older payloads carry a 'public' flag
    visibility = raw.get('visibility')
    is_private = visibility != 'public' if visibility else not raw.get('public', False)
    return RepositorySummary(
        id=raw.get('id'),
        name=raw.get('name') or '',
        full_name=raw.get('path_with_namespace') or '',
        description=raw.get('description'),
        is_private=is_private,
        url=raw.get('web_url'),
        default_branch=raw.get('default_branch'),
        stars=_int(raw.get('star_count')),
        forks=_int(raw.get('forks_count')),
        updated_at=raw.get('last_activity_at'),
        platform=PlatformId.GITLAB,
    )


def normalize_bitbucket_repo(raw: Dict[str, Any]) -> RepositorySummary:
    """Bitbucket exposes neither stars nor forks on this API surface; both are 0."""
    links = raw.get('links') or {}
    html = links.get('html') or {}
    mainbranch = raw.get('mainbranch') or {}
    return RepositorySummary(
        id=raw.get('uuid'),
        name=raw.get('name') or '',
        full_name=raw.get('full_name') or '',
        description=raw.get('description'),
        is_private=bool(raw.get('is_private')),
        url=html.get('href'),
        default_branch=mainbranch.get('name'),
        stars=0,
        forks=0,
        updated_at=raw.get('updated_on'),
        platform=PlatformId.BITBUCKET,
    )


def github_commit_time(raw: Dict[str, Any]) -> Optional[datetime]:
    commit = raw.get('commit') or {}
    author = commit.get('author') or {}
    committer = commit.get('committer') or {}
    return parse_timestamp(author.get('date') or committer.get('date'))


def gitlab_commit_time(raw: Dict[str, Any]) -> Optional[datetime]:
    return parse_timestamp(raw.get('created_at') or raw.get('committed_date'))


def bitbucket_commit_time(raw: Dict[str, Any]) -> Optional[datetime]:
    return parse_timestamp(raw.get('date'))
