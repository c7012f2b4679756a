"""
Unified data models for normalized repositories, stats and contribution calendars.
All entities are immutable and rebuilt from scratch on every fetch.
"""
from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from errors import UnsupportedPlatformError

SECONDS_PER_WEEK = 7 * 24 * 60 * 60


class PlatformId(str, Enum):
    GITHUB = 'GITHUB'
    GITLAB = 'GITLAB'
    BITBUCKET = 'BITBUCKET'

    @classmethod
    def parse(cls, value: Union[str, 'PlatformId']) -> 'PlatformId':
        """Accept a PlatformId or a case-insensitive platform name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                pass
        raise UnsupportedPlatformError(f"Unsupported platform: {value!r}", platform=str(value))


@dataclass(frozen=True)
class Credential:
    platform: PlatformId
    token: str = field(repr=False)


@dataclass(frozen=True)
class GitHubIdentity:
    owner: str
    repo: str

    def __str__(self):
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True)
class GitLabIdentity:
    project_id: Union[int, str]

    def __str__(self):
        return str(self.project_id)


@dataclass(frozen=True)
class BitbucketIdentity:
    workspace: str
    slug: str

    def __str__(self):
        return f"{self.workspace}/{self.slug}"


RepositoryIdentity = Union[GitHubIdentity, GitLabIdentity, BitbucketIdentity]


@dataclass(frozen=True)
class RepositorySummary:
    id: Any
    name: str
    full_name: str
    description: Optional[str]
    is_private: bool
    url: Optional[str]
    default_branch: Optional[str]
    stars: int
    forks: int
    updated_at: Optional[str]
    platform: PlatformId

    @property
    def key(self) -> Tuple[PlatformId, str]:
        return (self.platform, self.full_name)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['platform'] = self.platform.value
        return data


@dataclass(frozen=True, order=True)
class WeeklyCommitBucket:
    week: int  # epoch seconds of the week start
    total: int = 0

    @property
    def week_index(self) -> int:
        return self.week // SECONDS_PER_WEEK


@dataclass(frozen=True)
class RepositoryStats:
    """
    Normalized statistics for one repository.

    source tells how commit_activity was produced:
    'native' (platform aggregate), 'reconstructed' (derived from a sample of recent commits,
    so commits may undercount long histories) or 'empty' (no commit data was obtainable).
    """
    commits: int
    pull_requests: int
    issues: int
    stars: int
    forks: int
    commit_activity: Tuple[WeeklyCommitBucket, ...] = ()
    source: str = 'native'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'commits': self.commits,
            'pull_requests': self.pull_requests,
            'issues': self.issues,
            'stars': self.stars,
            'forks': self.forks,
            'source': self.source,
            'commit_activity': [{'week': b.week, 'total': b.total} for b in self.commit_activity],
        }


@dataclass(frozen=True)
class ContributionDay:
    date: date
    count: int = 0


@dataclass(frozen=True)
class ContributionCalendar:
    """Daily contribution counts estimated by spreading weekly buckets over their days."""
    days: Tuple[ContributionDay, ...]
    total_contributions: int
    failed_repositories: Tuple[str, ...] = ()
    estimated: bool = True

    @property
    def start(self) -> Optional[date]:
        return self.days[0].date if self.days else None

    @property
    def end(self) -> Optional[date]:
        return self.days[-1].date if self.days else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_contributions': self.total_contributions,
            'estimated': self.estimated,
            'failed_repositories': list(self.failed_repositories),
            'days': [{'date': d.date.isoformat(), 'count': d.count} for d in self.days],
        }


@dataclass(frozen=True)
class ContributorStats:
    login: str
    avatar_url: Optional[str]
    commits: int
    additions: int
    deletions: int
    weeks_active: int  # weeks with at least one commit


@dataclass(frozen=True)
class LanguageShare:
    language: str
    bytes: int
    percentage: float  # of all bytes in the repository, one decimal


@dataclass(frozen=True)
class RepositoryAnalysis:
    """
    In-depth view of one GitHub repository: repository metadata, activity totals,
    per-contributor statistics and the language breakdown.

    open_issues excludes pull requests; GitHub's own open_issues_count (kept as
    open_issues_count) includes them.
    """
    full_name: str
    name: str
    description: Optional[str]
    stars: int
    forks: int
    watchers: int
    open_issues_count: int
    created_at: Optional[str]
    updated_at: Optional[str]
    total_commits: int
    average_commits_per_week: float
    pull_requests: int
    open_pull_requests: int
    issues: int
    open_issues: int
    contributors: Tuple[ContributorStats, ...] = ()
    languages: Tuple[LanguageShare, ...] = ()
    commit_activity: Tuple[WeeklyCommitBucket, ...] = ()
    source: str = 'native'

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['average_commits_per_week'] = round(self.average_commits_per_week, 2)
        return data
