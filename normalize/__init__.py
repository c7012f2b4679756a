"""
Normalize package: platform-independent data model and payload normalizers.
"""

from .models import (
    BitbucketIdentity,
    ContributionCalendar,
    ContributionDay,
    ContributorStats,
    Credential,
    GitHubIdentity,
    GitLabIdentity,
    LanguageShare,
    PlatformId,
    RepositoryAnalysis,
    RepositoryStats,
    RepositorySummary,
    WeeklyCommitBucket,
)

__all__ = [
    "PlatformId",
    "Credential",
    "GitHubIdentity",
    "GitLabIdentity",
    "BitbucketIdentity",
    "RepositorySummary",
    "WeeklyCommitBucket",
    "RepositoryStats",
    "ContributionDay",
    "ContributionCalendar",
    "ContributorStats",
    "LanguageShare",
    "RepositoryAnalysis",
]
