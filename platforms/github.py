"""
GitHub REST client.
"""
import logging
from typing import Any, Dict, List

from errors import RateLimitError, TransportError
from normalize.models import GitHubIdentity, PlatformId, RepositoryAnalysis, RepositoryStats, RepositorySummary
from normalize.util import github_commit_time, normalize_github_repo
from stats.analysis import average_per_week, contributor_stats, language_shares
from stats.reconciler import gather_partial, poll_until_ready, record_partial, resolve_commit_activity
from transport import http
from .base import PlatformClient

logger = logging.getLogger(__name__)

RECENT_COMMITS = 100

# gather_partial keys -> names used when a sub-fetch degrades
SUB_FETCHES = {
    'contributors': 'Contributor statistics',
    'languages': 'Languages',
    'pull_requests': 'Pull requests',
    'open_pull_requests': 'Open pull requests',
    'listed_issues': 'Issues',
    'listed_open_issues': 'Open issues',
}


class GitHubClient(PlatformClient):
    """Client for the GitHub REST API (api.github.com or a GitHub Enterprise /api/v3 root)."""

    platform = PlatformId.GITHUB
    identity_type = GitHubIdentity
    url_setting = 'github_url'

    def __init__(self, token: str, base_url: str = None, settings=None):
        super().__init__(token, base_url=base_url, settings=settings)
        self.headers.update({
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        })

    async def _paginate(self, path: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        return await http.paginate_pages(
            self._url(path),
            self.headers,
            params=params,
            page_size=self.page_size,
            max_pages=self.settings.max_pages,
            timeout=self.timeout,
            platform=self.platform.value,
        )

    async def _count(self, path: str, **params: Any) -> int:
        return await http.count_items(self._url(path), self.headers, params=params, timeout=self.timeout, platform=self.platform.value)

    async def list_repositories(self) -> List[RepositorySummary]:
        repos = await self._paginate('/user/repos', {'sort': 'updated'})
        logger.debug("Listed %d GitHub repositories", len(repos))
        return [normalize_github_repo(r) for r in repos if isinstance(r, dict)]

    async def verify_connection(self) -> Dict[str, Any]:
        return await self._get_json('/user')

    def identity_for(self, summary: RepositorySummary) -> GitHubIdentity:
        self._check_summary(summary)
        owner, _, repo = summary.full_name.partition('/')
        return GitHubIdentity(owner=owner, repo=repo)

    async def _repository(self, identity: GitHubIdentity) -> Dict[str, Any]:
        repo = await self._get_json(f'/repos/{identity}')
        if not isinstance(repo, dict):
            raise TransportError(f"Unexpected repository payload for {identity}", platform=self.platform.value)
        return repo

    async def _fetch_recent_commits(self, identity: GitHubIdentity) -> List[Dict[str, Any]]:
        data = await self._get_json(f'/repos/{identity}/commits', params={'per_page': RECENT_COMMITS})
        if not isinstance(data, list):
            raise TransportError(f"Unexpected commit listing for {identity}", platform=self.platform.value)
        return data

    def _commit_activity(self, identity: GitHubIdentity, label: str):
        return resolve_commit_activity(
            fetch_native=lambda: self._get(f'/repos/{identity}/stats/commit_activity'),
            fetch_recent_commits=lambda: self._fetch_recent_commits(identity),
            commit_time=github_commit_time,
            max_attempts=self.settings.stats_max_attempts,
            backoff_seconds=self.settings.stats_backoff_seconds,
            label=label,
            platform=self.platform.value,
        )

    def _record_failures(self, label: str, failures: Dict[str, BaseException]) -> None:
        for name, exc in failures.items():
            record_partial(label, SUB_FETCHES.get(name, name), exc, self.platform.value)

    def _issues_only(self, label: str, results: Dict[str, Any], failures: Dict[str, BaseException], listed: str, pulls: str) -> int:
        # the issues listing also counts pull requests, so they are subtracted
        if listed in failures:
            return 0
        if pulls in failures:
            record_partial(label, SUB_FETCHES[listed], failures[pulls], self.platform.value)
            return 0
        return max(0, results[listed] - results[pulls])

    async def get_repository_stats(self, identity: GitHubIdentity) -> RepositoryStats:
        self._check_identity(identity)
        label = f"github:{identity}"
        repo = await self._repository(identity)

        results, failures = await gather_partial(
            activity=self._commit_activity(identity, label),
            pull_requests=self._count(f'/repos/{identity}/pulls', state='all'),
            listed_issues=self._count(f'/repos/{identity}/issues', state='all'),
        )
        if 'activity' in failures:
            raise failures['activity']
        self._record_failures(label, failures)

        activity = results['activity']
        return RepositoryStats(
            commits=activity.commits,
            pull_requests=results.get('pull_requests', 0),
            issues=self._issues_only(label, results, failures, 'listed_issues', 'pull_requests'),
            stars=int(repo.get('stargazers_count') or 0),
            forks=int(repo.get('forks_count') or 0),
            commit_activity=activity.buckets,
            source=activity.source,
        )

    async def analyze_repository(self, identity: GitHubIdentity) -> RepositoryAnalysis:
        """
        Repository metadata, activity totals, contributor statistics and language breakdown.

        Contributor statistics are computed asynchronously by GitHub like commit activity and
        are polled the same way; when they are still not ready the analysis has no contributors.
        Rate limiting on any sub-fetch fails the call; other sub-fetch failures degrade to empty values.
        """
        self._check_identity(identity)
        label = f"github:{identity}"
        repo = await self._repository(identity)

        results, failures = await gather_partial(
            activity=self._commit_activity(identity, label),
            contributors=poll_until_ready(
                lambda: self._get(f'/repos/{identity}/stats/contributors'),
                max_attempts=self.settings.stats_max_attempts,
                backoff_seconds=self.settings.stats_backoff_seconds,
                label=label,
                what='Contributor statistics',
            ),
            languages=self._get_json(f'/repos/{identity}/languages'),
            pull_requests=self._count(f'/repos/{identity}/pulls', state='all'),
            open_pull_requests=self._count(f'/repos/{identity}/pulls', state='open'),
            listed_issues=self._count(f'/repos/{identity}/issues', state='all'),
            listed_open_issues=self._count(f'/repos/{identity}/issues', state='open'),
        )
        if 'activity' in failures:
            raise failures['activity']
        for exc in failures.values():
            if isinstance(exc, RateLimitError):
                raise exc
        self._record_failures(label, failures)

        if 'contributors' in results and results['contributors'] is None:
            logger.warning("Contributor statistics for %s are still being computed; reporting none", label)
        languages = results.get('languages')

        activity = results['activity']
        return RepositoryAnalysis(
            full_name=repo.get('full_name') or str(identity),
            name=repo.get('name') or identity.repo,
            description=repo.get('description'),
            stars=int(repo.get('stargazers_count') or 0),
            forks=int(repo.get('forks_count') or 0),
            watchers=int(repo.get('watchers_count') or 0),
            open_issues_count=int(repo.get('open_issues_count') or 0),
            created_at=repo.get('created_at'),
            updated_at=repo.get('updated_at'),
            total_commits=activity.commits,
            average_commits_per_week=average_per_week(activity.buckets),
            pull_requests=results.get('pull_requests', 0),
            open_pull_requests=results.get('open_pull_requests', 0),
            issues=self._issues_only(label, results, failures, 'listed_issues', 'pull_requests'),
            open_issues=self._issues_only(label, results, failures, 'listed_open_issues', 'open_pull_requests'),
            contributors=contributor_stats(results.get('contributors') or []),
            languages=language_shares(languages if isinstance(languages, dict) else {}),
            commit_activity=activity.buckets,
            source=activity.source,
        )
