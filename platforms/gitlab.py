"""
GitLab REST client (gitlab.com or a self-managed /api/v4 root).

GitLab has no aggregated weekly commit endpoint, so commit activity is always
reconstructed from one page of recent commits. Issues, stars and forks are not fetched.
"""
import logging
from typing import Any, Dict, List

from errors import TransportError
from normalize.models import GitLabIdentity, PlatformId, RepositoryStats, RepositorySummary
from normalize.util import gitlab_commit_time, normalize_gitlab_project
from stats.reconciler import HARD_ERRORS, gather_partial, reconstruct_from_commits, record_partial
from stats.weekly import EMPTY_ACTIVITY_WEEKS, zero_buckets
from transport import http
from .base import PlatformClient

logger = logging.getLogger(__name__)

RECENT_COMMITS = 100


class GitLabClient(PlatformClient):
    platform = PlatformId.GITLAB
    identity_type = GitLabIdentity
    url_setting = 'gitlab_url'

    async def list_repositories(self) -> List[RepositorySummary]:
        projects = await http.paginate_pages(
            self._url('/projects'),
            self.headers,
            params={'membership': 'true', 'order_by': 'last_activity_at'},
            page_size=self.page_size,
            max_pages=self.settings.max_pages,
            timeout=self.timeout,
            platform=self.platform.value,
        )
        logger.debug("Listed %d GitLab projects", len(projects))
        return [normalize_gitlab_project(p) for p in projects if isinstance(p, dict)]

    async def verify_connection(self) -> Dict[str, Any]:
        return await self._get_json('/user')

    def identity_for(self, summary: RepositorySummary) -> GitLabIdentity:
        self._check_summary(summary)
        return GitLabIdentity(project_id=summary.id)

    async def _list(self, path: str, **params: Any) -> List[Dict[str, Any]]:
        params['per_page'] = RECENT_COMMITS
        data = await self._get_json(path, params=params)
        if not isinstance(data, list):
            raise TransportError(f"Expected a JSON array from {path}", platform=self.platform.value)
        return data

    async def get_repository_stats(self, identity: GitLabIdentity) -> RepositoryStats:
        self._check_identity(identity)
        label = f"gitlab:{identity}"
        project = f"/projects/{identity.project_id}"

        results, failures = await gather_partial(
            commits=self._list(f"{project}/repository/commits"),
            merge_requests=self._list(f"{project}/merge_requests", state='all'),
        )
        if isinstance(failures.get('commits'), HARD_ERRORS):
            raise failures['commits']

        if 'commits' in failures:
            record_partial(label, 'Commit history', failures['commits'], self.platform.value)
            commits, buckets, source = 0, zero_buckets(EMPTY_ACTIVITY_WEEKS), 'empty'
        else:
            commits, buckets, source = reconstruct_from_commits(results['commits'], gitlab_commit_time, label, keep_weeks=EMPTY_ACTIVITY_WEEKS)

        if 'merge_requests' in failures:
            record_partial(label, 'Merge requests', failures['merge_requests'], self.platform.value)

        return RepositoryStats(
            commits=commits,
            pull_requests=len(results.get('merge_requests', [])),
            issues=0,
            stars=0,
            forks=0,
            commit_activity=buckets,
            source=source,
        )
