"""
Bitbucket Cloud REST client (api.bitbucket.org/2.0).

Listings come wrapped in an envelope: {'values': [...], 'next': url, 'size': n}.
Commit activity is reconstructed from the first page of commits; Bitbucket exposes no
issues, stars or forks on this API surface.
"""
import logging
from typing import Any, Dict, List

from errors import TransportError
from normalize.models import BitbucketIdentity, PlatformId, RepositoryStats, RepositorySummary
from normalize.util import bitbucket_commit_time, normalize_bitbucket_repo
from stats.reconciler import HARD_ERRORS, gather_partial, reconstruct_from_commits, record_partial
from stats.weekly import EMPTY_ACTIVITY_WEEKS, zero_buckets
from transport import http
from .base import PlatformClient

logger = logging.getLogger(__name__)

# Bitbucket caps pagelen at 100
MAX_PAGELEN = 100


class BitbucketClient(PlatformClient):
    platform = PlatformId.BITBUCKET
    identity_type = BitbucketIdentity
    url_setting = 'bitbucket_url'
    max_page_size = MAX_PAGELEN

    async def list_repositories(self) -> List[RepositorySummary]:
        repos = await http.paginate_envelope(
            self._url('/repositories'),
            self.headers,
            params={'role': 'member', 'pagelen': self.page_size},
            max_pages=self.settings.max_pages,
            timeout=self.timeout,
            platform=self.platform.value,
        )
        logger.debug("Listed %d Bitbucket repositories", len(repos))
        return [normalize_bitbucket_repo(r) for r in repos if isinstance(r, dict)]

    async def verify_connection(self) -> Dict[str, Any]:
        return await self._get_json('/user')

    def identity_for(self, summary: RepositorySummary) -> BitbucketIdentity:
        self._check_summary(summary)
        workspace, _, slug = summary.full_name.partition('/')
        return BitbucketIdentity(workspace=workspace, slug=slug)

    async def _envelope(self, path: str, params: Dict[str, Any] = None) -> Dict[str, Any]:
        data = await self._get_json(path, params=params)
        if not isinstance(data, dict):
            raise TransportError(f"Expected a paginated envelope from {path}", platform=self.platform.value)
        return data

    async def _recent_commits(self, repo_path: str) -> List[Dict[str, Any]]:
        data = await self._envelope(f"{repo_path}/commits", params={'pagelen': MAX_PAGELEN})
        return list(data.get('values') or [])

    async def _count_pull_requests(self, repo_path: str) -> int:
        data = await self._envelope(f"{repo_path}/pullrequests")
        size = data.get('size')
        if isinstance(size, int):
            return size
        return len(data.get('values') or [])

    async def get_repository_stats(self, identity: BitbucketIdentity) -> RepositoryStats:
        self._check_identity(identity)
        label = f"bitbucket:{identity}"
        repo_path = f"/repositories/{identity.workspace}/{identity.slug}"

        results, failures = await gather_partial(
            commits=self._recent_commits(repo_path),
            pull_requests=self._count_pull_requests(repo_path),
        )
        if isinstance(failures.get('commits'), HARD_ERRORS):
            raise failures['commits']

        if 'commits' in failures:
            record_partial(label, 'Commit history', failures['commits'], self.platform.value)
            commits, buckets, source = 0, zero_buckets(EMPTY_ACTIVITY_WEEKS), 'empty'
        else:
            commits, buckets, source = reconstruct_from_commits(results['commits'], bitbucket_commit_time, label, keep_weeks=EMPTY_ACTIVITY_WEEKS)

        if 'pull_requests' in failures:
            record_partial(label, 'Pull requests', failures['pull_requests'], self.platform.value)

        return RepositoryStats(
            commits=commits,
            pull_requests=results.get('pull_requests', 0),
            issues=0,
            stars=0,
            forks=0,
            commit_activity=buckets,
            source=source,
        )
