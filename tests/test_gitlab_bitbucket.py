import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from errors import AuthenticationError, IdentityMismatchError, RateLimitError
from normalize.models import BitbucketIdentity, GitHubIdentity, GitLabIdentity, PlatformId
from platforms.bitbucket import BitbucketClient
from platforms.gitlab import GitLabClient
from settings import Settings
from tests.fakes import make_response

BASE = datetime(2024, 2, 5, 10, tzinfo=timezone.utc)


def _gitlab_commits(weeks):
    return [{'id': str(w), 'created_at': (BASE + timedelta(weeks=w)).isoformat()} for w in weeks]


def _bitbucket_commits(weeks):
    return [{'hash': str(w), 'date': (BASE + timedelta(weeks=w)).isoformat()} for w in weeks]


class TestGitLabClient:
    def test_stats_reconstructed_from_commits(self, api, fast_settings):
        api.add('/projects/99/repository/commits', make_response(200, _gitlab_commits([0, 0, 1, 3])))
        api.add('/projects/99/merge_requests', make_response(200, [{'iid': 1}, {'iid': 2}, {'iid': 3}]))

        stats = asyncio.run(GitLabClient('t', settings=fast_settings).get_repository_stats(GitLabIdentity(99)))

        assert stats.commits == 4
        assert [b.total for b in stats.commit_activity] == [2, 1, 0, 1]
        assert stats.pull_requests == 3
        assert (stats.issues, stats.stars, stats.forks) == (0, 0, 0)
        assert stats.source == 'reconstructed'
        _, params = api.calls_to('/merge_requests')[0]
        assert params['state'] == 'all'

    def test_long_history_truncated_to_twelve_weeks(self, api, fast_settings):
        api.add('/projects/99/repository/commits', make_response(200, _gitlab_commits(range(30))))
        api.add('/projects/99/merge_requests', make_response(200, []))
        stats = asyncio.run(GitLabClient('t', settings=fast_settings).get_repository_stats(GitLabIdentity(99)))
        assert len(stats.commit_activity) == 12
        assert stats.commits == 30

    def test_merge_request_failure_degrades(self, api, fast_settings):
        api.add('/projects/99/repository/commits', make_response(200, _gitlab_commits([0])))
        api.add('/projects/99/merge_requests', make_response(500, {}))
        stats = asyncio.run(GitLabClient('t', settings=fast_settings).get_repository_stats(GitLabIdentity(99)))
        assert stats.pull_requests == 0
        assert stats.commits == 1

    def test_commit_transport_failure_degrades_to_zero_buckets(self, api, fast_settings):
        api.add('/projects/99/repository/commits', make_response(503, {}))
        api.add('/projects/99/merge_requests', make_response(200, [{'iid': 1}]))
        stats = asyncio.run(GitLabClient('t', settings=fast_settings).get_repository_stats(GitLabIdentity(99)))
        assert stats.source == 'empty'
        assert len(stats.commit_activity) == 12
        assert stats.pull_requests == 1

    def test_authentication_failure_propagates(self, api, fast_settings):
        api.add('/projects/99/repository/commits', make_response(401, {}))
        api.add('/projects/99/merge_requests', make_response(401, {}))
        with pytest.raises(AuthenticationError):
            asyncio.run(GitLabClient('t', settings=fast_settings).get_repository_stats(GitLabIdentity(99)))

    def test_list_projects(self, api, fast_settings):
        api.add('/projects', make_response(200, [
            {'id': 1, 'name': 'a', 'path_with_namespace': 'grp/a', 'visibility': 'private', 'star_count': 3},
            {'id': 2, 'name': 'b', 'path_with_namespace': 'grp/b', 'visibility': 'public'},
        ]))
        client = GitLabClient('t', settings=fast_settings)
        projects = asyncio.run(client.list_repositories())
        assert [p.full_name for p in projects] == ['grp/a', 'grp/b']
        assert projects[0].is_private and not projects[1].is_private
        assert projects[0].stars == 3
        assert client.identity_for(projects[1]) == GitLabIdentity(2)
        _, params = api.calls[0]
        assert params['membership'] == 'true'

    def test_rejects_github_identity(self, fast_settings):
        with pytest.raises(IdentityMismatchError):
            asyncio.run(GitLabClient('t', settings=fast_settings).get_repository_stats(GitHubIdentity('o', 'r')))

    def test_page_size_is_capped_at_one_hundred(self, api):
        projects = [{'id': i, 'name': f'p{i}', 'path_with_namespace': f'grp/p{i}'} for i in range(250)]

        def capped_page(params):
            per_page = min(params['per_page'], 100)
            start = (params['page'] - 1) * per_page
            return make_response(200, projects[start:start + per_page])

        api.add('/projects', capped_page)
        client = GitLabClient('t', settings=Settings(page_size=200, stats_backoff_seconds=0.0))
        listed = asyncio.run(client.list_repositories())
        assert len(listed) == 250
        assert {params['per_page'] for _, params in api.calls} == {100}


class TestBitbucketClient:
    def test_stats_from_envelopes(self, api, fast_settings):
        api.add('/repositories/ws/app/commits', make_response(200, {'values': _bitbucket_commits([0, 2]), 'next': 'ignored'}))
        api.add('/repositories/ws/app/pullrequests', make_response(200, {'values': [{'id': 1}], 'size': 17}))

        stats = asyncio.run(BitbucketClient('t', settings=fast_settings).get_repository_stats(BitbucketIdentity('ws', 'app')))

        assert stats.commits == 2
        assert [b.total for b in stats.commit_activity] == [1, 0, 1]
        assert stats.pull_requests == 17
        assert (stats.issues, stats.stars, stats.forks) == (0, 0, 0)

    def test_pull_request_count_without_size(self, api, fast_settings):
        api.add('/repositories/ws/app/commits', make_response(200, {'values': []}))
        api.add('/repositories/ws/app/pullrequests', make_response(200, {'values': [{'id': 1}, {'id': 2}]}))
        stats = asyncio.run(BitbucketClient('t', settings=fast_settings).get_repository_stats(BitbucketIdentity('ws', 'app')))
        assert stats.pull_requests == 2
        assert stats.commits == 0
        assert len(stats.commit_activity) == 12

    def test_rate_limit_propagates(self, api, fast_settings):
        api.add('/repositories/ws/app/commits', make_response(429, {}, headers={'Retry-After': '5'}))
        api.add('/repositories/ws/app/pullrequests', make_response(200, {'values': []}))
        with pytest.raises(RateLimitError) as ctx:
            asyncio.run(BitbucketClient('t', settings=fast_settings).get_repository_stats(BitbucketIdentity('ws', 'app')))
        assert ctx.value.retry_after == 5.0

    def test_list_repositories_follows_next(self, api, fast_settings):
        api.add('/repositories', [
            make_response(200, {
                'values': [{'uuid': '{a}', 'name': 'a', 'full_name': 'ws/a', 'is_private': True}],
                'next': 'https://api.bitbucket.org/2.0/repositories?role=member&page=2',
            }),
            make_response(200, {'values': [{'uuid': '{b}', 'name': 'b', 'full_name': 'ws/b'}]}),
        ])
        client = BitbucketClient('t', settings=fast_settings)
        repos = asyncio.run(client.list_repositories())
        assert [r.full_name for r in repos] == ['ws/a', 'ws/b']
        assert repos[0].platform == PlatformId.BITBUCKET
        assert repos[0].stars == 0
        assert client.identity_for(repos[0]) == BitbucketIdentity('ws', 'a')
        assert len(api.calls) == 2
        assert api.calls[0][1] == {'role': 'member', 'pagelen': 100}
        assert api.calls[1] == ('https://api.bitbucket.org/2.0/repositories?role=member&page=2', {})

    def test_pagelen_is_capped(self, api):
        api.add('/repositories', make_response(200, {'values': []}))
        asyncio.run(BitbucketClient('t', settings=Settings(page_size=500)).list_repositories())
        assert api.calls[0][1]['pagelen'] == 100
