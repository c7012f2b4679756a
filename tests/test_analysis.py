import asyncio
import unittest

import pytest

from errors import RateLimitError
from normalize.models import GitHubIdentity, WeeklyCommitBucket
from platforms.github import GitHubClient
from stats.analysis import average_per_week, contributor_stats, language_shares
from tests.fakes import make_response

REPO = {
    'id': 1, 'name': 'r', 'full_name': 'o/r', 'description': 'A repo',
    'stargazers_count': 42, 'forks_count': 7, 'watchers_count': 42, 'open_issues_count': 12,
    'created_at': '2020-01-01T00:00:00Z', 'updated_at': '2024-06-01T00:00:00Z',
}

CONTRIBUTORS = [
    {'author': {'login': 'bob'}, 'weeks': [{'w': 1, 'a': 10, 'd': 2, 'c': 3}, {'w': 2, 'a': 0, 'd': 0, 'c': 0}]},
    {'author': {'login': 'amy', 'avatar_url': 'https://avatars/amy'},
     'weeks': [{'w': 1, 'a': 5, 'd': 1, 'c': 4}, {'w': 2, 'a': 1, 'd': 1, 'c': 1}]},
    {'author': None, 'weeks': [{'w': 1, 'a': 0, 'd': 0, 'c': 1}]},
]

WEEKS = [{'week': 1700006400 + i * 604800, 'total': t, 'days': [0] * 7} for i, t in enumerate([1, 2, 3, 6])]


class TestAnalysisHelpers(unittest.TestCase):
    def test_contributor_totals_sorted_by_commits(self):
        stats = contributor_stats(CONTRIBUTORS)
        self.assertEqual([c.login for c in stats], ['amy', 'bob', 'ghost'])
        amy = stats[0]
        self.assertEqual((amy.commits, amy.additions, amy.deletions, amy.weeks_active), (5, 6, 2, 2))
        self.assertEqual(amy.avatar_url, 'https://avatars/amy')
        self.assertEqual(stats[1].weeks_active, 1)

    def test_contributor_stats_ignores_junk(self):
        self.assertEqual(contributor_stats([None, 'x']), ())
        self.assertEqual(contributor_stats([{'author': {'login': 'z'}}])[0].commits, 0)

    def test_language_shares(self):
        shares = language_shares({'HTML': 250, 'Python': 750})
        self.assertEqual([(s.language, s.percentage) for s in shares], [('Python', 75.0), ('HTML', 25.0)])
        self.assertEqual(language_shares({}), ())
        self.assertEqual(language_shares({'Python': 0}), ())

    def test_average_per_week(self):
        buckets = tuple(WeeklyCommitBucket(week=i * 604800, total=t) for i, t in enumerate([1, 2, 3, 6]))
        self.assertEqual(average_per_week(buckets), 3.0)
        self.assertEqual(average_per_week(()), 0.0)


def _listing(path, totals):
    """Responder for a per_page=1 listing whose last page depends on the requested state."""
    def respond(params):
        total = totals[params['state']]
        link = f'<https://api.github.com/repos/o/r/{path}?state={params["state"]}&per_page=1&page={total}>; rel="last"'
        return make_response(200, [{'number': 1}], headers={'Link': link})
    return respond


def _route(api, contributors=None, languages=None):
    api.add('/repos/o/r', make_response(200, REPO))
    api.add('/repos/o/r/stats/commit_activity', make_response(200, WEEKS))
    api.add('/repos/o/r/stats/contributors', contributors if contributors is not None else make_response(200, CONTRIBUTORS))
    api.add('/repos/o/r/languages', languages if languages is not None else make_response(200, {'Python': 750, 'HTML': 250}))
    api.add('/repos/o/r/pulls', _listing('pulls', {'all': 30, 'open': 4}))
    api.add('/repos/o/r/issues', _listing('issues', {'all': 80, 'open': 12}))


def test_analyze_repository(api, fast_settings):
    _route(api, contributors=[make_response(202), make_response(200, CONTRIBUTORS)])

    analysis = asyncio.run(GitHubClient('t', settings=fast_settings).analyze_repository(GitHubIdentity('o', 'r')))

    assert len(api.calls_to('/stats/contributors')) == 2
    assert analysis.full_name == 'o/r'
    assert (analysis.stars, analysis.forks, analysis.watchers) == (42, 7, 42)
    assert analysis.open_issues_count == 12
    assert (analysis.total_commits, analysis.average_commits_per_week) == (12, 3.0)
    assert (analysis.pull_requests, analysis.open_pull_requests) == (30, 4)
    assert (analysis.issues, analysis.open_issues) == (50, 8)
    assert [c.login for c in analysis.contributors] == ['amy', 'bob', 'ghost']
    assert [(s.language, s.percentage) for s in analysis.languages] == [('Python', 75.0), ('HTML', 25.0)]
    assert analysis.source == 'native'
    assert analysis.to_dict()['contributors'][0]['login'] == 'amy'


def test_contributors_still_computing_reports_none(api, fast_settings, caplog):
    _route(api, contributors=make_response(202))
    analysis = asyncio.run(GitHubClient('t', settings=fast_settings).analyze_repository(GitHubIdentity('o', 'r')))
    assert len(api.calls_to('/stats/contributors')) == fast_settings.stats_max_attempts
    assert analysis.contributors == ()
    assert analysis.total_commits == 12
    assert 'still being computed' in caplog.text


def test_language_failure_degrades(api, fast_settings, caplog):
    _route(api, languages=make_response(500, {}))
    analysis = asyncio.run(GitHubClient('t', settings=fast_settings).analyze_repository(GitHubIdentity('o', 'r')))
    assert analysis.languages == ()
    assert len(analysis.contributors) == 3
    assert 'Languages unavailable' in caplog.text


def test_rate_limit_on_any_sub_fetch_fails_the_analysis(api, fast_settings):
    _route(api, languages=make_response(429, {}, headers={'Retry-After': '30'}))
    with pytest.raises(RateLimitError):
        asyncio.run(GitHubClient('t', settings=fast_settings).analyze_repository(GitHubIdentity('o', 'r')))
