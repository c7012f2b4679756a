"""
Contribution aggregator: folds weekly commit activity of many repositories into one
daily contribution calendar covering [today - 365 days, today].

Daily granularity is not available from weekly buckets, so each bucket's total is spread
evenly over its seven days (total // 7 per day; the remainder is dropped). The result is an
estimate and is flagged as such.
"""
import asyncio
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from normalize.models import ContributionCalendar, ContributionDay, Credential, RepositoryStats, RepositorySummary, WeeklyCommitBucket
from platforms.base import PlatformClient
from platforms.factory import create_client
from settings import Settings, get_settings
from .reconciler import gather_partial

logger = logging.getLogger(__name__)

WINDOW_DAYS = 365
DAYS_PER_WEEK = 7


def calendar_window(today: Optional[date] = None) -> List[date]:
    """The 366 dates from today - 365 days through today, ascending."""
    today = today or datetime.now(timezone.utc).date()
    start = today - timedelta(days=WINDOW_DAYS)
    return [start + timedelta(days=i) for i in range(WINDOW_DAYS + 1)]


def spread_buckets(buckets: Iterable[WeeklyCommitBucket], counts: Dict[date, int]) -> None:
    """Add each bucket's per-day share onto the dates already present in counts."""
    for bucket in buckets:
        per_day = bucket.total // DAYS_PER_WEEK
        if per_day <= 0:
            continue
        week_start = datetime.fromtimestamp(bucket.week, tz=timezone.utc).date()
        for offset in range(DAYS_PER_WEEK):
            day = week_start + timedelta(days=offset)
            if day in counts:
                counts[day] += per_day


def build_calendar(stats: Iterable[RepositoryStats], today: Optional[date] = None, failed: Sequence[str] = ()) -> ContributionCalendar:
    counts = {d: 0 for d in calendar_window(today)}
    for repo_stats in stats:
        spread_buckets(repo_stats.commit_activity, counts)
    days = tuple(ContributionDay(date=d, count=counts[d]) for d in sorted(counts))
    return ContributionCalendar(
        days=days,
        total_contributions=sum(day.count for day in days),
        failed_repositories=tuple(failed),
    )


def _repo_label(summary: RepositorySummary) -> str:
    return f"{summary.platform.value}:{summary.full_name}"


class ContributionAggregator:
    """Fetches stats for a connection's repositories and folds them into a calendar."""

    def __init__(self, client: PlatformClient, concurrency: Optional[int] = None):
        self.client = client
        self.concurrency = max(1, int(concurrency or client.settings.calendar_concurrency or 1))

    async def _stats_for(self, summary: RepositorySummary, limiter: asyncio.Semaphore) -> Optional[RepositoryStats]:
        async with limiter:
            try:
                return await self.client.get_repository_stats(self.client.identity_for(summary))
            except Exception as exc:
                logger.warning("Skipping %s in contribution calendar: %s", _repo_label(summary), exc)
                return None

    async def collect_stats(self, repositories: Optional[Sequence[RepositorySummary]] = None) -> Tuple[List[RepositoryStats], List[str]]:
        """Stats for every repository (listing them when none are given) plus labels of those that failed."""
        if repositories is None:
            repositories = await self.client.list_repositories()
        limiter = asyncio.Semaphore(self.concurrency)
        outcomes = await asyncio.gather(*(self._stats_for(repo, limiter) for repo in repositories))
        collected: List[RepositoryStats] = []
        failed: List[str] = []
        for repo, outcome in zip(repositories, outcomes):
            if outcome is None:
                failed.append(_repo_label(repo))
            else:
                collected.append(outcome)
        logger.info("Collected stats for %d of %d %s repositories", len(collected), len(repositories), self.client.platform.value)
        return collected, failed

    async def build_calendar(self, repositories: Optional[Sequence[RepositorySummary]] = None, today: Optional[date] = None) -> ContributionCalendar:
        collected, failed = await self.collect_stats(repositories)
        return build_calendar(collected, today=today, failed=failed)


async def aggregate_connections(
    credentials: Sequence[Credential],
    today: Optional[date] = None,
    concurrency: Optional[int] = None,
    settings: Optional[Settings] = None,
) -> ContributionCalendar:
    """
    One calendar across several connections. Repository listings are fetched concurrently;
    a connection whose listing fails is logged and contributes nothing.
    """
    settings = settings or get_settings()
    clients = [create_client(c, settings=settings) for c in credentials]
    listings, failures = await gather_partial(**{str(i): client.list_repositories() for i, client in enumerate(clients)})
    for key, exc in failures.items():
        logger.warning("Skipping %s connection in contribution calendar: %s", clients[int(key)].platform.value, exc)

    collected: List[RepositoryStats] = []
    failed: List[str] = []
    for i, client in enumerate(clients):
        if str(i) not in listings:
            continue
        repo_stats, repo_failures = await ContributionAggregator(client, concurrency).collect_stats(listings[str(i)])
        collected.extend(repo_stats)
        failed.extend(repo_failures)
    return build_calendar(collected, today=today, failed=failed)


__all__ = ["ContributionAggregator", "aggregate_connections", "build_calendar", "calendar_window", "spread_buckets"]
