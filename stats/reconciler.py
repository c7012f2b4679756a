"""
Stats reconciler: turns a platform's raw, partially-available responses into a
structurally complete RepositoryStats.

The GitHub weekly commit endpoint is computed asynchronously server-side and answers
HTTP 202 until the data is ready. resolve_commit_activity() polls it a bounded number of
times, then falls back to reconstructing weekly buckets from the most recent commits, and
finally to zero-filled buckets when even that fails. Rate limiting always short-circuits.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, NamedTuple, Optional, Tuple

from errors import AuthenticationError, GitServiceError, NotFoundError, PartialDataError, RateLimitError
from normalize.models import WeeklyCommitBucket
from transport.http import HttpResult
from .weekly import (
    EMPTY_ACTIVITY_WEEKS,
    activity_total,
    from_native,
    most_recent,
    reconstruct_weekly_buckets,
    week_span,
    zero_buckets,
)

logger = logging.getLogger(__name__)

STILL_COMPUTING = 202
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_SECONDS = 1.0

# failures of a repository's primary fetch that fail the whole stats call instead of degrading
HARD_ERRORS = (AuthenticationError, RateLimitError, NotFoundError)


class CommitActivity(NamedTuple):
    commits: int
    buckets: Tuple[WeeklyCommitBucket, ...]
    source: str  # 'native', 'reconstructed' or 'empty'


def record_partial(label: str, what: str, exc: BaseException, platform: Optional[str] = None) -> PartialDataError:
    """Log a degraded sub-fetch and return the soft error describing it."""
    partial = PartialDataError(f"{what} unavailable for {label}: {exc}", platform=platform, status=getattr(exc, 'status', None))
    logger.warning("%s; using empty value", partial)
    return partial


async def gather_partial(**named: Awaitable[Any]) -> Tuple[Dict[str, Any], Dict[str, BaseException]]:
    """
    Run awaitables concurrently, wait for all of them, and split results from failures.
    Non-Exception failures (cancellation, KeyboardInterrupt) are re-raised.
    """
    names = list(named)
    outcomes = await asyncio.gather(*named.values(), return_exceptions=True)
    results: Dict[str, Any] = {}
    failures: Dict[str, BaseException] = {}
    for name, outcome in zip(names, outcomes):
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            failures[name] = outcome
        else:
            results[name] = outcome
    return results, failures


def _commit_times(raw_commits: List[Dict[str, Any]], commit_time: Callable[[Dict[str, Any]], Any], label: str):
    times = [commit_time(c) for c in raw_commits if isinstance(c, dict)]
    parsed = [t for t in times if t is not None]
    skipped = len(raw_commits) - len(parsed)
    if skipped:
        logger.debug("Skipped %d commit(s) without a usable date for %s", skipped, label)
    return parsed


def reconstruct_from_commits(
    raw_commits: List[Dict[str, Any]],
    commit_time: Callable[[Dict[str, Any]], Any],
    label: str = '',
    keep_weeks: Optional[int] = None,
) -> CommitActivity:
    """
    Derive weekly buckets from a sample of raw commits.

    commits is the number of commits fetched, so it undercounts repositories whose history is
    longer than the sample. Commits without a usable date still count there but land in no
    bucket. With keep_weeks the buckets are truncated to the most recent weeks.
    """
    raw_commits = raw_commits or []
    times = _commit_times(raw_commits, commit_time, label)
    if not times:
        return CommitActivity(len(raw_commits), zero_buckets(), 'reconstructed')
    buckets = reconstruct_weekly_buckets(times)
    logger.debug("Reconstructed %d week(s) spanning %d week(s) from %d commit(s) for %s", len(buckets), week_span(min(times), max(times)), len(times), label)
    if keep_weeks is not None:
        buckets = most_recent(buckets, keep_weeks)
    return CommitActivity(len(raw_commits), buckets, 'reconstructed')


async def poll_until_ready(
    fetch: Callable[[], Awaitable[HttpResult]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
    label: str = '',
    what: str = 'Commit activity',
) -> Optional[List[Any]]:
    """
    Poll an endpoint the platform computes asynchronously until it returns a JSON array.

    A 202 answer means the platform is still computing: wait backoff_seconds and ask again,
    at most max_attempts requests in total. Any other GitServiceError on an attempt spends
    that attempt. RateLimitError propagates immediately. Returns None once attempts run out.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            result = await fetch()
        except RateLimitError:
            raise
        except GitServiceError as ex:
            logger.warning("%s attempt %d/%d for %s failed: %s", what, attempt, max_attempts, label, ex)
            continue

        if result.status != STILL_COMPUTING and isinstance(result.body, list):
            return result.body

        logger.info("%s for %s is still being computed (attempt %d/%d)", what, label, attempt, max_attempts)
        if attempt < max_attempts:
            await asyncio.sleep(backoff_seconds)
    return None


async def resolve_commit_activity(
    fetch_native: Callable[[], Awaitable[HttpResult]],
    fetch_recent_commits: Callable[[], Awaitable[List[Dict[str, Any]]]],
    commit_time: Callable[[Dict[str, Any]], Any],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    backoff_seconds: float = DEFAULT_BACKOFF_SECONDS,
    label: str = '',
    platform: Optional[str] = None,
) -> CommitActivity:
    """
    Poll a natively aggregated weekly commit endpoint, falling back to reconstruction.

    Polling follows poll_until_ready(). RateLimitError propagates immediately, on the native
    endpoint and on the fallback alike.
    """
    native = await poll_until_ready(fetch_native, max_attempts, backoff_seconds, label)
    if native is not None:
        buckets = from_native(native)
        return CommitActivity(activity_total(buckets), buckets, 'native')

    logger.info("Falling back to recent commits for %s", label)
    try:
        raw_commits = await fetch_recent_commits()
    except RateLimitError:
        raise
    except GitServiceError as ex:
        record_partial(label, 'Commit history', ex, platform)
        return CommitActivity(0, zero_buckets(EMPTY_ACTIVITY_WEEKS), 'empty')
    return reconstruct_from_commits(raw_commits, commit_time, label)


__all__ = [
    "CommitActivity",
    "HARD_ERRORS",
    "gather_partial",
    "poll_until_ready",
    "record_partial",
    "reconstruct_from_commits",
    "resolve_commit_activity",
]
