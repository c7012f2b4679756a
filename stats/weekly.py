"""
Weekly commit bucket reconstruction from raw commit timestamps.

Weeks are aligned to 7-day boundaries counted from the Unix epoch, so week starts are
Thursdays 00:00 UTC. A bucket's week index is floor(epoch_seconds / SECONDS_PER_WEEK).
"""
import math
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence, Tuple

from normalize.models import SECONDS_PER_WEEK, WeeklyCommitBucket

EMPTY_ACTIVITY_WEEKS = 12


def week_index(ts: datetime) -> int:
    return int(ts.timestamp()) // SECONDS_PER_WEEK


def week_span(oldest: datetime, newest: datetime) -> int:
    """Number of whole weeks (rounded up) between two commit times."""
    return math.ceil((newest - oldest).total_seconds() / SECONDS_PER_WEEK)


def reconstruct_weekly_buckets(timestamps: Iterable[Optional[datetime]]) -> Tuple[WeeklyCommitBucket, ...]:
    """
    Count commits per epoch-aligned week.

    Every week between the oldest and newest commit is present, zero-filled where no
    commit landed, and buckets come back sorted ascending with unique week indices.
    Timestamps that could not be parsed (None) are skipped.
    """
    indices = [week_index(ts) for ts in timestamps if ts is not None]
    if not indices:
        return ()
    oldest, newest = min(indices), max(indices)
    counts = {i: 0 for i in range(oldest, newest + 1)}
    for i in indices:
        counts[i] += 1
    return tuple(WeeklyCommitBucket(week=i * SECONDS_PER_WEEK, total=counts[i]) for i in sorted(counts))


def most_recent(buckets: Sequence[WeeklyCommitBucket], weeks: int = EMPTY_ACTIVITY_WEEKS) -> Tuple[WeeklyCommitBucket, ...]:
    if weeks <= 0:
        return ()
    return tuple(sorted(buckets)[-weeks:])


def zero_buckets(weeks: int = EMPTY_ACTIVITY_WEEKS, now: Optional[datetime] = None) -> Tuple[WeeklyCommitBucket, ...]:
    """Zero-filled buckets for the `weeks` weeks ending with the current one."""
    now = now or datetime.now(timezone.utc)
    current = week_index(now)
    return tuple(WeeklyCommitBucket(week=i * SECONDS_PER_WEEK, total=0) for i in range(current - weeks + 1, current + 1))


def activity_total(buckets: Iterable[WeeklyCommitBucket]) -> int:
    return sum(b.total for b in buckets)


def from_native(raw_weeks: Iterable[dict]) -> Tuple[WeeklyCommitBucket, ...]:
    """Convert GitHub's commit_activity payload ([{'week': ts, 'total': n, 'days': [...]}, ...])."""
    buckets = []
    for w in raw_weeks or []:
        if not isinstance(w, dict):
            continue
        try:
            buckets.append(WeeklyCommitBucket(week=int(w.get('week') or 0), total=max(0, int(w.get('total') or 0))))
        except (TypeError, ValueError):
            continue
    return tuple(sorted(buckets))
