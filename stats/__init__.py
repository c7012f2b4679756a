"""
Stats package: weekly bucket reconstruction, the stats reconciler and repository analysis helpers.
The contribution calendar lives in stats.calendar (it depends on the platform clients).
"""

from .analysis import average_per_week, contributor_stats, language_shares
from .reconciler import CommitActivity, gather_partial, poll_until_ready, resolve_commit_activity
from .weekly import reconstruct_weekly_buckets, zero_buckets

__all__ = [
    "CommitActivity",
    "average_per_week",
    "contributor_stats",
    "gather_partial",
    "language_shares",
    "poll_until_ready",
    "resolve_commit_activity",
    "reconstruct_weekly_buckets",
    "zero_buckets",
]
