import unittest
from datetime import datetime, timedelta, timezone

from normalize.models import SECONDS_PER_WEEK, WeeklyCommitBucket
from stats.weekly import (
    activity_total,
    from_native,
    most_recent,
    reconstruct_weekly_buckets,
    week_index,
    week_span,
    zero_buckets,
)

UTC = timezone.utc


class TestReconstructWeeklyBuckets(unittest.TestCase):
    def test_buckets_sorted_unique_and_sum_to_commit_count(self):
        base = datetime(2024, 3, 1, 12, tzinfo=UTC)
        times = [base + timedelta(days=d, hours=h) for d, h in [(0, 0), (0, 3), (9, 1), (23, 5), (2, 0), (40, 0)]]
        buckets = reconstruct_weekly_buckets(times)
        indices = [b.week_index for b in buckets]
        self.assertEqual(indices, sorted(indices))
        self.assertEqual(len(indices), len(set(indices)))
        self.assertEqual(activity_total(buckets), len(times))

    def test_gaps_are_zero_filled(self):
        first = datetime(2024, 1, 4, tzinfo=UTC)
        last = first + timedelta(weeks=5)
        buckets = reconstruct_weekly_buckets([last, first])
        self.assertEqual(len(buckets), 6)
        self.assertEqual([b.total for b in buckets], [1, 0, 0, 0, 0, 1])
        for prev, cur in zip(buckets, buckets[1:]):
            self.assertEqual(cur.week - prev.week, SECONDS_PER_WEEK)

    def test_weeks_are_epoch_aligned(self):
        buckets = reconstruct_weekly_buckets([datetime(2023, 7, 19, 8, 30, tzinfo=UTC)])
        self.assertEqual(len(buckets), 1)
        self.assertEqual(buckets[0].week % SECONDS_PER_WEEK, 0)
        self.assertEqual(buckets[0].week_index, week_index(datetime(2023, 7, 19, 8, 30, tzinfo=UTC)))

    def test_unparsed_timestamps_are_skipped(self):
        buckets = reconstruct_weekly_buckets([None, datetime(2024, 1, 1, tzinfo=UTC), None])
        self.assertEqual(activity_total(buckets), 1)

    def test_empty_input(self):
        self.assertEqual(reconstruct_weekly_buckets([]), ())


def test_week_span_rounds_up():
    start = datetime(2024, 3, 1, tzinfo=UTC)
    assert week_span(start, start + timedelta(days=10)) == 2
    assert week_span(start, start + timedelta(days=7)) == 1
    assert week_span(start, start) == 0


def test_zero_buckets_end_at_current_week():
    now = datetime(2025, 2, 14, 10, tzinfo=UTC)
    buckets = zero_buckets(12, now=now)
    assert len(buckets) == 12
    assert all(b.total == 0 for b in buckets)
    assert buckets[-1].week_index == week_index(now)
    assert [b.week_index for b in buckets] == list(range(week_index(now) - 11, week_index(now) + 1))


def test_most_recent_keeps_latest_weeks():
    buckets = tuple(WeeklyCommitBucket(week=i * SECONDS_PER_WEEK, total=i) for i in range(20))
    kept = most_recent(buckets, 12)
    assert len(kept) == 12
    assert kept[0].week_index == 8
    assert kept[-1].week_index == 19


def test_from_native_sorts_and_clamps():
    raw = [
        {'week': 2 * SECONDS_PER_WEEK, 'total': 3, 'days': [0, 1, 2, 0, 0, 0, 0]},
        {'week': SECONDS_PER_WEEK, 'total': -1},
        'garbage',
    ]
    buckets = from_native(raw)
    assert [b.week for b in buckets] == [SECONDS_PER_WEEK, 2 * SECONDS_PER_WEEK]
    assert [b.total for b in buckets] == [0, 3]


if __name__ == '__main__':
    unittest.main()
