from datetime import datetime, timedelta, timezone

import pytest

from agent.processor import recency_bucket, time_context


@pytest.mark.parametrize(
    "hours,expected",
    [
        (0, "very_recent"),
        (23.9, "very_recent"),
        (24, "recent"),
        (24.1, "recent"),
        (71.9, "recent"),
        (72.1, "this_week"),
        (167.9, "this_week"),
        (168, "this_month"),
        (719.9, "this_month"),
        (720, "older"),
        (10_000, "older"),
        (-5, "very_recent"),
    ],
)
def test_bucket_boundaries(hours, expected):
    assert recency_bucket(timedelta(hours=hours)) == expected


def test_time_context_uses_supplied_now():
    now = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)
    assert time_context(now - timedelta(hours=30), now) == "recent"
    assert time_context(now - timedelta(days=40), now) == "older"


def test_time_context_treats_naive_timestamps_as_utc():
    now = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)
    naive = datetime(2024, 5, 10, 11, 0)
    assert time_context(naive, now) == "very_recent"
