"""Tests for the cache staleness policy."""

from datetime import datetime, timedelta

from spacemap.staleness import check_staleness, format_age, is_stale, stale_message

NOW = datetime(2024, 6, 15, 12, 0, 0)


class TestIsStale:
    def test_disabled_threshold(self):
        assert not is_stale(NOW - timedelta(days=365), 0, now=NOW)

    def test_missing_cache(self):
        assert not is_stale(None, 7, now=NOW)

    def test_younger_than_threshold(self):
        assert not is_stale(NOW - timedelta(days=6, hours=23), 7, now=NOW)

    def test_exactly_threshold(self):
        assert is_stale(NOW - timedelta(days=7), 7, now=NOW)

    def test_older_than_threshold(self):
        assert is_stale(NOW - timedelta(days=30), 7, now=NOW)


class TestFormatAge:
    def test_just_now(self):
        assert format_age(NOW - timedelta(seconds=30), now=NOW) == "just now"

    def test_minutes(self):
        assert format_age(NOW - timedelta(minutes=5), now=NOW) == "5 min ago"

    def test_hours(self):
        assert format_age(NOW - timedelta(hours=3, minutes=10), now=NOW) == "3h ago"

    def test_older_shows_date(self):
        assert format_age(datetime(2024, 6, 1, 8, 30), now=NOW) == "2024-06-01 08:30"


class TestStaleMessage:
    def test_singular(self):
        assert stale_message(NOW - timedelta(days=1, hours=2), now=NOW).startswith("Cache is 1 day old")

    def test_plural(self):
        assert "10 days old" in stale_message(NOW - timedelta(days=10), now=NOW)


class TestCheckStaleness:
    def test_no_cache(self):
        verdict = check_staleness(None, 7, now=NOW)
        assert not verdict.is_stale
        assert verdict.age_days is None
        assert verdict.age_description == "No cache"

    def test_stale(self):
        verdict = check_staleness(NOW - timedelta(days=8), 7, now=NOW)
        assert verdict.is_stale
        assert verdict.age_days == 8
        assert "8 days old" in verdict.message

    def test_fresh(self):
        verdict = check_staleness(NOW - timedelta(minutes=2), 7, now=NOW)
        assert not verdict.is_stale
        assert verdict.message == ""
        assert verdict.age_description == "2 min ago"
