"""Tests for interval token resolution."""

from datetime import datetime, timedelta, timezone

import pytest

from ae_analytics.core.intervals import (
    Granularity,
    date_time_range,
    interval_granularity,
    parse_interval,
    previous_interval,
    resolve_interval,
    resolve_previous_interval,
    resolve_timezone,
)

# Wednesday, 09:30:15 in New York
NOW = datetime(2024, 1, 10, 14, 30, 15, tzinfo=timezone.utc)


class TestPresetIntervals:
    """Test the fixed interval tokens."""

    def test_today_starts_at_utc_midnight(self):
        """today runs from local midnight to now."""
        resolved = resolve_interval("today", "UTC", now=NOW)

        assert resolved.start == datetime(2024, 1, 10, tzinfo=timezone.utc)
        assert resolved.end == NOW
        assert resolved.granularity == Granularity.HOUR

    def test_today_is_anchored_in_local_timezone(self):
        """Midnight is computed in the caller's timezone, then converted to UTC."""
        resolved = resolve_interval("today", "America/New_York", now=NOW)

        assert resolved.start == datetime(2024, 1, 10, 5, 0, tzinfo=timezone.utc)
        assert resolved.end == NOW

    def test_today_local_date_differs_from_utc_date(self):
        """Late evening in Los Angeles is already tomorrow in UTC."""
        now = datetime(2024, 1, 11, 3, 0, tzinfo=timezone.utc)  # Jan 10, 19:00 PST
        resolved = resolve_interval("today", "America/Los_Angeles", now=now)

        assert resolved.start == datetime(2024, 1, 10, 8, 0, tzinfo=timezone.utc)

    def test_yesterday_is_previous_full_local_day(self):
        """yesterday spans the whole previous local day."""
        resolved = resolve_interval("yesterday", "America/New_York", now=NOW)

        assert resolved.start == datetime(2024, 1, 9, 5, 0, tzinfo=timezone.utc)
        assert resolved.end == datetime(2024, 1, 10, 5, 0, tzinfo=timezone.utc)
        assert resolved.granularity == Granularity.HOUR

    def test_yesterday_over_spring_forward_is_23_hours(self):
        """The DST start day is only 23 hours long."""
        now = datetime(2024, 3, 11, 12, 0, tzinfo=timezone.utc)
        resolved = resolve_interval("yesterday", "America/New_York", now=now)

        assert resolved.start == datetime(2024, 3, 10, 5, 0, tzinfo=timezone.utc)
        assert resolved.end == datetime(2024, 3, 11, 4, 0, tzinfo=timezone.utc)
        assert resolved.end - resolved.start == timedelta(hours=23)

    @pytest.mark.parametrize("token,days", [("1d", 1), ("7d", 7), ("30d", 30), ("90d", 90)])
    def test_day_tokens(self, token, days):
        """<N>d runs from now minus N days to now."""
        resolved = resolve_interval(token, "UTC", now=NOW)

        assert resolved.start == NOW - timedelta(days=days)
        assert resolved.end == NOW

    def test_arbitrary_day_token(self):
        """Numeric day tokens outside the preset list still resolve."""
        resolved = resolve_interval("14d", "UTC", now=NOW)
        assert resolved.start == NOW - timedelta(days=14)

    @pytest.mark.parametrize("token", ["today", "yesterday", "1d", "7d", "30d", "90d"])
    def test_every_preset_has_nonempty_range(self, token):
        """start < end for every token in the fixed set."""
        resolved = resolve_interval(token, "Europe/Berlin", now=NOW)
        assert resolved.start < resolved.end

    def test_naive_now_is_treated_as_utc(self):
        resolved = resolve_interval("1d", "UTC", now=NOW.replace(tzinfo=None))
        assert resolved.end == NOW


class TestUnknownIntervals:
    """Unrecognized tokens never fail."""

    @pytest.mark.parametrize("token", ["", None, "week", "0d", "-3d", "7days", "d"])
    def test_unknown_token_behaves_as_1d(self, token):
        resolved = resolve_interval(token, "UTC", now=NOW)

        assert resolved.start == NOW - timedelta(days=1)
        assert resolved.end == NOW
        assert resolved.granularity == Granularity.HOUR

    def test_parse_interval(self):
        assert parse_interval("7d") == 7
        assert parse_interval("180d") == 180
        assert parse_interval("0d") is None
        assert parse_interval("today") is None
        assert parse_interval(None) is None


class TestGranularity:
    """Hourly buckets for single-day views, daily otherwise."""

    @pytest.mark.parametrize("token", ["today", "yesterday", "1d"])
    def test_hourly_tokens(self, token):
        assert interval_granularity(token) == Granularity.HOUR

    @pytest.mark.parametrize("token", ["7d", "30d", "90d", "2d", "60d"])
    def test_daily_tokens(self, token):
        assert interval_granularity(token) == Granularity.DAY


class TestPreviousInterval:
    """The comparison-period table is kept as-is."""

    @pytest.mark.parametrize("token,expected", [
        ("today", "yesterday"),
        ("yesterday", "2d"),
        ("7d", "14d"),
        ("30d", "60d"),
        ("90d", "180d"),
    ])
    def test_mapped_tokens(self, token, expected):
        assert previous_interval(token) == expected

    @pytest.mark.parametrize("token", ["1d", "14d", "bogus", "", None])
    def test_unmapped_tokens_fall_back_to_1d(self, token):
        """1d compares against itself; it is not a doubling."""
        assert previous_interval(token) == "1d"

    def test_resolve_previous_for_7d(self):
        """7d compares against the 14d window ending now."""
        resolved = resolve_previous_interval("7d", "UTC", now=NOW)

        assert resolved.start == NOW - timedelta(days=14)
        assert resolved.end == NOW
        assert resolved.granularity == Granularity.DAY

    def test_resolve_previous_for_today_is_yesterday(self):
        current = resolve_interval("today", "America/New_York", now=NOW)
        previous = resolve_previous_interval("today", "America/New_York", now=NOW)

        assert previous.end == current.start
        assert previous.end - previous.start == timedelta(days=1)


class TestTimezones:
    """Timezone lookup and fallback."""

    def test_known_zone(self):
        assert resolve_timezone("Asia/Tokyo").key == "Asia/Tokyo"

    @pytest.mark.parametrize("name", [None, "", "Not/AZone", "../../etc/passwd", "UTC'; --"])
    def test_unknown_zone_falls_back_to_utc(self, name):
        assert resolve_timezone(name).key == "UTC"

    def test_unknown_zone_logs_warning(self, caplog):
        with caplog.at_level("WARNING"):
            resolve_timezone("Mars/Olympus_Mons")
        assert "Mars/Olympus_Mons" in caplog.text


class TestDateTimeRange:
    """Chart ranges begin on a bucket boundary."""

    def test_7d_range_starts_at_next_local_midnight(self):
        resolved = date_time_range("7d", "UTC", now=NOW)

        assert resolved.start == datetime(2024, 1, 4, tzinfo=timezone.utc)
        assert resolved.end == NOW
        assert resolved.granularity == Granularity.DAY

    def test_1d_range_starts_at_next_hour(self):
        resolved = date_time_range("1d", "UTC", now=NOW)

        assert resolved.start == datetime(2024, 1, 9, 15, 0, tzinfo=timezone.utc)
        assert resolved.granularity == Granularity.HOUR

    def test_today_range_is_unchanged(self):
        """Local midnight is already a boundary."""
        assert date_time_range("today", "America/New_York", now=NOW) == \
            resolve_interval("today", "America/New_York", now=NOW)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
