"""
Unit Tests - Period Bucketing
"""
from datetime import date, datetime

import pytest

from order_analytics.analytics.periods import (
    Granularity,
    bucket_for,
    bucket_key,
    bucket_label,
    bucket_start,
)


class TestGranularity:
    """Tests for Granularity parsing"""

    @pytest.mark.parametrize("value", [None, "", "hour", "quarter"])
    def test_unknown_values_fall_back_to_day(self, value):
        """Test unknown granularities default to day"""
        assert Granularity.parse(value) == Granularity.DAY

    def test_case_insensitive(self):
        """Test parsing ignores case and whitespace"""
        assert Granularity.parse(" Week ") == Granularity.WEEK


class TestBuckets:
    """Tests for bucket start, key and label"""

    def test_day_bucket(self):
        """Test daily buckets"""
        moment = datetime(2024, 3, 7, 18, 45)
        assert bucket_start(moment, Granularity.DAY) == datetime(2024, 3, 7)
        assert bucket_key(moment, Granularity.DAY) == "2024-03-07"
        assert bucket_label(moment, Granularity.DAY) == "07.03."

    def test_week_starts_on_monday(self):
        """Test weekly buckets start on the ISO Monday"""
        assert bucket_start(datetime(2024, 3, 10, 12), Granularity.WEEK) == datetime(2024, 3, 4)

    def test_iso_week_across_year_boundary(self):
        """Test 2024-12-31 and 2025-01-01 share ISO week 2025-W01"""
        tuesday = datetime(2024, 12, 31, 10)
        wednesday = datetime(2025, 1, 1, 10)

        assert bucket_key(tuesday, Granularity.WEEK) == bucket_key(wednesday, Granularity.WEEK)
        assert bucket_key(wednesday, Granularity.WEEK) == "2025-W01"
        assert bucket_start(tuesday, Granularity.WEEK) == datetime(2024, 12, 30)

    def test_sunday_closes_its_iso_week(self):
        """Test 2023-12-31 (Sunday) belongs to 2023-W52, 2024-01-01 opens 2024-W01"""
        assert bucket_key(datetime(2023, 12, 31), Granularity.WEEK) == "2023-W52"
        assert bucket_key(datetime(2024, 1, 1), Granularity.WEEK) == "2024-W01"

    def test_iso_week_year_differs_from_calendar_year(self):
        """Test days belonging to the previous ISO year"""
        assert bucket_key(date(2021, 1, 1), Granularity.WEEK) == "2020-W53"

    def test_month_and_year(self):
        """Test monthly and yearly buckets"""
        moment = datetime(2024, 2, 29, 23, 59)
        assert bucket_key(moment, Granularity.MONTH) == "2024-02"
        assert bucket_label(moment, Granularity.MONTH) == "02/2024"
        assert bucket_key(moment, Granularity.YEAR) == "2024"
        assert bucket_start(moment, Granularity.YEAR) == datetime(2024, 1, 1)

    def test_week_labels_are_localized(self):
        """Test week labels in both locales"""
        moment = datetime(2024, 1, 3)
        assert bucket_label(moment, Granularity.WEEK, "en") == "Week 1, starting 01.01."
        assert bucket_label(moment, Granularity.WEEK, "cs") == "Týden 1, začátek 01.01."

    @pytest.mark.parametrize("granularity", list(Granularity))
    def test_lexical_order_matches_time_order(self, granularity):
        """Test sorting keys gives the same order as sorting starts"""
        moments = [
            datetime(2019, 12, 30),
            datetime(2020, 1, 6),
            datetime(2020, 10, 5),
            datetime(2021, 1, 4),
            datetime(2021, 2, 1),
            datetime(2024, 12, 30),
        ]
        buckets = [bucket_for(moment, granularity) for moment in moments]

        by_key = sorted(buckets, key=lambda bucket: bucket.key)
        by_start = sorted(buckets, key=lambda bucket: bucket.start)
        assert [b.key for b in by_key] == [b.key for b in by_start]

    def test_keys_are_stable(self):
        """Test every timestamp of a bucket maps to the same key"""
        keys = {bucket_key(datetime(2024, 5, day, hour), Granularity.MONTH) for day in (1, 15, 31) for hour in (0, 23)}
        assert keys == {"2024-05"}
