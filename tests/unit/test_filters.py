"""
Unit Tests - Report Filters
"""
from datetime import datetime, time

import pytest
from sqlalchemy import select

from order_analytics.analytics.filters import (
    AnalyticsFilter,
    clamp_limit,
    parse_choice,
    parse_date,
    parse_shop_ids,
)
from order_analytics.analytics.status import OrderStatusResolver
from order_analytics.database.models import Order


class TestInputParsing:
    """Tests for caller input clamping"""

    def test_non_numeric_shop_ids_are_dropped(self):
        """Test shop id parsing keeps numeric values only"""
        assert parse_shop_ids(["1", " 2 ", "abc", 3, "4.5", True, None]) == (1, 2, 3)
        assert parse_shop_ids(None) == ()
        assert parse_shop_ids("7") == (7,)

    def test_date_only_bounds(self):
        """Test date-only values snap to the start and end of the day"""
        assert parse_date("2024-01-31") == datetime(2024, 1, 31)
        assert parse_date("2024-01-31", end_of_day=True) == datetime.combine(datetime(2024, 1, 31).date(), time.max)

    def test_timestamps_are_kept(self):
        """Test full timestamps are not snapped"""
        assert parse_date("2024-01-31T10:15:00", end_of_day=True) == datetime(2024, 1, 31, 10, 15)

    def test_aware_timestamps_become_naive_utc(self):
        """Test offsets are converted to UTC"""
        assert parse_date("2024-01-31T10:00:00+02:00") == datetime(2024, 1, 31, 8, 0)
        assert parse_date("2024-01-31T10:00:00Z") == datetime(2024, 1, 31, 10, 0)

    @pytest.mark.parametrize("value", [None, "", "yesterday", "2024-13-45"])
    def test_unparseable_dates_mean_no_bound(self, value):
        """Test invalid dates are ignored"""
        assert parse_date(value) is None

    @pytest.mark.parametrize(
        "value,expected",
        [(None, 50), ("abc", 50), ("0", 1), ("-5", 1), ("10", 10), ("500", 200), (75, 75)],
    )
    def test_clamp_limit(self, value, expected):
        """Test limits are clamped into range"""
        assert clamp_limit(value, default=50, maximum=200) == expected

    def test_parse_choice(self):
        """Test choices fall back to the default"""
        assert parse_choice(" ASC ", ("asc", "desc"), "desc") == "asc"
        assert parse_choice("sideways", ("asc", "desc"), "desc") == "desc"
        assert parse_choice(None, ("asc", "desc"), "desc") == "desc"


class TestAnalyticsFilter:
    """Tests for AnalyticsFilter"""

    def test_from_request(self):
        """Test building a filter from raw values"""
        filters = AnalyticsFilter.from_request(["1", "x"], "2024-01-01", "2024-01-31")

        assert filters.shop_ids == (1,)
        assert filters.date_from == datetime(2024, 1, 1)
        assert filters.date_to.date() == datetime(2024, 1, 31).date()
        assert filters.date_to.time() == time.max

    def test_to_meta(self):
        """Test filter echo"""
        filters = AnalyticsFilter(shop_ids=(1, 2), date_from=datetime(2024, 1, 1))
        assert filters.to_meta() == {"shop_ids": [1, 2], "from": "2024-01-01T00:00:00", "to": None}

    def test_empty_filter_adds_no_conditions(self):
        """Test an empty filter leaves the statement unchanged"""
        statement = select(Order.id)
        assert AnalyticsFilter().apply(statement) is statement

    def test_orders_statement(self):
        """Test historical statements skip the date range"""
        filters = AnalyticsFilter(shop_ids=(1,), date_from=datetime(2024, 1, 1))
        resolver = OrderStatusResolver(completed=["completed"])

        scoped = str(filters.orders(resolver))
        historical = str(filters.orders(resolver, within_dates=False))

        assert "ordered_at >=" in scoped
        assert "ordered_at >=" not in historical
        assert "orders.status IN" in historical
