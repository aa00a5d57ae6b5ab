"""
Integration Tests - KPIs and Customer Segmentation
"""
from datetime import datetime

import pytest

from order_analytics.analytics.customers import build_customer_metrics
from order_analytics.analytics.filters import AnalyticsFilter
from order_analytics.analytics.service import AnalyticsService

JANUARY = {"shop_ids": ["1"], "date_from": "2024-01-01", "date_to": "2024-01-31"}


@pytest.fixture
def service(test_db, converter, status_resolver, analytics_settings) -> AnalyticsService:
    return AnalyticsService(test_db, converter, status_resolver, analytics_settings)


class TestKpis:
    """Tests for the KPI snapshot"""

    async def test_order_totals(self, january_store, service):
        """Test completed order counts and base value"""
        kpis = await service.kpis(**JANUARY)

        assert kpis.orders_total == 4
        assert kpis.orders_total_value == 3050.0
        assert kpis.orders_average_value == 762.5
        assert kpis.orders_base_currency == "CZK"

    async def test_value_by_currency(self, january_store, service):
        """Test 100 EUR without a base amount becomes 2500 CZK"""
        kpis = await service.kpis(**JANUARY)
        by_currency = {total.currency: total for total in kpis.orders_value_by_currency}

        assert by_currency["EUR"].orders_count == 1
        assert by_currency["EUR"].total_amount == 100.0
        assert by_currency["EUR"].total_amount_base == 2500.0
        assert by_currency["CZK"].orders_count == 3
        assert by_currency["CZK"].total_amount_base == 550.0

    async def test_catalog_counts_and_quantity(self, january_store, service):
        """Test catalog rows and sold quantity follow the filters"""
        kpis = await service.kpis(**JANUARY)

        assert kpis.products_total == 1
        assert kpis.customers_total == 1
        assert kpis.products_sold_total == 8.0

    async def test_customer_segmentation(self, january_store, service):
        """Test a customer with a 2023 first order is returning in January"""
        kpis = await service.kpis(**JANUARY)

        assert kpis.unique_customers_total == 2
        assert kpis.returning_customers_total == 1
        assert kpis.returning_orders_total == 1
        assert kpis.returning_revenue_base == 100.0
        assert kpis.new_customers_total == 1
        assert kpis.new_orders_total == 2
        assert kpis.new_revenue_base == 500.0
        assert kpis.repeat_customers_period_total == 1
        assert kpis.customers_repeat_ratio == 0.5
        assert kpis.orders_without_email_total == 1
        assert kpis.customers_orders_average == 2.0

    async def test_filters_are_echoed(self, january_store, service):
        """Test invalid shop ids are dropped from the echo"""
        kpis = await service.kpis(shop_ids=["1", "abc"], date_from="2024-01-01", date_to="nonsense")

        assert kpis.filters["shop_ids"] == [1]
        assert kpis.filters["from"] == "2024-01-01T00:00:00"
        assert kpis.filters["to"] is None

    async def test_empty_store(self, test_db, service):
        """Test an empty range yields explicit zeros"""
        kpis = await service.kpis(**JANUARY)

        assert kpis.orders_total == 0
        assert kpis.orders_total_value == 0.0
        assert kpis.orders_average_value == 0.0
        assert kpis.orders_value_by_currency == []
        assert kpis.unique_customers_total == 0
        assert kpis.customers_repeat_ratio == 0.0
        assert kpis.products_sold_total == 0.0

    async def test_idempotent(self, january_store, service):
        """Test repeated calls give identical payloads"""
        first = await service.kpis(**JANUARY)
        second = await service.kpis(**JANUARY)
        assert first.model_dump() == second.model_dump()


class TestCustomerSegmentation:
    """Tests for build_customer_metrics"""

    async def test_history_limited_to_selected_shops(self, store, test_db, status_resolver):
        """Test a first order in another shop does not make a customer returning"""
        store.order(datetime(2023, 5, 1), shop_id=2, email="e@x.com", total="10", total_base="10")
        store.order(datetime(2024, 1, 7), shop_id=1, email="e@x.com", total="20", total_base="20")
        await store.commit()

        filters = AnalyticsFilter.from_request(["1"], "2024-01-01", "2024-01-31")
        metrics = await build_customer_metrics(
            test_db,
            filters.orders(status_resolver),
            filters.orders(status_resolver, within_dates=False),
            completed_orders_total=1,
        )

        assert metrics.unique_customers_total == 1
        assert metrics.new_customers_total == 1
        assert metrics.returning_customers_total == 0

    async def test_blank_emails_are_excluded(self, store, test_db, status_resolver):
        """Test blank emails count as orders without email"""
        store.order(datetime(2024, 1, 7), email="   ", total="20")
        store.order(datetime(2024, 1, 8), email="x@x.com", total="20")
        await store.commit()

        filters = AnalyticsFilter.from_request([], "2024-01-01", "2024-01-31")
        metrics = await build_customer_metrics(
            test_db,
            filters.orders(status_resolver),
            filters.orders(status_resolver, within_dates=False),
            completed_orders_total=2,
        )

        assert metrics.unique_customers_total == 1
        assert metrics.orders_without_email_total == 1
        assert metrics.customers_orders_average == 2.0
