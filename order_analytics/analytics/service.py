"""
Analytics Service

Entry points of the four reports. Raw caller input is normalized into an
AnalyticsFilter and clamped options, then each report composes the
aggregators over one read-only session. Store errors are logged here and
re-raised unchanged.
"""

from datetime import date, datetime
from typing import Any, Iterable, Optional, Union

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from order_analytics.analytics.breakdowns import build_method_breakdown, build_status_breakdown
from order_analytics.analytics.currency import CurrencyConverter
from order_analytics.analytics.descriptors import payment_label, shipping_label
from order_analytics.analytics.filters import AnalyticsFilter, clamp_limit
from order_analytics.analytics.kpis import average, build_kpis, build_order_totals
from order_analytics.analytics.locales import get_labels
from order_analytics.analytics.locations import build_locations_report
from order_analytics.analytics.periods import Granularity
from order_analytics.analytics.products import (
    build_products_report,
    build_top_products,
    order_items_statement,
)
from order_analytics.analytics.schemas import (
    KpiSnapshot,
    LocationsReport,
    OrdersReport,
    OrdersTotals,
    ProductsReport,
)
from order_analytics.analytics.status import OrderStatusResolver
from order_analytics.analytics.timeseries import build_order_time_series
from order_analytics.config import AnalyticsSettings
from order_analytics.database.models import Order

logger = structlog.get_logger(__name__)

DateInput = Union[None, str, date, datetime]


class AnalyticsService:
    """
    Report facade over one database session.

    Example:
        service = AnalyticsService(session, converter, resolver, settings.analytics)
        snapshot = await service.kpis(shop_ids=["1"], date_from="2024-01-01")
    """

    def __init__(
        self,
        session: AsyncSession,
        converter: CurrencyConverter,
        status_resolver: OrderStatusResolver,
        settings: Optional[AnalyticsSettings] = None,
    ):
        self.session = session
        self.converter = converter
        self.status_resolver = status_resolver
        self.settings = settings or AnalyticsSettings()
        self.labels = get_labels(self.settings.locale)

    def _filters(
        self,
        shop_ids: Optional[Iterable[Any]],
        date_from: DateInput,
        date_to: DateInput,
    ) -> AnalyticsFilter:
        return AnalyticsFilter.from_request(shop_ids, date_from, date_to)

    async def kpis(
        self,
        shop_ids: Optional[Iterable[Any]] = None,
        date_from: DateInput = None,
        date_to: DateInput = None,
    ) -> KpiSnapshot:
        """Dashboard KPIs of the selected shops and range."""
        filters = self._filters(shop_ids, date_from, date_to)
        logger.info("kpis called", **filters.to_meta())

        try:
            return await build_kpis(self.session, filters, self.status_resolver, self.converter)
        except Exception as e:
            logger.error("Error in kpis", error=str(e), error_type=type(e).__name__)
            raise

    async def orders_report(
        self,
        shop_ids: Optional[Iterable[Any]] = None,
        date_from: DateInput = None,
        date_to: DateInput = None,
        group_by: Optional[str] = None,
    ) -> OrdersReport:
        """
        Totals, time series, top products and breakdowns.

        Args:
            group_by: day, week, month or year; anything else means day
        """
        filters = self._filters(shop_ids, date_from, date_to)
        granularity = Granularity.parse(group_by)
        logger.info("orders_report called", group_by=granularity.value, **filters.to_meta())

        locale = self.settings.locale
        all_orders = filters.orders()
        completed_orders = filters.orders(self.status_resolver)

        try:
            orders_total, orders_value, _ = await build_order_totals(
                self.session, completed_orders, self.converter
            )
            time_series = await build_order_time_series(
                self.session, completed_orders, granularity, self.converter, locale
            )
            top_products = await build_top_products(
                self.session,
                filters,
                self.status_resolver,
                self.converter,
                limit=self.settings.top_products_limit,
                locale=locale,
            )
            payment_breakdown = await build_method_breakdown(
                self.session,
                completed_orders,
                Order.payment,
                payment_label,
                self.labels["unknown_payment"],
                self.settings.chunk_size,
            )
            shipping_breakdown = await build_method_breakdown(
                self.session,
                completed_orders,
                Order.shipping,
                shipping_label,
                self.labels["unknown_shipping"],
                self.settings.chunk_size,
            )
            status_breakdown = await build_status_breakdown(
                self.session,
                all_orders,
                self.converter,
                self.status_resolver,
                self.labels["unknown_status"],
            )
        except Exception as e:
            logger.error("Error in orders_report", error=str(e), error_type=type(e).__name__)
            raise

        logger.info(
            "Orders report built",
            orders_total=orders_total,
            buckets=len(time_series),
            statuses=len(status_breakdown),
        )

        return OrdersReport(
            totals=OrdersTotals(
                orders_count=orders_total,
                orders_value=round(float(orders_value), 2),
                orders_average_value=average(orders_value, orders_total),
                base_currency=self.converter.base_currency,
            ),
            time_series=time_series,
            top_products=top_products,
            payment_breakdown=payment_breakdown,
            shipping_breakdown=shipping_breakdown,
            status_breakdown=status_breakdown,
            meta={"group_by": granularity.value, "filters": filters.to_meta()},
        )

    async def products_report(
        self,
        shop_ids: Optional[Iterable[Any]] = None,
        date_from: DateInput = None,
        date_to: DateInput = None,
        limit: Any = None,
        sort: Optional[str] = None,
        direction: Optional[str] = None,
        search: Optional[str] = None,
    ) -> ProductsReport:
        """Ranked product performance."""
        filters = self._filters(shop_ids, date_from, date_to)
        limit = clamp_limit(limit, self.settings.products_limit_default, self.settings.products_limit_max)
        logger.info("products_report called", limit=limit, sort=sort, direction=direction, **filters.to_meta())

        try:
            return await build_products_report(
                self.session,
                filters,
                self.status_resolver,
                self.converter,
                limit=limit,
                sort=sort,
                direction=direction,
                search=search,
                locale=self.settings.locale,
            )
        except Exception as e:
            logger.error("Error in products_report", error=str(e), error_type=type(e).__name__)
            raise

    async def locations_report(
        self,
        shop_ids: Optional[Iterable[Any]] = None,
        date_from: DateInput = None,
        date_to: DateInput = None,
        limit: Any = None,
        metric: Optional[str] = None,
    ) -> LocationsReport:
        """Top delivery locations by orders or revenue."""
        filters = self._filters(shop_ids, date_from, date_to)
        limit = clamp_limit(limit, self.settings.locations_limit_default, self.settings.locations_limit_max)
        logger.info("locations_report called", limit=limit, metric=metric, **filters.to_meta())

        try:
            return await build_locations_report(
                self.session,
                filters.orders(self.status_resolver),
                order_items_statement(filters, self.status_resolver),
                self.converter,
                limit=limit,
                metric=metric,
                filters_meta=filters.to_meta(),
                locale=self.settings.locale,
            )
        except Exception as e:
            logger.error("Error in locations_report", error=str(e), error_type=type(e).__name__)
            raise
