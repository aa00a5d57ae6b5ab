"""
Analytics API Endpoints

REST API for the dashboard reports. Query parameters are taken as plain
strings and clamped by the service, so malformed input falls back to
defaults instead of failing validation.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
import structlog

from order_analytics.analytics.schemas import (
    KpiSnapshot,
    LocationsReport,
    OrdersReport,
    ProductsReport,
)
from order_analytics.analytics.service import AnalyticsService
from order_analytics.serving.api.dependencies import get_analytics_service

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.get("/kpis", response_model=KpiSnapshot)
async def get_kpis(
    shop_ids: List[str] = Query(default=[]),
    date_from: Optional[str] = Query(default=None, alias="from"),
    date_to: Optional[str] = Query(default=None, alias="to"),
    service: AnalyticsService = Depends(get_analytics_service),
) -> KpiSnapshot:
    """
    Dashboard KPIs: catalog counts, completed order value per currency and
    new vs. returning customers.
    """
    return await service.kpis(shop_ids, date_from, date_to)


@router.get("/orders", response_model=OrdersReport)
async def get_orders_report(
    shop_ids: List[str] = Query(default=[]),
    date_from: Optional[str] = Query(default=None, alias="from"),
    date_to: Optional[str] = Query(default=None, alias="to"),
    group_by: Optional[str] = Query(default=None, description="day, week, month or year"),
    service: AnalyticsService = Depends(get_analytics_service),
) -> OrdersReport:
    """Order totals, time series, top products and breakdowns."""
    return await service.orders_report(shop_ids, date_from, date_to, group_by=group_by)


@router.get("/products", response_model=ProductsReport)
async def get_products_report(
    shop_ids: List[str] = Query(default=[]),
    date_from: Optional[str] = Query(default=None, alias="from"),
    date_to: Optional[str] = Query(default=None, alias="to"),
    limit: Optional[str] = Query(default=None, description="1-200, default 50"),
    sort: Optional[str] = Query(default=None, description="revenue, units, orders, repeat_rate or repeat_customers"),
    direction: Optional[str] = Query(default=None, description="asc or desc"),
    search: Optional[str] = Query(default=None),
    service: AnalyticsService = Depends(get_analytics_service),
) -> ProductsReport:
    """Product performance ranking."""
    return await service.products_report(
        shop_ids,
        date_from,
        date_to,
        limit=limit,
        sort=sort,
        direction=direction,
        search=search,
    )


@router.get("/locations", response_model=LocationsReport)
async def get_locations_report(
    shop_ids: List[str] = Query(default=[]),
    date_from: Optional[str] = Query(default=None, alias="from"),
    date_to: Optional[str] = Query(default=None, alias="to"),
    limit: Optional[str] = Query(default=None, description="1-100, default 12"),
    metric: Optional[str] = Query(default=None, description="orders or revenue"),
    service: AnalyticsService = Depends(get_analytics_service),
) -> LocationsReport:
    """Top delivery locations."""
    return await service.locations_report(shop_ids, date_from, date_to, limit=limit, metric=metric)
