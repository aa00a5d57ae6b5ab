"""
API Dependencies

Collaborators of the analytics routes. Tests override these through
``app.dependency_overrides``.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from order_analytics.analytics.currency import CurrencyConverter
from order_analytics.analytics.service import AnalyticsService
from order_analytics.analytics.status import OrderStatusResolver
from order_analytics.config import AnalyticsSettings, get_settings
from order_analytics.database.connection import get_db_dependency


def get_analytics_settings() -> AnalyticsSettings:
    """Analytics section of the cached settings"""
    return get_settings().analytics


def get_currency_converter(
    settings: AnalyticsSettings = Depends(get_analytics_settings),
) -> CurrencyConverter:
    """Converter for the configured base currency and rates"""
    return CurrencyConverter.from_settings(settings)


def get_status_resolver(
    settings: AnalyticsSettings = Depends(get_analytics_settings),
) -> OrderStatusResolver:
    """Configured order status policy"""
    return OrderStatusResolver.from_settings(settings)


def get_analytics_service(
    db: AsyncSession = Depends(get_db_dependency),
    converter: CurrencyConverter = Depends(get_currency_converter),
    status_resolver: OrderStatusResolver = Depends(get_status_resolver),
    settings: AnalyticsSettings = Depends(get_analytics_settings),
) -> AnalyticsService:
    """Report service bound to a request-scoped session"""
    return AnalyticsService(db, converter, status_resolver, settings)
