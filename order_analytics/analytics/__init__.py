"""
Analytics Module

Report builders over the order store: KPIs, orders report, product ranking
and locations.
"""
from .currency import CurrencyConverter
from .filters import AnalyticsFilter
from .periods import Granularity
from .service import AnalyticsService
from .status import OrderStatusResolver, StatusCategory

__all__ = [
    "AnalyticsFilter",
    "AnalyticsService",
    "CurrencyConverter",
    "Granularity",
    "OrderStatusResolver",
    "StatusCategory",
]
