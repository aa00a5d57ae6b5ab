"""
Analytics Response Models

Monetary fields are base-currency amounts rounded to 2 places, quantities to
3 places and ratios to 4 places by the builders before they reach these
models.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class CurrencyTotal(BaseModel):
    """Order value of one transaction currency"""
    currency: str
    orders_count: int
    total_amount: float
    total_amount_base: float


class CustomerMetrics(BaseModel):
    """New vs. returning customer segmentation"""
    unique_customers_total: int = 0
    repeat_customers_period_total: int = 0
    returning_customers_total: int = 0
    returning_orders_total: int = 0
    returning_revenue_base: float = 0.0
    new_customers_total: int = 0
    new_orders_total: int = 0
    new_revenue_base: float = 0.0
    customers_repeat_ratio: float = 0.0
    orders_without_email_total: int = 0
    customers_orders_average: float = 0.0


class KpiSnapshot(CustomerMetrics):
    """Dashboard overview metrics"""
    products_total: int
    customers_total: int
    orders_total: int
    orders_total_value: float
    orders_average_value: float
    orders_base_currency: str
    orders_value_by_currency: List[CurrencyTotal]
    products_sold_total: float
    filters: Dict[str, Any]


class TimeSeriesPoint(BaseModel):
    """Orders and revenue of one calendar bucket"""
    period: str
    label: str
    start: datetime
    orders_count: int
    revenue: float


class TopProduct(BaseModel):
    """Best-selling line by base revenue"""
    code: Optional[str]
    name: str
    quantity: float
    revenue: float


class MethodShare(BaseModel):
    """Share of a payment or shipping method"""
    method: str
    count: int
    share: float


class StatusShare(BaseModel):
    """Share of a raw order status"""
    status: str
    category: str
    orders_count: int
    share: float
    revenue_base: float


class OrdersTotals(BaseModel):
    """Completed order totals"""
    orders_count: int
    orders_value: float
    orders_average_value: float
    base_currency: str


class OrdersReport(BaseModel):
    """Orders report payload"""
    totals: OrdersTotals
    time_series: List[TimeSeriesPoint]
    top_products: List[TopProduct]
    payment_breakdown: List[MethodShare]
    shipping_breakdown: List[MethodShare]
    status_breakdown: List[StatusShare]
    meta: Dict[str, Any]


class RevenueShare(BaseModel):
    """Product revenue in one transaction currency"""
    currency: str
    amount: float


class ProductPerformance(BaseModel):
    """Performance of one composite product identity"""
    rank: int
    product_guid: Optional[str]
    variant_code: Optional[str]
    variant_id: Optional[str]
    product_id: Optional[str]
    name: str
    product_name: str
    brand: Optional[str]
    ean: Optional[str]
    units_sold: float
    orders_count: int
    unique_customers: int
    repeat_customers: int
    first_time_customers: int
    repeat_purchase_rate: float
    revenue_base: float
    average_unit_price_base: Optional[float]
    revenue_breakdown: List[RevenueShare] = Field(default_factory=list)


class ProductsSummary(BaseModel):
    """Totals over every ranked product, before pagination"""
    products_total: int = 0
    units_sold_total: float = 0.0
    revenue_total_base: float = 0.0
    orders_total: int = 0
    unique_customers_total: int = 0
    repeat_customers_total: int = 0
    repeat_purchase_rate_average: float = 0.0


class ProductsMeta(BaseModel):
    """Echo of the ranking parameters"""
    limit: int
    sort: str
    sort_field: str
    direction: str
    base_currency: str
    summary: ProductsSummary
    filters: Dict[str, Any]


class ProductsReport(BaseModel):
    """Product ranking payload"""
    data: List[ProductPerformance]
    meta: ProductsMeta


class LocationTopProduct(BaseModel):
    """Most sold product of a location"""
    name: str
    code: Optional[str]
    quantity: float


class LocationStats(BaseModel):
    """Orders and revenue of one delivery location"""
    postal_code: str
    city: str
    region: Optional[str]
    orders_count: int
    revenue_base: float
    top_product: Optional[LocationTopProduct]


class LocationsReport(BaseModel):
    """Locations report payload"""
    data: List[LocationStats]
    meta: Dict[str, Any]
