"""
Customer Segmentation

Classifies the customers of the selected period as new or returning. A
customer is returning when their first order ever (same shops, any date)
is strictly earlier than their first order inside the period.

All grouping happens in SQL so large ranges never pull every email into
memory. Orders without an email are excluded and counted separately.
"""

from typing import Any, Mapping, Optional

import structlog
from sqlalchemy import Select, and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from order_analytics.analytics.currency import round_money
from order_analytics.analytics.expressions import customer_key, has_email, order_revenue
from order_analytics.analytics.schemas import CustomerMetrics
from order_analytics.database.models import Order

logger = structlog.get_logger(__name__)


def _ratio(numerator: float, denominator: float, digits: int) -> float:
    if not denominator:
        return 0.0
    return round(numerator / denominator, digits)


def derive_customer_metrics(
    aggregates: Optional[Mapping[str, Any]],
    orders_without_email: int,
    completed_orders_total: int,
) -> CustomerMetrics:
    """
    Build the customer metrics from the aggregated segmentation row.

    Args:
        aggregates: Row mapping produced by :func:`build_customer_metrics`
            (None when there were no customers)
        orders_without_email: Orders excluded for lacking an email
        completed_orders_total: Completed orders of the period

    Returns:
        Metrics with zero ratios whenever there are no customers
    """
    values = dict(aggregates or {})

    def count(name: str) -> int:
        return int(values.get(name) or 0)

    unique_customers = count("unique_customers")
    returning_customers = count("returning_customers")

    return CustomerMetrics(
        unique_customers_total=unique_customers,
        repeat_customers_period_total=count("repeat_customers_in_period"),
        returning_customers_total=returning_customers,
        returning_orders_total=count("returning_orders"),
        returning_revenue_base=float(round_money(values.get("returning_revenue"))),
        new_customers_total=count("new_customers"),
        new_orders_total=count("new_orders"),
        new_revenue_base=float(round_money(values.get("new_revenue"))),
        customers_repeat_ratio=_ratio(returning_customers, unique_customers, 4),
        orders_without_email_total=orders_without_email,
        customers_orders_average=_ratio(completed_orders_total, unique_customers, 2),
    )


async def build_customer_metrics(
    session: AsyncSession,
    period_orders: Select,
    historical_orders: Select,
    completed_orders_total: int,
) -> CustomerMetrics:
    """
    Segment the customers of a period.

    Args:
        session: Database session
        period_orders: Completed orders filtered by shop and date range
        historical_orders: Completed orders filtered by shop only
        completed_orders_total: Completed orders of the period, for the
            orders-per-customer average
    """
    orders_without_email = (
        await session.execute(
            period_orders.where(
                or_(Order.customer_email.is_(None), func.trim(Order.customer_email) == "")
            ).with_only_columns(func.count(Order.id))
        )
    ).scalar() or 0

    current = (
        period_orders.where(has_email)
        .with_only_columns(
            customer_key.label("customer_key"),
            func.count(Order.id).label("orders_in_period"),
            func.coalesce(func.sum(order_revenue), 0).label("revenue_in_period"),
            func.min(Order.ordered_at).label("first_order_in_period"),
        )
        .group_by(customer_key)
        .subquery("current_customers")
    )

    first_orders = (
        historical_orders.where(has_email)
        .where(Order.ordered_at.is_not(None))
        .with_only_columns(
            customer_key.label("customer_key"),
            func.min(Order.ordered_at).label("first_order_overall"),
        )
        .group_by(customer_key)
        .subquery("first_orders")
    )

    is_returning = and_(
        first_orders.c.first_order_overall.is_not(None),
        first_orders.c.first_order_overall < current.c.first_order_in_period,
    )

    def when_returning(value, returning: bool = True):
        if returning:
            return func.sum(case((is_returning, value), else_=0))
        return func.sum(case((is_returning, 0), else_=value))

    statement = select(
        func.count().label("unique_customers"),
        func.sum(case((current.c.orders_in_period > 1, 1), else_=0)).label("repeat_customers_in_period"),
        when_returning(1).label("returning_customers"),
        when_returning(current.c.orders_in_period).label("returning_orders"),
        when_returning(current.c.revenue_in_period).label("returning_revenue"),
        when_returning(1, returning=False).label("new_customers"),
        when_returning(current.c.orders_in_period, returning=False).label("new_orders"),
        when_returning(current.c.revenue_in_period, returning=False).label("new_revenue"),
    ).select_from(
        current.outerjoin(first_orders, first_orders.c.customer_key == current.c.customer_key)
    )

    aggregates = (await session.execute(statement)).mappings().first()

    metrics = derive_customer_metrics(aggregates, int(orders_without_email), completed_orders_total)
    logger.debug(
        "Customer segmentation computed",
        unique_customers=metrics.unique_customers_total,
        returning_customers=metrics.returning_customers_total,
        new_customers=metrics.new_customers_total,
        orders_without_email=metrics.orders_without_email_total,
    )
    return metrics
