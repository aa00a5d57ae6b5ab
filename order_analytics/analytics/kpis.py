"""
KPI Composer

Dashboard overview: catalog counts, completed order totals per currency,
sold quantity and the customer segmentation of the period. Every figure is
computed from its own copy of the scoped statements.
"""

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Tuple

import structlog
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from order_analytics.analytics.currency import CurrencyConverter, round_money, to_decimal
from order_analytics.analytics.customers import build_customer_metrics
from order_analytics.analytics.expressions import base_total_sum, unconverted_total_sum
from order_analytics.analytics.filters import AnalyticsFilter
from order_analytics.analytics.products import order_items_statement
from order_analytics.analytics.schemas import CurrencyTotal, KpiSnapshot
from order_analytics.analytics.status import OrderStatusResolver
from order_analytics.database.models import Customer, Order, OrderItem, Product

logger = structlog.get_logger(__name__)


def fold_currency_totals(
    rows: Iterable[Mapping[str, Any]],
    converter: CurrencyConverter,
) -> List[CurrencyTotal]:
    """
    Merge per-currency rows, keyed by normalized code.

    Missing codes count as the base currency. Precomputed base sums are kept
    and only the remainder without a base amount is converted.
    """
    totals: Dict[str, Dict[str, Any]] = {}
    for row in rows:
        currency = converter.normalize_currency(row.get("currency_code")) or converter.base_currency
        total = totals.setdefault(currency, {"orders_count": 0, "amount": Decimal("0"), "base": Decimal("0")})
        total["orders_count"] += int(row.get("orders_count") or 0)
        total["amount"] += to_decimal(row.get("total_amount")) or Decimal("0")
        total["base"] += converter.base_amount(row.get("base_sum"), row.get("unconverted_sum"), currency)

    return [
        CurrencyTotal(
            currency=currency,
            orders_count=total["orders_count"],
            total_amount=float(round_money(total["amount"])),
            total_amount_base=float(round_money(total["base"])),
        )
        for currency, total in sorted(totals.items())
    ]


async def build_currency_totals(
    session: AsyncSession,
    orders_stmt: Select,
    converter: CurrencyConverter,
) -> List[CurrencyTotal]:
    """Completed order value per transaction currency."""
    rows = (
        await session.execute(
            orders_stmt.where(Order.total_with_vat.is_not(None))
            .with_only_columns(
                Order.currency_code.label("currency_code"),
                func.count(Order.id).label("orders_count"),
                func.sum(Order.total_with_vat).label("total_amount"),
                base_total_sum.label("base_sum"),
                unconverted_total_sum.label("unconverted_sum"),
            )
            .group_by(Order.currency_code)
        )
    ).mappings().all()
    return fold_currency_totals(rows, converter)


async def build_order_totals(
    session: AsyncSession,
    orders_stmt: Select,
    converter: CurrencyConverter,
) -> Tuple[int, Decimal, List[CurrencyTotal]]:
    """
    Completed orders count, base value and per-currency breakdown.

    The count includes orders without a total; the value only those with one.
    """
    orders_total = (
        await session.execute(orders_stmt.with_only_columns(func.count(Order.id)))
    ).scalar() or 0
    by_currency = await build_currency_totals(session, orders_stmt, converter)
    value = sum((Decimal(str(total.total_amount_base)) for total in by_currency), Decimal("0"))
    return int(orders_total), value, by_currency


def average(value: Decimal, count: int) -> float:
    """Average rounded to cents, 0.0 when there is nothing to average."""
    if count <= 0:
        return 0.0
    return float(round_money(value / count))


async def count_created(session: AsyncSession, model, filters: AnalyticsFilter) -> int:
    """Catalog rows of the selected shops created within the date range."""
    statement = filters.apply(select(func.count(model.id)), model.shop_id, model.created_at)
    return int((await session.execute(statement)).scalar() or 0)


async def build_kpis(
    session: AsyncSession,
    filters: AnalyticsFilter,
    status_resolver: OrderStatusResolver,
    converter: CurrencyConverter,
) -> KpiSnapshot:
    """
    Compose the KPI snapshot.

    Args:
        session: Database session
        filters: Shop/date scope
        status_resolver: Completed order policy
        converter: Base currency converter
    """
    period_orders = filters.orders(status_resolver)
    historical_orders = filters.orders(status_resolver, within_dates=False)

    orders_total, orders_value, by_currency = await build_order_totals(session, period_orders, converter)

    products_total = await count_created(session, Product, filters)
    customers_total = await count_created(session, Customer, filters)

    products_sold = (
        await session.execute(
            order_items_statement(filters, status_resolver).with_only_columns(func.sum(OrderItem.amount))
        )
    ).scalar()

    customer_metrics = await build_customer_metrics(session, period_orders, historical_orders, orders_total)

    snapshot = KpiSnapshot(
        products_total=products_total,
        customers_total=customers_total,
        orders_total=orders_total,
        orders_total_value=float(round_money(orders_value)),
        orders_average_value=average(orders_value, orders_total),
        orders_base_currency=converter.base_currency,
        orders_value_by_currency=by_currency,
        products_sold_total=round(float(to_decimal(products_sold) or 0), 3),
        filters=filters.to_meta(),
        **customer_metrics.model_dump(),
    )

    logger.info(
        "KPIs computed",
        orders_total=snapshot.orders_total,
        orders_total_value=snapshot.orders_total_value,
        currencies=len(by_currency),
        unique_customers=snapshot.unique_customers_total,
    )
    return snapshot
