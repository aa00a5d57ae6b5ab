"""
Order Time Series

Orders are aggregated in SQL per (day, currency), converted to the base
currency per row and folded into calendar buckets with polars. The row count
is bounded by days x currencies, never by the number of orders.
"""

from datetime import date, datetime
from typing import List, Optional, Union

import polars as pl
import structlog
from sqlalchemy import Date, Select, func
from sqlalchemy.ext.asyncio import AsyncSession

from order_analytics.analytics.currency import CurrencyConverter, to_cents
from order_analytics.analytics.expressions import base_total_sum, unconverted_total_sum
from order_analytics.analytics.periods import Granularity, bucket_key, bucket_label, bucket_start
from order_analytics.analytics.schemas import TimeSeriesPoint
from order_analytics.database.models import Order

logger = structlog.get_logger(__name__)


def _as_date(value: Union[None, str, date, datetime]) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def fold_buckets(
    daily: pl.DataFrame,
    granularity: Granularity,
    locale: str = "en",
) -> List[TimeSeriesPoint]:
    """
    Fold daily rows into calendar buckets.

    Args:
        daily: Frame with ``day`` (date), ``orders_count`` and ``revenue_cents``
        granularity: Bucket size
        locale: Label locale

    Returns:
        Points sorted by bucket start
    """
    if daily.is_empty():
        return []

    starts = [bucket_start(day, granularity) for day in daily["day"].to_list()]
    buckets = (
        daily.with_columns(pl.Series("bucket_start", starts, dtype=pl.Datetime("us")))
        .group_by("bucket_start")
        .agg(
            pl.col("orders_count").sum(),
            pl.col("revenue_cents").sum(),
        )
        .sort("bucket_start")
    )

    return [
        TimeSeriesPoint(
            period=bucket_key(row["bucket_start"], granularity),
            label=bucket_label(row["bucket_start"], granularity, locale),
            start=row["bucket_start"],
            orders_count=int(row["orders_count"]),
            revenue=int(row["revenue_cents"]) / 100,
        )
        for row in buckets.iter_rows(named=True)
    ]


async def build_order_time_series(
    session: AsyncSession,
    orders_stmt: Select,
    granularity: Granularity,
    converter: CurrencyConverter,
    locale: str = "en",
) -> List[TimeSeriesPoint]:
    """
    Orders count and base revenue per calendar bucket.

    ``orders_stmt`` is the completed, shop/date-filtered order population.
    """
    order_day = func.date(Order.ordered_at, type_=Date)
    rows = (
        await session.execute(
            orders_stmt.where(Order.ordered_at.is_not(None))
            .where(Order.total_with_vat.is_not(None))
            .with_only_columns(
                order_day.label("order_day"),
                Order.currency_code,
                func.count(Order.id).label("orders_count"),
                base_total_sum.label("base_sum"),
                unconverted_total_sum.label("unconverted_sum"),
            )
            .group_by("order_day", Order.currency_code)
        )
    ).all()

    records = []
    for row in rows:
        row_day = _as_date(row.order_day)
        if row_day is None:
            continue
        records.append({
            "day": row_day,
            "orders_count": int(row.orders_count or 0),
            "revenue_cents": to_cents(converter.base_amount(row.base_sum, row.unconverted_sum, row.currency_code)),
        })

    daily = pl.DataFrame(
        records,
        schema={"day": pl.Date, "orders_count": pl.Int64, "revenue_cents": pl.Int64},
    )
    points = fold_buckets(daily, granularity, locale)

    logger.debug(
        "Time series built",
        granularity=granularity.value,
        daily_rows=len(records),
        buckets=len(points),
    )
    return points
