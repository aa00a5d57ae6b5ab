"""
Order Breakdowns

Payment method, shipping method and order status shares. Method labels come
from loosely structured JSON, so orders are scanned in keyset-paginated
chunks to keep memory bounded on large ranges.
"""

from collections import Counter
from decimal import Decimal
from typing import AsyncIterator, Callable, Dict, List, Optional, Sequence

import structlog
from sqlalchemy import Row, Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from order_analytics.analytics.currency import CurrencyConverter
from order_analytics.analytics.expressions import base_total_sum, unconverted_total_sum
from order_analytics.analytics.schemas import MethodShare, StatusShare
from order_analytics.analytics.status import OrderStatusResolver
from order_analytics.database.models import Order

logger = structlog.get_logger(__name__)

LabelResolver = Callable[[object], Optional[str]]


async def iter_order_chunks(
    session: AsyncSession,
    statement: Select,
    chunk_size: int,
) -> AsyncIterator[Sequence[Row]]:
    """
    Iterate an order statement in chunks ordered by order id.

    ``statement`` must select ``Order.id``. Each chunk resumes after the last
    id seen, so no offset scan or server-side cursor is needed.
    """
    last_id = None
    while True:
        chunk_stmt = statement.order_by(Order.id).limit(chunk_size)
        if last_id is not None:
            chunk_stmt = chunk_stmt.where(Order.id > last_id)

        rows = (await session.execute(chunk_stmt)).all()
        if not rows:
            return

        yield rows

        if len(rows) < chunk_size:
            return
        last_id = rows[-1].id


def shares_from_counts(counts: Dict[str, int]) -> List[MethodShare]:
    """Turn label counts into percentage shares, largest first."""
    total = sum(counts.values())
    if total == 0:
        return []

    ordered = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [
        MethodShare(method=label, count=count, share=round(count / total * 100, 2))
        for label, count in ordered
    ]


async def build_method_breakdown(
    session: AsyncSession,
    orders_stmt: Select,
    column,
    resolver: LabelResolver,
    fallback_label: str,
    chunk_size: int,
) -> List[MethodShare]:
    """
    Count orders per resolved method label.

    Args:
        session: Database session
        orders_stmt: Filtered ``select(Order)``-shaped statement
        column: Descriptor column (``Order.payment`` or ``Order.shipping``)
        resolver: Label resolver for the descriptor
        fallback_label: Label for orders without a usable descriptor
        chunk_size: Orders per chunk
    """
    counts: Counter = Counter()
    statement = orders_stmt.with_only_columns(Order.id, column)

    chunks = 0
    async for rows in iter_order_chunks(session, statement, chunk_size):
        chunks += 1
        for row in rows:
            counts[resolver(row[1]) or fallback_label] += 1

    logger.debug(
        "Method breakdown scanned",
        column=column.key,
        chunks=chunks,
        orders=sum(counts.values()),
        labels=len(counts),
    )
    return shares_from_counts(dict(counts))


async def build_status_breakdown(
    session: AsyncSession,
    orders_stmt: Select,
    converter: CurrencyConverter,
    status_resolver: OrderStatusResolver,
    fallback_label: str,
) -> List[StatusShare]:
    """
    Orders, share and base revenue per raw status.

    ``orders_stmt`` is the shop/date-filtered population without the
    completed filter, so every status shows up.
    """
    rows = (
        await session.execute(
            orders_stmt.with_only_columns(
                Order.status,
                Order.currency_code,
                func.count(Order.id).label("orders_count"),
                base_total_sum.label("base_sum"),
                unconverted_total_sum.label("unconverted_sum"),
            ).group_by(Order.status, Order.currency_code)
        )
    ).all()

    counts: Dict[Optional[str], int] = {}
    revenue: Dict[Optional[str], Decimal] = {}
    for row in rows:
        counts[row.status] = counts.get(row.status, 0) + int(row.orders_count or 0)
        revenue[row.status] = revenue.get(row.status, Decimal("0")) + converter.base_amount(
            row.base_sum, row.unconverted_sum, row.currency_code
        )

    total = sum(counts.values())
    if total == 0:
        return []

    ordered = sorted(counts, key=lambda status: (-counts[status], status or ""))
    return [
        StatusShare(
            status=status if status is not None else fallback_label,
            category=status_resolver.classify(status).value,
            orders_count=counts[status],
            share=round(counts[status] / total * 100, 2),
            revenue_base=round(float(revenue[status]), 2),
        )
        for status in ordered
    ]
