"""
Product Performance

Three independent aggregates over completed order items are merged into one
ranked view keyed by the composite product identity
(product_guid, variant_code, item_name):

- Summary: units, distinct orders, distinct customers and display fields
- Revenue: line revenue per transaction currency
- Repeat: customers who bought the product in more than one order

The merge is a plain reducer over an insertion-ordered dict so it can be
tested without a database.
"""

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
import uuid

import structlog
from sqlalchemy import Select, String, case, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from order_analytics.analytics.currency import CurrencyConverter, round_money, to_decimal
from order_analytics.analytics.expressions import customer_key, has_email
from order_analytics.analytics.filters import AnalyticsFilter, parse_choice
from order_analytics.analytics.locales import get_labels
from order_analytics.analytics.schemas import (
    ProductPerformance,
    ProductsMeta,
    ProductsReport,
    ProductsSummary,
    RevenueShare,
    TopProduct,
)
from order_analytics.analytics.status import OrderStatusResolver
from order_analytics.database.models import Order, OrderItem, Product, ProductVariant

logger = structlog.get_logger(__name__)

ProductKey = Tuple[Optional[str], Optional[str], Optional[str]]

SORT_FIELDS: Dict[str, str] = {
    "revenue": "revenue_base",
    "units": "units_sold",
    "orders": "orders_count",
    "repeat_rate": "repeat_purchase_rate",
    "repeat_customers": "repeat_customers",
}
DEFAULT_SORT = "revenue"
DIRECTIONS = ("asc", "desc")
DEFAULT_DIRECTION = "desc"

KEY_COLUMNS = (
    OrderItem.product_guid.label("product_guid"),
    OrderItem.code.label("variant_code"),
    OrderItem.name.label("item_name"),
)


# =============================================================================
# STATEMENTS
# =============================================================================

def order_items_statement(filters: AnalyticsFilter, status_resolver: OrderStatusResolver) -> Select:
    """Completed, dated order items within the shop/date scope."""
    statement = (
        select(OrderItem.id)
        .select_from(OrderItem)
        .join(Order, Order.id == OrderItem.order_id)
        .where(Order.ordered_at.is_not(None))
    )
    statement = filters.apply(statement)
    return status_resolver.apply_completed_filter(statement, Order.status)


def normalize_search(search: Optional[str]) -> Optional[str]:
    """Trimmed search term, or None when blank."""
    if not isinstance(search, str):
        return None
    term = search.strip()
    return term or None


def product_items_statement(
    filters: AnalyticsFilter,
    status_resolver: OrderStatusResolver,
    search: Optional[str] = None,
) -> Select:
    """
    Order items joined to the optional catalog rows, optionally narrowed by a
    case-insensitive search over item and catalog names, codes and brands.
    """
    statement = (
        order_items_statement(filters, status_resolver)
        .outerjoin(ProductVariant, ProductVariant.code == OrderItem.code)
        .outerjoin(Product, Product.id == ProductVariant.product_id)
    )

    term = normalize_search(search)
    if term is None:
        return statement

    like = f"%{term.lower()}%"
    return statement.where(
        or_(
            func.lower(OrderItem.name).like(like),
            func.lower(OrderItem.variant_name).like(like),
            func.lower(OrderItem.code).like(like),
            func.lower(ProductVariant.name).like(like),
            func.lower(Product.name).like(like),
            func.lower(ProductVariant.brand).like(like),
            func.lower(Product.brand).like(like),
        )
    )


def summary_statement(items: Select) -> Select:
    """Units, orders, customers and display fields per composite key."""
    return items.with_only_columns(
        *KEY_COLUMNS,
        func.max(OrderItem.variant_name).label("item_variant_name"),
        func.max(OrderItem.ean).label("ean"),
        func.max(cast(ProductVariant.id, String)).label("variant_id"),
        func.max(cast(ProductVariant.product_id, String)).label("product_id"),
        func.max(ProductVariant.name).label("variant_display_name"),
        func.max(ProductVariant.brand).label("variant_brand"),
        func.max(func.coalesce(Product.name, OrderItem.name)).label("product_display_name"),
        func.max(func.coalesce(ProductVariant.brand, Product.brand)).label("product_brand"),
        func.sum(func.coalesce(OrderItem.amount, 0)).label("units_sold"),
        func.count(Order.id.distinct()).label("orders_count"),
        func.count(case((has_email, customer_key), else_=None).distinct()).label("unique_customers"),
    ).group_by(OrderItem.product_guid, OrderItem.code, OrderItem.name)


def revenue_statement(items: Select) -> Select:
    """Line revenue per composite key and order currency."""
    return items.with_only_columns(
        *KEY_COLUMNS,
        Order.currency_code.label("currency_code"),
        func.sum(func.coalesce(OrderItem.price_with_vat, 0)).label("revenue"),
    ).group_by(OrderItem.product_guid, OrderItem.code, OrderItem.name, Order.currency_code)


def repeat_statement(items: Select) -> Select:
    """Customers with more than one distinct order per composite key."""
    repeat_buyers = (
        items.where(has_email)
        .with_only_columns(*KEY_COLUMNS, customer_key.label("customer_key"))
        .group_by(OrderItem.product_guid, OrderItem.code, OrderItem.name, customer_key)
        .having(func.count(Order.id.distinct()) > 1)
        .subquery("repeat_stats")
    )
    return select(
        repeat_buyers.c.product_guid,
        repeat_buyers.c.variant_code,
        repeat_buyers.c.item_name,
        func.count().label("repeat_customers"),
    ).group_by(
        repeat_buyers.c.product_guid,
        repeat_buyers.c.variant_code,
        repeat_buyers.c.item_name,
    )


# =============================================================================
# MERGE
# =============================================================================

def product_key(row: Mapping[str, Any]) -> ProductKey:
    """Composite identity of an aggregate row"""
    return (row.get("product_guid"), row.get("variant_code"), row.get("item_name"))


def _key_order(key: ProductKey) -> Tuple:
    return tuple((part is not None, part or "") for part in key)


def _identifier(value: Any) -> Optional[str]:
    if value is None:
        return None
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        return str(value)


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None and value != "":
            return value
    return None


def merge_product_aggregates(
    summary_rows: Iterable[Mapping[str, Any]],
    revenue_rows: Iterable[Mapping[str, Any]],
    repeat_rows: Iterable[Mapping[str, Any]],
    converter: CurrencyConverter,
    locale: str = "en",
) -> List[Dict[str, Any]]:
    """
    Merge the three partial aggregates into one record per product.

    Revenue and repeat rows whose key is absent from the summary are dropped.
    Repeat customers are clamped to the unique customers of the product and
    products without orders are removed.

    Returns:
        Product records in summary order, without rank
    """
    unknown = get_labels(locale)["unknown_product"]
    products: Dict[ProductKey, Dict[str, Any]] = {}

    for row in summary_rows:
        key = product_key(row)
        item_name = row.get("item_name")
        unique_customers = int(row.get("unique_customers") or 0)
        products[key] = {
            "product_guid": row.get("product_guid"),
            "variant_code": row.get("variant_code"),
            "variant_id": _identifier(row.get("variant_id")),
            "product_id": _identifier(row.get("product_id")),
            "name": _first(row.get("variant_display_name"), row.get("item_variant_name"), item_name) or unknown,
            "product_name": _first(row.get("product_display_name"), item_name) or unknown,
            "brand": _first(row.get("variant_brand"), row.get("product_brand")),
            "ean": row.get("ean"),
            "units_sold": to_decimal(row.get("units_sold")) or Decimal("0"),
            "orders_count": int(row.get("orders_count") or 0),
            "unique_customers": unique_customers,
            "repeat_customers": 0,
            "first_time_customers": unique_customers,
            "revenue_base": Decimal("0"),
            "revenue_breakdown": [],
        }

    for row in revenue_rows:
        product = products.get(product_key(row))
        if product is None:
            continue
        currency = converter.normalize_currency(row.get("currency_code")) or converter.base_currency
        amount = to_decimal(row.get("revenue")) or Decimal("0")
        product["revenue_base"] += converter.convert_to_base(amount, currency) or Decimal("0")
        product["revenue_breakdown"].append({"currency": currency, "amount": float(round_money(amount))})

    for row in repeat_rows:
        product = products.get(product_key(row))
        if product is None:
            continue
        repeat_customers = min(int(row.get("repeat_customers") or 0), product["unique_customers"])
        product["repeat_customers"] = repeat_customers
        product["first_time_customers"] = max(0, product["unique_customers"] - repeat_customers)

    merged = []
    for key, product in products.items():
        if product["orders_count"] <= 0:
            continue

        units = product["units_sold"]
        revenue = round_money(product["revenue_base"])
        unique_customers = product["unique_customers"]

        product["key"] = key
        product["units_sold"] = round(float(units), 3)
        product["revenue_base"] = float(revenue)
        product["repeat_purchase_rate"] = (
            round(product["repeat_customers"] / unique_customers, 4) if unique_customers > 0 else 0.0
        )
        product["average_unit_price_base"] = float(round_money(revenue / units)) if units > 0 else None
        merged.append(product)

    return merged


def summarize_products(products: List[Dict[str, Any]]) -> ProductsSummary:
    """Totals over every product, before pagination."""
    unique_customers = sum(product["unique_customers"] for product in products)
    repeat_customers = sum(product["repeat_customers"] for product in products)
    return ProductsSummary(
        products_total=len(products),
        units_sold_total=round(sum(product["units_sold"] for product in products), 3),
        revenue_total_base=round(sum(product["revenue_base"] for product in products), 2),
        orders_total=sum(product["orders_count"] for product in products),
        unique_customers_total=unique_customers,
        repeat_customers_total=repeat_customers,
        repeat_purchase_rate_average=round(repeat_customers / unique_customers, 4) if unique_customers else 0.0,
    )


def rank_products(
    products: List[Dict[str, Any]],
    sort_field: str,
    descending: bool,
    limit: int,
) -> List[ProductPerformance]:
    """
    Sort, paginate and rank merged products.

    Equal values keep ascending composite key order in both directions.
    """
    ordered = sorted(products, key=lambda product: _key_order(product["key"]))
    ordered.sort(key=lambda product: product[sort_field], reverse=descending)

    ranked = []
    for index, product in enumerate(ordered[:limit], start=1):
        fields = {name: value for name, value in product.items() if name != "key"}
        ranked.append(ProductPerformance(
            rank=index,
            **{**fields, "revenue_breakdown": [RevenueShare(**share) for share in fields["revenue_breakdown"]]},
        ))
    return ranked


# =============================================================================
# REPORTS
# =============================================================================

async def build_products_report(
    session: AsyncSession,
    filters: AnalyticsFilter,
    status_resolver: OrderStatusResolver,
    converter: CurrencyConverter,
    limit: int,
    sort: Optional[str] = None,
    direction: Optional[str] = None,
    search: Optional[str] = None,
    locale: str = "en",
) -> ProductsReport:
    """
    Rank products of the selected scope.

    Args:
        session: Database session
        filters: Shop/date scope
        status_resolver: Completed order policy
        converter: Base currency converter
        limit: Page size, already clamped
        sort: revenue, units, orders, repeat_rate or repeat_customers
        direction: asc or desc
        search: Optional case-insensitive search term
        locale: Label locale
    """
    sort = parse_choice(sort, SORT_FIELDS, DEFAULT_SORT)
    direction = parse_choice(direction, DIRECTIONS, DEFAULT_DIRECTION)
    sort_field = SORT_FIELDS[sort]
    term = normalize_search(search)

    items = product_items_statement(filters, status_resolver, term)

    summary_rows = (await session.execute(summary_statement(items))).mappings().all()
    revenue_rows = (await session.execute(revenue_statement(items))).mappings().all()
    repeat_rows = (await session.execute(repeat_statement(items))).mappings().all()

    products = merge_product_aggregates(summary_rows, revenue_rows, repeat_rows, converter, locale)
    summary = summarize_products(products)
    ranked = rank_products(products, sort_field, direction == "desc", limit)

    logger.info(
        "Products report built",
        products=summary.products_total,
        returned=len(ranked),
        sort=sort,
        direction=direction,
        search=term,
    )

    return ProductsReport(
        data=ranked,
        meta=ProductsMeta(
            limit=limit,
            sort=sort,
            sort_field=sort_field,
            direction=direction,
            base_currency=converter.base_currency,
            summary=summary,
            filters={**filters.to_meta(), "search": term},
        ),
    )


def fold_top_products(
    rows: Iterable[Mapping[str, Any]],
    converter: CurrencyConverter,
    limit: int,
    locale: str = "en",
) -> List[TopProduct]:
    """
    Fold (code, name, currency) item rows into the best sellers.

    Rows are bucketed by code, else by name; revenue is converted to base.
    """
    unknown = get_labels(locale)["unknown_product"]
    buckets: Dict[str, Dict[str, Any]] = {}

    for row in rows:
        code = row.get("code")
        name = row.get("name")
        bucket_key = code or name or "unknown"
        bucket = buckets.setdefault(bucket_key, {
            "code": code,
            "name": name or code or unknown,
            "quantity": Decimal("0"),
            "revenue": Decimal("0"),
        })
        bucket["quantity"] += to_decimal(row.get("quantity")) or Decimal("0")
        bucket["revenue"] += converter.convert_to_base(to_decimal(row.get("revenue")) or Decimal("0"), row.get("currency_code")) or Decimal("0")

    ordered = sorted(buckets.items(), key=lambda item: item[0])
    ordered.sort(key=lambda item: item[1]["revenue"], reverse=True)

    return [
        TopProduct(
            code=bucket["code"],
            name=bucket["name"],
            quantity=round(float(bucket["quantity"]), 2),
            revenue=float(round_money(bucket["revenue"])),
        )
        for _, bucket in ordered[:limit]
    ]


async def build_top_products(
    session: AsyncSession,
    filters: AnalyticsFilter,
    status_resolver: OrderStatusResolver,
    converter: CurrencyConverter,
    limit: int = 5,
    locale: str = "en",
) -> List[TopProduct]:
    """Best-selling products of the scope by base revenue."""
    statement = order_items_statement(filters, status_resolver).with_only_columns(
        OrderItem.code.label("code"),
        OrderItem.name.label("name"),
        Order.currency_code.label("currency_code"),
        func.sum(OrderItem.amount).label("quantity"),
        func.sum(OrderItem.price_with_vat).label("revenue"),
    ).group_by(OrderItem.code, OrderItem.name, Order.currency_code)

    rows = (await session.execute(statement)).mappings().all()
    return fold_top_products(rows, converter, limit, locale)
