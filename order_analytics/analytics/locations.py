"""
Order Locations

Groups completed orders by delivery location. Postal code, city and region
come from the delivery address, then the billing address, taking the first
non-blank of several synonymous keys.
"""

from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import structlog
from sqlalchemy import Select, func
from sqlalchemy.ext.asyncio import AsyncSession

from order_analytics.analytics.currency import CurrencyConverter, round_money, to_decimal
from order_analytics.analytics.expressions import base_total_sum, unconverted_total_sum
from order_analytics.analytics.filters import parse_choice
from order_analytics.analytics.locales import get_labels
from order_analytics.analytics.schemas import LocationStats, LocationTopProduct, LocationsReport
from order_analytics.database.models import Order, OrderItem

logger = structlog.get_logger(__name__)

POSTAL_KEYS = ("postalCode", "postal_code", "zip", "zipCode")
CITY_KEYS = ("city", "town")
REGION_KEYS = ("state", "region", "district")

PRODUCT_ITEM_TYPES = ("product", "product-set")

METRICS = ("orders", "revenue")
DEFAULT_METRIC = "orders"

LocationKey = Tuple[Optional[str], Optional[str]]


def _address_field(keys: Sequence[str]):
    def first_of(column):
        return func.nullif(func.trim(func.coalesce(*[column[key].as_string() for key in keys])), "")

    return func.coalesce(first_of(Order.delivery_address), first_of(Order.billing_address))


postal_code = _address_field(POSTAL_KEYS)
city = _address_field(CITY_KEYS)
region = _address_field(REGION_KEYS)


def fold_locations(
    rows: Iterable[Mapping[str, Any]],
    converter: CurrencyConverter,
) -> Dict[Tuple[Optional[str], Optional[str], Optional[str]], Dict[str, Any]]:
    """Fold (location, currency) rows into per-location orders and base revenue."""
    locations: Dict[Tuple[Optional[str], Optional[str], Optional[str]], Dict[str, Any]] = {}
    for row in rows:
        key = (row.get("postal_code"), row.get("city"), row.get("region"))
        location = locations.setdefault(key, {"orders_count": 0, "revenue_base": Decimal("0")})
        location["orders_count"] += int(row.get("orders_count") or 0)
        location["revenue_base"] += converter.base_amount(
            row.get("base_sum"), row.get("unconverted_sum"), row.get("currency_code")
        )
    return locations


def pick_top_products(rows: Iterable[Mapping[str, Any]], locale: str = "en") -> Dict[LocationKey, LocationTopProduct]:
    """
    Most sold product per (postal code, city).

    Equal quantities keep the product with the lowest code.
    """
    labels = get_labels(locale)
    ordered = sorted(
        rows,
        key=lambda row: (row.get("postal_code") or "", row.get("city") or "", row.get("product_code") or ""),
    )

    best: Dict[LocationKey, Tuple[Decimal, LocationTopProduct]] = {}
    for row in ordered:
        key = (row.get("postal_code"), row.get("city"))
        quantity = to_decimal(row.get("quantity")) or Decimal("0")
        if key in best and quantity <= best[key][0]:
            continue

        code = row.get("product_code")
        if row.get("product_name"):
            name = row["product_name"]
        elif code:
            name = labels["product_code"].format(code=code)
        else:
            name = labels["untitled_product"]
        best[key] = (quantity, LocationTopProduct(name=name, code=code, quantity=round(float(quantity), 2)))

    return {key: product for key, (_, product) in best.items()}


def rank_locations(
    locations: Mapping[Tuple[Optional[str], Optional[str], Optional[str]], Mapping[str, Any]],
    top_products: Mapping[LocationKey, LocationTopProduct],
    metric: str,
    limit: int,
    locale: str = "en",
) -> List[LocationStats]:
    """Sort by the metric (the other one breaks ties), then by location."""
    labels = get_labels(locale)

    def sort_key(item):
        (postal, town, area), values = item
        primary, secondary = (
            (values["revenue_base"], values["orders_count"])
            if metric == "revenue"
            else (values["orders_count"], values["revenue_base"])
        )
        return (-primary, -secondary, postal or "", town or "", area or "")

    ranked = []
    for (postal, town, area), values in sorted(locations.items(), key=sort_key)[:limit]:
        ranked.append(LocationStats(
            postal_code=postal or labels["unknown_postal_code"],
            city=town or labels["unknown_city"],
            region=area,
            orders_count=values["orders_count"],
            revenue_base=float(round_money(values["revenue_base"])),
            top_product=top_products.get((postal, town)),
        ))
    return ranked


async def build_locations_report(
    session: AsyncSession,
    orders_stmt: Select,
    items_stmt: Select,
    converter: CurrencyConverter,
    limit: int,
    metric: Optional[str] = None,
    filters_meta: Optional[Dict[str, Any]] = None,
    locale: str = "en",
) -> LocationsReport:
    """
    Top delivery locations.

    Args:
        session: Database session
        orders_stmt: Completed orders in scope (``select(Order)`` shaped)
        items_stmt: Completed order items in scope
        converter: Base currency converter
        limit: Number of locations, already clamped
        metric: orders or revenue
        filters_meta: Echo of the applied filters
        locale: Label locale
    """
    metric = parse_choice(metric, METRICS, DEFAULT_METRIC)

    location_rows = (
        await session.execute(
            orders_stmt.with_only_columns(
                postal_code.label("postal_code"),
                city.label("city"),
                region.label("region"),
                Order.currency_code.label("currency_code"),
                func.count(Order.id).label("orders_count"),
                base_total_sum.label("base_sum"),
                unconverted_total_sum.label("unconverted_sum"),
            ).group_by("postal_code", "city", "region", Order.currency_code)
        )
    ).mappings().all()

    product_rows = (
        await session.execute(
            items_stmt.where(OrderItem.item_type.in_(PRODUCT_ITEM_TYPES))
            .with_only_columns(
                postal_code.label("postal_code"),
                city.label("city"),
                func.max(OrderItem.name).label("product_name"),
                func.max(OrderItem.code).label("product_code"),
                func.sum(OrderItem.amount).label("quantity"),
            )
            .group_by("postal_code", "city", OrderItem.code)
        )
    ).mappings().all()

    locations = fold_locations(location_rows, converter)
    top_products = pick_top_products(product_rows, locale)
    data = rank_locations(locations, top_products, metric, limit, locale)

    logger.info("Locations report built", locations=len(locations), returned=len(data), metric=metric)

    return LocationsReport(
        data=data,
        meta={
            "limit": limit,
            "metric": metric,
            "base_currency": converter.base_currency,
            "filters": filters_meta or {},
        },
    )
