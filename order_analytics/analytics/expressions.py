"""
Shared SQL expressions over the order tables.
"""

from sqlalchemy import and_, case, func

from order_analytics.database.models import Order

# Customer identity: trimmed, lower-cased email
customer_key = func.lower(func.trim(Order.customer_email))

has_email = and_(
    Order.customer_email.is_not(None),
    func.trim(Order.customer_email) != "",
)

# Precomputed base amounts are authoritative; the remainder still needs conversion
base_total_sum = func.sum(Order.total_with_vat_base)
unconverted_total_sum = func.sum(
    case((Order.total_with_vat_base.is_(None), Order.total_with_vat), else_=None)
)

# Revenue of an order when no conversion is attempted
order_revenue = func.coalesce(Order.total_with_vat_base, Order.total_with_vat)
