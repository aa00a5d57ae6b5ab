"""
Report Filters

Caller input (shop ids, date range, limits) is clamped to the nearest valid
value instead of being rejected, then applied uniformly to order-scoped
statements.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple, TypeVar, Union

from sqlalchemy import Select, select

from order_analytics.analytics.status import OrderStatusResolver
from order_analytics.database.models import Order

SelectT = TypeVar("SelectT", bound=Select)

DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_shop_ids(values: Optional[Iterable[Any]]) -> Tuple[int, ...]:
    """Keep numeric shop ids, dropping anything else."""
    if values is None:
        return ()
    if isinstance(values, (str, int)):
        values = [values]

    shop_ids: List[int] = []
    for value in values:
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            shop_ids.append(value)
            continue
        text = str(value).strip()
        if re.fullmatch(r"[+-]?\d+", text):
            shop_ids.append(int(text))
    return tuple(shop_ids)


def parse_date(value: Union[None, str, date, datetime], end_of_day: bool = False) -> Optional[datetime]:
    """
    Parse a date bound.

    Date-only values snap to the start (or end) of that day; full timestamps
    are kept as given. Unparseable input means "no bound".
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.max if end_of_day else time.min)

    text = str(value).strip()
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None

    # stored timestamps are naive UTC
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)

    if not DATE_ONLY.match(text):
        return parsed
    return datetime.combine(parsed.date(), time.max if end_of_day else time.min)


def clamp_limit(value: Any, default: int, maximum: int, minimum: int = 1) -> int:
    """Clamp a page size into [minimum, maximum]; garbage becomes the default."""
    try:
        limit = int(str(value).strip()) if value is not None else default
    except ValueError:
        limit = default
    return max(minimum, min(maximum, limit))


def parse_choice(value: Optional[str], choices: Iterable[str], default: str) -> str:
    """Lower-case a choice, falling back to the default when unknown."""
    candidate = (value or "").strip().lower()
    return candidate if candidate in set(choices) else default


@dataclass(frozen=True)
class AnalyticsFilter:
    """Shop and date scope shared by every sub-query of one report"""

    shop_ids: Tuple[int, ...] = field(default_factory=tuple)
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

    @classmethod
    def from_request(
        cls,
        shop_ids: Optional[Iterable[Any]] = None,
        date_from: Union[None, str, date, datetime] = None,
        date_to: Union[None, str, date, datetime] = None,
    ) -> "AnalyticsFilter":
        """Build a filter from raw request values."""
        return cls(
            shop_ids=parse_shop_ids(shop_ids),
            date_from=parse_date(date_from),
            date_to=parse_date(date_to, end_of_day=True),
        )

    def apply_shops(self, statement: SelectT, column=Order.shop_id) -> SelectT:
        """Restrict to the selected shops."""
        if self.shop_ids:
            statement = statement.where(column.in_(self.shop_ids))
        return statement

    def apply_dates(self, statement: SelectT, column=Order.ordered_at) -> SelectT:
        """Restrict to the inclusive date range."""
        if self.date_from is not None:
            statement = statement.where(column >= self.date_from)
        if self.date_to is not None:
            statement = statement.where(column <= self.date_to)
        return statement

    def apply(self, statement: SelectT, shop_column=Order.shop_id, date_column=Order.ordered_at) -> SelectT:
        """Apply shop and date restrictions."""
        return self.apply_dates(self.apply_shops(statement, shop_column), date_column)

    def orders(
        self,
        status_resolver: Optional[OrderStatusResolver] = None,
        within_dates: bool = True,
    ) -> Select:
        """
        Base order statement of a report.

        Args:
            status_resolver: Restrict to completed orders when given
            within_dates: Apply the date range (False for historical lookups)
        """
        statement = select(Order)
        statement = self.apply(statement) if within_dates else self.apply_shops(statement)
        if status_resolver is not None:
            statement = status_resolver.apply_completed_filter(statement, Order.status)
        return statement

    def to_meta(self) -> Dict[str, Any]:
        """Echo of the applied filters"""
        return {
            "shop_ids": list(self.shop_ids),
            "from": self.date_from.isoformat() if self.date_from else None,
            "to": self.date_to.isoformat() if self.date_to else None,
        }
