"""
Order Status Classification

One injected policy decides which raw order statuses count as completed.
Every report filters through it so totals reconcile across views.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Tuple, TypeVar

import structlog
from sqlalchemy import ColumnElement, Select

from order_analytics.config import AnalyticsSettings

logger = structlog.get_logger(__name__)

SelectT = TypeVar("SelectT", bound=Select)


class StatusCategory(str, Enum):
    """Semantic order status category"""
    COMPLETED = "completed"
    RETURNED = "returned"
    COMPLAINT = "complaint"
    CANCELLED = "cancelled"
    OTHER = "other"


def _normalise(values: Iterable[object]) -> Tuple[str, ...]:
    seen: List[str] = []
    for value in values or ():
        if not isinstance(value, str):
            continue
        trimmed = value.strip()
        if trimmed and trimmed not in seen:
            seen.append(trimmed)
    return tuple(seen)


@dataclass(frozen=True)
class OrderStatusResolver:
    """
    Order status policy.

    When no completed statuses are configured, everything except the
    returned, complaint and cancelled statuses counts as completed. With no
    mapping at all every order counts.

    Example:
        resolver = OrderStatusResolver(completed=["Vyřízena"])
        stmt = resolver.apply_completed_filter(select(Order), Order.status)
    """

    completed: Tuple[str, ...] = field(default_factory=tuple)
    returned: Tuple[str, ...] = field(default_factory=tuple)
    complaint: Tuple[str, ...] = field(default_factory=tuple)
    cancelled: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        for name in ("completed", "returned", "complaint", "cancelled"):
            object.__setattr__(self, name, _normalise(getattr(self, name)))

    @classmethod
    def from_settings(cls, settings: AnalyticsSettings) -> "OrderStatusResolver":
        """Build the policy from the analytics configuration."""
        resolver = cls(
            completed=settings.status_completed,
            returned=settings.status_returned,
            complaint=settings.status_complaint,
            cancelled=settings.status_cancelled,
        )
        logger.debug(
            "Order status policy loaded",
            completed=len(resolver.completed),
            excluded=len(resolver.excluded_from_completed),
        )
        return resolver

    @property
    def excluded_from_completed(self) -> Tuple[str, ...]:
        """Statuses that never count as completed"""
        return _normalise(self.returned + self.complaint + self.cancelled)

    def completed_condition(self, column: ColumnElement) -> Optional[ColumnElement[bool]]:
        """
        SQL condition selecting completed rows, or None when nothing is
        configured and every row counts.
        """
        if self.completed:
            return column.in_(self.completed)
        excluded = self.excluded_from_completed
        if excluded:
            return column.not_in(excluded)
        return None

    def apply_completed_filter(self, statement: SelectT, column: ColumnElement) -> SelectT:
        """Restrict a select to completed rows of ``column``."""
        condition = self.completed_condition(column)
        if condition is None:
            return statement
        return statement.where(condition)

    def is_completed(self, status: Optional[str]) -> bool:
        """
        Python mirror of :meth:`completed_condition`.

        Follows SQL null semantics: a missing status fails any active
        IN / NOT IN condition.
        """
        if self.completed:
            return status is not None and status in self.completed
        excluded = self.excluded_from_completed
        if excluded:
            return status is not None and status not in excluded
        return True

    def classify(self, status: Optional[str]) -> StatusCategory:
        """Map a raw status to its semantic category."""
        if status is not None:
            if status in self.returned:
                return StatusCategory.RETURNED
            if status in self.complaint:
                return StatusCategory.COMPLAINT
            if status in self.cancelled:
                return StatusCategory.CANCELLED
        if self.is_completed(status):
            return StatusCategory.COMPLETED
        return StatusCategory.OTHER
