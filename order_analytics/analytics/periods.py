"""
Period Bucketing

Maps timestamps to calendar buckets (day, ISO week, month, year). Bucket keys
are zero-padded so that sorting them as strings gives the same order as
sorting their start timestamps; weeks are keyed by ISO week-year.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Optional, Union

from order_analytics.analytics.locales import get_labels

Moment = Union[date, datetime]


class Granularity(str, Enum):
    """Time series bucket size"""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Granularity":
        """Parse caller input, falling back to daily buckets."""
        if isinstance(value, cls):
            return value
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.DAY


@dataclass(frozen=True)
class PeriodBucket:
    """A calendar bucket: sortable key, display label and start"""
    key: str
    label: str
    start: datetime


def _as_datetime(moment: Moment) -> datetime:
    if isinstance(moment, datetime):
        return moment
    return datetime.combine(moment, time.min)


def bucket_start(moment: Moment, granularity: Granularity) -> datetime:
    """Truncate a timestamp to the start of its bucket."""
    ts = _as_datetime(moment)
    day = ts.replace(hour=0, minute=0, second=0, microsecond=0)

    if granularity == Granularity.WEEK:
        return day - timedelta(days=day.weekday())
    if granularity == Granularity.MONTH:
        return day.replace(day=1)
    if granularity == Granularity.YEAR:
        return day.replace(month=1, day=1)
    return day


def bucket_key(moment: Moment, granularity: Granularity) -> str:
    """Sortable bucket key, e.g. 2024-01-05, 2024-W01, 2024-01, 2024."""
    start = bucket_start(moment, granularity)

    if granularity == Granularity.WEEK:
        iso_year, iso_week, _ = start.isocalendar()
        return f"{iso_year:04d}-W{iso_week:02d}"
    if granularity == Granularity.MONTH:
        return f"{start.year:04d}-{start.month:02d}"
    if granularity == Granularity.YEAR:
        return f"{start.year:04d}"
    return f"{start.year:04d}-{start.month:02d}-{start.day:02d}"


def bucket_label(moment: Moment, granularity: Granularity, locale: str = "en") -> str:
    """Human-readable bucket label in the given locale."""
    labels = get_labels(locale)
    start = bucket_start(moment, granularity)

    if granularity == Granularity.WEEK:
        return labels["week_format"].format(week=start.isocalendar()[1], start=start)
    if granularity == Granularity.MONTH:
        return start.strftime(labels["month_format"])
    if granularity == Granularity.YEAR:
        return start.strftime(labels["year_format"])
    return start.strftime(labels["day_format"])


def bucket_for(moment: Moment, granularity: Granularity, locale: str = "en") -> PeriodBucket:
    """Build the full bucket for a timestamp."""
    return PeriodBucket(
        key=bucket_key(moment, granularity),
        label=bucket_label(moment, granularity, locale),
        start=bucket_start(moment, granularity),
    )
