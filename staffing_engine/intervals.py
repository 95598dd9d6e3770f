"""Closed date-range helpers shared by the availability and allocation checks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Iterator, List, Optional

from dateutil.relativedelta import relativedelta

from .errors import PreconditionError

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of calendar days."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start is None or self.end is None:
            raise PreconditionError("date range requires both start and end")
        if self.start > self.end:
            raise PreconditionError(
                f"range start {self.start.isoformat()} is after end {self.end.isoformat()}"
            )

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


def intersects(a: DateRange, b: DateRange) -> bool:
    return max(a.start, b.start) <= min(a.end, b.end)


def intersection(a: DateRange, b: DateRange) -> Optional[DateRange]:
    if not intersects(a, b):
        return None
    return DateRange(max(a.start, b.start), min(a.end, b.end))


def contains(outer: DateRange, inner: DateRange) -> bool:
    return outer.start <= inner.start and inner.end <= outer.end


def contains_day(window: DateRange, day: date) -> bool:
    return window.start <= day <= window.end


def union(ranges: Iterable[DateRange]) -> List[DateRange]:
    """Merge overlapping and back-to-back ranges into a sorted list."""
    merged: List[DateRange] = []
    for current in sorted(ranges, key=lambda r: (r.start, r.end)):
        if merged and current.start <= merged[-1].end + ONE_DAY:
            last = merged[-1]
            if current.end > last.end:
                merged[-1] = DateRange(last.start, current.end)
            continue
        merged.append(current)
    return merged


def iter_days(window: DateRange) -> Iterator[date]:
    current = window.start
    while current <= window.end:
        yield current
        current += ONE_DAY


def first_of_month(value: date) -> date:
    return date(value.year, value.month, 1)


def month_starts(window: DateRange) -> List[date]:
    months: List[date] = []
    current = first_of_month(window.start)
    while current <= window.end:
        months.append(current)
        current += relativedelta(months=1)
    return months


def month_range(month_start: date) -> DateRange:
    last_day = month_start + relativedelta(months=1) - ONE_DAY
    return DateRange(month_start, last_day)


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
