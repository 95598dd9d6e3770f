"""Availability aggregation over query windows and the availability write-path checks.

Two aggregations are kept on purpose:

* ``coarse_availability`` averages the percentages of every period touching the
  window, regardless of how many days each contributes. Candidate ranking uses it.
* ``weighted_availability`` walks the window day by day, so long periods weigh
  more than short ones. Direct availability reports use it.

They return different numbers for the same input.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import AvailabilityOverlapError, InsufficientAvailabilityError, PreconditionError
from .intervals import DateRange, intersection, intersects, round_half_up
from .models import AvailabilityPeriod

LOGGER = logging.getLogger(__name__)

DEFAULT_AVAILABILITY_PCT = 100


def _intersecting(periods: Iterable[AvailabilityPeriod], window: DateRange) -> List[AvailabilityPeriod]:
    return [period for period in periods if intersects(period.window, window)]


def coarse_availability(
    periods: Iterable[AvailabilityPeriod],
    window_start: date,
    window_end: date,
    *,
    default: float = DEFAULT_AVAILABILITY_PCT,
) -> int:
    window = DateRange(window_start, window_end)
    matching = _intersecting(periods, window)
    if not matching:
        return round_half_up(default)
    total = sum(float(period.availability_percentage) for period in matching)
    return round_half_up(total / len(matching))


def _ensure_disjoint(periods: Sequence[AvailabilityPeriod]) -> None:
    ordered = sorted(periods, key=lambda p: (p.start_date, p.end_date))
    for previous, current in zip(ordered, ordered[1:]):
        if intersects(previous.window, current.window):
            raise PreconditionError(
                f"availability periods {previous.window} and {current.window} overlap "
                f"for personnel {current.personnel_id}"
            )


def weighted_availability(
    periods: Iterable[AvailabilityPeriod],
    window_start: date,
    window_end: date,
    *,
    default: float = DEFAULT_AVAILABILITY_PCT,
) -> int:
    """Mean of the per-day availability across the window; uncovered days count as ``default``."""
    window = DateRange(window_start, window_end)
    matching = _intersecting(periods, window)
    _ensure_disjoint(matching)
    weighted_sum = 0.0
    covered_days = 0
    for period in matching:
        overlap = intersection(period.window, window)
        weighted_sum += overlap.days * float(period.availability_percentage)
        covered_days += overlap.days
    weighted_sum += (window.days - covered_days) * float(default)
    return round_half_up(weighted_sum / window.days)


@dataclass(frozen=True)
class OverlapDecision:
    proposed: AvailabilityPeriod
    conflicting_periods: Tuple[AvailabilityPeriod, ...] = ()

    @property
    def accepted(self) -> bool:
        return not self.conflicting_periods

    @property
    def conflicting_period(self) -> Optional[AvailabilityPeriod]:
        return self.conflicting_periods[0] if self.conflicting_periods else None

    def raise_for_conflict(self) -> None:
        if self.accepted:
            return
        existing = self.conflicting_period
        raise AvailabilityOverlapError(
            f"Availability period {self.proposed.window} overlaps existing period {existing.window}",
            {
                "personnel_id": self.proposed.personnel_id,
                "conflicting_periods": [_period_to_dict(p) for p in self.conflicting_periods],
            },
        )


def _period_to_dict(period: AvailabilityPeriod) -> Dict[str, object]:
    return {
        "id": period.id,
        "start_date": period.start_date.isoformat(),
        "end_date": period.end_date.isoformat(),
        "availability_percentage": period.availability_percentage,
    }


def check_availability_overlap(
    existing: Iterable[AvailabilityPeriod],
    proposed: AvailabilityPeriod,
) -> OverlapDecision:
    """Reject ``proposed`` if it shares any day with another period of the same personnel.

    A record carrying the same ``id`` as ``proposed`` is the row being updated and is skipped.
    """
    conflicts = [
        period
        for period in existing
        if period.personnel_id == proposed.personnel_id
        and not (proposed.id is not None and period.id == proposed.id)
        and intersects(period.window, proposed.window)
    ]
    conflicts.sort(key=lambda p: (p.start_date, p.end_date))
    decision = OverlapDecision(proposed=proposed, conflicting_periods=tuple(conflicts))
    if decision.accepted:
        LOGGER.debug("availability %s accepted for personnel %s", proposed.window, proposed.personnel_id)
    else:
        LOGGER.info(
            "availability %s rejected for personnel %s: overlaps %d period(s)",
            proposed.window,
            proposed.personnel_id,
            len(conflicts),
        )
    return decision


@dataclass(frozen=True)
class AvailabilityShortfall:
    period: AvailabilityPeriod
    message: str


@dataclass(frozen=True)
class AvailabilityCheck:
    required_percentage: float
    average_availability: int
    shortfalls: Tuple[AvailabilityShortfall, ...] = ()

    @property
    def available(self) -> bool:
        return self.average_availability >= self.required_percentage

    def raise_for_conflict(self) -> None:
        if self.available:
            return
        raise InsufficientAvailabilityError(
            f"Personnel availability is {self.average_availability}%, "
            f"but {self.required_percentage:g}% allocation requested",
            {
                "average_availability": self.average_availability,
                "required_percentage": self.required_percentage,
                "conflicts": [
                    {"period": _period_to_dict(item.period), "conflict": item.message}
                    for item in self.shortfalls
                ],
            },
        )


def check_availability_for_allocation(
    periods: Iterable[AvailabilityPeriod],
    window_start: date,
    window_end: date,
    required_percentage: float,
    *,
    default: float = DEFAULT_AVAILABILITY_PCT,
) -> AvailabilityCheck:
    window = DateRange(window_start, window_end)
    matching = sorted(_intersecting(periods, window), key=lambda p: p.start_date)
    average = weighted_availability(matching, window_start, window_end, default=default)
    shortfalls = tuple(
        AvailabilityShortfall(
            period=period,
            message=(
                f"Available only {period.availability_percentage:g}% "
                f"but {required_percentage:g}% required"
            ),
        )
        for period in matching
        if period.availability_percentage < required_percentage
    )
    return AvailabilityCheck(
        required_percentage=required_percentage,
        average_availability=average,
        shortfalls=shortfalls,
    )
