from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd
from dateutil.relativedelta import relativedelta

from .intervals import (
    ONE_DAY,
    DateRange,
    intersection,
    intersects,
    month_range,
    month_starts,
    round_half_up,
)
from .models import Allocation, Personnel

MONTH_FMT = "%Y-%m"
MONTH_LABEL_FMT = "%b %Y"
DISPLAY_CAP_PCT = 200


@dataclass(frozen=True)
class Utilization:
    percentage: int
    total_allocated_days: int
    total_days: Optional[int]

    @property
    def available_capacity(self) -> int:
        return 100 - self.percentage


def personnel_utilization(
    allocations: Iterable[Allocation],
    window_start: Optional[date] = None,
    window_end: Optional[date] = None,
    *,
    today: Optional[date] = None,
) -> Utilization:
    """Day-weighted allocation percentage for one personnel.

    With a window, each allocation contributes its overlapping days times its
    percentage, divided by the window length. Without one, allocations still
    running on ``today`` are spread over the span from the earliest start to
    the latest end among them.
    """
    rows = list(allocations)
    if window_start is not None and window_end is not None:
        window = DateRange(window_start, window_end)
        weighted_sum = 0.0
        allocated_days = 0
        for allocation in rows:
            overlap = intersection(allocation.window, window)
            if overlap is None:
                continue
            weighted_sum += overlap.days * float(allocation.allocation_percentage)
            allocated_days += overlap.days
        return Utilization(
            percentage=round_half_up(weighted_sum / window.days),
            total_allocated_days=allocated_days,
            total_days=window.days,
        )

    today = today or date.today()
    relevant = [allocation for allocation in rows if allocation.end_date >= today]
    if not relevant:
        return Utilization(percentage=0, total_allocated_days=0, total_days=None)
    span = DateRange(
        min(a.start_date for a in relevant),
        max(a.end_date for a in relevant),
    )
    weighted_sum = sum(a.window.days * float(a.allocation_percentage) for a in relevant)
    allocated_days = sum(a.window.days for a in relevant)
    return Utilization(
        percentage=round_half_up(weighted_sum / span.days),
        total_allocated_days=allocated_days,
        total_days=span.days,
    )


@dataclass(frozen=True)
class MonthlyUtilization:
    month: str
    month_label: str
    utilization: float


def utilization_by_month(
    allocations: Sequence[Allocation],
    window_start: date,
    window_end: date,
    *,
    display_cap: float = DISPLAY_CAP_PCT,
) -> List[MonthlyUtilization]:
    """Sum of allocation percentages touching each calendar month of the window."""
    months: List[MonthlyUtilization] = []
    for month_start in month_starts(DateRange(window_start, window_end)):
        calendar_month = month_range(month_start)
        total = sum(
            float(a.allocation_percentage) for a in allocations if intersects(a.window, calendar_month)
        )
        months.append(
            MonthlyUtilization(
                month=month_start.strftime(MONTH_FMT),
                month_label=month_start.strftime(MONTH_LABEL_FMT),
                utilization=min(total, float(display_cap)),
            )
        )
    return months


@dataclass(frozen=True)
class TeamMemberUtilization:
    personnel_id: str
    name: str
    role_title: str
    experience_level: Optional[str]
    allocations: List[Allocation]
    total_utilization: int
    by_month: List[MonthlyUtilization]


def team_utilization(
    personnel: Iterable[Personnel],
    allocations_by_personnel: Mapping[str, Sequence[Allocation]],
    *,
    start: Optional[date] = None,
    months: int = 3,
    display_cap: float = DISPLAY_CAP_PCT,
) -> List[TeamMemberUtilization]:
    if months <= 0:
        raise ValueError("months must be positive")
    start = start or date.today()
    end = start + relativedelta(months=months) - ONE_DAY
    window = DateRange(start, end)
    members: List[TeamMemberUtilization] = []
    for person in sorted(personnel, key=lambda p: p.name):
        active = sorted(
            (a for a in allocations_by_personnel.get(person.id, ()) if intersects(a.window, window)),
            key=lambda a: a.start_date,
        )
        by_month = utilization_by_month(active, start, end, display_cap=display_cap)
        average = sum(m.utilization for m in by_month) / len(by_month) if active else 0
        members.append(
            TeamMemberUtilization(
                personnel_id=person.id,
                name=person.name,
                role_title=person.role_title,
                experience_level=person.experience_level,
                allocations=active,
                total_utilization=round_half_up(average),
                by_month=by_month,
            )
        )
    return members


def team_utilization_frame(members: Sequence[TeamMemberUtilization]) -> pd.DataFrame:
    rows: List[Dict[str, object]] = []
    for member in members:
        for month in member.by_month:
            rows.append(
                {
                    "personnel_id": member.personnel_id,
                    "name": member.name,
                    "month": month.month,
                    "utilization_pct": month.utilization,
                    "total_utilization_pct": member.total_utilization,
                    "allocation_count": len(member.allocations),
                }
            )
    return pd.DataFrame(
        rows,
        columns=[
            "personnel_id",
            "name",
            "month",
            "utilization_pct",
            "total_utilization_pct",
            "allocation_count",
        ],
    )
