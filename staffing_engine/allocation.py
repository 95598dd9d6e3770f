"""Over-commitment checks run before an allocation is persisted.

The capacity check is deliberately coarse: every existing allocation that
shares at least one day with the proposal counts with its full percentage,
even when the existing allocations never run at the same time as each other.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from .availability import DEFAULT_AVAILABILITY_PCT, AvailabilityCheck, check_availability_for_allocation
from .errors import CapacityConflictError, DuplicateAssignmentError
from .intervals import intersects
from .models import Allocation, AvailabilityPeriod

LOGGER = logging.getLogger(__name__)

CAPACITY_LIMIT_PCT = 100

ACCEPTED = "accepted"
CAPACITY_CONFLICT = "capacity_conflict"
DUPLICATE_ASSIGNMENT = "duplicate_assignment"
INSUFFICIENT_AVAILABILITY = "insufficient_availability"


@dataclass(frozen=True)
class AllocationDecision:
    proposed: Allocation
    reason: str = ACCEPTED
    total: float = 0.0
    capacity_limit: float = CAPACITY_LIMIT_PCT
    conflicting_allocations: Tuple[Allocation, ...] = ()
    availability: Optional[AvailabilityCheck] = None

    @property
    def accepted(self) -> bool:
        return self.reason == ACCEPTED

    @property
    def current_total(self) -> float:
        return self.total - self.proposed.allocation_percentage

    def describe(self) -> str:
        requested = self.proposed.allocation_percentage
        if self.reason == CAPACITY_CONFLICT:
            return (
                f"Over-allocation detected: this would result in {self.total:g}% total allocation "
                f"(exceeds {self.capacity_limit:g}% limit). Current allocations: "
                f"{self.current_total:g}% + requested: {requested:g}% = {self.total:g}%"
            )
        if self.reason == DUPLICATE_ASSIGNMENT:
            return (
                f"Personnel {self.proposed.personnel_id} is already allocated to project "
                f"{self.proposed.project_id} during {self.proposed.window}"
            )
        if self.reason == INSUFFICIENT_AVAILABILITY and self.availability is not None:
            return (
                f"Cannot allocate: personnel availability is {self.availability.average_availability}%, "
                f"but {requested:g}% allocation requested"
            )
        return f"Allocation of {requested:g}% during {self.proposed.window} accepted"

    def raise_for_conflict(self) -> None:
        if self.accepted:
            return
        if self.reason == INSUFFICIENT_AVAILABILITY and self.availability is not None:
            self.availability.raise_for_conflict()
        detail: Dict[str, object] = {
            "personnel_id": self.proposed.personnel_id,
            "conflicting_allocations": [a.to_dict() for a in self.conflicting_allocations],
        }
        if self.reason == DUPLICATE_ASSIGNMENT:
            raise DuplicateAssignmentError(self.describe(), detail)
        detail.update(
            {
                "current_allocation": self.current_total,
                "requested_allocation": self.proposed.allocation_percentage,
                "total_allocation": self.total,
                "max_allowed": self.capacity_limit,
            }
        )
        raise CapacityConflictError(self.describe(), detail)


def _same_personnel_overlapping(
    existing: Iterable[Allocation], proposed: Allocation
) -> List[Allocation]:
    return [
        allocation
        for allocation in existing
        if allocation.personnel_id == proposed.personnel_id
        and not (proposed.id is not None and allocation.id == proposed.id)
        and intersects(allocation.window, proposed.window)
    ]


def check_allocation_conflict(
    existing: Iterable[Allocation],
    proposed: Allocation,
    *,
    capacity_limit: float = CAPACITY_LIMIT_PCT,
) -> AllocationDecision:
    """Sum the proposal with every intersecting allocation of the same personnel.

    Rows belonging to other personnel are ignored, and a row sharing the
    proposal's ``id`` is treated as the record being updated.
    """
    overlapping = _same_personnel_overlapping(existing, proposed)
    total = proposed.allocation_percentage + sum(a.allocation_percentage for a in overlapping)
    if total > capacity_limit:
        decision = AllocationDecision(
            proposed=proposed,
            reason=CAPACITY_CONFLICT,
            total=total,
            capacity_limit=capacity_limit,
            conflicting_allocations=tuple(overlapping),
        )
        LOGGER.info(
            "allocation rejected for personnel %s: %g%% across %d overlapping allocation(s)",
            proposed.personnel_id,
            total,
            len(overlapping),
        )
        return decision
    LOGGER.debug("allocation accepted for personnel %s at %g%%", proposed.personnel_id, total)
    return AllocationDecision(proposed=proposed, total=total, capacity_limit=capacity_limit)


def check_duplicate_assignment(
    existing: Iterable[Allocation], proposed: Allocation
) -> AllocationDecision:
    duplicates = [
        allocation
        for allocation in _same_personnel_overlapping(existing, proposed)
        if allocation.project_id == proposed.project_id
    ]
    if duplicates:
        LOGGER.info(
            "allocation rejected: personnel %s already on project %s",
            proposed.personnel_id,
            proposed.project_id,
        )
        return AllocationDecision(
            proposed=proposed,
            reason=DUPLICATE_ASSIGNMENT,
            total=proposed.allocation_percentage,
            conflicting_allocations=tuple(duplicates),
        )
    return AllocationDecision(proposed=proposed, total=proposed.allocation_percentage)


def evaluate_allocation(
    proposed: Allocation,
    existing_allocations: Iterable[Allocation],
    availability_periods: Iterable[AvailabilityPeriod] = (),
    *,
    capacity_limit: float = CAPACITY_LIMIT_PCT,
    default_availability: float = DEFAULT_AVAILABILITY_PCT,
) -> AllocationDecision:
    """Run every pre-write check and return the first rejection, if any.

    Order: declared availability, same-project duplicate, capacity.
    """
    existing = list(existing_allocations)
    periods = [p for p in availability_periods if p.personnel_id == proposed.personnel_id]
    availability = check_availability_for_allocation(
        periods,
        proposed.start_date,
        proposed.end_date,
        proposed.allocation_percentage,
        default=default_availability,
    )
    if not availability.available:
        LOGGER.info(
            "allocation rejected for personnel %s: %d%% available, %g%% requested",
            proposed.personnel_id,
            availability.average_availability,
            proposed.allocation_percentage,
        )
        return AllocationDecision(
            proposed=proposed,
            reason=INSUFFICIENT_AVAILABILITY,
            total=proposed.allocation_percentage,
            capacity_limit=capacity_limit,
            availability=availability,
        )
    duplicate = check_duplicate_assignment(existing, proposed)
    if not duplicate.accepted:
        return duplicate
    return check_allocation_conflict(existing, proposed, capacity_limit=capacity_limit)
