from __future__ import annotations

from datetime import date

import pytest

from conftest import make_period
from staffing_engine.availability import (
    check_availability_for_allocation,
    check_availability_overlap,
    coarse_availability,
    weighted_availability,
)
from staffing_engine.errors import (
    AvailabilityOverlapError,
    InsufficientAvailabilityError,
    PreconditionError,
)


def test_no_periods_means_fully_available() -> None:
    assert coarse_availability([], date(2025, 1, 1), date(2025, 12, 31)) == 100
    assert weighted_availability([], date(2025, 1, 1), date(2025, 12, 31)) == 100


def test_configured_default_applies_when_nothing_intersects() -> None:
    periods = [make_period("p", date(2024, 1, 1), date(2024, 1, 31), 20)]
    assert coarse_availability(periods, date(2025, 1, 1), date(2025, 1, 31), default=80) == 80


def test_coarse_and_weighted_disagree_on_uneven_periods() -> None:
    periods = [
        make_period("p", date(2025, 1, 1), date(2025, 1, 1), 0),
        make_period("p", date(2025, 1, 2), date(2025, 1, 10), 100),
    ]
    window = (date(2025, 1, 1), date(2025, 1, 10))
    # one day at 0 and nine at 100
    assert coarse_availability(periods, *window) == 50
    assert weighted_availability(periods, *window) == 90


def test_weighted_counts_uncovered_days_as_fully_available() -> None:
    periods = [make_period("p", date(2025, 1, 1), date(2025, 1, 2), 50)]
    assert weighted_availability(periods, date(2025, 1, 1), date(2025, 1, 4)) == 75


def test_weighted_refuses_overlapping_input() -> None:
    periods = [
        make_period("p", date(2025, 1, 1), date(2025, 1, 10), 50),
        make_period("p", date(2025, 1, 5), date(2025, 1, 15), 20),
    ]
    with pytest.raises(PreconditionError):
        weighted_availability(periods, date(2025, 1, 1), date(2025, 1, 31))


def test_overlap_rejects_identical_bounds() -> None:
    existing = [make_period("p", date(2025, 3, 1), date(2025, 3, 31), period_id="1")]
    decision = check_availability_overlap(existing, make_period("p", date(2025, 3, 1), date(2025, 3, 31)))
    assert not decision.accepted
    assert decision.conflicting_period.id == "1"


def test_overlap_rejects_single_shared_day() -> None:
    existing = [make_period("p", date(2025, 3, 1), date(2025, 3, 31))]
    decision = check_availability_overlap(existing, make_period("p", date(2025, 3, 31), date(2025, 4, 15)))
    assert not decision.accepted
    with pytest.raises(AvailabilityOverlapError) as excinfo:
        decision.raise_for_conflict()
    assert excinfo.value.detail["personnel_id"] == "p"
    assert len(excinfo.value.detail["conflicting_periods"]) == 1


def test_overlap_accepts_back_to_back_and_gapped_periods() -> None:
    existing = [make_period("p", date(2025, 3, 1), date(2025, 3, 31))]
    assert check_availability_overlap(existing, make_period("p", date(2025, 4, 1), date(2025, 4, 30))).accepted
    assert check_availability_overlap(existing, make_period("p", date(2025, 4, 2), date(2025, 4, 30))).accepted


def test_overlap_ignores_other_personnel_and_the_row_being_updated() -> None:
    existing = [
        make_period("other", date(2025, 3, 1), date(2025, 3, 31)),
        make_period("p", date(2025, 3, 1), date(2025, 3, 31), period_id="7"),
    ]
    updated = make_period("p", date(2025, 3, 5), date(2025, 3, 20), 50, period_id="7")
    decision = check_availability_overlap(existing, updated)
    assert decision.accepted
    decision.raise_for_conflict()


def test_overlap_reports_earliest_conflict_first() -> None:
    existing = [
        make_period("p", date(2025, 5, 1), date(2025, 5, 31), period_id="late"),
        make_period("p", date(2025, 3, 1), date(2025, 3, 31), period_id="early"),
    ]
    decision = check_availability_overlap(existing, make_period("p", date(2025, 1, 1), date(2025, 12, 31)))
    assert [p.id for p in decision.conflicting_periods] == ["early", "late"]
    assert decision.conflicting_period.id == "early"


def test_allocation_availability_lists_shortfalls() -> None:
    periods = [
        make_period("p", date(2025, 3, 1), date(2025, 3, 31), 20),
        make_period("p", date(2025, 4, 1), date(2025, 4, 30), 100),
    ]
    check = check_availability_for_allocation(periods, date(2025, 3, 1), date(2025, 4, 30), 50)
    # 31 days at 20 and 30 days at 100
    assert check.average_availability == 59
    assert check.available
    assert len(check.shortfalls) == 1
    assert check.shortfalls[0].message == "Available only 20% but 50% required"


def test_allocation_availability_rejects_when_average_is_too_low() -> None:
    periods = [make_period("p", date(2025, 3, 1), date(2025, 3, 31), 20)]
    check = check_availability_for_allocation(periods, date(2025, 3, 1), date(2025, 3, 31), 50)
    assert not check.available
    with pytest.raises(InsufficientAvailabilityError) as excinfo:
        check.raise_for_conflict()
    assert excinfo.value.detail["average_availability"] == 20
