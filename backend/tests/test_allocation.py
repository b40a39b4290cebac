# backend/tests/test_allocation.py
from __future__ import annotations

import pytest

from oran_payments.domain.milestones import (
    PLAN_EIGHTY_TEN_TEN,
    PLAN_MILESTONE_3,
    AllocationError,
    ExternalPlan,
    PlannedMilestone,
    allocate,
    allocate_amounts,
    build_fallback_plan,
    reconcile_percentages,
)
from oran_payments.domain.milestones.allocation import amount_for


def _external(pcts) -> ExternalPlan:
    return ExternalPlan(
        milestones=tuple(PlannedMilestone(title=f"M{i}", description=None, percentage=p, items=()) for i, p in enumerate(pcts))
    )


def test_eighty_ten_ten_on_500k():
    plan = build_fallback_plan(PLAN_EIGHTY_TEN_TEN, [])
    out = allocate(plan, total=500_000, plan_type=PLAN_EIGHTY_TEN_TEN)
    assert [m.amount for m in out] == [400_000, 50_000, 50_000]
    assert [m.index for m in out] == [1, 2, 3]


def test_odd_total_last_milestone_absorbs_rounding():
    plan = build_fallback_plan(PLAN_MILESTONE_3, [])
    out = allocate(plan, total=333, plan_type=PLAN_MILESTONE_3)
    assert [m.amount for m in out] == [133, 133, 67]
    assert sum(m.amount for m in out) == 333


def test_amount_for_rounds_half_up():
    assert amount_for(5, 50) == 3
    assert amount_for(1, 50) == 1
    assert amount_for(0, 40) == 0


@pytest.mark.parametrize("total", [1, 2, 7, 99, 1_000_001])
def test_amounts_always_sum_to_total(total):
    amounts = allocate_amounts(total, [40, 40, 20])
    assert sum(amounts) == total
    assert all(a >= 0 for a in amounts)


def test_external_percentages_are_clamped_and_reconciled():
    assert reconcile_percentages([33.4, 33.3, 33.3], PLAN_MILESTONE_3) == [33, 33, 34]
    assert reconcile_percentages([50, 30.4, 19.6], PLAN_MILESTONE_3) == [50, 30, 20]


def test_eighty_ten_ten_overrides_external_percentages():
    out = allocate(_external([60, 30, 10]), total=1_000, plan_type=PLAN_EIGHTY_TEN_TEN)
    assert [m.percentage for m in out] == [80, 10, 10]
    assert [m.amount for m in out] == [800, 100, 100]


def test_percentages_far_from_100_are_rejected():
    with pytest.raises(AllocationError):
        reconcile_percentages([50, 50, 50], PLAN_MILESTONE_3)


def test_wrong_milestone_count_is_rejected():
    with pytest.raises(AllocationError):
        reconcile_percentages([50, 50], PLAN_MILESTONE_3)
