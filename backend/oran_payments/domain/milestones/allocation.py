# backend/oran_payments/domain/milestones/allocation.py
from __future__ import annotations

import math
from typing import Sequence

from .fallback import split_for
from .types import (
    MILESTONE_COUNT,
    PLAN_EIGHTY_TEN_TEN,
    AllocatedMilestone,
    PlanResult,
)

# Clamped percentages from an external plan may drift from 100 by rounding
# (33.4 / 33.3 / 33.3 -> 33 / 33 / 33); anything further off is a bad plan.
PERCENT_SUM_TOLERANCE = 1


class AllocationError(ValueError):
    pass


def round_half_up(x: float) -> int:
    return int(math.floor(float(x) + 0.5))


def clamp_percentage(raw: float) -> int:
    return max(0, min(100, round_half_up(raw)))


def amount_for(total: int, percentage: int) -> int:
    """round(total * pct / 100), half-up, in integer arithmetic."""
    return (2 * int(total) * int(percentage) + 100) // 200


def reconcile_percentages(raw: Sequence[float], plan_type: str) -> list[int]:
    """
    Integer percentages summing to exactly 100.

    EIGHTY_TEN_TEN is a contractual split, so it wins over whatever the plan
    proposed. Otherwise each percentage is clamped to [0, 100] and the last one
    absorbs the rounding drift.
    """
    if len(raw) != MILESTONE_COUNT:
        raise AllocationError(f"expected {MILESTONE_COUNT} milestones, got {len(raw)}")

    if plan_type == PLAN_EIGHTY_TEN_TEN:
        return list(split_for(plan_type))

    pcts = [clamp_percentage(p) for p in raw]
    drift = sum(pcts) - 100
    if abs(drift) > PERCENT_SUM_TOLERANCE:
        raise AllocationError(f"percentages sum to {sum(pcts)}, expected 100")

    last = 100 - sum(pcts[:-1])
    if not (0 <= last <= 100):
        raise AllocationError("last milestone percentage out of range after reconciliation")
    pcts[-1] = last
    return pcts


def allocate_amounts(total: int, percentages: Sequence[int]) -> list[int]:
    """
    Every amount is computed up front, in index order. The last milestone
    takes total - sum(previous) so the set sums to the quote total exactly.
    """
    total = int(total)
    if total < 0:
        raise AllocationError("quote total must not be negative")

    head = [amount_for(total, p) for p in percentages[:-1]]
    last = total - sum(head)
    if last < 0:
        raise AllocationError("rounding left a negative final milestone amount")
    return head + [last]


def allocate(plan: PlanResult, *, total: int, plan_type: str) -> list[AllocatedMilestone]:
    pcts = reconcile_percentages([m.percentage for m in plan.milestones], plan_type)
    amounts = allocate_amounts(total, pcts)

    out: list[AllocatedMilestone] = []
    for idx, (m, pct, amount) in enumerate(zip(plan.milestones, pcts, amounts), start=1):
        out.append(
            AllocatedMilestone(
                index=idx,
                title=m.title,
                description=m.description,
                percentage=pct,
                amount=amount,
                items=m.items,
            )
        )
    return out
