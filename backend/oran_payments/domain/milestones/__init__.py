# backend/oran_payments/domain/milestones/__init__.py
from .allocation import AllocationError, allocate, allocate_amounts, reconcile_percentages
from .fallback import build_fallback_plan
from .state_machine import (
    TRANSACTIONAL_EFFECTS,
    Effect,
    InvalidMilestoneState,
    MilestoneEvent,
    MilestoneStatus,
    Transition,
    is_payable,
    next_payable,
    transition,
)
from .types import (
    PLAN_EIGHTY_TEN_TEN,
    PLAN_MILESTONE_3,
    PLAN_TYPES,
    AllocatedMilestone,
    ExternalPlan,
    FallbackPlan,
    ItemRef,
    PlannedMilestone,
    PlanResult,
    QuoteItemIn,
    normalize_plan_type,
)
from .validation import validate_plan_payload

__all__ = [
    "AllocationError",
    "allocate",
    "allocate_amounts",
    "reconcile_percentages",
    "build_fallback_plan",
    "TRANSACTIONAL_EFFECTS",
    "Effect",
    "InvalidMilestoneState",
    "Transition",
    "is_payable",
    "MilestoneEvent",
    "MilestoneStatus",
    "next_payable",
    "transition",
    "PLAN_EIGHTY_TEN_TEN",
    "PLAN_MILESTONE_3",
    "PLAN_TYPES",
    "AllocatedMilestone",
    "ExternalPlan",
    "FallbackPlan",
    "ItemRef",
    "PlannedMilestone",
    "PlanResult",
    "QuoteItemIn",
    "normalize_plan_type",
    "validate_plan_payload",
]
