# backend/oran_payments/domain/milestones/types.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Union

PLAN_MILESTONE_3 = "MILESTONE_3"
PLAN_EIGHTY_TEN_TEN = "EIGHTY_TEN_TEN"
PLAN_TYPES = (PLAN_MILESTONE_3, PLAN_EIGHTY_TEN_TEN)

MILESTONE_COUNT = 3

SOURCE_EXTERNAL = "external"
SOURCE_FALLBACK = "fallback"


def normalize_plan_type(plan_type: Any) -> Optional[str]:
    s = str(plan_type or "").strip().upper()
    return s if s in PLAN_TYPES else None


@dataclass(frozen=True)
class QuoteItemIn:
    """Read-only view of a quote line used by planning (ORM rows or test doubles)."""

    id: int
    name: str
    category: str
    quantity: int
    total_price: int = 0

    @classmethod
    def from_row(cls, row: Any) -> "QuoteItemIn":
        return cls(
            id=int(row.id),
            name=str(getattr(row, "name", "") or ""),
            category=str(getattr(row, "category", "") or "").upper(),
            quantity=int(getattr(row, "quantity", 1) or 1),
            total_price=int(getattr(row, "total_price", 0) or 0),
        )


@dataclass(frozen=True)
class ItemRef:
    quote_item_id: int
    quantity: int

    def as_dict(self) -> dict[str, int]:
        return {"quoteItemId": self.quote_item_id, "quantity": self.quantity}


@dataclass(frozen=True)
class PlannedMilestone:
    title: str
    description: Optional[str]
    # Raw percentage as proposed; external plans may send floats.
    percentage: float
    items: tuple[ItemRef, ...]


@dataclass(frozen=True)
class ExternalPlan:
    milestones: tuple[PlannedMilestone, ...]
    source: str = SOURCE_EXTERNAL


@dataclass(frozen=True)
class FallbackPlan:
    milestones: tuple[PlannedMilestone, ...]
    source: str = SOURCE_FALLBACK


PlanResult = Union[ExternalPlan, FallbackPlan]


@dataclass(frozen=True)
class AllocatedMilestone:
    index: int
    title: str
    description: Optional[str]
    percentage: int
    amount: int
    items: tuple[ItemRef, ...]

    def items_payload(self) -> list[dict[str, int]]:
        return [i.as_dict() for i in self.items]
