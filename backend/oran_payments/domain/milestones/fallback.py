# backend/oran_payments/domain/milestones/fallback.py
from __future__ import annotations

import math
from typing import Iterable

from .types import (
    MILESTONE_COUNT,
    PLAN_EIGHTY_TEN_TEN,
    FallbackPlan,
    ItemRef,
    PlannedMilestone,
    QuoteItemIn,
)

# Infrastructure goes in first: long-lead items and anything that needs wiring
# before the rest of the house can be fitted.
INFRASTRUCTURE_CATEGORIES = frozenset({"GATE", "STAIRCASE", "SURVEILLANCE"})
COMFORT_CATEGORIES = frozenset({"LIGHTING", "CLIMATE", "ACCESS"})

SPLITS = {
    PLAN_EIGHTY_TEN_TEN: (80, 10, 10),
}
DEFAULT_SPLIT = (40, 40, 20)

TITLES = {
    PLAN_EIGHTY_TEN_TEN: (
        "Initial mobilisation & equipment",
        "Installation progress payment",
        "Final testing & handover",
    ),
}
DEFAULT_TITLES = (
    "Mobilisation & infrastructure",
    "Main installation & configuration",
    "Finishing touches & handover",
)

DESCRIPTIONS = (
    "Covers mobilisation, core infrastructure and long-lead items.",
    "Covers most on-site installation and configuration work.",
    "Covers final optimisation, walkthrough and project sign-off.",
)


def _bucket(category: str) -> int:
    c = (category or "").upper()
    if c in INFRASTRUCTURE_CATEGORIES:
        return 0
    if c in COMFORT_CATEGORIES:
        return 1
    return 2


def sort_items(items: Iterable[QuoteItemIn]) -> list[QuoteItemIn]:
    """Infrastructure, then comfort, then everything else; name ascending within a bucket."""
    return sorted(items, key=lambda i: (_bucket(i.category), i.name))


def chunk_items(items: list[QuoteItemIn], n: int = MILESTONE_COUNT) -> list[list[QuoteItemIn]]:
    # An empty quote still yields n (empty) chunks.
    size = math.ceil(len(items) / n) or 1
    chunks = [items[i * size:(i + 1) * size] for i in range(n - 1)]
    chunks.append(items[(n - 1) * size:])
    return chunks


def split_for(plan_type: str) -> tuple[int, int, int]:
    return SPLITS.get(plan_type, DEFAULT_SPLIT)


def build_fallback_plan(plan_type: str, items: Iterable[QuoteItemIn]) -> FallbackPlan:
    """
    Deterministic milestone plan used whenever the planning assistant is
    unavailable or proposes something we cannot accept.
    """
    chunks = chunk_items(sort_items(items))
    percentages = split_for(plan_type)
    titles = TITLES.get(plan_type, DEFAULT_TITLES)

    milestones = tuple(
        PlannedMilestone(
            title=titles[idx],
            description=DESCRIPTIONS[idx],
            percentage=float(percentages[idx]),
            items=tuple(ItemRef(quote_item_id=i.id, quantity=i.quantity) for i in chunk),
        )
        for idx, chunk in enumerate(chunks)
    )
    return FallbackPlan(milestones=milestones)
