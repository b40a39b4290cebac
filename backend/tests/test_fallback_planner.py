# backend/tests/test_fallback_planner.py
from __future__ import annotations

from oran_payments.domain.milestones import (
    PLAN_EIGHTY_TEN_TEN,
    PLAN_MILESTONE_3,
    FallbackPlan,
    QuoteItemIn,
    build_fallback_plan,
)
from oran_payments.domain.milestones.fallback import chunk_items, sort_items


def _items() -> list[QuoteItemIn]:
    return [
        QuoteItemIn(id=1, name="Speaker", category="AUDIO", quantity=2),
        QuoteItemIn(id=2, name="Switch", category="LIGHTING", quantity=10),
        QuoteItemIn(id=3, name="Gate motor", category="GATE", quantity=1),
        QuoteItemIn(id=4, name="Camera", category="SURVEILLANCE", quantity=4),
        QuoteItemIn(id=5, name="AC controller", category="CLIMATE", quantity=3),
    ]


def test_sort_puts_infrastructure_first_then_comfort_then_rest():
    ordered = [i.id for i in sort_items(_items())]
    # infrastructure by name (Camera, Gate motor), comfort by name (AC controller, Switch), then other
    assert ordered == [4, 3, 5, 2, 1]


def test_chunks_use_ceil_size_and_last_takes_remainder():
    chunks = chunk_items(sort_items(_items()))
    assert [len(c) for c in chunks] == [2, 2, 1]


def test_empty_quote_still_yields_three_empty_milestones():
    plan = build_fallback_plan(PLAN_MILESTONE_3, [])
    assert len(plan.milestones) == 3
    assert all(m.items == () for m in plan.milestones)


def test_fallback_splits_and_source():
    m3 = build_fallback_plan(PLAN_MILESTONE_3, _items())
    ett = build_fallback_plan(PLAN_EIGHTY_TEN_TEN, _items())

    assert isinstance(m3, FallbackPlan)
    assert m3.source == "fallback"
    assert [m.percentage for m in m3.milestones] == [40, 40, 20]
    assert [m.percentage for m in ett.milestones] == [80, 10, 10]


def test_fallback_is_deterministic_and_keeps_quantities():
    a = build_fallback_plan(PLAN_MILESTONE_3, _items())
    b = build_fallback_plan(PLAN_MILESTONE_3, list(reversed(_items())))
    assert a == b

    first = a.milestones[0].items
    assert [(r.quote_item_id, r.quantity) for r in first] == [(4, 4), (3, 1)]
