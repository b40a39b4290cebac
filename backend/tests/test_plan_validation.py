# backend/tests/test_plan_validation.py
from __future__ import annotations

from oran_payments.domain.milestones import PLAN_MILESTONE_3, QuoteItemIn, validate_plan_payload

ITEMS = (
    QuoteItemIn(id=10, name="Gate motor", category="GATE", quantity=1),
    QuoteItemIn(id=11, name="Switch", category="LIGHTING", quantity=6),
)


def _m(pct, items=None, title="Phase"):
    return {"title": title, "description": "d", "percentage": pct, "items": items if items is not None else []}


def test_valid_plan_is_accepted():
    payload = {
        "milestones": [
            _m(50, [{"quoteItemId": 10, "quantity": 1}]),
            _m(30, [{"quoteItemId": "11", "quantity": 6.0}]),
            _m(20),
        ]
    }
    plan, errs = validate_plan_payload(payload, quote_items=ITEMS, plan_type=PLAN_MILESTONE_3)
    assert errs == []
    assert plan is not None and plan.source == "external"
    assert plan.milestones[1].items[0].quote_item_id == 11
    assert plan.milestones[1].items[0].quantity == 6


def test_two_milestone_plan_is_rejected_whole():
    payload = {"milestones": [_m(50), _m(50)]}
    plan, errs = validate_plan_payload(payload, quote_items=ITEMS, plan_type=PLAN_MILESTONE_3)
    assert plan is None
    assert "exactly 3" in errs[0]


def test_unknown_item_and_bad_quantity_reject_the_plan():
    payload = {
        "milestones": [
            _m(40, [{"quoteItemId": 999, "quantity": 1}]),
            _m(40, [{"quoteItemId": 10, "quantity": 0}]),
            _m(20),
        ]
    }
    plan, errs = validate_plan_payload(payload, quote_items=ITEMS, plan_type=PLAN_MILESTONE_3)
    assert plan is None
    assert len(errs) == 2


def test_missing_title_and_non_numeric_percentage():
    payload = {"milestones": [_m("forty", title=""), _m(40), _m(20)]}
    plan, errs = validate_plan_payload(payload, quote_items=ITEMS, plan_type=PLAN_MILESTONE_3)
    assert plan is None
    assert any("title" in e for e in errs)
    assert any("percentage" in e for e in errs)


def test_percentages_that_cannot_reconcile_are_rejected():
    payload = {"milestones": [_m(70), _m(70), _m(10)]}
    plan, errs = validate_plan_payload(payload, quote_items=ITEMS, plan_type=PLAN_MILESTONE_3)
    assert plan is None
    assert errs


def test_non_object_payload():
    plan, errs = validate_plan_payload(["nope"], quote_items=ITEMS, plan_type=PLAN_MILESTONE_3)
    assert plan is None and errs == ["plan must be an object"]
