# backend/tests/test_milestone_state_machine.py
from __future__ import annotations

from types import SimpleNamespace

import pytest

from oran_payments.domain.milestones import (
    Effect,
    InvalidMilestoneState,
    MilestoneEvent,
    MilestoneStatus,
    is_payable,
    next_payable,
    transition,
)


def test_payment_moves_pending_to_completed_with_all_effects():
    t = transition("PENDING", MilestoneEvent.PAYMENT_VERIFIED)
    assert t.changed
    assert t.next_status == MilestoneStatus.COMPLETED
    assert t.effects == (
        Effect.SHIPMENT_LEDGER,
        Effect.VISIT_SCHEDULE,
        Effect.ADMIN_NOTIFICATION,
        Effect.CUSTOMER_EMAIL,
    )


def test_manual_completion_skips_visit_and_customer_email():
    t = transition(MilestoneStatus.PENDING, MilestoneEvent.MARKED_COMPLETE)
    assert t.changed
    assert Effect.VISIT_SCHEDULE not in t.effects
    assert Effect.CUSTOMER_EMAIL not in t.effects


@pytest.mark.parametrize("event", list(MilestoneEvent))
def test_completed_is_terminal_and_effect_free(event):
    t = transition("COMPLETED", event)
    assert not t.changed
    assert t.effects == ()


def test_unknown_status_is_rejected():
    with pytest.raises(InvalidMilestoneState):
        transition("REFUNDED", MilestoneEvent.PAYMENT_VERIFIED)


def test_next_payable_is_lowest_open_index():
    rows = [
        SimpleNamespace(id=7, index=3, status="PENDING"),
        SimpleNamespace(id=5, index=1, status="COMPLETED"),
        SimpleNamespace(id=6, index=2, status="PENDING"),
    ]
    assert next_payable(rows).id == 6
    assert is_payable(rows[2], rows)
    assert not is_payable(rows[0], rows)
    assert next_payable([SimpleNamespace(id=1, index=1, status="COMPLETED")]) is None
