# backend/oran_payments/domain/milestones/state_machine.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

# -----------------------------------------------------------------------------
# Milestone payment state machine
# -----------------------------------------------------------------------------
# PENDING -> COMPLETED is the only edge. COMPLETED is terminal: every event on
# a completed milestone is a no-op and produces no effects, which is where the
# duplicate-settlement check lives.
#
# transition() is pure. Callers persist next_status and then execute
# the returned effects.
# -----------------------------------------------------------------------------


class MilestoneStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class MilestoneEvent(str, Enum):
    PAYMENT_VERIFIED = "PaymentVerified"
    MARKED_COMPLETE = "MarkedComplete"  # admin override / trip check-out


class Effect(str, Enum):
    SHIPMENT_LEDGER = "SHIPMENT_LEDGER"
    VISIT_SCHEDULE = "VISIT_SCHEDULE"
    ADMIN_NOTIFICATION = "ADMIN_NOTIFICATION"
    CUSTOMER_EMAIL = "CUSTOMER_EMAIL"


# The ledger merge must commit together with the status write; the rest are
# best-effort and tracked per effect.
TRANSACTIONAL_EFFECTS = frozenset({Effect.SHIPMENT_LEDGER})

EFFECTS_BY_EVENT: dict[MilestoneEvent, tuple[Effect, ...]] = {
    MilestoneEvent.PAYMENT_VERIFIED: (
        Effect.SHIPMENT_LEDGER,
        Effect.VISIT_SCHEDULE,
        Effect.ADMIN_NOTIFICATION,
        Effect.CUSTOMER_EMAIL,
    ),
    MilestoneEvent.MARKED_COMPLETE: (
        Effect.SHIPMENT_LEDGER,
        Effect.ADMIN_NOTIFICATION,
    ),
}


class InvalidMilestoneState(ValueError):
    pass


@dataclass(frozen=True)
class Transition:
    previous: MilestoneStatus
    next_status: MilestoneStatus
    effects: tuple[Effect, ...]

    @property
    def changed(self) -> bool:
        return self.previous != self.next_status


def parse_status(raw: Any) -> MilestoneStatus:
    try:
        return MilestoneStatus(str(raw or "").strip().upper())
    except ValueError:
        raise InvalidMilestoneState(f"unknown milestone status: {raw!r}")


def transition(status: Any, event: MilestoneEvent) -> Transition:
    current = parse_status(status)

    if current == MilestoneStatus.COMPLETED:
        return Transition(previous=current, next_status=current, effects=())

    return Transition(
        previous=current,
        next_status=MilestoneStatus.COMPLETED,
        effects=EFFECTS_BY_EVENT[event],
    )


def next_payable(milestones: Iterable[Any]) -> Optional[Any]:
    """Earliest-by-index milestone that is not COMPLETED (None when all are paid)."""
    open_rows = [m for m in milestones if parse_status(getattr(m, "status", None)) != MilestoneStatus.COMPLETED]
    if not open_rows:
        return None
    return min(open_rows, key=lambda m: int(m.index))


def is_payable(milestone: Any, milestones: Iterable[Any]) -> bool:
    nxt = next_payable(milestones)
    return nxt is not None and int(nxt.id) == int(milestone.id)
