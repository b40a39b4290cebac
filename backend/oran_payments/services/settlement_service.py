# backend/oran_payments/services/settlement_service.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..clients.paystack import PaymentGatewayError, PaystackClient, to_minor_units
from ..config import settings
from ..domain.audit import audit_write, row_snapshot
from ..domain.events import emit_workflow_event
from ..domain.milestones import (
    TRANSACTIONAL_EFFECTS,
    Effect,
    MilestoneEvent,
    MilestoneStatus,
    Transition,
    next_payable,
    transition,
)
from ..models import MilestonePayment, Project, ProjectMilestone, SettlementEffect
from .email_service import EmailService
from .locks_service import project_lock
from .milestone_service import milestones_for_project
from .notification_service import create_admin_notification
from .ownership import must_get_milestone, must_get_project
from .shipment_service import merge_milestone_items
from .trip_service import schedule_follow_up_visit, trip_for_milestone

log = logging.getLogger("oran.settlement")

EFFECT_PENDING = "pending"
EFFECT_SUCCEEDED = "succeeded"
EFFECT_FAILED = "failed"

PAYMENT_SETTLED = "settled"
PAYMENT_FAILED = "failed"

IN_PROGRESS_FROM = ("PAYMENT_PLAN_SELECTED", "DOCUMENTS_SIGNED")
IN_PROGRESS_STATUS = "IN_PROGRESS"


class EffectFailed(RuntimeError):
    """A best-effort effect ran but did not achieve its outcome."""


@dataclass
class SettlementOutcome:
    project_id: int
    milestone_id: int
    milestone_index: int
    reference: Optional[str]
    status: str
    already_settled: bool = False
    effects: list[dict[str, Any]] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "project_id": self.project_id,
            "milestone_id": self.milestone_id,
            "milestone_index": self.milestone_index,
            "reference": self.reference,
            "status": self.status,
            "already_settled": self.already_settled,
            "effects": list(self.effects),
        }


def effect_out(row: SettlementEffect) -> dict[str, Any]:
    return {
        "id": int(row.id),
        "milestone_id": int(row.milestone_id),
        "effect_type": row.effect_type,
        "trigger": row.trigger,
        "status": row.status,
        "attempts": int(row.attempts or 0),
        "last_error": row.last_error,
    }


def effects_for_milestone(db: Session, *, milestone_id: int) -> list[SettlementEffect]:
    return list(
        db.scalars(
            select(SettlementEffect)
            .where(SettlementEffect.milestone_id == int(milestone_id))
            .order_by(SettlementEffect.id.asc())
        ).all()
    )


def _payment_by_reference(db: Session, reference: str) -> Optional[MilestonePayment]:
    return db.scalar(select(MilestonePayment).where(MilestonePayment.reference == reference))


def _metadata_int(metadata: dict[str, Any], key: str) -> Optional[int]:
    try:
        return int(metadata.get(key))
    except (TypeError, ValueError):
        return None


def _record_failed_payment(db: Session, *, project_id: int, reference: str, gateway_status: str) -> None:
    payment = _payment_by_reference(db, reference)
    if payment is None or int(payment.project_id) != int(project_id) or payment.status == PAYMENT_SETTLED:
        return
    payment.status = PAYMENT_FAILED
    payment.gateway_status = gateway_status
    payment.verified_at = datetime.utcnow()
    db.add(payment)
    db.commit()


def apply_transition(
    db: Session,
    *,
    project: Project,
    milestone: ProjectMilestone,
    event: MilestoneEvent,
    actor_user_id: Optional[int] = None,
    reference: Optional[str] = None,
) -> Transition:
    """
    Writes the status change, the ledger merge and the effect rows in the
    caller's transaction. Does NOT commit.

    Raises StaleDataError when another writer bumped the milestone version.
    """
    t = transition(milestone.status, event)
    if not t.changed:
        return t

    now = datetime.utcnow()
    before = row_snapshot(milestone)
    milestone.status = t.next_status.value
    milestone.completed_at = now
    milestone.updated_at = now
    db.add(milestone)
    db.flush()

    for eff in t.effects:
        row = SettlementEffect(
            project_id=int(project.id),
            milestone_id=int(milestone.id),
            effect_type=eff.value,
            trigger=event.value,
            status=EFFECT_PENDING,
            attempts=0,
            created_at=now,
            updated_at=now,
        )
        if eff in TRANSACTIONAL_EFFECTS:
            merge_milestone_items(db, milestone=milestone)
            row.status = EFFECT_SUCCEEDED
            row.attempts = 1
        db.add(row)

    if project.status in IN_PROGRESS_FROM:
        project.status = IN_PROGRESS_STATUS
        project.updated_at = now
        db.add(project)

    db.flush()

    audit_write(
        db,
        actor_user_id=actor_user_id,
        action="milestone.complete",
        entity_type="ProjectMilestone",
        entity_id=str(milestone.id),
        before=before,
        after=row_snapshot(milestone),
    )
    emit_workflow_event(
        db,
        event_type="milestone_settled",
        project_id=project.id,
        actor_user_id=actor_user_id,
        payload={
            "milestone_id": int(milestone.id),
            "index": int(milestone.index),
            "event": event.value,
            "reference": reference,
            "effects": [e.value for e in t.effects],
        },
    )
    return t


# -----------------------------------------------------------------------------
# Best-effort effects
# -----------------------------------------------------------------------------


def _dashboard_url(project_id: int) -> str:
    return f"{settings.frontend_base_url.rstrip('/')}/dashboard/projects/{int(project_id)}"


def _run_visit(db: Session, *, project: Project, milestone: ProjectMilestone, **_: Any) -> dict[str, Any]:
    trip = schedule_follow_up_visit(db, project=project, milestone=milestone)
    return {"trip_id": int(trip.id), "scheduled_for": trip.scheduled_for.isoformat()}


def _run_admin_notification(
    db: Session,
    *,
    project: Project,
    milestone: ProjectMilestone,
    trigger: str,
    email: EmailService,
) -> dict[str, Any]:
    if trigger == MilestoneEvent.PAYMENT_VERIFIED.value:
        kind, verb, key = "MILESTONE_PAID", "paid", "milestone_paid"
    else:
        kind, verb, key = "MILESTONE_COMPLETED", "marked complete", "milestone_completed"

    row = create_admin_notification(
        db,
        type=kind,
        title=f"Milestone {int(milestone.index)} {verb}",
        message=(
            f"Project {project.name} (#{int(project.id)}): milestone {int(milestone.index)} "
            f"\"{milestone.title}\" {verb} ({int(milestone.amount):,} NGN)."
        ),
        project_id=int(project.id),
        dedupe_key=f"{key}:{int(milestone.id)}",
        send_email=True,
        email=email,
    )
    return {"notification_id": int(row.id)}


def _run_customer_email(
    db: Session,
    *,
    project: Project,
    milestone: ProjectMilestone,
    email: EmailService,
    **_: Any,
) -> dict[str, Any]:
    trip = trip_for_milestone(db, milestone_id=milestone.id)
    if trip is None:
        raise EffectFailed("follow-up visit not scheduled yet")

    owner = project.user
    if owner is None or not owner.email:
        raise EffectFailed("project owner has no email address")

    sent = email.send_visit_scheduled_email(
        to=owner.email,
        name=owner.name,
        project_name=project.name,
        site_address=project.site_address,
        scheduled_for=trip.scheduled_for,
        dashboard_url=_dashboard_url(project.id),
    )
    if not sent:
        raise EffectFailed("email delivery failed")
    return {"to": owner.email, "trip_id": int(trip.id)}


EFFECT_RUNNERS = {
    Effect.VISIT_SCHEDULE.value: _run_visit,
    Effect.ADMIN_NOTIFICATION.value: _run_admin_notification,
    Effect.CUSTOMER_EMAIL.value: _run_customer_email,
}


def run_pending_effects(
    db: Session,
    *,
    milestone_id: int,
    email: Optional[EmailService] = None,
) -> list[dict[str, Any]]:
    """
    Runs every effect of the milestone that has not succeeded yet, in creation
    order. Each outcome is committed on its own; a failure is recorded on the
    effect row and never undoes the settlement.
    """
    mailer = email or EmailService()

    for row in effects_for_milestone(db, milestone_id=milestone_id):
        if row.status == EFFECT_SUCCEEDED:
            continue

        effect_id = int(row.id)
        effect_type = row.effect_type
        project_id = int(row.project_id)
        milestone = row.milestone
        project = milestone.project
        runner = EFFECT_RUNNERS.get(effect_type)

        try:
            if runner is None:
                # transactional effects only land here on rows written by hand
                merge_milestone_items(db, milestone=milestone)
                result: dict[str, Any] = {}
            else:
                result = runner(db, project=project, milestone=milestone, trigger=row.trigger, email=mailer)
            error = None
        except Exception as e:
            db.rollback()
            log.exception(
                "settlement effect failed",
                extra={"project_id": project_id, "milestone_id": milestone_id},
            )
            result, error = {}, f"{type(e).__name__}: {e}"

        row = db.get(SettlementEffect, effect_id)
        row.attempts = int(row.attempts or 0) + 1
        row.updated_at = datetime.utcnow()
        if error is None:
            row.status = EFFECT_SUCCEEDED
            row.last_error = None
            row.result_json = json.dumps(result, default=str)
        else:
            row.status = EFFECT_FAILED
            row.last_error = error[:2000]
            emit_workflow_event(
                db,
                event_type="settlement_effect_failed",
                project_id=project_id,
                payload={"milestone_id": int(milestone_id), "effect_type": effect_type, "attempts": row.attempts, "error": row.last_error},
            )
        db.add(row)
        db.commit()

    return [effect_out(r) for r in effects_for_milestone(db, milestone_id=milestone_id)]


# -----------------------------------------------------------------------------
# Entry points
# -----------------------------------------------------------------------------


def verify_and_settle(
    db: Session,
    *,
    project_id: int,
    reference: str,
    actor_user_id: Optional[int] = None,
    gateway: Optional[PaystackClient] = None,
    email: Optional[EmailService] = None,
) -> SettlementOutcome:
    """
    Confirms a gateway reference and settles the milestone it paid for.

    The status write, the payment record and the device ledger merge commit
    together. Visit scheduling, the admin notification and the customer email
    run afterwards and are tracked per effect. Replaying a settled reference
    returns the original outcome with already_settled=True and runs nothing.
    """
    reference = (reference or "").strip()
    if not reference:
        raise HTTPException(status_code=400, detail="Payment reference is required.")

    must_get_project(db, project_id=project_id)

    gateway = gateway or PaystackClient()
    try:
        tx = gateway.verify_transaction(reference)
    except PaymentGatewayError as e:
        log.error("payment verification failed: %s", e, extra={"project_id": project_id, "reference": reference})
        raise HTTPException(status_code=502, detail="Unable to verify payment right now. Please try again.")

    if not tx.succeeded:
        _record_failed_payment(db, project_id=project_id, reference=reference, gateway_status=tx.status)
        log.info("payment not successful", extra={"project_id": project_id, "reference": reference})
        raise HTTPException(status_code=400, detail=f"Payment was not successful (status: {tx.status or 'unknown'}).")

    if _metadata_int(tx.metadata, "projectId") != int(project_id):
        log.warning("payment metadata project mismatch", extra={"project_id": project_id, "reference": reference})
        raise HTTPException(status_code=400, detail="Payment does not belong to this project.")

    payment = _payment_by_reference(db, reference)
    if payment is not None and int(payment.project_id) != int(project_id):
        raise HTTPException(status_code=400, detail="Payment does not belong to this project.")

    milestone_id = payment.milestone_id if payment is not None and payment.milestone_id else None
    if milestone_id is None:
        milestone_id = _metadata_int(tx.metadata, "milestoneId")
    if milestone_id is None:
        raise HTTPException(status_code=400, detail="Payment is not linked to a milestone.")

    with project_lock(db, project_id=project_id):
        project = must_get_project(db, project_id=project_id, for_update=True)
        milestone = must_get_milestone(db, project_id=project_id, milestone_id=milestone_id)
        payment = _payment_by_reference(db, reference)

        if payment is not None and payment.status == PAYMENT_SETTLED:
            log.info("duplicate settlement ignored", extra={"project_id": project_id, "reference": reference})
            return SettlementOutcome(
                project_id=int(project.id),
                milestone_id=int(milestone.id),
                milestone_index=int(milestone.index),
                reference=reference,
                status=milestone.status,
                already_settled=True,
                effects=[effect_out(r) for r in effects_for_milestone(db, milestone_id=milestone.id)],
            )

        if milestone.status == MilestoneStatus.COMPLETED.value:
            # money arrived twice for one milestone; finance has to refund by hand
            log.error(
                "second payment for completed milestone",
                extra={"project_id": project_id, "milestone_id": milestone.id, "reference": reference},
            )
            raise HTTPException(status_code=409, detail="This milestone has already been paid.")

        nxt = next_payable(milestones_for_project(db, project_id=project_id))
        if nxt is None or int(nxt.id) != int(milestone.id):
            log.error(
                "payment for out-of-order milestone",
                extra={"project_id": project_id, "milestone_id": milestone.id, "reference": reference},
            )
            raise HTTPException(
                status_code=409,
                detail=f"Milestones must be paid in order. Please complete milestone {nxt.index if nxt else '?'} first.",
            )

        expected = to_minor_units(milestone.amount)
        if int(tx.amount) != expected:
            log.warning(
                "payment amount mismatch: expected %s got %s",
                expected,
                tx.amount,
                extra={"project_id": project_id, "milestone_id": milestone.id, "reference": reference},
            )
            raise HTTPException(status_code=400, detail="Paid amount does not match the milestone amount.")

        now = datetime.utcnow()
        if payment is None:
            payment = MilestonePayment(
                project_id=int(project.id),
                milestone_id=int(milestone.id),
                reference=reference,
                amount=int(milestone.amount),
                created_at=now,
            )
        payment.status = PAYMENT_SETTLED
        payment.gateway_status = tx.status
        payment.verified_at = now
        db.add(payment)

        try:
            apply_transition(
                db,
                project=project,
                milestone=milestone,
                event=MilestoneEvent.PAYMENT_VERIFIED,
                actor_user_id=actor_user_id,
                reference=reference,
            )
            db.commit()
        except StaleDataError:
            log.warning("milestone changed concurrently", extra={"project_id": project_id, "milestone_id": milestone_id})
            raise HTTPException(status_code=409, detail="Milestone was updated concurrently. Please retry.")

        milestone_id = int(milestone.id)
        milestone_index = int(milestone.index)

    log.info("milestone settled", extra={"project_id": project_id, "milestone_id": milestone_id, "reference": reference})
    effects = run_pending_effects(db, milestone_id=milestone_id, email=email)

    return SettlementOutcome(
        project_id=int(project_id),
        milestone_id=milestone_id,
        milestone_index=milestone_index,
        reference=reference,
        status=MilestoneStatus.COMPLETED.value,
        effects=effects,
    )


def mark_milestone_complete(
    db: Session,
    *,
    project_id: int,
    milestone_id: int,
    actor_user_id: Optional[int] = None,
    email: Optional[EmailService] = None,
) -> SettlementOutcome:
    """Admin override and trip check-out. A completed milestone is left untouched."""
    must_get_milestone(db, project_id=project_id, milestone_id=milestone_id)

    with project_lock(db, project_id=project_id):
        project = must_get_project(db, project_id=project_id, for_update=True)
        milestone = must_get_milestone(db, project_id=project_id, milestone_id=milestone_id)
        try:
            t = apply_transition(
                db,
                project=project,
                milestone=milestone,
                event=MilestoneEvent.MARKED_COMPLETE,
                actor_user_id=actor_user_id,
            )
            db.commit()
        except StaleDataError:
            raise HTTPException(status_code=409, detail="Milestone was updated concurrently. Please retry.")
        milestone_index = int(milestone.index)

    effects = run_pending_effects(db, milestone_id=milestone_id, email=email) if t.changed else [
        effect_out(r) for r in effects_for_milestone(db, milestone_id=milestone_id)
    ]
    return SettlementOutcome(
        project_id=int(project_id),
        milestone_id=int(milestone_id),
        milestone_index=milestone_index,
        reference=None,
        status=MilestoneStatus.COMPLETED.value,
        already_settled=not t.changed,
        effects=effects,
    )


def update_milestone_status(
    db: Session,
    *,
    project_id: int,
    milestone_id: int,
    status: str,
    actor_user_id: Optional[int] = None,
    email: Optional[EmailService] = None,
) -> SettlementOutcome:
    target = (status or "").strip().upper()
    if target == MilestoneStatus.COMPLETED.value:
        return mark_milestone_complete(
            db, project_id=project_id, milestone_id=milestone_id, actor_user_id=actor_user_id, email=email
        )
    if target != MilestoneStatus.PENDING.value:
        raise HTTPException(status_code=400, detail="Invalid milestone status.")

    milestone = must_get_milestone(db, project_id=project_id, milestone_id=milestone_id)
    if milestone.status == MilestoneStatus.COMPLETED.value:
        raise HTTPException(status_code=409, detail="Completed milestones cannot be reopened.")
    return SettlementOutcome(
        project_id=int(project_id),
        milestone_id=int(milestone.id),
        milestone_index=int(milestone.index),
        reference=None,
        status=milestone.status,
        already_settled=False,
        effects=[],
    )


def retry_failed_effects(
    db: Session,
    *,
    project_id: Optional[int] = None,
    email: Optional[EmailService] = None,
) -> dict[str, Any]:
    """Re-runs pending and failed effects, milestone by milestone."""
    q = select(SettlementEffect.milestone_id).where(SettlementEffect.status.in_((EFFECT_PENDING, EFFECT_FAILED)))
    if project_id is not None:
        q = q.where(SettlementEffect.project_id == int(project_id))
    milestone_ids = sorted({int(mid) for mid in db.scalars(q).all()})

    results: list[dict[str, Any]] = []
    for mid in milestone_ids:
        results.extend(run_pending_effects(db, milestone_id=mid, email=email))

    still_failing = [r for r in results if r["status"] != EFFECT_SUCCEEDED]
    log.info(
        "settlement effects retried",
        extra={"project_id": project_id, "milestones": len(milestone_ids), "failed": len(still_failing)},
    )
    return {
        "milestones": milestone_ids,
        "effects": results,
        "succeeded": sum(1 for r in results if r["status"] == EFFECT_SUCCEEDED),
        "failed": len(still_failing),
    }
