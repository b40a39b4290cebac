# backend/oran_payments/services/milestone_service.py
from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime
from typing import Any, Optional
from urllib.parse import urlencode

from fastapi import HTTPException
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..clients.paystack import PaymentGatewayError, PaystackClient
from ..config import settings
from ..domain.audit import audit_write
from ..domain.events import emit_workflow_event
from ..domain.milestones import (
    AllocationError,
    MilestoneStatus,
    allocate,
    build_fallback_plan,
    next_payable,
)
from ..domain.milestones.types import SOURCE_FALLBACK
from ..integrations.gemini_client import GeminiClient
from ..models import MilestonePayment, Project, ProjectMilestone, Trip
from .ownership import must_get_milestone, must_get_project, must_get_selected_quote
from .plan_source import planning_context, resolve_plan

log = logging.getLogger("oran.milestones")


def _loads_items(s: Optional[str]) -> list[dict[str, Any]]:
    if not s:
        return []
    try:
        v = json.loads(s)
    except ValueError:
        return []
    return v if isinstance(v, list) else []


def milestone_items(m: ProjectMilestone) -> list[dict[str, Any]]:
    return _loads_items(m.items_json)


def milestones_for_project(db: Session, *, project_id: int) -> list[ProjectMilestone]:
    return list(
        db.scalars(
            select(ProjectMilestone)
            .where(ProjectMilestone.project_id == int(project_id))
            .order_by(ProjectMilestone.index.asc())
        ).all()
    )


def milestone_out(m: ProjectMilestone, *, next_id: Optional[int] = None) -> dict[str, Any]:
    return {
        "id": int(m.id),
        "project_id": int(m.project_id),
        "index": int(m.index),
        "title": m.title,
        "description": m.description,
        "percentage": int(m.percentage),
        "amount": int(m.amount),
        "status": m.status,
        "plan_type": m.plan_type,
        "plan_source": m.plan_source,
        "items": milestone_items(m),
        "completed_at": m.completed_at,
        "is_next_payable": next_id is not None and int(m.id) == int(next_id),
    }


def list_for_project(db: Session, *, project_id: int) -> dict[str, Any]:
    """Read model for the customer UI: ordered milestones plus which one is payable now."""
    rows = milestones_for_project(db, project_id=project_id)
    nxt = next_payable(rows)
    next_id = int(nxt.id) if nxt is not None else None
    return {
        "project_id": int(project_id),
        "items": [milestone_out(m, next_id=next_id) for m in rows],
        "next_payable_milestone_id": next_id,
        "total_amount": sum(int(m.amount) for m in rows),
        "paid_amount": sum(int(m.amount) for m in rows if m.status == MilestoneStatus.COMPLETED.value),
    }


def regenerate_milestones(
    db: Session,
    *,
    project: Project,
    plan_type: str,
    actor_user_id: Optional[int] = None,
    planner: Optional[GeminiClient] = None,
) -> list[ProjectMilestone]:
    """
    Replaces the project's milestone set wholesale.

    Does NOT commit: the delete and the re-create land in the caller's
    transaction so readers never observe a partial set.
    """
    quote = must_get_selected_quote(db, project_id=project.id)
    total = int(quote.total or 0)
    if total <= 0:
        raise HTTPException(status_code=400, detail="Selected quote total must be greater than zero.")

    existing = milestones_for_project(db, project_id=project.id)
    paid = [m for m in existing if m.status == MilestoneStatus.COMPLETED.value]
    if paid and not settings.allow_plan_change_after_payment:
        raise HTTPException(
            status_code=409,
            detail="Payment plan cannot be changed after a milestone has been paid.",
        )

    ctx = planning_context(project, quote, plan_type)
    plan = resolve_plan(ctx, client=planner)

    try:
        allocated = allocate(plan, total=total, plan_type=plan_type)
    except AllocationError:
        if plan.source == SOURCE_FALLBACK:
            raise
        log.warning("external plan failed allocation; using fallback", extra={"project_id": project.id})
        plan = build_fallback_plan(plan_type, ctx.items)
        allocated = allocate(plan, total=total, plan_type=plan_type)

    before = [milestone_out(m) for m in existing]
    old_ids = [int(m.id) for m in existing]

    if old_ids:
        # payment history and visits outlive the milestone rows they pointed at
        db.execute(update(MilestonePayment).where(MilestonePayment.milestone_id.in_(old_ids)).values(milestone_id=None))
        db.execute(update(Trip).where(Trip.milestone_id.in_(old_ids)).values(milestone_id=None))
        for m in existing:
            db.delete(m)
        # flush deletes before inserts; (project_id, index) is unique
        db.flush()

    now = datetime.utcnow()
    rows: list[ProjectMilestone] = []
    for a in allocated:
        row = ProjectMilestone(
            project_id=int(project.id),
            plan_type=plan_type,
            plan_source=plan.source,
            index=a.index,
            title=a.title,
            description=a.description,
            percentage=a.percentage,
            amount=a.amount,
            items_json=json.dumps(a.items_payload()),
            status=MilestoneStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        db.add(row)
        rows.append(row)
    db.flush()
    db.expire(project, ["milestones"])

    audit_write(
        db,
        actor_user_id=actor_user_id,
        action="milestones.regenerate",
        entity_type="Project",
        entity_id=str(project.id),
        before={"milestones": before},
        after={"milestones": [milestone_out(m) for m in rows]},
    )
    emit_workflow_event(
        db,
        event_type="milestones_generated",
        project_id=project.id,
        actor_user_id=actor_user_id,
        payload={
            "plan_type": plan_type,
            "plan_source": plan.source,
            "quote_id": int(quote.id),
            "total": total,
            "amounts": [a.amount for a in allocated],
            "percentages": [a.percentage for a in allocated],
            "replaced_milestone_ids": old_ids,
        },
    )

    log.info(
        "milestones generated",
        extra={"project_id": project.id, "plan_type": plan_type, "plan_source": plan.source},
    )
    return rows


def _new_reference(milestone_id: int) -> str:
    return f"{settings.payment_reference_prefix}-{int(milestone_id)}-{uuid.uuid4().hex[:12]}"


def _callback_url(project_id: int, milestone_id: int) -> str:
    base = settings.frontend_base_url.rstrip("/")
    return f"{base}/paystack/callback?" + urlencode({"projectId": project_id, "milestoneId": milestone_id})


def initialize_payment(
    db: Session,
    *,
    project_id: int,
    milestone_id: int,
    actor_user_id: Optional[int] = None,
    gateway: Optional[PaystackClient] = None,
) -> dict[str, Any]:
    """
    Opens a gateway session for the next payable milestone only.
    Out-of-order and already-paid milestones are rejected before the gateway
    is contacted.
    """
    project = must_get_project(db, project_id=project_id)
    milestone = must_get_milestone(db, project_id=project_id, milestone_id=milestone_id)

    if milestone.status == MilestoneStatus.COMPLETED.value:
        raise HTTPException(status_code=409, detail="This milestone has already been paid.")

    nxt = next_payable(milestones_for_project(db, project_id=project_id))
    if nxt is None or int(nxt.id) != int(milestone.id):
        raise HTTPException(
            status_code=409,
            detail=f"Milestones must be paid in order. Please complete milestone {nxt.index if nxt else '?'} first.",
        )

    amount = int(milestone.amount or 0)
    if amount <= 0:
        raise HTTPException(status_code=400, detail="Milestone amount must be greater than zero.")

    email = project.user.email if project.user else None
    if not email:
        raise HTTPException(status_code=400, detail="Project owner has no email address for payment.")

    gateway = gateway or PaystackClient()
    reference = _new_reference(milestone.id)
    metadata = {
        "projectId": int(project.id),
        "milestoneId": int(milestone.id),
        "milestoneIndex": int(milestone.index),
    }

    try:
        session = gateway.initialize_transaction(
            email=email,
            amount=amount,
            reference=reference,
            callback_url=_callback_url(project.id, milestone.id),
            metadata=metadata,
        )
    except PaymentGatewayError as e:
        log.error("payment initialization failed: %s", e, extra={"project_id": project.id, "milestone_id": milestone.id})
        raise HTTPException(status_code=502, detail="Unable to start payment right now. Please try again.")

    payment = MilestonePayment(
        project_id=int(project.id),
        milestone_id=int(milestone.id),
        reference=session.reference,
        amount=amount,
        status="initialized",
        authorization_url=session.authorization_url,
        created_at=datetime.utcnow(),
    )
    db.add(payment)
    db.flush()

    emit_workflow_event(
        db,
        event_type="milestone_payment_initialized",
        project_id=project.id,
        actor_user_id=actor_user_id,
        payload={"milestone_id": int(milestone.id), "index": int(milestone.index), "reference": session.reference, "amount": amount},
    )
    db.commit()

    log.info("payment initialized", extra={"project_id": project.id, "milestone_id": milestone.id, "reference": session.reference})
    return {
        "authorization_url": session.authorization_url,
        "reference": session.reference,
        "milestone_id": int(milestone.id),
        "amount": amount,
    }
