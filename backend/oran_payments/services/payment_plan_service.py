# backend/oran_payments/services/payment_plan_service.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..domain.audit import audit_write, row_snapshot
from ..domain.events import emit_workflow_event
from ..domain.milestones import normalize_plan_type
from ..integrations.gemini_client import GeminiClient
from ..models import PaymentPlan, ProjectMilestone
from .locks_service import project_lock
from .milestone_service import regenerate_milestones
from .ownership import must_get_project

log = logging.getLogger("oran.payment_plan")

SELECTABLE_STATUSES = ("DOCUMENTS_SIGNED", "PAYMENT_PLAN_SELECTED")
PLAN_SELECTED_STATUS = "PAYMENT_PLAN_SELECTED"


def get_for_project(db: Session, *, project_id: int) -> Optional[PaymentPlan]:
    return db.scalar(select(PaymentPlan).where(PaymentPlan.project_id == int(project_id)))


def set_for_project(
    db: Session,
    *,
    project_id: int,
    plan_type: str,
    actor_user_id: Optional[int] = None,
    planner: Optional[GeminiClient] = None,
) -> tuple[PaymentPlan, list[ProjectMilestone]]:
    """
    Upserts the project's plan, moves the project to PAYMENT_PLAN_SELECTED and
    regenerates the milestone set, all in one transaction under the project lock.
    """
    normalized = normalize_plan_type(plan_type)
    if normalized is None:
        raise HTTPException(status_code=400, detail="Invalid payment plan type.")

    # fail fast on unknown projects before taking the lock
    must_get_project(db, project_id=project_id)

    with project_lock(db, project_id=project_id):
        project = must_get_project(db, project_id=project_id, for_update=True)

        if project.status not in SELECTABLE_STATUSES:
            raise HTTPException(
                status_code=400,
                detail="Payment plan can only be chosen after documents are signed.",
            )

        now = datetime.utcnow()
        plan = get_for_project(db, project_id=project.id)
        before = row_snapshot(plan) if plan is not None else None
        if plan is None:
            plan = PaymentPlan(project_id=int(project.id), type=normalized, created_at=now, updated_at=now)
            db.add(plan)
        else:
            plan.type = normalized
            plan.updated_at = now
        db.flush()

        old_status = project.status
        project.status = PLAN_SELECTED_STATUS
        project.updated_at = now

        milestones = regenerate_milestones(
            db,
            project=project,
            plan_type=normalized,
            actor_user_id=actor_user_id,
            planner=planner,
        )

        audit_write(
            db,
            actor_user_id=actor_user_id,
            action="payment_plan.select",
            entity_type="PaymentPlan",
            entity_id=str(plan.id),
            before=before,
            after=row_snapshot(plan),
        )
        emit_workflow_event(
            db,
            event_type="payment_plan_selected",
            project_id=project.id,
            actor_user_id=actor_user_id,
            payload={"plan_type": normalized, "from_status": old_status, "to_status": PLAN_SELECTED_STATUS},
        )

        db.commit()
        db.refresh(plan)
        for m in milestones:
            db.refresh(m)

    log.info("payment plan selected", extra={"project_id": project_id, "plan_type": normalized})
    return plan, milestones
