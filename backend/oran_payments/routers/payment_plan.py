# backend/oran_payments/routers/payment_plan.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal
from ..db import get_db
from ..schemas import PaymentPlanIn, PaymentPlanWithMilestonesOut
from ..services import milestone_service, payment_plan_service
from ..services.ownership import ensure_project_access, must_get_project

router = APIRouter(prefix="/projects", tags=["payment-plan"])


@router.get("/{project_id}/payment-plan", response_model=PaymentPlanWithMilestonesOut)
def get_payment_plan(project_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    ensure_project_access(must_get_project(db, project_id=project_id), p)
    return {
        "plan": payment_plan_service.get_for_project(db, project_id=project_id),
        "milestones": milestone_service.list_for_project(db, project_id=project_id),
    }


@router.put("/{project_id}/payment-plan", response_model=PaymentPlanWithMilestonesOut)
def put_payment_plan(
    project_id: int,
    payload: PaymentPlanIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    ensure_project_access(must_get_project(db, project_id=project_id), p)
    plan, _ = payment_plan_service.set_for_project(
        db,
        project_id=project_id,
        plan_type=payload.type,
        actor_user_id=p.user_id,
    )
    return {"plan": plan, "milestones": milestone_service.list_for_project(db, project_id=project_id)}
