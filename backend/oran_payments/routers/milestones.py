# backend/oran_payments/routers/milestones.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, require_admin
from ..db import get_db
from ..schemas import MilestoneListOut, MilestoneStatusPatch, PaymentInitOut, SettlementOut
from ..services import milestone_service, settlement_service
from ..services.ownership import ensure_project_access, must_get_project

router = APIRouter(prefix="/projects", tags=["milestones"])


@router.get("/{project_id}/milestones", response_model=MilestoneListOut)
def list_milestones(project_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    ensure_project_access(must_get_project(db, project_id=project_id), p)
    return milestone_service.list_for_project(db, project_id=project_id)


@router.post("/{project_id}/milestones/{milestone_id}/paystack/initialize", response_model=PaymentInitOut)
def initialize_milestone_payment(
    project_id: int,
    milestone_id: int,
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    ensure_project_access(must_get_project(db, project_id=project_id), p)
    return milestone_service.initialize_payment(
        db,
        project_id=project_id,
        milestone_id=milestone_id,
        actor_user_id=p.user_id,
    )


@router.get("/{project_id}/milestones/paystack/verify", response_model=SettlementOut)
def verify_milestone_payment(
    project_id: int,
    reference: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    p: Principal = Depends(get_principal),
):
    ensure_project_access(must_get_project(db, project_id=project_id), p)
    outcome = settlement_service.verify_and_settle(
        db,
        project_id=project_id,
        reference=reference,
        actor_user_id=p.user_id,
    )
    return outcome.as_dict()


@router.patch("/{project_id}/milestones/{milestone_id}/status", response_model=SettlementOut)
def update_milestone_status(
    project_id: int,
    milestone_id: int,
    payload: MilestoneStatusPatch,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_admin),
):
    outcome = settlement_service.update_milestone_status(
        db,
        project_id=project_id,
        milestone_id=milestone_id,
        status=payload.status,
        actor_user_id=p.user_id,
    )
    return outcome.as_dict()
