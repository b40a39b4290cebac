# backend/oran_payments/services/ownership.py
from __future__ import annotations

from typing import Optional

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import Project, ProjectMilestone, Quote, Trip


def must_get_project(db: Session, *, project_id: int, for_update: bool = False) -> Project:
    q = select(Project).where(Project.id == int(project_id))
    if for_update:
        # row lock on Postgres; ignored by SQLite
        q = q.with_for_update()
    row = db.scalar(q)
    if not row:
        raise HTTPException(status_code=404, detail="Project not found")
    return row


def ensure_project_access(project: Project, principal) -> None:
    """Customers only see their own projects; admins see everything."""
    if principal is None or getattr(principal, "is_admin", False):
        return
    if int(project.user_id) != int(principal.user_id):
        raise HTTPException(status_code=404, detail="Project not found")


def must_get_selected_quote(db: Session, *, project_id: int) -> Quote:
    row = db.scalar(
        select(Quote)
        .where(Quote.project_id == int(project_id), Quote.is_selected.is_(True))
        .order_by(Quote.id.desc())
    )
    if not row:
        raise HTTPException(status_code=400, detail="No selected quote found for project milestones.")
    return row


def must_get_milestone(db: Session, *, project_id: int, milestone_id: int) -> ProjectMilestone:
    row = db.scalar(
        select(ProjectMilestone).where(
            ProjectMilestone.id == int(milestone_id),
            ProjectMilestone.project_id == int(project_id),
        )
    )
    if not row:
        raise HTTPException(status_code=404, detail="Milestone not found for this project")
    return row


def must_get_trip(db: Session, *, trip_id: int, project_id: Optional[int] = None) -> Trip:
    q = select(Trip).where(Trip.id == int(trip_id))
    if project_id is not None:
        q = q.where(Trip.project_id == int(project_id))
    row = db.scalar(q)
    if not row:
        raise HTTPException(status_code=404, detail="Trip not found")
    return row
