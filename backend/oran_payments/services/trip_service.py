# backend/oran_payments/services/trip_service.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import settings
from ..domain.events import emit_workflow_event
from ..models import Project, ProjectMilestone, Trip, TripTask
from .ownership import must_get_trip

log = logging.getLogger("oran.trips")

# wiring -> installation -> integration, in sequence order
STANDARD_TASKS = (
    "Wiring & infrastructure preparation",
    "Device installation on site",
    "Integration, testing & client walkthrough",
)

AUTO_SCHEDULE_NOTE = (
    "Automatically scheduled after milestone {index} payment was confirmed. "
    "Operations will confirm or adjust this visit within 24 hours."
)


def follow_up_time(now_utc: Optional[datetime] = None) -> datetime:
    """
    now + lead days at the fixed local hour, returned as naive UTC like every
    other timestamp we store.
    """
    tz = ZoneInfo(settings.visit_timezone)
    now_utc = now_utc or datetime.utcnow()
    local_now = now_utc.replace(tzinfo=timezone.utc).astimezone(tz)
    local_visit = (local_now + timedelta(days=int(settings.visit_lead_days))).replace(
        hour=int(settings.visit_hour_local), minute=0, second=0, microsecond=0
    )
    return local_visit.astimezone(timezone.utc).replace(tzinfo=None)


def seed_tasks(db: Session, *, trip: Trip) -> list[TripTask]:
    now = datetime.utcnow()
    rows = [TripTask(trip_id=int(trip.id), label=label, sequence=seq, is_done=False, created_at=now) for seq, label in enumerate(STANDARD_TASKS, start=1)]
    db.add_all(rows)
    db.flush()
    return rows


def trip_for_milestone(db: Session, *, milestone_id: int) -> Optional[Trip]:
    return db.scalar(select(Trip).where(Trip.milestone_id == int(milestone_id)).order_by(Trip.id.asc()))


def schedule_follow_up_visit(
    db: Session,
    *,
    project: Project,
    milestone: ProjectMilestone,
    now_utc: Optional[datetime] = None,
) -> Trip:
    """
    One SCHEDULED visit per settled milestone, with the standard checklist.
    Re-running for the same milestone returns the existing visit.
    """
    existing = trip_for_milestone(db, milestone_id=milestone.id)
    if existing is not None:
        return existing

    trip = Trip(
        project_id=int(project.id),
        milestone_id=int(milestone.id),
        status="SCHEDULED",
        scheduled_for=follow_up_time(now_utc),
        notes=AUTO_SCHEDULE_NOTE.format(index=int(milestone.index)),
        created_at=datetime.utcnow(),
    )
    db.add(trip)
    db.flush()
    seed_tasks(db, trip=trip)

    emit_workflow_event(
        db,
        event_type="trip_scheduled",
        project_id=project.id,
        payload={"trip_id": int(trip.id), "milestone_id": int(milestone.id), "scheduled_for": trip.scheduled_for.isoformat()},
    )
    db.commit()
    db.refresh(trip)
    log.info("follow-up visit scheduled", extra={"project_id": project.id, "milestone_id": milestone.id, "trip_id": trip.id})
    return trip


def list_trips(db: Session, *, project_id: Optional[int] = None, technician_id: Optional[int] = None) -> list[Trip]:
    q = select(Trip).order_by(Trip.scheduled_for.asc(), Trip.id.asc())
    if project_id is not None:
        q = q.where(Trip.project_id == int(project_id))
    if technician_id is not None:
        q = q.where(Trip.technician_id == int(technician_id))
    return list(db.scalars(q).all())


def list_tasks(db: Session, *, trip_id: int) -> list[TripTask]:
    must_get_trip(db, trip_id=trip_id)
    return list(db.scalars(select(TripTask).where(TripTask.trip_id == int(trip_id)).order_by(TripTask.sequence.asc())).all())


def set_task_done(db: Session, *, trip_id: int, task_id: int, is_done: bool) -> TripTask:
    task = db.scalar(select(TripTask).where(TripTask.id == int(task_id), TripTask.trip_id == int(trip_id)))
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found for this trip.")
    task.is_done = bool(is_done)
    db.add(task)
    db.commit()
    db.refresh(task)
    return task


def check_in(db: Session, *, trip_id: int) -> Trip:
    trip = must_get_trip(db, trip_id=trip_id)
    trip.status = "IN_PROGRESS"
    trip.check_in_at = trip.check_in_at or datetime.utcnow()
    db.add(trip)
    db.commit()
    db.refresh(trip)
    return trip


def check_out(db: Session, *, trip_id: int, actor_user_id: Optional[int] = None) -> Trip:
    """
    Completes the visit. A visit linked to a milestone also completes that
    milestone, which is a no-op when payment already settled it.
    """
    from .settlement_service import mark_milestone_complete

    trip = must_get_trip(db, trip_id=trip_id)
    trip.status = "COMPLETED"
    trip.check_out_at = trip.check_out_at or datetime.utcnow()
    db.add(trip)
    db.commit()
    db.refresh(trip)

    if trip.milestone_id is not None:
        mark_milestone_complete(
            db,
            project_id=int(trip.project_id),
            milestone_id=int(trip.milestone_id),
            actor_user_id=actor_user_id,
        )
        db.refresh(trip)
    return trip
