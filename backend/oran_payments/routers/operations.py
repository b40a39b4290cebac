# backend/oran_payments/routers/operations.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import Principal, require_admin
from ..db import get_db
from ..schemas import TripOut, TripTaskOut, TripTaskPatch
from ..services import trip_service

router = APIRouter(prefix="/operations", tags=["operations"])


@router.get("/trips", response_model=list[TripOut])
def list_trips(
    project_id: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
    p: Principal = Depends(require_admin),
):
    return trip_service.list_trips(db, project_id=project_id)


@router.get("/trips/{trip_id}/tasks", response_model=list[TripTaskOut])
def list_trip_tasks(trip_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_admin)):
    return trip_service.list_tasks(db, trip_id=trip_id)


@router.patch("/trips/{trip_id}/tasks/{task_id}", response_model=TripTaskOut)
def patch_trip_task(
    trip_id: int,
    task_id: int,
    payload: TripTaskPatch,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_admin),
):
    return trip_service.set_task_done(db, trip_id=trip_id, task_id=task_id, is_done=payload.is_done)


@router.post("/trips/{trip_id}/check-in", response_model=TripOut)
def check_in(trip_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_admin)):
    return trip_service.check_in(db, trip_id=trip_id)


@router.post("/trips/{trip_id}/check-out", response_model=TripOut)
def check_out(trip_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_admin)):
    return trip_service.check_out(db, trip_id=trip_id, actor_user_id=p.user_id)
