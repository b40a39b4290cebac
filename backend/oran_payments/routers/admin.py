# backend/oran_payments/routers/admin.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import Principal, require_admin
from ..db import get_db
from ..schemas import NotificationOut, RetryEffectsIn, RetryEffectsOut
from ..services import notification_service, settlement_service

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/notifications", response_model=list[NotificationOut])
def list_notifications(
    limit: int = Query(default=20, ge=1, le=200),
    unread_only: bool = Query(default=False),
    db: Session = Depends(get_db),
    p: Principal = Depends(require_admin),
):
    return notification_service.list_admin_notifications(db, limit=limit, unread_only=unread_only)


@router.post("/notifications/{notification_id}/read", response_model=NotificationOut)
def read_notification(notification_id: int, db: Session = Depends(get_db), p: Principal = Depends(require_admin)):
    return notification_service.mark_as_read(db, notification_id=notification_id)


@router.post("/settlements/retry", response_model=RetryEffectsOut)
def retry_settlement_effects(
    payload: RetryEffectsIn,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_admin),
):
    return settlement_service.retry_failed_effects(db, project_id=payload.project_id)
