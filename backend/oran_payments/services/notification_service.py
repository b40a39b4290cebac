# backend/oran_payments/services/notification_service.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..config import settings
from ..models import AppUser, Notification
from .email_service import EmailService

log = logging.getLogger("oran.notifications")


def create_admin_notification(
    db: Session,
    *,
    type: str,
    title: str,
    message: str,
    project_id: Optional[int] = None,
    dedupe_key: Optional[str] = None,
    send_email: bool = False,
    email: Optional[EmailService] = None,
) -> Notification:
    """
    Stores an admin-facing notification and optionally forwards it by email to
    the operations inbox (or every admin when no inbox is configured).

    With a dedupe_key an existing notification is returned instead of a second
    one, so retried settlement effects stay single.
    """
    if dedupe_key:
        existing = db.scalar(select(Notification).where(Notification.dedupe_key == dedupe_key))
        if existing is not None:
            return existing

    row = Notification(
        project_id=project_id,
        dedupe_key=dedupe_key,
        type=type,
        title=title,
        message=message,
        created_at=datetime.utcnow(),
    )
    db.add(row)
    db.commit()
    db.refresh(row)

    if send_email:
        mailer = email or EmailService()
        if settings.ops_inbox_email:
            recipients = [settings.ops_inbox_email]
        else:
            recipients = [u.email for u in db.scalars(select(AppUser).where(AppUser.role == "admin")).all() if u.email]
        for to in recipients:
            if not mailer.send_admin_alert(to=to, title=title, message=message):
                log.warning("admin alert email not delivered", extra={"project_id": project_id})

    return row


def list_admin_notifications(db: Session, *, limit: int = 20, unread_only: bool = False) -> list[Notification]:
    q = select(Notification).order_by(Notification.created_at.desc(), Notification.id.desc())
    if unread_only:
        q = q.where(Notification.read_at.is_(None))
    return list(db.scalars(q.limit(int(limit))).all())


def mark_as_read(db: Session, *, notification_id: int) -> Notification:
    row = db.scalar(select(Notification).where(Notification.id == int(notification_id)))
    if row is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    if row.read_at is None:
        row.read_at = datetime.utcnow()
        db.add(row)
        db.commit()
        db.refresh(row)
    return row
