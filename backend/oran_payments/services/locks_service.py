# backend/oran_payments/services/locks_service.py
from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Iterator

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..models import ProjectLock

log = logging.getLogger("oran.locks")

MILESTONES_LOCK = "milestones"


def _now() -> datetime:
    return datetime.utcnow()


def acquire_lock(db: Session, *, project_id: int, lock_key: str, owner: str | None, ttl_seconds: int) -> bool:
    """
    Advisory lock in DB.
    - returns True if lock acquired/renewed
    - returns False if held by someone else (and not expired)
    Commits so other sessions see the lock immediately.
    """
    expires = _now() + timedelta(seconds=int(ttl_seconds))

    row = db.scalar(select(ProjectLock).where(ProjectLock.project_id == int(project_id), ProjectLock.lock_key == lock_key))
    if row is None:
        db.add(ProjectLock(project_id=int(project_id), lock_key=lock_key, owner=owner, expires_at=expires, created_at=_now()))
        try:
            db.commit()
        except IntegrityError:
            # someone inserted the same lock row first
            db.rollback()
            return False
        return True

    # expired => steal
    if row.expires_at and row.expires_at <= _now():
        row.owner = owner
        row.expires_at = expires
        db.add(row)
        db.commit()
        return True

    # held by same owner => renew
    if (row.owner or "") == (owner or ""):
        row.expires_at = expires
        db.add(row)
        db.commit()
        return True

    return False


def release_lock(db: Session, *, project_id: int, lock_key: str, owner: str | None) -> bool:
    row = db.scalar(select(ProjectLock).where(ProjectLock.project_id == int(project_id), ProjectLock.lock_key == lock_key))
    if row is None:
        return True
    if owner and (row.owner or "") != owner:
        # don't release someone else's lock
        return False
    row.expires_at = _now() - timedelta(seconds=1)
    db.add(row)
    db.commit()
    return True


@contextmanager
def project_lock(db: Session, *, project_id: int, lock_key: str = MILESTONES_LOCK) -> Iterator[str]:
    """
    Serializes milestone regeneration and settlement for one project.
    Raises 409 when another request holds the lock.
    """
    owner = uuid.uuid4().hex
    if not acquire_lock(
        db,
        project_id=project_id,
        lock_key=lock_key,
        owner=owner,
        ttl_seconds=settings.project_lock_ttl_seconds,
    ):
        log.info("project lock busy", extra={"project_id": project_id})
        raise HTTPException(status_code=409, detail="Project is busy with another payment operation. Please retry.")

    try:
        yield owner
    finally:
        # The body may have left the session mid-transaction after an error.
        db.rollback()
        release_lock(db, project_id=project_id, lock_key=lock_key, owner=owner)
