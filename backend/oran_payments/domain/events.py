# backend/oran_payments/domain/events.py
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import WorkflowEvent


def _loads(s: Optional[str], default: Any) -> Any:
    if not s:
        return default
    try:
        return json.loads(s)
    except Exception:
        return default


def emit_workflow_event(
    db: Session,
    *,
    event_type: str,
    project_id: Optional[int] = None,
    actor_user_id: Optional[int] = None,
    payload: Optional[dict[str, Any]] = None,
) -> WorkflowEvent:
    """
    Project-scoped workflow event.

    NOTE:
    - Does NOT commit. Adds + flushes only.
    - Callers decide when to commit.
    """
    if not event_type:
        raise ValueError("event_type required")

    ev = WorkflowEvent(
        project_id=int(project_id) if project_id is not None else None,
        actor_user_id=int(actor_user_id) if actor_user_id is not None else None,
        event_type=str(event_type),
        payload_json=json.dumps(payload or {}, ensure_ascii=False, default=str),
        created_at=datetime.utcnow(),
    )
    db.add(ev)
    db.flush()
    return ev


def list_workflow_events(
    db: Session,
    *,
    project_id: int,
    event_type: Optional[str] = None,
    limit: int = 200,
) -> list[dict[str, Any]]:
    q = select(WorkflowEvent).where(WorkflowEvent.project_id == int(project_id)).order_by(WorkflowEvent.id.desc())
    if event_type:
        q = q.where(WorkflowEvent.event_type == event_type)

    rows = db.scalars(q.limit(int(limit))).all()
    return [
        {
            "id": int(r.id),
            "project_id": r.project_id,
            "actor_user_id": r.actor_user_id,
            "event_type": r.event_type,
            "payload": _loads(r.payload_json, {}),
            "created_at": r.created_at,
        }
        for r in rows
    ]
