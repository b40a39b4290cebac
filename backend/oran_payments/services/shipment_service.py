# backend/oran_payments/services/shipment_service.py
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..domain.audit import audit_write, row_snapshot
from ..models import DeviceShipment, ProjectMilestone, Quote, QuoteItem

SHIPMENT_STATUSES = ("PREPARING", "IN_TRANSIT", "DELIVERED", "INSTALLED")


def _loads_list(s: Optional[str]) -> list[dict[str, Any]]:
    if not s:
        return []
    try:
        v = json.loads(s)
    except ValueError:
        return []
    return v if isinstance(v, list) else []


def shipment_items(row: DeviceShipment) -> list[dict[str, Any]]:
    return _loads_list(row.items_json)


def get_for_project(db: Session, *, project_id: int) -> Optional[DeviceShipment]:
    return db.scalar(select(DeviceShipment).where(DeviceShipment.project_id == int(project_id)))


def ensure_shipment(db: Session, *, project_id: int) -> DeviceShipment:
    row = get_for_project(db, project_id=project_id)
    if row is not None:
        return row

    now = datetime.utcnow()
    row = DeviceShipment(project_id=int(project_id), items_json="[]", status="PREPARING", created_at=now, updated_at=now)
    db.add(row)
    db.flush()
    return row


def _quote_items_by_id(db: Session, *, project_id: int, ids: list[int]) -> dict[int, QuoteItem]:
    if not ids:
        return {}
    rows = db.scalars(
        select(QuoteItem)
        .join(Quote, Quote.id == QuoteItem.quote_id)
        .where(Quote.project_id == int(project_id), QuoteItem.id.in_(ids))
    ).all()
    return {int(r.id): r for r in rows}


def resolve_ledger_entries(db: Session, *, milestone: ProjectMilestone) -> list[dict[str, Any]]:
    """Milestone item refs, denormalized with the quote item's name and category."""
    refs = _loads_list(milestone.items_json)

    ids: list[int] = []
    for r in refs:
        try:
            ids.append(int(r.get("quoteItemId")))
        except (TypeError, ValueError, AttributeError):
            continue
    by_id = _quote_items_by_id(db, project_id=milestone.project_id, ids=ids)

    out: list[dict[str, Any]] = []
    for r in refs:
        if not isinstance(r, dict):
            continue
        try:
            qid = int(r.get("quoteItemId"))
        except (TypeError, ValueError):
            qid = None
        qty = r.get("quantity")
        qi = by_id.get(qid) if qid is not None else None
        out.append(
            {
                "quoteItemId": qid,
                "quantity": qty if isinstance(qty, int) and qty > 0 else 1,
                "name": qi.name if qi else None,
                "category": qi.category if qi else None,
                "milestoneId": int(milestone.id),
            }
        )
    return out


def merge_milestone_items(db: Session, *, milestone: ProjectMilestone) -> DeviceShipment:
    """
    Appends (never replaces) the milestone's devices to the project's ledger,
    creating the ledger on first use. A milestone already present in the
    ledger is not appended twice. Does NOT commit.
    """
    row = ensure_shipment(db, project_id=milestone.project_id)
    items = shipment_items(row)
    if any(i.get("milestoneId") == int(milestone.id) for i in items if isinstance(i, dict)):
        return row
    items.extend(resolve_ledger_entries(db, milestone=milestone))

    row.items_json = json.dumps(items)
    row.milestone_id = int(milestone.id)
    row.updated_at = datetime.utcnow()
    db.add(row)
    db.flush()
    return row


def update_metadata(
    db: Session,
    *,
    project_id: int,
    status: Optional[str] = None,
    location_note: Optional[str] = None,
    estimated_from: Optional[datetime] = None,
    estimated_to: Optional[datetime] = None,
    fields_set: frozenset[str] = frozenset(),
    actor_user_id: Optional[int] = None,
) -> DeviceShipment:
    """Operations-side edits; the item ledger itself is only appended by settlement."""
    row = ensure_shipment(db, project_id=project_id)
    before = row_snapshot(row)

    if status is not None:
        row.status = status
    if "location_note" in fields_set:
        row.location_note = location_note
    if "estimated_from" in fields_set:
        row.estimated_from = estimated_from
    if "estimated_to" in fields_set:
        row.estimated_to = estimated_to
    row.updated_at = datetime.utcnow()
    db.add(row)
    db.flush()

    audit_write(
        db,
        actor_user_id=actor_user_id,
        action="device_shipment.update",
        entity_type="DeviceShipment",
        entity_id=str(row.id),
        before=before,
        after=row_snapshot(row),
    )
    db.commit()
    db.refresh(row)
    return row


def shipment_out(row: DeviceShipment) -> dict[str, Any]:
    return {
        "id": int(row.id),
        "project_id": int(row.project_id),
        "milestone_id": row.milestone_id,
        "items": [i for i in shipment_items(row) if isinstance(i, dict)],
        "status": row.status,
        "location_note": row.location_note,
        "estimated_from": row.estimated_from,
        "estimated_to": row.estimated_to,
        "updated_at": row.updated_at,
    }
