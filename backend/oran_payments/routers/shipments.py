# backend/oran_payments/routers/shipments.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth import Principal, get_principal, require_admin
from ..db import get_db
from ..schemas import DeviceShipmentOut, DeviceShipmentPatch
from ..services import shipment_service
from ..services.ownership import ensure_project_access, must_get_project

router = APIRouter(prefix="/projects", tags=["device-shipment"])


@router.get("/{project_id}/device-shipment", response_model=DeviceShipmentOut)
def get_device_shipment(project_id: int, db: Session = Depends(get_db), p: Principal = Depends(get_principal)):
    ensure_project_access(must_get_project(db, project_id=project_id), p)
    row = shipment_service.get_for_project(db, project_id=project_id)
    if row is None:
        raise HTTPException(status_code=404, detail="No devices have been released for this project yet.")
    return shipment_service.shipment_out(row)


@router.patch("/{project_id}/device-shipment", response_model=DeviceShipmentOut)
def patch_device_shipment(
    project_id: int,
    payload: DeviceShipmentPatch,
    db: Session = Depends(get_db),
    p: Principal = Depends(require_admin),
):
    must_get_project(db, project_id=project_id)
    row = shipment_service.update_metadata(
        db,
        project_id=project_id,
        status=payload.status,
        location_note=payload.location_note,
        estimated_from=payload.estimated_from,
        estimated_to=payload.estimated_to,
        fields_set=frozenset(payload.model_fields_set),
        actor_user_id=p.user_id,
    )
    return shipment_service.shipment_out(row)
