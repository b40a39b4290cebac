# backend/oran_payments/schemas.py
from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .domain.milestones import PLAN_TYPES, normalize_plan_type
from .services.shipment_service import SHIPMENT_STATUSES


# -------------------- Payment plan / milestones --------------------

class PaymentPlanIn(BaseModel):
    type: str

    @field_validator("type")
    @classmethod
    def _known_type(cls, v: str) -> str:
        normalized = normalize_plan_type(v)
        if normalized is None:
            raise ValueError(f"type must be one of {', '.join(PLAN_TYPES)}")
        return normalized


class PaymentPlanOut(BaseModel):
    id: int
    project_id: int
    type: str
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class MilestoneItemRef(BaseModel):
    quoteItemId: Optional[int] = None
    quantity: int = 1


class MilestoneOut(BaseModel):
    id: int
    project_id: int
    index: int
    title: str
    description: Optional[str] = None
    percentage: int
    amount: int
    status: str
    plan_type: str
    plan_source: str
    items: List[MilestoneItemRef] = Field(default_factory=list)
    completed_at: Optional[datetime] = None
    is_next_payable: bool = False


class MilestoneListOut(BaseModel):
    project_id: int
    items: List[MilestoneOut]
    next_payable_milestone_id: Optional[int] = None
    total_amount: int
    paid_amount: int


class PaymentPlanWithMilestonesOut(BaseModel):
    plan: Optional[PaymentPlanOut] = None
    milestones: MilestoneListOut


class MilestoneStatusPatch(BaseModel):
    status: str


# -------------------- Payments / settlement --------------------

class PaymentInitOut(BaseModel):
    authorization_url: str
    reference: str
    milestone_id: int
    amount: int


class SettlementEffectOut(BaseModel):
    id: int
    milestone_id: int
    effect_type: str
    trigger: str
    status: str
    attempts: int
    last_error: Optional[str] = None


class SettlementOut(BaseModel):
    project_id: int
    milestone_id: int
    milestone_index: int
    reference: Optional[str] = None
    status: str
    already_settled: bool = False
    effects: List[SettlementEffectOut] = Field(default_factory=list)


class RetryEffectsIn(BaseModel):
    project_id: Optional[int] = None


class RetryEffectsOut(BaseModel):
    milestones: List[int]
    effects: List[SettlementEffectOut]
    succeeded: int
    failed: int


# -------------------- Fulfilment --------------------

class ShipmentItemOut(BaseModel):
    quoteItemId: Optional[int] = None
    quantity: int = 1
    name: Optional[str] = None
    category: Optional[str] = None
    milestoneId: Optional[int] = None


class DeviceShipmentOut(BaseModel):
    id: int
    project_id: int
    milestone_id: Optional[int] = None
    items: List[ShipmentItemOut] = Field(default_factory=list)
    status: str
    location_note: Optional[str] = None
    estimated_from: Optional[datetime] = None
    estimated_to: Optional[datetime] = None
    updated_at: datetime


class DeviceShipmentPatch(BaseModel):
    status: Optional[str] = None
    location_note: Optional[str] = None
    estimated_from: Optional[datetime] = None
    estimated_to: Optional[datetime] = None

    @field_validator("status")
    @classmethod
    def _known_status(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        s = v.strip().upper()
        if s not in SHIPMENT_STATUSES:
            raise ValueError(f"status must be one of {', '.join(SHIPMENT_STATUSES)}")
        return s


class TripTaskOut(BaseModel):
    id: int
    trip_id: int
    label: str
    sequence: int
    is_done: bool
    model_config = ConfigDict(from_attributes=True)


class TripTaskPatch(BaseModel):
    is_done: bool


class TripOut(BaseModel):
    id: int
    project_id: int
    milestone_id: Optional[int] = None
    technician_id: Optional[int] = None
    status: str
    scheduled_for: datetime
    check_in_at: Optional[datetime] = None
    check_out_at: Optional[datetime] = None
    notes: Optional[str] = None
    tasks: List[TripTaskOut] = Field(default_factory=list)
    model_config = ConfigDict(from_attributes=True)


# -------------------- Notifications --------------------

class NotificationOut(BaseModel):
    id: int
    project_id: Optional[int] = None
    type: str
    title: str
    message: str
    read_at: Optional[datetime] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class HealthOut(BaseModel):
    status: str
    env: str
    version: str
    checks: dict[str, Any] = Field(default_factory=dict)
