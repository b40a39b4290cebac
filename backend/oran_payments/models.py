# backend/oran_payments/models.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


# -----------------------------
# Users (authentication lives elsewhere; this is the owner/admin directory)
# -----------------------------
class AppUser(Base):
    __tablename__ = "app_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(200), nullable=False, unique=True, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="customer")  # customer|admin|technician
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    projects: Mapped[List["Project"]] = relationship(back_populates="user")


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    actor_user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=True)

    action: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(80), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(80), nullable=False)

    before_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    after_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class WorkflowEvent(Base):
    __tablename__ = "workflow_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=True, index=True)
    actor_user_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=True)

    event_type: Mapped[str] = mapped_column(String(80), nullable=False, index=True)
    payload_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class ProjectLock(Base):
    __tablename__ = "project_locks"
    __table_args__ = (UniqueConstraint("project_id", "lock_key", name="uq_project_locks_project_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), index=True, nullable=False)
    lock_key: Mapped[str] = mapped_column(String(80), nullable=False)
    owner: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


# -----------------------------
# Projects / Quotes (read-mostly inputs to planning)
# -----------------------------
class Project(Base):
    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    site_address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # ONBOARDING .. PAYMENT_PLAN_SELECTED -> IN_PROGRESS -> COMPLETED
    status: Mapped[str] = mapped_column(String(40), nullable=False, default="ONBOARDING")

    rooms_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    building_type: Mapped[Optional[str]] = mapped_column(String(60), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    user: Mapped["AppUser"] = relationship(back_populates="projects")
    onboarding: Mapped[Optional["ProjectOnboarding"]] = relationship(
        back_populates="project", uselist=False, cascade="all, delete-orphan"
    )
    quotes: Mapped[List["Quote"]] = relationship(back_populates="project", cascade="all, delete-orphan")
    payment_plan: Mapped[Optional["PaymentPlan"]] = relationship(
        back_populates="project", uselist=False, cascade="all, delete-orphan"
    )
    milestones: Mapped[List["ProjectMilestone"]] = relationship(
        back_populates="project", cascade="all, delete-orphan", order_by="ProjectMilestone.index"
    )
    device_shipment: Mapped[Optional["DeviceShipment"]] = relationship(
        back_populates="project", uselist=False, cascade="all, delete-orphan"
    )
    trips: Mapped[List["Trip"]] = relationship(back_populates="project", cascade="all, delete-orphan")


class ProjectOnboarding(Base):
    __tablename__ = "project_onboardings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, unique=True
    )

    project_status: Mapped[Optional[str]] = mapped_column(String(60), nullable=True)
    construction_stage: Mapped[Optional[str]] = mapped_column(String(60), nullable=True)
    needs_inspection: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    selected_features_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    stair_steps: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    project: Mapped["Project"] = relationship(back_populates="onboarding")


class Quote(Base):
    __tablename__ = "quotes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)

    tier: Mapped[str] = mapped_column(String(20), nullable=False, default="STANDARD")  # ECONOMY|STANDARD|LUXURY
    is_selected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Whole currency units (NGN). Authoritative for milestone reconciliation.
    total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    project: Mapped["Project"] = relationship(back_populates="quotes")
    items: Mapped[List["QuoteItem"]] = relationship(
        back_populates="quote", cascade="all, delete-orphan", order_by="QuoteItem.id"
    )


class QuoteItem(Base):
    __tablename__ = "quote_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    quote_id: Mapped[int] = mapped_column(ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(30), nullable=False)  # LIGHTING|CLIMATE|ACCESS|SURVEILLANCE|GATE|STAIRCASE
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    unit_price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_price: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    quote: Mapped["Quote"] = relationship(back_populates="items")


# -----------------------------
# Payment plan / milestones
# -----------------------------
class PaymentPlan(Base):
    __tablename__ = "payment_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    type: Mapped[str] = mapped_column(String(30), nullable=False)  # MILESTONE_3|EIGHTY_TEN_TEN

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    project: Mapped["Project"] = relationship(back_populates="payment_plan")


class ProjectMilestone(Base):
    __tablename__ = "project_milestones"
    __table_args__ = (
        UniqueConstraint("project_id", "index", name="uq_project_milestones_project_index"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)

    plan_type: Mapped[str] = mapped_column(String(30), nullable=False)
    plan_source: Mapped[str] = mapped_column(String(20), nullable=False, default="fallback")  # external|fallback

    index: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    percentage: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)

    # [{"quoteItemId": int, "quantity": int}] references into quote_items, not copies.
    items_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")  # PENDING|COMPLETED
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    project: Mapped["Project"] = relationship(back_populates="milestones")
    effects: Mapped[List["SettlementEffect"]] = relationship(
        back_populates="milestone", cascade="all, delete-orphan", order_by="SettlementEffect.id"
    )

    # Concurrent status writes against the same row raise StaleDataError.
    __mapper_args__ = {"version_id_col": version}


class MilestonePayment(Base):
    __tablename__ = "milestone_payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    milestone_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("project_milestones.id", ondelete="SET NULL"), nullable=True, index=True
    )

    reference: Mapped[str] = mapped_column(String(120), nullable=False, unique=True, index=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="initialized")  # initialized|settled|failed
    authorization_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    gateway_status: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)


class SettlementEffect(Base):
    __tablename__ = "settlement_effects"
    __table_args__ = (
        UniqueConstraint("milestone_id", "effect_type", name="uq_settlement_effects_milestone_effect"),
        Index("ix_settlement_effects_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    milestone_id: Mapped[int] = mapped_column(
        ForeignKey("project_milestones.id", ondelete="CASCADE"), nullable=False, index=True
    )

    effect_type: Mapped[str] = mapped_column(String(40), nullable=False)
    trigger: Mapped[str] = mapped_column(String(40), nullable=False, default="PaymentVerified")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")  # pending|succeeded|failed
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    result_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    milestone: Mapped["ProjectMilestone"] = relationship(back_populates="effects")


# -----------------------------
# Fulfilment: shipments / trips / notifications
# -----------------------------
class DeviceShipment(Base):
    __tablename__ = "device_shipments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    # last milestone whose items were appended
    milestone_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("project_milestones.id", ondelete="SET NULL"), nullable=True
    )

    # [{"quoteItemId", "quantity", "name", "category", "milestoneId"}], append-only
    items_json: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(30), nullable=False, default="PREPARING")
    location_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    estimated_from: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    estimated_to: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    project: Mapped["Project"] = relationship(back_populates="device_shipment")


class Trip(Base):
    __tablename__ = "trips"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[int] = mapped_column(ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    milestone_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("project_milestones.id", ondelete="SET NULL"), nullable=True, index=True
    )
    technician_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("app_users.id"), nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="SCHEDULED")  # SCHEDULED|IN_PROGRESS|COMPLETED
    scheduled_for: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    check_in_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    check_out_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    project: Mapped["Project"] = relationship(back_populates="trips")
    tasks: Mapped[List["TripTask"]] = relationship(
        back_populates="trip", cascade="all, delete-orphan", order_by="TripTask.sequence"
    )


class TripTask(Base):
    __tablename__ = "trip_tasks"
    __table_args__ = (UniqueConstraint("trip_id", "sequence", name="uq_trip_tasks_trip_sequence"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    trip_id: Mapped[int] = mapped_column(ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True)

    label: Mapped[str] = mapped_column(String(200), nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    is_done: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    trip: Mapped["Trip"] = relationship(back_populates="tasks")


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    project_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"), nullable=True, index=True
    )
    # dedupe handle for retried effects, e.g. "milestone_paid:42"
    dedupe_key: Mapped[Optional[str]] = mapped_column(String(120), nullable=True, unique=True)

    type: Mapped[str] = mapped_column(String(60), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
