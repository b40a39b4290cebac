# backend/oran_payments/cli/seed_demo.py
from __future__ import annotations

"""
Seed a demo customer with a signed-off project and a selected quote, ready
for PUT /api/projects/{id}/payment-plan.

Run example:
  python -m oran_payments.cli seed-demo
"""

import json
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import AppUser, Project, ProjectOnboarding, Quote, QuoteItem

DEMO_CUSTOMER = "customer@demo.local"
DEMO_ADMIN = "ops@demo.local"
DEMO_PROJECT = "Demo duplex, Lekki"

SEED_ITEMS = [
    dict(name="Automated sliding gate motor", category="GATE", quantity=1, unit_price=450_000),
    dict(name="Outdoor PTZ camera", category="SURVEILLANCE", quantity=4, unit_price=85_000),
    dict(name="Staircase LED strip kit", category="STAIRCASE", quantity=18, unit_price=6_500),
    dict(name="Smart dimmer switch", category="LIGHTING", quantity=12, unit_price=22_000),
    dict(name="Smart AC controller", category="CLIMATE", quantity=5, unit_price=38_000),
    dict(name="Fingerprint door lock", category="ACCESS", quantity=2, unit_price=120_000),
]


def _get_or_create_user(db: Session, *, email: str, role: str) -> AppUser:
    user = db.scalar(select(AppUser).where(AppUser.email == email))
    if user is None:
        user = AppUser(email=email, name=email.split("@")[0].title(), role=role, created_at=datetime.utcnow())
        db.add(user)
        db.flush()
    return user


def seed_demo(db: Session) -> dict[str, Any]:
    customer = _get_or_create_user(db, email=DEMO_CUSTOMER, role="customer")
    _get_or_create_user(db, email=DEMO_ADMIN, role="admin")

    existing = db.scalar(select(Project).where(Project.user_id == customer.id, Project.name == DEMO_PROJECT))
    if existing is not None:
        db.commit()
        return {"seeded": False, "project_id": int(existing.id), "reason": "demo project already exists"}

    now = datetime.utcnow()
    project = Project(
        user_id=int(customer.id),
        name=DEMO_PROJECT,
        site_address="12 Admiralty Way, Lekki Phase 1, Lagos",
        status="DOCUMENTS_SIGNED",
        rooms_count=6,
        building_type="DUPLEX",
        created_at=now,
        updated_at=now,
    )
    db.add(project)
    db.flush()

    db.add(
        ProjectOnboarding(
            project_id=int(project.id),
            project_status="NEW_BUILD",
            construction_stage="ROOFING",
            needs_inspection=True,
            selected_features_json=json.dumps(["gate", "cctv", "lighting", "climate", "access"]),
            stair_steps=18,
            created_at=now,
        )
    )

    quote = Quote(project_id=int(project.id), tier="STANDARD", is_selected=True, total=0, created_at=now)
    db.add(quote)
    db.flush()

    total = 0
    for spec in SEED_ITEMS:
        line = int(spec["quantity"]) * int(spec["unit_price"])
        total += line
        db.add(QuoteItem(quote_id=int(quote.id), total_price=line, **spec))
    quote.total = total

    db.commit()
    return {"seeded": True, "project_id": int(project.id), "quote_id": int(quote.id), "quote_total": total}
