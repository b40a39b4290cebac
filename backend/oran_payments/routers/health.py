# backend/oran_payments/routers/health.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..schemas import HealthOut

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthOut)
def health(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {
        "status": "ok",
        "env": settings.app_env,
        "version": settings.engine_version,
        "checks": {
            "database": "ok",
            "payment_gateway": "configured" if settings.paystack_secret_key else "missing_key",
            "planning_assistant": "configured" if settings.gemini_api_key else "fallback_only",
            "smtp": "configured" if settings.smtp_host else "log_only",
        },
    }
