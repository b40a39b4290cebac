# backend/oran_payments/main.py
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .logging_config import configure_logging

from .middleware.request_id import RequestIDMiddleware
from .middleware.structured_logging import StructuredLoggingMiddleware

from .routers.health import router as health_router
from .routers.payment_plan import router as payment_plan_router
from .routers.milestones import router as milestones_router
from .routers.shipments import router as shipments_router
from .routers.operations import router as operations_router
from .routers.admin import router as admin_router

API_PREFIX = "/api"


def _cors_origins() -> list[str]:
    val = settings.cors_allow_origins
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(
        title="ORAN Payment Milestones",
        version=settings.engine_version,
    )

    # last added runs first: request id must be set before the request log line
    app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Core
    app.include_router(health_router, prefix=API_PREFIX)

    # Planning + payments
    app.include_router(payment_plan_router, prefix=API_PREFIX)
    app.include_router(milestones_router, prefix=API_PREFIX)

    # Fulfilment
    app.include_router(shipments_router, prefix=API_PREFIX)
    app.include_router(operations_router, prefix=API_PREFIX)

    # Back office
    app.include_router(admin_router, prefix=API_PREFIX)

    return app


app = create_app()
