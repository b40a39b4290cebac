# backend/tests/conftest.py
from __future__ import annotations

import os
import tempfile

# Settings are read at import time, so the environment is pinned before any
# oran_payments module is imported.
_TMP_DIR = tempfile.mkdtemp(prefix="oran-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["APP_ENV"] = "test"
os.environ["AUTH_MODE"] = "dev"
for _key in ("GEMINI_API_KEY", "PAYSTACK_SECRET_KEY", "SMTP_HOST", "SMTP_USER", "SMTP_PASS", "OPS_INBOX_EMAIL"):
    os.environ.pop(_key, None)

import json  # noqa: E402
import uuid  # noqa: E402
from datetime import datetime  # noqa: E402
from typing import Any, Callable, Optional  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402

from oran_payments.clients.paystack import PaystackClient  # noqa: E402
from oran_payments.db import SessionLocal, init_db  # noqa: E402
from oran_payments.integrations.gemini_client import GeminiClient, GeminiConfig  # noqa: E402
from oran_payments.models import AppUser, Project, Quote, QuoteItem  # noqa: E402
from oran_payments.services.email_service import EmailService, SmtpConfig  # noqa: E402

init_db()

DEFAULT_ITEMS = [
    dict(name="Gate motor", category="GATE", quantity=1, unit_price=200_000),
    dict(name="Dome camera", category="SURVEILLANCE", quantity=4, unit_price=25_000),
    dict(name="Smart switch", category="LIGHTING", quantity=10, unit_price=10_000),
    dict(name="Door lock", category="ACCESS", quantity=2, unit_price=25_000),
    dict(name="Wall speaker", category="AUDIO", quantity=2, unit_price=25_000),
]


@pytest.fixture
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def mk_project() -> Callable[..., Project]:
    """Customer + signed-off project + selected quote. Quote total defaults to the item sum."""

    def _mk(
        db,
        *,
        status: str = "DOCUMENTS_SIGNED",
        total: Optional[int] = None,
        items: Optional[list[dict[str, Any]]] = None,
        email: Optional[str] = None,
    ) -> Project:
        user = AppUser(
            email=email or f"customer-{uuid.uuid4().hex[:8]}@test.local",
            name="Ada",
            role="customer",
            created_at=datetime.utcnow(),
        )
        db.add(user)
        db.flush()

        project = Project(
            user_id=user.id,
            name="Test duplex",
            site_address="1 Test Road, Lagos",
            status=status,
            rooms_count=4,
            building_type="DUPLEX",
        )
        db.add(project)
        db.flush()

        quote = Quote(project_id=project.id, tier="STANDARD", is_selected=True, total=0)
        db.add(quote)
        db.flush()

        line_total = 0
        for spec in DEFAULT_ITEMS if items is None else items:
            price = int(spec["quantity"]) * int(spec["unit_price"])
            line_total += price
            db.add(QuoteItem(quote_id=quote.id, total_price=price, **spec))
        quote.total = line_total if total is None else total

        db.commit()
        db.refresh(project)
        return project

    return _mk


@pytest.fixture
def offline_planner() -> GeminiClient:
    return GeminiClient(GeminiConfig(api_key=None))


@pytest.fixture
def log_only_email() -> EmailService:
    return EmailService(SmtpConfig(host=None, port=587, user=None, password=None, from_address="test@oran.local"))


class FakePaystack:
    """Answers /transaction/initialize and /transaction/verify like the real API."""

    def __init__(self) -> None:
        self.calls: list[httpx.Request] = []
        self.verifications: dict[str, dict[str, Any]] = {}

    def succeed(self, reference: str, *, amount_minor: int, project_id: int, milestone_id: int, status: str = "success") -> None:
        self.verifications[reference] = {
            "status": status,
            "reference": reference,
            "amount": amount_minor,
            "currency": "NGN",
            "metadata": {"projectId": project_id, "milestoneId": milestone_id},
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        path = request.url.path

        if path == "/transaction/initialize":
            body = json.loads(request.content)
            return httpx.Response(
                200,
                json={
                    "status": True,
                    "message": "Authorization URL created",
                    "data": {
                        "authorization_url": f"https://checkout.paystack.test/{body['reference']}",
                        "access_code": "ac_test",
                        "reference": body["reference"],
                    },
                },
            )

        if path.startswith("/transaction/verify/"):
            reference = path.rsplit("/", 1)[-1]
            data = self.verifications.get(reference)
            if data is None:
                return httpx.Response(400, json={"status": False, "message": "Transaction reference not found"})
            return httpx.Response(200, json={"status": True, "message": "Verification successful", "data": data})

        return httpx.Response(404, json={"status": False, "message": "not found"})

    def client(self) -> PaystackClient:
        return PaystackClient(secret_key="sk_test_oran", base_url="https://api.paystack.test", transport=httpx.MockTransport(self.handler))


@pytest.fixture
def fake_paystack() -> FakePaystack:
    return FakePaystack()
