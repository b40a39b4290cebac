# backend/tests/test_request_logging.py
from __future__ import annotations

import json
import logging

from fastapi.testclient import TestClient

from oran_payments.logging_config import JsonFormatter
from oran_payments.main import create_app
from oran_payments.middleware.structured_logging import project_id_from_path


def test_caller_request_id_is_echoed_and_junk_is_replaced():
    client = TestClient(create_app())

    r = client.get("/api/health", headers={"X-Request-ID": "paystack-cb.42"})
    assert r.headers["X-Request-ID"] == "paystack-cb.42"

    r = client.get("/api/health", headers={"X-Request-ID": "<script>alert(1)</script>"})
    assert r.headers["X-Request-ID"] != "<script>alert(1)</script>"
    assert len(r.headers["X-Request-ID"]) == 32


def test_request_line_carries_status_and_project(caplog):
    client = TestClient(create_app())

    with caplog.at_level(logging.DEBUG, logger="oran.request"):
        client.get("/api/projects/987654/milestones", headers={"X-Request-ID": "rid-1"})

    (rec,) = [r for r in caplog.records if r.name == "oran.request"]
    assert rec.getMessage() == "http_request"
    assert rec.levelno == logging.WARNING
    assert rec.status_code == 401
    assert rec.project_id == 987654

    line = json.loads(JsonFormatter().format(rec))
    assert line["status_code"] == 401
    assert line["path"] == "/api/projects/987654/milestones"


def test_project_id_from_path():
    assert project_id_from_path("/api/projects/12/milestones/3/verify") == 12
    assert project_id_from_path("/api/projects/12") == 12
    assert project_id_from_path("/api/admin/notifications") is None
