# backend/tests/test_paystack_client.py
from __future__ import annotations

import json

import httpx
import pytest

from oran_payments.clients.paystack import PaymentGatewayError, PaystackClient, to_minor_units


def _client(handler) -> PaystackClient:
    return PaystackClient(secret_key="sk_test_x", base_url="https://api.paystack.test", transport=httpx.MockTransport(handler))


def test_initialize_sends_minor_units_and_bearer():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"status": True, "data": {"authorization_url": "https://pay/abc", "access_code": "ac", "reference": "R1"}},
        )

    tx = _client(handler).initialize_transaction(
        email="a@b.c", amount=1_500, reference="R1", callback_url="https://cb", metadata={"projectId": 1}
    )
    assert tx.authorization_url == "https://pay/abc"
    assert tx.reference == "R1"
    assert seen["auth"] == "Bearer sk_test_x"
    assert seen["body"]["amount"] == 150_000
    assert seen["body"]["metadata"] == {"projectId": 1}


def test_status_false_raises_gateway_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"status": False, "message": "Invalid key"})

    with pytest.raises(PaymentGatewayError) as exc:
        _client(handler).verify_transaction("R1")
    assert exc.value.status_code == 400
    assert "Invalid key" in str(exc.value)


def test_transport_error_raises_gateway_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(PaymentGatewayError):
        _client(handler).verify_transaction("R1")


def test_verify_normalizes_empty_metadata():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.raw_path.endswith(b"/transaction/verify/R%2F1")
        return httpx.Response(
            200,
            json={"status": True, "data": {"status": "success", "reference": "R/1", "amount": 5000, "currency": "NGN", "metadata": ""}},
        )

    tx = _client(handler).verify_transaction("R/1")
    assert tx.succeeded
    assert tx.metadata == {}
    assert tx.amount == 5000


def test_missing_secret_key_is_a_gateway_error():
    client = PaystackClient(secret_key="", transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    assert not client.enabled()
    with pytest.raises(PaymentGatewayError):
        client.verify_transaction("R1")


def test_transfer_helpers_hit_paystack_endpoints():
    paths = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append((request.method, request.url.path))
        if request.url.path == "/bank":
            return httpx.Response(200, json={"status": True, "data": [{"name": "Test Bank", "code": "001"}]})
        return httpx.Response(200, json={"status": True, "data": {"recipient_code": "RCP_1", "account_name": "ADA"}})

    c = _client(handler)
    assert c.list_banks()[0]["code"] == "001"
    assert c.resolve_account(account_number="0123456789", bank_code="001")["account_name"] == "ADA"
    assert c.create_transfer_recipient(name="Ada", account_number="0123456789", bank_code="001")["recipient_code"] == "RCP_1"
    c.initiate_transfer(amount=10, recipient_code="RCP_1", reference="T1")

    assert paths == [
        ("GET", "/bank"),
        ("GET", "/bank/resolve"),
        ("POST", "/transferrecipient"),
        ("POST", "/transfer"),
    ]
    with pytest.raises(PaymentGatewayError):
        c.initiate_transfer(amount=0, recipient_code="RCP_1", reference="T2")


def test_to_minor_units():
    assert to_minor_units(400_000) == 40_000_000
