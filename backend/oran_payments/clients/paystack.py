from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import quote

import httpx

from ..config import settings

log = logging.getLogger("oran.gateway")


class PaymentGatewayError(Exception):
    """Gateway unreachable, rejected the call, or answered with status=false."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


def to_minor_units(amount: int | float) -> int:
    # NGN -> kobo
    return int(round(float(amount) * 100))


@dataclass(frozen=True)
class InitializedTransaction:
    authorization_url: str
    access_code: Optional[str]
    reference: str


@dataclass(frozen=True)
class VerifiedTransaction:
    status: str
    reference: str
    amount: int  # minor units
    currency: Optional[str]
    metadata: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return (self.status or "").lower() == "success"


class PaystackClient:
    def __init__(
        self,
        *,
        secret_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base = (base_url or settings.paystack_base_url).rstrip("/")
        self.secret_key = secret_key if secret_key is not None else settings.paystack_secret_key
        self.timeout = float(settings.paystack_timeout_seconds)
        self._transport = transport

    def enabled(self) -> bool:
        return bool(self.secret_key)

    def _headers(self) -> dict[str, str]:
        if not self.secret_key:
            raise PaymentGatewayError("PAYSTACK_SECRET_KEY is not configured")
        return {"Authorization": f"Bearer {self.secret_key}", "Content-Type": "application/json"}

    def _request(self, method: str, path: str, *, json: Optional[dict[str, Any]] = None, params: Optional[dict[str, Any]] = None) -> Any:
        url = f"{self.base}{path}"
        headers = self._headers()
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                r = client.request(method, url, json=json, params=params, headers=headers)
        except httpx.HTTPError as e:
            log.error("paystack transport error", extra={"reference": (json or {}).get("reference")}, exc_info=True)
            raise PaymentGatewayError(f"Paystack unreachable: {e}") from e

        try:
            body = r.json()
        except ValueError:
            body = {"message": r.text}

        if r.status_code >= 400 or not isinstance(body, dict) or body.get("status") is not True:
            message = body.get("message") if isinstance(body, dict) else None
            log.error("paystack call failed: %s %s -> %s", method, path, r.status_code)
            raise PaymentGatewayError(message or "Paystack request failed", status_code=r.status_code, body=body)

        return body.get("data")

    # ---- transactions ----

    def initialize_transaction(
        self,
        *,
        email: str,
        amount: int,
        reference: str,
        callback_url: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> InitializedTransaction:
        data = self._request(
            "POST",
            "/transaction/initialize",
            json={
                "email": email,
                "amount": to_minor_units(amount),
                "reference": reference,
                "callback_url": callback_url,
                "metadata": metadata or {},
            },
        )
        data = data if isinstance(data, dict) else {}
        if not data.get("authorization_url"):
            raise PaymentGatewayError("Paystack did not return an authorization url", body=data)

        return InitializedTransaction(
            authorization_url=str(data["authorization_url"]),
            access_code=data.get("access_code"),
            reference=str(data.get("reference") or reference),
        )

    def verify_transaction(self, reference: str) -> VerifiedTransaction:
        data = self._request("GET", f"/transaction/verify/{quote(reference, safe='')}")
        data = data if isinstance(data, dict) else {}

        metadata = data.get("metadata")
        if not isinstance(metadata, dict):
            # Paystack returns "" when no metadata was attached.
            metadata = {}

        amount = data.get("amount")
        return VerifiedTransaction(
            status=str(data.get("status") or ""),
            reference=str(data.get("reference") or reference),
            amount=int(amount) if isinstance(amount, (int, float)) else 0,
            currency=data.get("currency"),
            metadata=metadata,
            raw=data,
        )

    # ---- payouts (finance desk) ----

    def list_banks(self, *, country: str = "nigeria") -> list[dict[str, Any]]:
        data = self._request("GET", "/bank", params={"country": country})
        return data if isinstance(data, list) else []

    def resolve_account(self, *, account_number: str, bank_code: str) -> dict[str, Any]:
        data = self._request(
            "GET",
            "/bank/resolve",
            params={"account_number": account_number, "bank_code": bank_code},
        )
        return data if isinstance(data, dict) else {}

    def create_transfer_recipient(self, *, name: str, account_number: str, bank_code: str, currency: str = "NGN") -> dict[str, Any]:
        data = self._request(
            "POST",
            "/transferrecipient",
            json={
                "type": "nuban",
                "name": name,
                "account_number": account_number,
                "bank_code": bank_code,
                "currency": currency,
            },
        )
        return data if isinstance(data, dict) else {}

    def initiate_transfer(self, *, amount: int, recipient_code: str, reference: str, reason: Optional[str] = None) -> dict[str, Any]:
        if int(amount) <= 0:
            raise PaymentGatewayError("Transfer amount must be greater than zero")
        data = self._request(
            "POST",
            "/transfer",
            json={
                "source": "balance",
                "amount": to_minor_units(amount),
                "recipient": recipient_code,
                "reference": reference,
                "reason": reason or "",
            },
        )
        return data if isinstance(data, dict) else {}
