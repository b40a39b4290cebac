# backend/oran_payments/integrations/gemini_client.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from ..config import settings

log = logging.getLogger("oran.gemini")


@dataclass
class GeminiConfig:
    """
    Gemini generateContent endpoint:
      {base_url}/models/{model}:generateContent?key=...
    """
    api_key: Optional[str] = None
    base_url: str = "https://generativelanguage.googleapis.com/v1"
    model: str = "gemini-2.5-flash"
    timeout_seconds: float = 30.0

    @classmethod
    def from_settings(cls) -> "GeminiConfig":
        return cls(
            api_key=settings.gemini_api_key,
            base_url=settings.gemini_base_url,
            model=settings.gemini_model,
            timeout_seconds=float(settings.gemini_timeout_seconds),
        )


def extract_json_object(text: str) -> Optional[Any]:
    """
    The model sometimes wraps JSON in prose or code fences. Take everything
    between the first '{' and the last '}' and parse that.
    """
    trimmed = (text or "").strip()
    first = trimmed.find("{")
    last = trimmed.rfind("}")
    if first == -1 or last == -1 or last <= first:
        return None
    try:
        return json.loads(trimmed[first:last + 1])
    except ValueError:
        return None


class GeminiClient:
    """
    Single-turn text generation. Never raises for network/model problems:
    callers treat None as "no answer" and use their deterministic path.
    """

    def __init__(self, cfg: Optional[GeminiConfig] = None, *, transport: Optional[httpx.BaseTransport] = None):
        self.cfg = cfg or GeminiConfig.from_settings()
        self._transport = transport

    def enabled(self) -> bool:
        return bool(self.cfg.api_key)

    def generate_text(self, prompt: str) -> Optional[str]:
        if not self.cfg.api_key:
            return None

        url = f"{self.cfg.base_url.rstrip('/')}/models/{self.cfg.model}:generateContent"
        body = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}

        try:
            with httpx.Client(timeout=self.cfg.timeout_seconds, transport=self._transport) as client:
                r = client.post(url, params={"key": self.cfg.api_key}, json=body)
        except httpx.HTTPError as e:
            log.warning("gemini request failed: %s", e)
            return None

        if r.status_code >= 400:
            log.warning("gemini returned %s", r.status_code)
            return None

        try:
            data = r.json()
        except ValueError:
            log.warning("gemini returned a non-JSON body")
            return None

        try:
            part = data["candidates"][0]["content"]["parts"][0]
        except (KeyError, IndexError, TypeError):
            return None

        text = part.get("text") if isinstance(part, dict) else None
        if not isinstance(text, str) or not text.strip():
            return None

        log.debug("gemini raw response: %s", text[:500])
        return text
