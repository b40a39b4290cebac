# backend/oran_payments/middleware/structured_logging.py
from __future__ import annotations

import logging
import re
import time
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

log = logging.getLogger("oran.request")

_PROJECT_PATH = re.compile(r"/projects/(\d+)(?:/|$)")
_QUIET_PATHS = ("/api/health",)


def project_id_from_path(path: str) -> Optional[int]:
    m = _PROJECT_PATH.search(path or "")
    return int(m.group(1)) if m else None


def _level_for(status_code: int, path: str) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    if path in _QUIET_PATHS:
        return logging.DEBUG
    return logging.INFO


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    One `http_request` record per request. Fields ride on the record as
    extras so the JSON formatter emits them as top-level keys.

    Registered before RequestIDMiddleware, so it runs inside it and the
    request id is already set.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        t0 = time.perf_counter()
        path = request.url.path
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            log.log(
                _level_for(status_code, path),
                "http_request",
                extra={
                    "method": request.method,
                    "path": path,
                    "status_code": status_code,
                    "latency_ms": int((time.perf_counter() - t0) * 1000),
                    # header identity only; handlers resolve the real principal
                    "user_email": request.headers.get("X-User-Email"),
                    "project_id": project_id_from_path(path),
                },
            )
