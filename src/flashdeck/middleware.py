from __future__ import annotations

import threading
import time
import uuid
from typing import Awaitable, Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from .config import settings
from .logging import logger

__all__ = [
    "SecurityHeadersMiddleware",
    "RequestIDMiddleware",
    "RateLimitMiddleware",
]


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach strict security headers to every HTTP response before it leaves the API.

    なぜ: JSON API しか返さないため CSP は `default-src 'none'` で十分。共通ミドルウェアで
    一括設定し、429 や FastAPI の自動レスポンスにも同じヘッダを付与する。
    """

    def __init__(self, app) -> None:
        super().__init__(app)
        self._headers = self._build_header_map()

    @staticmethod
    def _build_header_map() -> dict[str, str]:
        max_age = max(0, int(settings.security_hsts_max_age_seconds))
        return {
            "Strict-Transport-Security": f"max-age={max_age}; includeSubDomains",
            "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
            "X-Frame-Options": "DENY",
            "X-Content-Type-Options": "nosniff",
            "Referrer-Policy": "strict-origin-when-cross-origin",
        }

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:  # type: ignore[override]
        response = await call_next(request)
        for header_name, value in self._headers.items():
            response.headers[header_name] = value
        return response


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assign a request ID to each incoming request and expose it in headers.

    - Sets `request.state.request_id`
    - Adds `X-Request-ID` to the response headers
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:  # type: ignore[override]
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class _TokenBucket:
    """Thread-safe token bucket that refills to capacity every fixed interval (seconds)."""

    def __init__(self, capacity: int, refill_interval_sec: float) -> None:
        self.capacity = max(1, capacity)
        self.tokens = self.capacity
        self.refill_interval = max(1.0, float(refill_interval_sec))
        self.last_refill = time.time()
        self._lock = threading.Lock()

    def allow(self) -> tuple[bool, int]:
        """Consume one token if available and return the remaining count."""
        now = time.time()
        with self._lock:
            elapsed = now - self.last_refill
            if elapsed >= self.refill_interval:
                self.tokens = self.capacity
                self.last_refill = now
            if self.tokens > 0:
                self.tokens -= 1
                return True, self.tokens
            return False, 0


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limiting per client IP using token buckets (429 on exhaustion)."""

    def __init__(self, app, *, ip_capacity_per_minute: int) -> None:
        super().__init__(app)
        self._ip_capacity = max(1, int(ip_capacity_per_minute))
        self._ip_buckets: dict[str, _TokenBucket] = {}
        self._lock = threading.Lock()

    def _get_ip_bucket(self, key: str) -> _TokenBucket:
        with self._lock:
            if key not in self._ip_buckets:
                self._ip_buckets[key] = _TokenBucket(
                    capacity=self._ip_capacity,
                    refill_interval_sec=60.0,
                )
            return self._ip_buckets[key]

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:  # type: ignore[override]
        client_ip = request.client.host if request.client else "unknown"
        ok_ip, remaining_ip = self._get_ip_bucket(client_ip).allow()
        if not ok_ip:
            logger.warning(
                "rate_limited",
                client_ip=client_ip,
                path=request.url.path,
                request_id=getattr(request.state, "request_id", None),
            )
            return JSONResponse(
                status_code=429,
                content={"detail": "Too Many Requests (per IP)"},
                headers={
                    "Retry-After": "60",
                    "X-RateLimit-Limit-Ip": str(self._ip_capacity),
                    "X-RateLimit-Remaining-Ip": str(remaining_ip),
                },
            )

        response = await call_next(request)
        response.headers.setdefault("X-RateLimit-Limit-Ip", str(self._ip_capacity))
        response.headers.setdefault("X-RateLimit-Remaining-Ip", str(remaining_ip))
        return response
