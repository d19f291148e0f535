from __future__ import annotations

import time
from uuid import uuid4

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from .config import settings
from .logging import configure_logging, logger
from .metrics import registry
from .middleware import RateLimitMiddleware, RequestIDMiddleware, SecurityHeadersMiddleware
from .routers import cards, decks, health, importer, review


# マッチしなかったパスは 1 つにまとめ、任意 URL でメトリクスのキーが増え続けないようにする
UNMATCHED_ROUTE_KEY = "<unmatched>"


def _metrics_key(request: Request) -> str:
    """Route template (e.g. `/api/cards/{card_id}`) the request was dispatched to."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or UNMATCHED_ROUTE_KEY


class AccessLogAndMetricsMiddleware(BaseHTTPMiddleware):
    """Emit structured request logs and capture latency/metrics for each call.

    なぜ: すべてのリクエストに `request_id` を付与し、構造化ログとメトリクスへ
    遅延・エラー有無を記録することで、運用時のトラブルシュートを即座に行えるようにする。
    """

    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:  # type: ignore[override]
        start = time.time()
        path = request.url.path
        method = request.method
        request_id = getattr(request.state, "request_id", None)
        if not request_id:
            request_id = uuid4().hex
            request.state.request_id = request_id
        client_ip = request.client.host if request.client else "unknown"
        is_error = False
        status_code: int | None = None
        error_type: str | None = None
        try:
            response = await call_next(request)
            status_code = response.status_code
            is_error = status_code >= 500
            return response
        except Exception as exc:
            is_error = True
            status_code = 500
            error_type = exc.__class__.__name__
            raise
        finally:
            latency_ms = (time.time() - start) * 1000
            registry.record(_metrics_key(request), latency_ms, is_error=is_error)
            log_method = logger.error if is_error else logger.info
            log_method(
                "request_complete",
                path=path,
                method=method,
                latency_ms=latency_ms,
                is_error=is_error,
                status_code=status_code,
                error_type=error_type,
                request_id=request_id,
                client_ip=client_ip,
            )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""
    configure_logging()
    app = FastAPI(title="Flashdeck API", version="0.1.0")

    configured_origins = list(settings.allowed_cors_origins)
    allow_credentials = bool(configured_origins)
    if not configured_origins:
        configured_origins = ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=configured_origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # Starlette では後から追加したミドルウェアが外側で実行される:
    #   CORS → AccessLog → RequestID → RateLimit → SecurityHeaders（最外周）
    # AccessLog は RequestID の内側で採番済みの request_id を参照する。
    app.add_middleware(AccessLogAndMetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        ip_capacity_per_minute=settings.rate_limit_per_min_ip,
    )
    app.add_middleware(SecurityHeadersMiddleware)

    app.include_router(cards.router, prefix="/api/cards")
    app.include_router(decks.router, prefix="/api/decks")
    app.include_router(review.router, prefix="/api/review")
    app.include_router(importer.router, prefix="/api/import")
    app.include_router(health.router)

    logger.info(
        "app_configured",
        environment=settings.environment,
        db_path=settings.flashdeck_db_path,
        strict_mode=settings.strict_mode,
    )
    return app


app = create_app()
