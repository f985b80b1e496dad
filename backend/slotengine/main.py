# backend/slotengine/main.py
"""
FastAPI application for the slot engine.

Mounts the availability, reservation and staff routers under
/api/v1/tenants/{tenant_id} and exposes /health and /metrics.
"""

import logging
import time
from typing import Awaitable, Callable

from fastapi import APIRouter, FastAPI, Request, Response
import ulid

from .core.config import settings
from .core.request_context import attach_request_id_filter, reset_request_id, set_request_id
from .monitoring.prometheus_metrics import prometheus_metrics
from .routes import availability, reservations, staff

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s",
)
attach_request_id_filter()

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/tenants/{tenant_id}"


def create_app() -> FastAPI:
    app = FastAPI(
        title="slotengine",
        description="Availability and booking conflict engine",
        version="0.1.0",
    )

    tenant_router = APIRouter(prefix=API_PREFIX)
    tenant_router.include_router(availability.router)
    tenant_router.include_router(reservations.router)
    tenant_router.include_router(staff.router)
    app.include_router(tenant_router)

    @app.middleware("http")
    async def request_context(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(ulid.ULID())
        token = set_request_id(request_id)
        start_time = time.time()
        try:
            response = await call_next(request)
        finally:
            reset_request_id(token)

        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)
        prometheus_metrics.record_http_request(
            request.method, endpoint, time.time() - start_time, response.status_code
        )
        response.headers["X-Request-ID"] = request_id
        return response

    @app.get("/health", tags=["health"])
    def health() -> dict:
        return {"status": "healthy", "service": "slotengine"}

    @app.get("/metrics", tags=["monitoring"])
    def metrics() -> Response:
        content, content_type = prometheus_metrics.exposition()
        return Response(content=content, media_type=content_type)

    return app


app = create_app()
