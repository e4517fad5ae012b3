"""
DocMS HTTP application — operational endpoints only.

    GET /health   platform health summary (503 when unhealthy)
    GET /ready    200 once the runtime context is up, 503 otherwise
    GET /info     service identity and lifecycle state
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from docms.engine.health import HealthStatus
from docms.engine.logging import log, log_web_request

if TYPE_CHECKING:
    from docms.engine.runtime import ApplicationRuntime

logger = logging.getLogger("docms.web.app")


def create_app(runtime: "ApplicationRuntime") -> FastAPI:
    """Create the FastAPI application bound to a runtime context."""
    config = runtime.config
    app = FastAPI(
        title=config.name,
        version=config.version,
        docs_url=None,
        redoc_url=None,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.monotonic()
        response = await call_next(request)
        duration_ms = (time.monotonic() - start) * 1000
        log(log_web_request(request.method, request.url.path, response.status_code, duration_ms))
        return response

    @app.get("/health")
    async def health():
        await runtime.health.check_all()
        summary = runtime.health.get_platform_health()
        status_code = 503 if summary["status"] == HealthStatus.UNHEALTHY.value else 200
        return JSONResponse(summary, status_code=status_code)

    @app.get("/ready")
    async def ready():
        is_ready = runtime.is_ready
        return JSONResponse(
            {"ready": is_ready, "state": runtime.state.value},
            status_code=200 if is_ready else 503,
        )

    @app.get("/info")
    async def info():
        return {
            "name": config.name,
            "version": config.version,
            "environment": config.environment,
            "state": runtime.state.value,
        }

    logger.debug("HTTP routes registered: /health /ready /info")
    return app
