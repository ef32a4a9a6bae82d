"""
FastAPI application entrypoint.

- Configures CORS.
- Registers standardized error handlers.
- Initializes structured logging and binds the request correlation id.
- Includes infra routes (health/version) and aggregates API sub-routers.

Run locally:
  uvicorn customer_api.main:app --reload --port 8000
"""

from __future__ import annotations

import os
import uuid
from typing import List

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from customer_api.api.router import router as api_router
from customer_api.core.errors import register_exception_handlers
from customer_api.core.logging import bind_request_id, get_logger, init_logging, reset_request_id

log = get_logger(__name__)


def _create_cors_origins() -> List[str]:
    """
    Build the list of allowed CORS origins.

    Reads from ALLOW_ORIGINS (comma-separated). Defaults to "*" if unset.
    """
    raw = os.getenv("ALLOW_ORIGINS", "*").strip()
    if not raw or raw == "*":
        return ["*"]
    return [o.strip() for o in raw.split(",") if o.strip()]


def _create_infra_router() -> APIRouter:
    router = APIRouter(prefix="/api", tags=["infra"])

    @router.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @router.get("/version")
    def version() -> dict:
        return {"version": os.getenv("APP_VERSION", "0.1.0")}

    return router


def get_application() -> FastAPI:
    """
    Construct the FastAPI app with CORS, logging, routers, and error handlers.
    """
    init_logging()

    app = FastAPI(title="M365 Assessment Customer API", version=os.getenv("APP_VERSION", "0.1.0"))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_create_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        # Browsers must be able to read the validator to send If-None-Match
        expose_headers=["ETag"],
    )

    @app.middleware("http")
    async def correlation_id(request: Request, call_next):
        request_id = (
            request.headers.get("x-request-id")
            or request.headers.get("x-correlation-id")
            or uuid.uuid4().hex
        )
        token = bind_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            reset_request_id(token)
        response.headers["x-request-id"] = request_id
        return response

    app.include_router(_create_infra_router())
    app.include_router(api_router)

    register_exception_handlers(app)

    @app.get("/")
    def root() -> dict:
        return {"message": "M365 Assessment Customer API", "health": "/api/health"}

    log.info("application configured")
    return app


# ASGI application
app = get_application()
