"""
API error types and exception handlers.

- Defines the ApiError hierarchy raised by repositories and routes.
- Maps errors to a consistent JSON shape for clients.
- Registers FastAPI exception handlers.

Error body:
    {"error": {"code": ..., "message": ..., "details": {...}}, "request_id": ...}
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from customer_api.core.logging import get_logger

__all__ = [
    "ApiError",
    "NotFoundError",
    "CustomerNotFoundError",
    "ConflictError",
    "StoreUnavailableError",
    "SchemaMismatchError",
    "ErrorBody",
    "ErrorResponse",
    "register_exception_handlers",
]

log = get_logger(__name__)


# -------------------------------
# Error response models
# -------------------------------

class ErrorBody(BaseModel):
    code: str = Field(..., description="Stable machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict = Field(default_factory=dict, description="Optional structured details")


class ErrorResponse(BaseModel):
    error: ErrorBody
    request_id: Optional[str] = Field(default=None, description="Client-supplied correlation/request id")


# -------------------------------
# Exception types
# -------------------------------

class ApiError(Exception):
    """
    Base API error with HTTP status and machine code.
    """
    status_code: int = 400
    code: str = "bad_request"

    def __init__(self, message: str, *, details: Optional[dict] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(ApiError):
    status_code = 404
    code = "not_found"


class CustomerNotFoundError(NotFoundError):
    code = "customer_not_found"

    def __init__(self, customer_id: str) -> None:
        super().__init__(f"Customer {customer_id} not found", details={"customer_id": customer_id})
        self.customer_id = customer_id


class ConflictError(ApiError):
    status_code = 409
    code = "conflict"


class StoreUnavailableError(ApiError):
    """The backing store could not be reached; callers may retry."""
    status_code = 503
    code = "upstream_unavailable"


class SchemaMismatchError(ApiError):
    """A required customer column has no physical counterpart in the store."""
    status_code = 500
    code = "schema_mismatch"


# -------------------------------
# Handlers
# -------------------------------

def _request_id(request: Request) -> Optional[str]:
    return request.headers.get("x-request-id") or request.headers.get("x-correlation-id")


def _render(request: Request, status_code: int, code: str, message: str, details: Optional[dict] = None) -> JSONResponse:
    body = ErrorResponse(
        error=ErrorBody(code=code, message=message, details=details or {}),
        request_id=_request_id(request),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def api_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render ApiError subclasses with their own status and code."""
    if not isinstance(exc, ApiError):
        return await unhandled_error_handler(request, exc)
    if exc.status_code >= 500:
        log.error("request failed", extra={"code": exc.code, "path": request.url.path, "details": exc.details})
    return _render(request, exc.status_code, exc.code, exc.message, exc.details)


async def http_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Keep HTTPException raised by the framework (404 routes, 405) in the same shape."""
    status_code = getattr(exc, "status_code", 500)
    detail = getattr(exc, "detail", None)
    message = detail if isinstance(detail, str) else "HTTP error"
    return _render(request, status_code, f"http_{status_code}", message)


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    details: dict[str, Any] = {}
    errors = getattr(exc, "errors", None)
    if callable(errors):
        details = {"errors": jsonable_encoder(errors())}
    return _render(request, 422, "validation_error", "Validation error", details)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled error", extra={"path": request.url.path})
    return _render(request, 500, "server_error", "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register exception handlers on the FastAPI app.
    """
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
