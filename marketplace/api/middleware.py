"""API middleware and error mapping.

Provides:
- API key authentication
- Request ID correlation
- Error handling and the domain error to HTTP status mapping
"""

import time
from typing import Callable
from uuid import uuid4

import structlog
from fastapi import FastAPI, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from marketplace.domain.exceptions import (
    ConcurrentModificationError,
    DomainError,
    InsufficientStockError,
    InvalidStateTransitionError,
    OrderNotEditableError,
    OrderNotFoundError,
    OrderNotPendingError,
    PaymentGatewayError,
    PaymentPayloadError,
    ProductNotFoundError,
    StorageError,
    ValidationError,
)

logger = structlog.get_logger()


# ============================================================================
# Request ID Middleware
# ============================================================================


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Middleware to add request ID for correlation.

    Generates or extracts a request ID and adds it to:
    - Request state for access in handlers
    - Response headers for client correlation
    - Log context for tracing
    """

    HEADER_NAME = "X-Request-ID"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(self.HEADER_NAME) or str(uuid4())
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start_time = time.perf_counter()
        response = None
        try:
            response = await call_next(request)
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                "Request completed",
                method=request.method,
                path=request.url.path,
                status_code=getattr(response, "status_code", 500),
                duration_ms=round(duration_ms, 2),
            )
            structlog.contextvars.unbind_contextvars("request_id")

        response.headers[self.HEADER_NAME] = request_id
        return response


# ============================================================================
# API Key Authentication Middleware
# ============================================================================


# Paths that don't require authentication
PUBLIC_PATHS = {
    "/health",
    "/docs",
    "/redoc",
    "/openapi.json",
}


def _unauthorized(error_code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"error_code": error_code, "message": message, "details": {}},
        headers={"WWW-Authenticate": "Bearer"},
    )


class ApiKeyMiddleware(BaseHTTPMiddleware):
    """Middleware for API key authentication.

    Expects "Authorization: Bearer <api_key>" on every non-public path.
    """

    def __init__(self, app: ASGIApp, api_key: str) -> None:
        super().__init__(app)
        self.api_key = api_key

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path.rstrip("/")
        if path in PUBLIC_PATHS or path.startswith("/docs") or path.startswith("/redoc"):
            return await call_next(request)

        auth_header = request.headers.get("Authorization")
        if not auth_header:
            logger.warning("Missing authorization header", path=path, method=request.method)
            return _unauthorized("UNAUTHORIZED", "Missing Authorization header")

        parts = auth_header.split(" ", 1)
        if len(parts) != 2 or parts[0].lower() != "bearer":
            logger.warning("Invalid authorization format", path=path, method=request.method)
            return _unauthorized(
                "UNAUTHORIZED",
                "Invalid Authorization header format. Use 'Bearer <api_key>'",
            )

        if parts[1] != self.api_key:
            logger.warning("Invalid API key", path=path, method=request.method)
            return _unauthorized("INVALID_API_KEY", "Invalid API key")

        request.state.authenticated = True
        return await call_next(request)


# ============================================================================
# Error Mapping
# ============================================================================


# Most specific classes first
ERROR_STATUS: list[tuple[type[DomainError], int]] = [
    (OrderNotFoundError, status.HTTP_404_NOT_FOUND),
    (ProductNotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidStateTransitionError, status.HTTP_409_CONFLICT),
    (OrderNotPendingError, status.HTTP_409_CONFLICT),
    (OrderNotEditableError, status.HTTP_409_CONFLICT),
    (ConcurrentModificationError, status.HTTP_409_CONFLICT),
    (InsufficientStockError, status.HTTP_409_CONFLICT),
    (PaymentGatewayError, status.HTTP_402_PAYMENT_REQUIRED),
    (PaymentPayloadError, 422),
    (ValidationError, 422),
    (StorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_for_error(error: DomainError) -> int:
    """HTTP status for a domain error; unknown domain errors map to 400."""
    for error_type, status_code in ERROR_STATUS:
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def status_for_error_code(error_code: str | None) -> int:
    """HTTP status for an error code carried by a result object."""
    for error_type, status_code in ERROR_STATUS:
        if error_type.error_code == error_code:
            return status_code
    return status.HTTP_400_BAD_REQUEST


def error_body(
    request: Request,
    error_code: str,
    message: str,
    details: dict | list | None = None,
) -> dict:
    return {
        "error_code": error_code,
        "message": message,
        "details": details if details is not None else {},
        "request_id": getattr(request.state, "request_id", None),
    }


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Render a domain error with the standard envelope."""
    status_code = status_for_error(exc)
    log = logger.error if status_code >= 500 else logger.info
    log(
        "Request failed",
        path=request.url.path,
        error_code=exc.error_code,
        status_code=status_code,
        error=exc.message,
    )
    return JSONResponse(
        status_code=status_code,
        content=error_body(request, exc.error_code, exc.message, exc.details),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    detail = exc.detail
    if isinstance(detail, dict):
        error_code = detail.get("error_code", "ERROR")
        message = detail.get("message", str(detail))
        details = detail.get("details", {})
    else:
        error_code = "ERROR"
        message = str(detail)
        details = {}

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, error_code, message, details),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions with consistent format."""
    logger.exception(
        "Unhandled exception in handler",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(request, "INTERNAL_ERROR", "An internal error occurred"),
    )


# ============================================================================
# Middleware Setup
# ============================================================================


def setup_middleware(app: FastAPI, api_key: str) -> None:
    """Configure middleware and exception handlers.

    Middleware is added in reverse order (last added = first executed).

    Args:
        app: FastAPI application instance.
        api_key: Key expected in the Authorization header.
    """
    app.add_middleware(ApiKeyMiddleware, api_key=api_key)
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
