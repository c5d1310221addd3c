"""
Client Files Portal - Error Responses

Turns every failure into a JSON body of the form
    {"error": <message>, "code": <stable code>, "details": <optional>}

Stack traces are only included outside production.
"""

from __future__ import annotations

import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from portal.config import settings
from portal.errors import RateLimitedError, ServiceError
from portal.logging import get_logger


logger = get_logger(__name__)

_STATUS_TO_CODE = {
    400: "validation_error",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    429: "rate_limited",
    500: "server_error",
}


def _error_response(
    status_code: int,
    message: str,
    details: dict | list | None = None,
    code: str | None = None,
    headers: dict | None = None,
    **extra,
) -> JSONResponse:
    content = {
        "error": message,
        "code": code or _STATUS_TO_CODE.get(status_code, "server_error"),
    }
    if details is not None:
        content["details"] = details
    content.update(extra)
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(content),
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers for service errors, request validation and uncaught exceptions."""

    @app.exception_handler(RateLimitedError)
    async def handle_rate_limited(request: Request, exc: RateLimitedError):
        return _error_response(
            exc.status_code,
            exc.message,
            code=exc.error_code,
            headers=exc.headers,
            retryAfter=f"{exc.retry_after} seconds",
        )

    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError):
        log_fn = logger.error if exc.status_code >= 500 else logger.warning
        log_fn(
            "service_error",
            path=request.url.path,
            method=request.method,
            status_code=exc.status_code,
            error_code=exc.error_code,
            message=exc.message,
        )
        extra = {}
        if exc.status_code >= 500 and not settings.is_production:
            extra["stack"] = "".join(traceback.format_exception(exc))
        return _error_response(
            exc.status_code, exc.message, exc.detail, code=exc.error_code, **extra
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        details = [
            {
                "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
                "message": error.get("msg"),
            }
            for error in exc.errors()
        ]
        logger.info(
            "request_validation_failed",
            path=request.url.path,
            method=request.method,
            errors=details,
        )
        return _error_response(400, "Validation failed", details, code="validation_error")

    @app.exception_handler(HTTPException)
    async def handle_http_exception(request: Request, exc: HTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "HTTP error"
        details = None if isinstance(exc.detail, str) else exc.detail
        return _error_response(
            exc.status_code, message, details, headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(Exception)
    async def handle_uncaught(request: Request, exc: Exception):
        logger.exception(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        extra = {}
        if not settings.is_production:
            extra["stack"] = "".join(traceback.format_exception(exc))
        return _error_response(500, "Internal server error", code="server_error", **extra)
