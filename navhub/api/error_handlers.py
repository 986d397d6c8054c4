"""Exception handlers rendering the service's flat ``{"error": ...}`` body."""

from __future__ import annotations

import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from navhub.api.exceptions import APIException

logger = logging.getLogger(__name__)

_HTTP_MESSAGES = {
    status.HTTP_404_NOT_FOUND: "Not found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "Method not allowed",
}


def error_body(message: str) -> dict[str, str]:
    return {"error": message}


async def api_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle custom API exceptions."""
    if not isinstance(exc, APIException):
        raise exc

    correlation_id = getattr(request.state, "correlation_id", None)
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "api_error",
        extra={
            "correlation_id": correlation_id,
            "status_code": exc.status_code,
            "error": exc.message,
            "details": exc.details or None,
            "path": request.url.path,
        },
    )
    return JSONResponse(
        status_code=exc.status_code, content=error_body(exc.message), headers=exc.headers
    )


async def http_exception_handler(request: Request, exc: Exception) -> Response:
    """Render routing errors (404, 405) in the same shape as API errors."""
    if not isinstance(exc, StarletteHTTPException):
        raise exc

    message = _HTTP_MESSAGES.get(exc.status_code, str(exc.detail))
    logger.info(
        "http_error",
        extra={
            "correlation_id": getattr(request.state, "correlation_id", None),
            "status_code": exc.status_code,
            "method": request.method,
            "path": request.url.path,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(message),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: Exception) -> Response:
    """Malformed request bodies are a client error, not 422."""
    if not isinstance(exc, RequestValidationError):
        raise exc

    fields = [".".join(str(loc) for loc in error["loc"]) for error in exc.errors()]
    logger.warning(
        "request_validation_failed",
        extra={
            "correlation_id": getattr(request.state, "correlation_id", None),
            "fields": fields,
            "path": request.url.path,
        },
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST, content=error_body("Invalid request body")
    )


async def global_exception_handler(request: Request, exc: Exception) -> Response:
    """Catch-all handler for unexpected exceptions; never leaks details."""
    logger.error(
        "unhandled_exception",
        exc_info=exc,
        extra={
            "correlation_id": getattr(request.state, "correlation_id", None),
            "path": request.url.path,
        },
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("Internal server error"),
    )
