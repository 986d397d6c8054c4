"""FastAPI middleware for request processing."""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from navhub.api.context import correlation_id_ctx
from navhub.api.error_handlers import error_body
from navhub.api.exceptions import PayloadTooLargeError, TooManyRequestsError
from navhub.core.logging_utils import get_logger
from navhub.security.rate_limiter import SlidingWindowRateLimiter, create_api_rate_limiter

logger = get_logger(__name__)

CallNext = Callable[[Request], Awaitable[Response]]

# Idle per-client limiters are dropped once the table grows past this size.
_MAX_TRACKED_CLIENTS = 10_000

_EXEMPT_PATHS = frozenset({"/health"})


async def correlation_id_middleware(request: Request, call_next: CallNext) -> Response:
    """Add a correlation ID to every request for tracing.

    Reuses the X-Correlation-ID header when present, generates one otherwise.
    """
    correlation_id = request.headers.get("X-Correlation-ID")
    if not correlation_id:
        correlation_id = f"api-{uuid.uuid4().hex[:16]}"

    request.state.correlation_id = correlation_id
    token = correlation_id_ctx.set(correlation_id)

    try:
        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response
    finally:
        correlation_id_ctx.reset(token)


def _client_limiter(request: Request) -> SlidingWindowRateLimiter:
    limiters: dict[str, SlidingWindowRateLimiter] = request.app.state.api_limiters
    client_key = request.client.host if request.client else "unknown"

    limiter = limiters.get(client_key)
    if limiter is None:
        if len(limiters) >= _MAX_TRACKED_CLIENTS:
            idle = [key for key, item in limiters.items() if item.get_next_available_time() == 0]
            for key in idle:
                del limiters[key]
            logger.info("rate_limit_table_pruned", extra={"dropped": len(idle)})
        limiter = create_api_rate_limiter(clock=request.app.state.clock)
        limiters[client_key] = limiter
    return limiter


async def rate_limit_middleware(request: Request, call_next: CallNext) -> Response:
    """Per-client sliding-window limit on the sync endpoints."""
    if request.url.path in _EXEMPT_PATHS or request.method == "OPTIONS":
        return await call_next(request)

    limiter = _client_limiter(request)
    if not limiter.can_make_request():
        exc = TooManyRequestsError(limiter.get_next_available_time())
        logger.info(
            "api_rate_limit_exceeded",
            extra={
                "client": request.client.host if request.client else None,
                "path": request.url.path,
                "retry_after": exc.details["retry_after"],
                "correlation_id": getattr(request.state, "correlation_id", None),
            },
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.message),
            headers={
                **(exc.headers or {}),
                "X-RateLimit-Limit": str(limiter.max_requests),
                "X-RateLimit-Remaining": "0",
            },
        )

    response = await call_next(request)
    response.headers["X-RateLimit-Limit"] = str(limiter.max_requests)
    response.headers["X-RateLimit-Remaining"] = str(limiter.get_remaining_requests())
    return response


async def payload_size_middleware(request: Request, call_next: CallNext) -> Response:
    """Reject request bodies above the configured cap before they are parsed.

    Checks Content-Length first and falls back to the received body when the
    header is missing or unreadable.
    """
    if request.method not in ("POST", "PUT", "PATCH"):
        return await call_next(request)

    limit_kb = request.app.state.config.sync_server.max_payload_kb
    size: int | None = None
    content_length = request.headers.get("content-length")
    if content_length:
        try:
            size = int(content_length)
        except ValueError:
            logger.warning(
                "invalid_content_length_header",
                extra={"content_length": content_length, "path": request.url.path},
            )
    if size is None:
        size = len(await request.body())

    if size > limit_kb * 1024:
        exc = PayloadTooLargeError(limit_kb)
        logger.info(
            "api_payload_too_large",
            extra={
                "path": request.url.path,
                "size": size,
                "limit_kb": limit_kb,
                "correlation_id": getattr(request.state, "correlation_id", None),
            },
        )
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))

    return await call_next(request)
