"""
FastAPI application for the NavHub sync storage service.

Usage:
    uvicorn navhub.api.main:app --host 0.0.0.0 --port 8000
    python -m navhub.api.main
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from navhub.api.error_handlers import (
    api_exception_handler,
    global_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from navhub.api.exceptions import APIException
from navhub.api.middleware import (
    correlation_id_middleware,
    payload_size_middleware,
    rate_limit_middleware,
)
from navhub.api.routers import sync
from navhub.config import load_config
from navhub.core.logging_utils import get_logger, setup_json_logging
from navhub.core.time_utils import now_ms, utc_now
from navhub.infrastructure.redis import close_redis

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from navhub.config import AppConfig
    from navhub.core.time_utils import Clock
    from navhub.infrastructure.record_store import SyncRecordStore

logger = get_logger(__name__)

DEV_ORIGINS = (
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    try:
        yield
    finally:
        await close_redis()


def _resolve_origins(cfg: AppConfig) -> list[str]:
    origins = list(cfg.sync_server.allowed_origins)
    if not origins:
        logger.warning(
            "ALLOWED_ORIGINS not configured - defaulting to localhost only. "
            "Set ALLOWED_ORIGINS environment variable for production."
        )
        return list(DEV_ORIGINS)
    logger.info("cors_origins_configured", extra={"origins": origins})
    return origins


def create_app(
    config: AppConfig | None = None,
    *,
    record_store: SyncRecordStore | None = None,
    clock: Clock = now_ms,
) -> FastAPI:
    """Build the storage service.

    ``record_store`` and ``clock`` are injectable so tests can run the app
    in-process without Redis and with a controlled time source.
    """
    cfg = config or load_config()

    application = FastAPI(
        title="NavHub Sync API",
        description="PIN-keyed storage for start-page bookmarks and settings",
        version="1.0.0",
        docs_url="/docs",
        redoc_url=None,
        lifespan=lifespan,
    )
    application.state.config = cfg
    application.state.clock = clock
    application.state.record_store = record_store
    application.state.record_store_lock = asyncio.Lock()
    application.state.api_limiters = {}

    application.add_middleware(
        CORSMiddleware,
        allow_origins=_resolve_origins(cfg),
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Correlation-ID"],
        max_age=3600,
    )

    # Registered last runs first: correlation id, then rate limiting, then the body cap.
    application.middleware("http")(payload_size_middleware)
    application.middleware("http")(rate_limit_middleware)
    application.middleware("http")(correlation_id_middleware)

    application.include_router(sync.router, prefix="/api/sync", tags=["Sync"])

    @application.get("/health")
    async def health_check(request: Request) -> dict[str, Any]:
        """Health check endpoint."""
        store = request.app.state.record_store
        return {
            "status": "healthy",
            "timestamp": utc_now().isoformat().replace("+00:00", "Z"),
            "backend": store.backend if store is not None else None,
        }

    application.add_exception_handler(APIException, api_exception_handler)
    application.add_exception_handler(StarletteHTTPException, http_exception_handler)
    application.add_exception_handler(RequestValidationError, validation_exception_handler)
    application.add_exception_handler(Exception, global_exception_handler)

    logger.info(
        "api_app_created",
        extra={"redis_enabled": cfg.redis.enabled, "injected_store": record_store is not None},
    )
    return application


def main() -> None:
    import uvicorn

    cfg = load_config()
    setup_json_logging(
        cfg.runtime.log_level, use_loguru=cfg.runtime.use_loguru, log_file=cfg.runtime.log_file
    )
    # nosec B104 - intentional for container deployments
    uvicorn.run(create_app(cfg), host="0.0.0.0", port=8000, log_level="info")


app = create_app()


if __name__ == "__main__":
    main()
