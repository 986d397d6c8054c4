from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import redis.asyncio as aioredis

if TYPE_CHECKING:
    from navhub.config import RedisConfig

logger = logging.getLogger(__name__)

_client: aioredis.Redis | None = None
_lock = asyncio.Lock()


def _build_url(cfg: RedisConfig) -> str:
    if cfg.url:
        return cfg.url
    return f"redis://{cfg.host}:{cfg.port}/{cfg.db}"


def redis_key(prefix: str, *parts: str) -> str:
    """Compose a namespaced Redis key, skipping empty parts."""
    return ":".join([prefix, *(part for part in parts if part)])


async def get_redis(cfg: RedisConfig) -> aioredis.Redis | None:
    """Get or create the shared Redis client.

    Returns None when Redis is disabled, or unreachable and not required.
    Re-raises the connection error when ``cfg.required`` is set.
    """
    global _client

    if not cfg.enabled:
        return None

    if _client is not None:
        return _client

    async with _lock:
        if _client is not None:
            return _client

        url = _build_url(cfg)
        client = aioredis.from_url(
            url,
            password=cfg.password,
            socket_timeout=cfg.socket_timeout,
            decode_responses=True,
        )
        try:
            await client.ping()
        except Exception:
            logger.warning(
                "redis_connection_failed",
                exc_info=True,
                extra={"db": cfg.db, "required": cfg.required},
            )
            await client.aclose()
            if cfg.required:
                raise
            return None

        _client = client
        logger.info("redis_connected", extra={"db": cfg.db, "prefix": cfg.prefix})
        return _client


async def close_redis() -> None:
    """Close the shared Redis client if one was opened."""
    global _client
    if _client is not None:
        try:
            await _client.aclose()
            logger.info("redis_closed")
        finally:
            _client = None
