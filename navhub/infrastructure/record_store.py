"""Per-PIN record storage for the sync service.

Each hashed PIN owns three keys: bookmarks, settings and lastModified. Values
are stored JSON-encoded. Without Redis the same layout lives in a process-local
dict, which is enough for a single worker and for tests.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

from navhub.adapters.cloud_sync.models import SyncRecord
from navhub.core.logging_utils import redact_digest
from navhub.core.time_utils import now_ms
from navhub.infrastructure.redis import get_redis, redis_key

if TYPE_CHECKING:
    import redis.asyncio as aioredis

    from navhub.config import RedisConfig
    from navhub.core.time_utils import Clock

logger = logging.getLogger(__name__)

BOOKMARKS_FIELD = "bookmarks"
SETTINGS_FIELD = "settings"
LAST_MODIFIED_FIELD = "lastModified"

# KEYS: lastModified, bookmarks, settings.
# ARGV: now, has-bookmarks flag, bookmarks JSON, has-settings flag, settings JSON.
# Runs atomically on the server, so workers with skewed clocks cannot move the stamp back.
_SAVE_SCRIPT = """
local stamp = ARGV[1]
local previous = redis.call('get', KEYS[1])
if previous and tonumber(previous) and tonumber(previous) > tonumber(stamp) then
    stamp = previous
end
redis.call('set', KEYS[1], stamp)
if ARGV[2] == '1' then
    redis.call('set', KEYS[2], ARGV[3])
end
if ARGV[4] == '1' then
    redis.call('set', KEYS[3], ARGV[5])
end
return stamp
"""


class RecordStoreError(Exception):
    """Raised when the backing store cannot be read or written."""


class SyncRecordStore:
    """Read and overwrite the record stored under a hashed PIN."""

    def __init__(
        self,
        redis_client: aioredis.Redis | None = None,
        *,
        prefix: str = "navhub",
        clock: Clock = now_ms,
    ) -> None:
        self._redis = redis_client
        self._prefix = prefix
        self._clock = clock
        self._memory: dict[str, str] = {}
        self._memory_lock = asyncio.Lock()

    @property
    def backend(self) -> str:
        return "redis" if self._redis is not None else "memory"

    def _key(self, pin: str, field: str) -> str:
        return redis_key(self._prefix, "sync", pin, field)

    async def _read(self, keys: list[str]) -> list[str | None]:
        if self._redis is None:
            return [self._memory.get(key) for key in keys]
        try:
            return await self._redis.mget(keys)
        except Exception as exc:
            logger.error("record_store_read_failed", exc_info=True, extra={"backend": "redis"})
            raise RecordStoreError("Failed to read sync record") from exc

    async def _save_memory(
        self,
        pin: str,
        bookmarks: list[dict[str, Any]] | None,
        settings: dict[str, Any] | None,
    ) -> int:
        async with self._memory_lock:
            stamp_key = self._key(pin, LAST_MODIFIED_FIELD)
            previous = self._decode(self._memory.get(stamp_key), pin, LAST_MODIFIED_FIELD)
            last_modified = max(self._clock(), previous if isinstance(previous, int) else 0)

            self._memory[stamp_key] = json.dumps(last_modified)
            if bookmarks is not None:
                self._memory[self._key(pin, BOOKMARKS_FIELD)] = json.dumps(bookmarks)
            if settings is not None:
                self._memory[self._key(pin, SETTINGS_FIELD)] = json.dumps(settings)
            return last_modified

    async def _save_redis(
        self,
        redis_client: aioredis.Redis,
        pin: str,
        bookmarks: list[dict[str, Any]] | None,
        settings: dict[str, Any] | None,
    ) -> int:
        keys = [
            self._key(pin, field)
            for field in (LAST_MODIFIED_FIELD, BOOKMARKS_FIELD, SETTINGS_FIELD)
        ]
        args = [
            str(self._clock()),
            "1" if bookmarks is not None else "0",
            json.dumps(bookmarks) if bookmarks is not None else "",
            "1" if settings is not None else "0",
            json.dumps(settings) if settings is not None else "",
        ]
        try:
            stamp = await redis_client.eval(_SAVE_SCRIPT, len(keys), *keys, *args)
            return int(stamp)
        except Exception as exc:
            logger.error("record_store_write_failed", exc_info=True, extra={"backend": "redis"})
            raise RecordStoreError("Failed to write sync record") from exc

    @staticmethod
    def _decode(raw: str | None, pin: str, field: str) -> Any:
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(
                "record_store_value_corrupt",
                extra={"pin": redact_digest(pin), "field": field},
            )
            return None

    async def get(self, pin: str) -> SyncRecord:
        """Return the stored record; every field is None for an unused PIN."""
        fields = (BOOKMARKS_FIELD, SETTINGS_FIELD, LAST_MODIFIED_FIELD)
        raw = await self._read([self._key(pin, field) for field in fields])
        bookmarks, settings, last_modified = (
            self._decode(value, pin, field) for value, field in zip(raw, fields, strict=True)
        )
        return SyncRecord(
            bookmarks=bookmarks if isinstance(bookmarks, list) else None,
            settings=settings if isinstance(settings, dict) else None,
            last_modified=last_modified if isinstance(last_modified, int) else None,
        )

    async def save(
        self,
        pin: str,
        bookmarks: list[dict[str, Any]] | None,
        settings: dict[str, Any] | None,
    ) -> int:
        """Overwrite the fields that are present and stamp a new lastModified.

        The stamp is ``max(now, previous)`` so it never moves backwards for a PIN,
        even if the server clock does. With Redis the comparison and the writes
        run as one script, which keeps the stamp monotonic across workers.
        """
        if self._redis is None:
            last_modified = await self._save_memory(pin, bookmarks, settings)
        else:
            last_modified = await self._save_redis(self._redis, pin, bookmarks, settings)

        logger.info(
            "sync_record_saved",
            extra={
                "pin": redact_digest(pin),
                "backend": self.backend,
                "bookmarks": len(bookmarks) if bookmarks is not None else None,
                "settings": settings is not None,
                "last_modified": last_modified,
            },
        )
        return last_modified


async def create_record_store(cfg: RedisConfig, *, clock: Clock = now_ms) -> SyncRecordStore:
    """Build a store on the shared Redis client, or in memory when it is unavailable."""
    client = await get_redis(cfg)
    if client is None:
        logger.info("record_store_in_memory", extra={"redis_enabled": cfg.enabled})
    return SyncRecordStore(client, prefix=cfg.prefix, clock=clock)
