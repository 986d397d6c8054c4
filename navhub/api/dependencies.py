"""Request-scoped accessors for application state."""

from __future__ import annotations

import logging

from fastapi import Request

from navhub.api.exceptions import StorageUnavailableError
from navhub.config import AppConfig
from navhub.infrastructure.record_store import SyncRecordStore, create_record_store

logger = logging.getLogger(__name__)


def get_app_config(request: Request) -> AppConfig:
    return request.app.state.config


async def get_record_store(request: Request) -> SyncRecordStore:
    """Return the app's record store, connecting on first use."""
    state = request.app.state
    if state.record_store is not None:
        return state.record_store

    async with state.record_store_lock:
        if state.record_store is None:
            try:
                state.record_store = await create_record_store(
                    state.config.redis, clock=state.clock
                )
            except Exception as exc:
                logger.error("record_store_unavailable", exc_info=True)
                raise StorageUnavailableError() from exc
    return state.record_store
