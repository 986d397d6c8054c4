"""Snapshot storage endpoints keyed by hashed PIN."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from pydantic import ValidationError

from navhub.adapters.cloud_sync.models import SaveRequest, validate_bookmarks
from navhub.api.dependencies import get_app_config, get_record_store
from navhub.api.exceptions import (
    EmptyPayloadError,
    InvalidPayloadError,
    InvalidPinError,
    StorageUnavailableError,
)
from navhub.config import AppConfig
from navhub.core.logging_utils import get_logger, redact_digest
from navhub.infrastructure.record_store import RecordStoreError, SyncRecordStore

logger = get_logger(__name__)
router = APIRouter()


def _require_pin(pin: Any, cfg: AppConfig) -> str:
    if not isinstance(pin, str) or len(pin) < cfg.sync_server.pin_min_length:
        raise InvalidPinError()
    return pin


@router.get("/get")
async def get_sync_record(
    request: Request,
    pin: str | None = Query(None, description="Hashed PIN"),
    cfg: AppConfig = Depends(get_app_config),
    store: SyncRecordStore = Depends(get_record_store),
) -> dict[str, Any]:
    """Return the stored record; all fields are null for an unused PIN."""
    pin = _require_pin(pin, cfg)
    try:
        record = await store.get(pin)
    except RecordStoreError as exc:
        raise StorageUnavailableError() from exc

    logger.info(
        "sync_record_served",
        extra={
            "pin": redact_digest(pin),
            "empty": record.is_empty,
            "correlation_id": getattr(request.state, "correlation_id", None),
        },
    )
    return record.to_wire()


@router.post("/save")
async def save_sync_record(
    request: Request,
    body: SaveRequest,
    cfg: AppConfig = Depends(get_app_config),
    store: SyncRecordStore = Depends(get_record_store),
) -> dict[str, Any]:
    """Overwrite the record for a PIN and return the new lastModified."""
    pin = _require_pin(body.pin, cfg)
    if not body.has_data:
        raise EmptyPayloadError()

    if body.bookmarks is not None:
        try:
            validate_bookmarks(body.bookmarks)
        except ValidationError as exc:
            raise InvalidPayloadError(
                "Invalid bookmarks", details={"errors": exc.error_count()}
            ) from exc
        except ValueError as exc:
            raise InvalidPayloadError(str(exc)) from exc

    try:
        last_modified = await store.save(pin, body.bookmarks, body.settings)
    except RecordStoreError as exc:
        raise StorageUnavailableError() from exc

    logger.info(
        "sync_record_stored",
        extra={
            "pin": redact_digest(pin),
            "last_modified": last_modified,
            "correlation_id": getattr(request.state, "correlation_id", None),
        },
    )
    return {"success": True, "lastModified": last_modified}
