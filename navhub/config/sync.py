from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from ._validators import _parse_origins

logger = logging.getLogger(__name__)


class SyncClientConfig(BaseModel):
    """Device-side sync settings: where the storage service lives and how hard to hit it."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    base_url: str = Field(default="http://localhost:8000", validation_alias="NAVHUB_SYNC_BASE_URL")
    timeout_sec: float = Field(default=10.0, validation_alias="NAVHUB_SYNC_TIMEOUT_SEC")
    rate_limit_max: int = Field(default=10, validation_alias="NAVHUB_SYNC_RATE_LIMIT_MAX")
    rate_limit_window_ms: int = Field(
        default=60_000, validation_alias="NAVHUB_SYNC_RATE_LIMIT_WINDOW_MS"
    )
    debounce_ms: int = Field(default=1_000, validation_alias="NAVHUB_SYNC_DEBOUNCE_MS")
    local_state_path: str = Field(
        default="~/.navhub/state.json", validation_alias="NAVHUB_LOCAL_STATE_PATH"
    )

    @field_validator("base_url", mode="before")
    @classmethod
    def _validate_base_url(cls, value: Any) -> str:
        url = str(value or "http://localhost:8000").strip()
        if not url.startswith(("http://", "https://")):
            msg = "Sync base URL must start with http:// or https://"
            raise ValueError(msg)
        return url.rstrip("/")

    @field_validator("timeout_sec", mode="before")
    @classmethod
    def _validate_timeout(cls, value: Any) -> float:
        try:
            parsed = float(str(value if value not in (None, "") else 10.0))
        except ValueError as exc:
            msg = "Sync timeout must be a valid number"
            raise ValueError(msg) from exc
        if parsed <= 0 or parsed > 120:
            msg = "Sync timeout must be between 0 and 120 seconds"
            raise ValueError(msg)
        return parsed

    @field_validator("rate_limit_max", "rate_limit_window_ms", "debounce_ms", mode="before")
    @classmethod
    def _validate_positive_int(cls, value: Any, info: ValidationInfo) -> int:
        default = cls.model_fields[info.field_name].default
        try:
            parsed = int(str(value if value not in (None, "") else default))
        except ValueError as exc:
            msg = f"{info.field_name.replace('_', ' ')} must be a valid integer"
            raise ValueError(msg) from exc
        if parsed < 0 or (parsed == 0 and info.field_name != "debounce_ms"):
            msg = f"{info.field_name.replace('_', ' ').capitalize()} must be positive"
            raise ValueError(msg)
        return parsed

    @field_validator("local_state_path", mode="before")
    @classmethod
    def _validate_state_path(cls, value: Any) -> str:
        path = str(value or "~/.navhub/state.json").strip()
        if "\x00" in path:
            msg = "Local state path contains invalid characters"
            raise ValueError(msg)
        return path


class SyncServerConfig(BaseModel):
    """Storage service settings."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    pin_min_length: int = Field(default=4, validation_alias="NAVHUB_PIN_MIN_LENGTH")
    max_payload_kb: int = Field(default=512, validation_alias="NAVHUB_MAX_PAYLOAD_KB")
    allowed_origins: tuple[str, ...] = Field(default=(), validation_alias="ALLOWED_ORIGINS")

    @field_validator("pin_min_length", mode="before")
    @classmethod
    def _validate_pin_min_length(cls, value: Any) -> int:
        try:
            parsed = int(str(value if value not in (None, "") else 4))
        except ValueError as exc:
            msg = "PIN minimum length must be a valid integer"
            raise ValueError(msg) from exc
        if parsed < 1 or parsed > 64:
            msg = "PIN minimum length must be between 1 and 64"
            raise ValueError(msg)
        return parsed

    @field_validator("max_payload_kb", mode="before")
    @classmethod
    def _validate_max_payload(cls, value: Any) -> int:
        try:
            parsed = int(str(value if value not in (None, "") else 512))
        except ValueError as exc:
            msg = "Max payload size must be a valid integer"
            raise ValueError(msg) from exc
        if parsed < 16 or parsed > 10_240:
            msg = "Max payload size must be between 16 and 10240 KB"
            raise ValueError(msg)
        return parsed

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def _validate_origins(cls, value: Any) -> tuple[str, ...]:
        return _parse_origins(value)
