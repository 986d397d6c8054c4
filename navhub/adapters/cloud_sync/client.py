"""Async HTTP client for the sync storage service."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from navhub.adapters.cloud_sync.models import SaveResult, SyncRecord
from navhub.core.logging_utils import redact_digest
from navhub.sync.exceptions import (
    RemoteStoreError,
    RemoteStoreNotFoundError,
    RemoteStoreRejectedError,
    RemoteStoreResponseError,
    RemoteStoreTransportError,
    RemoteStoreUnavailableError,
)

if TYPE_CHECKING:
    from typing import Self

logger = logging.getLogger(__name__)

GET_PATH = "/api/sync/get"
SAVE_PATH = "/api/sync/save"

DEFAULT_TIMEOUT = 10.0


def _error_for_status(response: httpx.Response, operation: str) -> RemoteStoreError:
    status = response.status_code
    try:
        server_message = response.json().get("error")
    except (ValueError, AttributeError):
        server_message = None
    suffix = f": {server_message}" if server_message else ""

    if status == 404:
        return RemoteStoreNotFoundError(
            f"{operation} failed: sync endpoint not found (HTTP 404){suffix}", status_code=status
        )
    if status >= 500:
        return RemoteStoreUnavailableError(
            f"{operation} failed: HTTP {status}{suffix}", status_code=status
        )
    return RemoteStoreRejectedError(f"{operation} failed: HTTP {status}{suffix}", status_code=status)


class RemoteStoreClient:
    """Thin request/response wrapper around the two sync endpoints.

    Only the hashed PIN is ever sent. The client does not retry; callers gate
    requests through the sync rate limiter.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Storage service root, e.g. ``https://start.example.com``
            timeout: Per-request timeout in seconds
            http_client: Pre-built client (tests, ASGI transport); not closed by us
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = http_client
        self._owns_client = http_client is None

    async def __aenter__(self) -> Self:
        self._ensure_client()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
            self._owns_client = True
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, operation: str, **kwargs: Any) -> Any:
        client = self._ensure_client()
        try:
            response = await client.request(method, path, timeout=self.timeout, **kwargs)
        except httpx.TimeoutException as exc:
            raise RemoteStoreTransportError(f"{operation} timed out after {self.timeout}s") from exc
        except httpx.HTTPError as exc:
            raise RemoteStoreTransportError(f"{operation} failed: {exc}") from exc

        if not response.is_success:
            raise _error_for_status(response, operation)

        try:
            return response.json()
        except ValueError as exc:
            raise RemoteStoreResponseError(
                f"{operation} failed: malformed JSON response", status_code=response.status_code
            ) from exc

    async def fetch_snapshot(self, hashed_pin: str) -> SyncRecord:
        """Fetch the stored record; an unused PIN yields an all-null record."""
        data = await self._request("GET", GET_PATH, "fetch_snapshot", params={"pin": hashed_pin})
        try:
            record = SyncRecord.model_validate(data)
        except ValidationError as exc:
            raise RemoteStoreResponseError(
                "fetch_snapshot failed: unexpected response shape", status_code=200
            ) from exc

        logger.debug(
            "sync_snapshot_fetched",
            extra={
                "pin": redact_digest(hashed_pin),
                "empty": record.is_empty,
                "last_modified": record.last_modified,
            },
        )
        return record

    async def write_snapshot(
        self,
        hashed_pin: str,
        bookmarks: list[dict[str, Any]] | None,
        settings: dict[str, Any] | None,
    ) -> SaveResult:
        """Store a snapshot; the server assigns and returns ``lastModified``."""
        payload = {"pin": hashed_pin, "bookmarks": bookmarks, "settings": settings}
        data = await self._request("POST", SAVE_PATH, "write_snapshot", json=payload)
        try:
            result = SaveResult.model_validate(data)
        except ValidationError as exc:
            raise RemoteStoreResponseError(
                "write_snapshot failed: unexpected response shape", status_code=200
            ) from exc

        logger.debug(
            "sync_snapshot_written",
            extra={"pin": redact_digest(hashed_pin), "last_modified": result.last_modified},
        )
        return result
