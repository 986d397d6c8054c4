"""Sync error taxonomy.

Validation and rate-limit errors are raised before any network access.
Remote store errors wrap transport and server failures; the two-way ``sync``
entry point swallows every ``SyncError`` and falls back to local data.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base exception for all sync errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class PinValidationError(SyncError, ValueError):
    """Raised when a PIN is malformed."""


class SyncNotEnabledError(SyncError):
    """Raised when a network operation is attempted while sync is disabled."""

    def __init__(self) -> None:
        super().__init__("Sync not enabled")


class SyncInProgressError(SyncError):
    """Raised when a sync operation starts while another one is in flight."""

    def __init__(self, operation: str) -> None:
        super().__init__("Sync already in progress", details={"operation": operation})
        self.operation = operation


class RateLimitExceededError(SyncError):
    """Raised when the sync rate limiter refuses a request."""

    def __init__(self, *, remaining: int, retry_after_ms: int) -> None:
        seconds = max(1, -(-retry_after_ms // 1000))
        super().__init__(
            f"Too many sync requests. Try again in {seconds} seconds.",
            details={"remaining": remaining, "retry_after_ms": retry_after_ms},
        )
        self.remaining = remaining
        self.retry_after_ms = retry_after_ms


class RemoteStoreError(SyncError):
    """Base class for storage service failures."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message, details={"status_code": status_code})
        self.status_code = status_code


class RemoteStoreNotFoundError(RemoteStoreError):
    """The sync endpoint returned 404: service not deployed or misconfigured."""


class RemoteStoreUnavailableError(RemoteStoreError):
    """The storage service returned a 5xx status."""


class RemoteStoreRejectedError(RemoteStoreError):
    """The storage service rejected the request (4xx other than 404)."""


class RemoteStoreTransportError(RemoteStoreError):
    """Network failure or timeout before a response arrived."""


class RemoteStoreResponseError(RemoteStoreError):
    """The response body was not valid JSON or did not match the expected shape."""
