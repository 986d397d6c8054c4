"""HTTP-facing exceptions for the sync storage service.

Every error is rendered as ``{"error": message}`` to match what existing
browser clients already parse.
"""

from __future__ import annotations

from typing import Any


class APIException(Exception):
    """Base exception for all API errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.headers = headers


class InvalidPinError(APIException):
    """Raised when the PIN query/body field is missing or too short."""

    def __init__(self) -> None:
        super().__init__("Invalid PIN code", status_code=400)


class EmptyPayloadError(APIException):
    """Raised when a save carries neither bookmarks nor settings."""

    def __init__(self) -> None:
        super().__init__("No data to save", status_code=400)


class InvalidPayloadError(APIException):
    """Raised when the save body or its bookmarks do not parse."""

    def __init__(self, message: str = "Invalid request body", details: dict[str, Any] | None = None):
        super().__init__(message, status_code=400, details=details)


class PayloadTooLargeError(APIException):
    def __init__(self, limit_kb: int) -> None:
        super().__init__(
            "Payload too large", status_code=413, details={"limit_kb": limit_kb}
        )


class TooManyRequestsError(APIException):
    """Raised by the per-client rate limit middleware."""

    def __init__(self, retry_after_ms: int) -> None:
        retry_after = max(1, -(-retry_after_ms // 1000))
        super().__init__(
            "Too many requests",
            status_code=429,
            details={"retry_after": retry_after},
            headers={"Retry-After": str(retry_after)},
        )


class StorageUnavailableError(APIException):
    """Raised when the record store fails."""

    def __init__(self) -> None:
        super().__init__("Internal server error", status_code=500)
