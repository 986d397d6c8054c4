"""PIN hashing and validation.

The raw PIN never leaves the device: only its SHA-256 digest is persisted or
sent to the storage service, where it acts as the record key.
"""

from __future__ import annotations

import hashlib
import hmac
import re
import secrets

from navhub.sync.exceptions import PinValidationError

PIN_MIN_LENGTH = 4
PIN_MAX_LENGTH = 20

# Markup and script-like input is refused outright.
_FORBIDDEN_PIN_PATTERN = re.compile(r"<|>|&|\"|'|script", re.IGNORECASE)


def hash_pin(pin: str) -> str:
    """Return the lowercase hex SHA-256 digest of the PIN's UTF-8 bytes."""
    return hashlib.sha256(pin.encode("utf-8")).hexdigest()


def verify_pin(pin: str, digest: str) -> bool:
    """Check a PIN against a stored digest in constant time."""
    return hmac.compare_digest(hash_pin(pin), digest.lower())


def validate_pin(pin: str) -> str:
    """Validate PIN length and characters.

    Returns:
        The PIN unchanged when it is acceptable.

    Raises:
        PinValidationError: If the PIN is too short, too long or contains markup.
    """
    if not isinstance(pin, str) or len(pin) < PIN_MIN_LENGTH:
        raise PinValidationError(
            f"PIN must be at least {PIN_MIN_LENGTH} characters",
            details={"min_length": PIN_MIN_LENGTH},
        )
    if len(pin) > PIN_MAX_LENGTH:
        raise PinValidationError(
            f"PIN must be at most {PIN_MAX_LENGTH} characters",
            details={"max_length": PIN_MAX_LENGTH},
        )
    if _FORBIDDEN_PIN_PATTERN.search(pin):
        raise PinValidationError("PIN contains invalid characters")
    return pin


def generate_device_id() -> str:
    """Return a random 32-character hex device identifier."""
    return secrets.token_hex(16)
