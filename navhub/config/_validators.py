from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)


def _parse_origins(value: Any) -> tuple[str, ...]:
    if value in (None, ""):
        return ()
    values = value if isinstance(value, list | tuple) else str(value).split(",")

    origins: list[str] = []
    for piece in values:
        piece = str(piece).strip().rstrip("/")
        if not piece:
            continue
        if not piece.startswith(("http://", "https://")):
            logger.warning("ignoring_invalid_origin", extra={"origin": piece})
            continue
        origins.append(piece)
    return tuple(origins)


def _validate_log_level(value: Any) -> str:
    log_level = str(value or "INFO").upper()
    valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if log_level not in valid_levels:
        msg = f"Invalid log level: {value}. Must be one of {valid_levels}"
        raise ValueError(msg)
    return log_level
