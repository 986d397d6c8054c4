"""Sliding-window request gate for sync traffic."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING

from navhub.core.time_utils import now_ms

if TYPE_CHECKING:
    from navhub.core.time_utils import Clock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
    """Configuration for rate limiting."""

    max_requests: int = 10  # Maximum requests per window
    window_ms: int = 60_000  # Rolling window length in milliseconds


SYNC_RATE_LIMIT = RateLimitConfig(max_requests=10, window_ms=60_000)
API_RATE_LIMIT = RateLimitConfig(max_requests=30, window_ms=60_000)


class SlidingWindowRateLimiter:
    """Sliding-window rate limiter with a single shared bucket.

    A request recorded at ``t`` counts against the limit while
    ``now - t < window_ms``. ``can_make_request`` both checks and records, so
    callers only invoke it when they intend to proceed.
    """

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        *,
        clock: Clock = now_ms,
        name: str = "sync",
    ) -> None:
        self._config = config or SYNC_RATE_LIMIT
        if self._config.max_requests <= 0 or self._config.window_ms <= 0:
            msg = "Rate limit max_requests and window_ms must be positive"
            raise ValueError(msg)
        self._clock = clock
        self._requests: deque[int] = deque()
        self.name = name

    @property
    def max_requests(self) -> int:
        return self._config.max_requests

    @property
    def window_ms(self) -> int:
        return self._config.window_ms

    def _prune(self, now: int) -> None:
        while self._requests and now - self._requests[0] >= self._config.window_ms:
            self._requests.popleft()

    def can_make_request(self) -> bool:
        """Return True and record the request if the window has room."""
        now = self._clock()
        self._prune(now)

        if len(self._requests) >= self._config.max_requests:
            logger.warning(
                "rate_limit_exceeded",
                extra={
                    "limiter": self.name,
                    "max_requests": self._config.max_requests,
                    "window_ms": self._config.window_ms,
                    "retry_after_ms": self._next_available(now),
                },
            )
            return False

        self._requests.append(now)
        return True

    def get_remaining_requests(self) -> int:
        """Number of requests still allowed in the current window."""
        now = self._clock()
        in_window = sum(1 for ts in self._requests if now - ts < self._config.window_ms)
        return max(0, self._config.max_requests - in_window)

    def get_next_available_time(self) -> int:
        """Milliseconds until a slot frees up, or 0 if one is available now."""
        return self._next_available(self._clock())

    def _next_available(self, now: int) -> int:
        in_window = [ts for ts in self._requests if now - ts < self._config.window_ms]
        if len(in_window) < self._config.max_requests:
            return 0
        return max(0, in_window[0] + self._config.window_ms - now)

    def reset(self) -> None:
        """Drop all recorded requests."""
        self._requests.clear()
        logger.info("rate_limit_reset", extra={"limiter": self.name})


def create_sync_rate_limiter(*, clock: Clock = now_ms) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(SYNC_RATE_LIMIT, clock=clock, name="sync")


def create_api_rate_limiter(*, clock: Clock = now_ms) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(API_RATE_LIMIT, clock=clock, name="api")
