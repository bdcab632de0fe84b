"""Rate limit value objects."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class WindowState:
    """Window state reported by a store after a hit.

    ``request_count`` includes the current request when ``allowed`` is true.
    """

    request_count: int
    window_start: datetime
    allowed: bool


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one rate limit check."""

    allowed: bool
    remaining: int
    reset_time: datetime
    retry_after_seconds: int = 0
    message: str | None = None

    def headers(self) -> dict[str, str]:
        """HTTP headers describing the caller's quota."""
        return {
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(math.ceil(self.reset_time.timestamp())),
            "Retry-After": str(self.retry_after_seconds),
        }
