"""Windowed request limiting per (identifier, endpoint)."""

from __future__ import annotations

import math
from collections.abc import Callable, Mapping
from datetime import UTC, datetime, timedelta

from docbot.core.logging import get_logger
from docbot.core.protocols import RateLimitStore
from docbot.ratelimit.models import RateLimitResult

logger = get_logger(__name__)

UNKNOWN_IDENTIFIER = "ip:unknown"


def _utc_now() -> datetime:
    return datetime.now(UTC)


def resolve_identifier(headers: Mapping[str, str], user_id: str | None = None) -> str:
    """Pick the bucket for a request.

    Precedence: authenticated user, first ``X-Forwarded-For`` hop,
    ``X-Real-IP``, then a shared ``unknown`` bucket.
    """
    if user_id:
        return f"user:{user_id}"

    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return f"ip:{first}"

    real_ip = headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return f"ip:{real_ip.strip()}"

    return UNKNOWN_IDENTIFIER


class RateLimiter:
    """Checks and counts requests against a store.

    Storage failures fail open by default: the request is allowed and the
    error is logged.
    """

    def __init__(
        self,
        store: RateLimitStore,
        fail_open: bool = True,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.store = store
        self.fail_open = fail_open
        self._clock = clock

    async def check_and_increment(
        self,
        identifier: str,
        endpoint: str,
        max_requests: int,
        window_minutes: int,
    ) -> RateLimitResult:
        now = self._clock()
        window = timedelta(minutes=window_minutes)

        try:
            state = await self.store.hit(identifier, endpoint, max_requests, window_minutes, now)
        except Exception as e:
            logger.error(
                "rate_limit_store_failed",
                endpoint=endpoint,
                fail_open=self.fail_open,
                error=str(e),
            )
            if self.fail_open:
                return RateLimitResult(
                    allowed=True,
                    remaining=max(0, max_requests - 1),
                    reset_time=now + window,
                )
            retry_after = math.ceil(window.total_seconds())
            return RateLimitResult(
                allowed=False,
                remaining=0,
                reset_time=now + window,
                retry_after_seconds=retry_after,
                message=f"Rate limit exceeded. Try again in {retry_after} seconds.",
            )

        reset_time = state.window_start + window
        if state.allowed:
            return RateLimitResult(
                allowed=True,
                remaining=max(0, max_requests - state.request_count),
                reset_time=reset_time,
            )

        retry_after = max(1, math.ceil((reset_time - now).total_seconds()))
        logger.info(
            "rate_limit_exceeded",
            identifier=identifier,
            endpoint=endpoint,
            retry_after=retry_after,
        )
        return RateLimitResult(
            allowed=False,
            remaining=0,
            reset_time=reset_time,
            retry_after_seconds=retry_after,
            message=f"Rate limit exceeded. Try again in {retry_after} seconds.",
        )

    async def cleanup(self, retention_minutes: int) -> int:
        """Delete windows that started more than ``retention_minutes`` ago."""
        cutoff = self._clock() - timedelta(minutes=retention_minutes)
        deleted = await self.store.cleanup(cutoff)
        logger.info("rate_limit_cleanup", deleted=deleted)
        return deleted
