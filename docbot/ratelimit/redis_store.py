"""Redis-based rate limit store for multi-instance deployments."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING

import redis.asyncio as redis

from docbot.core.logging import get_logger
from docbot.ratelimit.factory import RateLimitStoreFactory
from docbot.ratelimit.models import WindowState

if TYPE_CHECKING:
    from docbot.core.config import AppConfig

logger = get_logger(__name__)


@RateLimitStoreFactory.register("redis")
class RedisRateLimitStore:
    """Fixed windows as self-expiring counters.

    ``SET NX PX`` opens the window with its TTL, ``INCR`` counts the request
    and ``PTTL`` reports how much of the window is left; all three run in one
    MULTI/EXEC so each hit is atomic. Expired windows disappear on their own.
    """

    def __init__(self, url: str, key_prefix: str = "ratelimit"):
        self.url = url
        self.key_prefix = key_prefix
        self._client: redis.Redis | None = None

    @classmethod
    def from_config(cls, config: AppConfig) -> RedisRateLimitStore:
        return cls(config.rate_limit.redis_url)

    async def _get_client(self) -> redis.Redis:
        """Get or create Redis client."""
        if self._client is None:
            self._client = redis.from_url(self.url, decode_responses=True)
            logger.info("redis_client_created")
        return self._client

    def _get_key(self, identifier: str, endpoint: str) -> str:
        return f"{self.key_prefix}:{endpoint}:{identifier}"

    async def hit(
        self,
        identifier: str,
        endpoint: str,
        max_requests: int,
        window_minutes: int,
        now: datetime,
    ) -> WindowState:
        client = await self._get_client()
        key = self._get_key(identifier, endpoint)
        window_ms = window_minutes * 60 * 1000

        async with client.pipeline(transaction=True) as pipe:
            pipe.set(key, 0, px=window_ms, nx=True)
            pipe.incr(key)
            pipe.pttl(key)
            _, count, ttl_ms = await pipe.execute()

        if ttl_ms < 0:
            await client.pexpire(key, window_ms)
            ttl_ms = window_ms

        window_start = now - timedelta(milliseconds=window_ms - ttl_ms)
        return WindowState(int(count), window_start, allowed=int(count) <= max_requests)

    async def cleanup(self, older_than: datetime) -> int:
        # Keys expire through their TTL
        return 0

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("redis_client_closed")
