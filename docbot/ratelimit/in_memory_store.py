"""In-memory rate limit store for development and testing."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from docbot.core.logging import get_logger
from docbot.ratelimit.factory import RateLimitStoreFactory
from docbot.ratelimit.models import WindowState

if TYPE_CHECKING:
    from docbot.core.config import AppConfig

logger = get_logger(__name__)


@dataclass
class _Window:
    request_count: int
    window_start: datetime


@RateLimitStoreFactory.register("in_memory")
class InMemoryRateLimitStore:
    """Dictionary-based window store guarded by a single asyncio lock.

    Not persistent - data is lost on restart, and limits are per process.
    """

    def __init__(self) -> None:
        self._windows: dict[tuple[str, str], _Window] = {}
        self._lock = asyncio.Lock()
        logger.debug("in_memory_rate_limit_store_initialized")

    @classmethod
    def from_config(cls, config: AppConfig) -> InMemoryRateLimitStore:
        return cls()

    async def hit(
        self,
        identifier: str,
        endpoint: str,
        max_requests: int,
        window_minutes: int,
        now: datetime,
    ) -> WindowState:
        key = (identifier, endpoint)
        async with self._lock:
            window = self._windows.get(key)
            if window is None or window.window_start < now - timedelta(minutes=window_minutes):
                window = _Window(request_count=1, window_start=now)
                self._windows[key] = window
                return WindowState(1, now, allowed=True)

            if window.request_count >= max_requests:
                return WindowState(window.request_count, window.window_start, allowed=False)

            window.request_count += 1
            return WindowState(window.request_count, window.window_start, allowed=True)

    async def cleanup(self, older_than: datetime) -> int:
        async with self._lock:
            stale = [k for k, w in self._windows.items() if w.window_start < older_than]
            for key in stale:
                del self._windows[key]
        return len(stale)

    def get_window_count(self) -> int:
        """Number of tracked windows (for monitoring)."""
        return len(self._windows)
