"""Supabase-backed rate limit store (``rate_limits`` table)."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from docbot.core.logging import get_logger
from docbot.core.supabase import execute, get_supabase_client
from docbot.ratelimit.factory import RateLimitStoreFactory
from docbot.ratelimit.models import WindowState

if TYPE_CHECKING:
    from docbot.core.config import AppConfig

logger = get_logger(__name__)

# Compare-and-swap attempts before settling for approximate limiting
MAX_CAS_ATTEMPTS = 3


def _parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@RateLimitStoreFactory.register("supabase")
class SupabaseRateLimitStore:
    """One row per (identifier, endpoint), updated with conditional writes.

    Every write is guarded by the value it read (``request_count``, and
    ``window_start`` on reset), so concurrent requests cannot lose an
    increment: the loser re-reads and tries again. The table needs a unique
    constraint on ``(identifier, endpoint)``.
    """

    def __init__(self, client: Any, table_name: str = "rate_limits") -> None:
        self._client = client
        self._table_name = table_name

    @classmethod
    def from_config(cls, config: AppConfig) -> SupabaseRateLimitStore:
        client = get_supabase_client(config.supabase.url, config.supabase.service_key)
        return cls(client, table_name=config.supabase.rate_limits_table)

    def _table(self):
        return self._client.table(self._table_name)

    async def hit(
        self,
        identifier: str,
        endpoint: str,
        max_requests: int,
        window_minutes: int,
        now: datetime,
    ) -> WindowState:
        now_iso = now.isoformat()
        window_floor = now - timedelta(minutes=window_minutes)
        last_seen = WindowState(1, now, allowed=True)

        for _ in range(MAX_CAS_ATTEMPTS):
            rows = await execute(
                self._table()
                .select("id,request_count,window_start")
                .eq("identifier", identifier)
                .eq("endpoint", endpoint)
                .limit(1),
                "select_window",
            )

            if not rows:
                inserted = await execute(
                    self._table().upsert(
                        {
                            "identifier": identifier,
                            "endpoint": endpoint,
                            "request_count": 1,
                            "window_start": now_iso,
                            "updated_at": now_iso,
                        },
                        on_conflict="identifier,endpoint",
                        ignore_duplicates=True,
                    ),
                    "insert_window",
                )
                if inserted:
                    return WindowState(1, now, allowed=True)
                continue

            row = rows[0]
            count = int(row["request_count"])
            window_start = _parse_timestamp(row["window_start"])

            if window_start < window_floor:
                updated = await execute(
                    self._table()
                    .update({"request_count": 1, "window_start": now_iso, "updated_at": now_iso})
                    .eq("id", row["id"])
                    .eq("window_start", row["window_start"]),
                    "reset_window",
                )
                if updated:
                    return WindowState(1, now, allowed=True)
                continue

            if count >= max_requests:
                return WindowState(count, window_start, allowed=False)

            updated = await execute(
                self._table()
                .update({"request_count": count + 1, "updated_at": now_iso})
                .eq("id", row["id"])
                .eq("request_count", count),
                "increment_window",
            )
            if updated:
                return WindowState(count + 1, window_start, allowed=True)
            last_seen = WindowState(count + 1, window_start, allowed=True)

        logger.warning(
            "rate_limit_contention",
            identifier=identifier,
            endpoint=endpoint,
            attempts=MAX_CAS_ATTEMPTS,
        )
        return last_seen

    async def cleanup(self, older_than: datetime) -> int:
        rows = await execute(
            self._table().delete().lt("window_start", older_than.isoformat()),
            "cleanup_windows",
        )
        return len(rows)
