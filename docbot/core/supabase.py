"""Shared Supabase (PostgREST) client helpers."""

from __future__ import annotations

import asyncio
from functools import lru_cache
from typing import Any

from docbot.core.exceptions import ConfigurationError, StorageError
from docbot.core.logging import get_logger

logger = get_logger(__name__)


@lru_cache(maxsize=4)
def get_supabase_client(url: str | None, service_key: str | None) -> Any:
    """Create (once per credentials) a service-role Supabase client."""
    if not url or not service_key:
        raise ConfigurationError("SUPABASE_URL and SUPABASE_SERVICE_KEY must be set")

    from supabase import create_client

    return create_client(url, service_key)


async def execute(query: Any, operation: str) -> list[dict[str, Any]]:
    """Run a PostgREST query builder off the event loop and return its rows.

    Raises:
        StorageError: Any client or API failure
    """
    try:
        response = await asyncio.to_thread(query.execute)
    except Exception as e:
        logger.error("supabase_query_failed", operation=operation, error=str(e))
        raise StorageError(f"Supabase {operation} failed: {e}", provider="supabase") from e
    return list(response.data or [])
