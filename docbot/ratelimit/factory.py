"""Factory for creating rate limit store instances."""

from __future__ import annotations

from typing import TYPE_CHECKING

from docbot.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from docbot.core.config import AppConfig
    from docbot.core.protocols import RateLimitStore


class RateLimitStoreFactory:
    """Factory for creating rate limit stores using registry pattern."""

    _registry: dict[str, type] = {}

    @classmethod
    def register(cls, backend: str):
        """Decorator to register a rate limit store implementation.

        Usage:
            @RateLimitStoreFactory.register("redis")
            class RedisRateLimitStore:
                ...
        """

        def decorator(store_cls: type) -> type:
            cls._registry[backend] = store_cls
            return store_cls

        return decorator

    @classmethod
    def create(cls, config: AppConfig) -> RateLimitStore:
        """Create a store for ``RATE_LIMIT_BACKEND``.

        Raises:
            ConfigurationError: If backend is not registered
        """
        backend = config.rate_limit.backend
        store_cls = cls._registry.get(backend)
        if store_cls is None:
            raise ConfigurationError(
                f"Unknown rate limit backend: {backend}. Available: {list(cls._registry.keys())}"
            )
        return store_cls.from_config(config)

    @classmethod
    def available_backends(cls) -> list[str]:
        return list(cls._registry.keys())
