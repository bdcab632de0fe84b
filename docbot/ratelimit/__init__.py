"""Request rate limiting - stores, factory and limiter."""

# Import stores first to trigger registration via decorators
from docbot.ratelimit import in_memory_store, redis_store, supabase_store
from docbot.ratelimit.factory import RateLimitStoreFactory
from docbot.ratelimit.limiter import RateLimiter, resolve_identifier
from docbot.ratelimit.models import RateLimitResult, WindowState

__all__ = [
    "RateLimitResult",
    "RateLimitStoreFactory",
    "RateLimiter",
    "WindowState",
    "resolve_identifier",
]
