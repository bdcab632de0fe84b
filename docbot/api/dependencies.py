"""FastAPI dependencies for request rate limiting."""

from typing import Annotated

from dependency_injector.wiring import Provide, inject
from fastapi import Depends, Request, Response

from docbot.auth.dependencies import OptionalUser, get_current_owner
from docbot.auth.schemas import User
from docbot.core.config import AppConfig
from docbot.core.di_container import DIContainer
from docbot.core.exceptions import RateLimitExceededError
from docbot.ratelimit import RateLimiter, resolve_identifier

CHAT_ENDPOINT = "chat"
DOCUMENT_ENDPOINT = "process-document"


async def _enforce(
    request: Request,
    response: Response,
    limiter: RateLimiter,
    config: AppConfig,
    endpoint: str,
    max_requests: int,
    window_minutes: int,
    user_id: str | None = None,
) -> None:
    if not config.rate_limit.enabled:
        return

    identifier = resolve_identifier(request.headers, user_id)
    result = await limiter.check_and_increment(identifier, endpoint, max_requests, window_minutes)
    if not result.allowed:
        raise RateLimitExceededError(result.message or "Rate limit exceeded", headers=result.headers())

    response.headers["X-RateLimit-Remaining"] = str(result.remaining)
    response.headers["X-RateLimit-Reset"] = result.headers()["X-RateLimit-Reset"]


@inject
async def enforce_chat_rate_limit(
    request: Request,
    response: Response,
    user: OptionalUser,
    limiter: RateLimiter = Depends(Provide[DIContainer.rate_limiter]),  # noqa: B008
    config: AppConfig = Depends(Provide[DIContainer.config]),  # noqa: B008
) -> None:
    """Count one chat request against the signed-in user, or the caller's IP."""
    await _enforce(
        request,
        response,
        limiter,
        config,
        CHAT_ENDPOINT,
        config.rate_limit.chat_max_requests,
        config.rate_limit.chat_window_minutes,
        user_id=user.id if user else None,
    )


@inject
async def enforce_document_rate_limit(
    request: Request,
    response: Response,
    user: Annotated[User, Depends(get_current_owner)],
    limiter: RateLimiter = Depends(Provide[DIContainer.rate_limiter]),  # noqa: B008
    config: AppConfig = Depends(Provide[DIContainer.config]),  # noqa: B008
) -> None:
    """Count one document upload against the owner."""
    await _enforce(
        request,
        response,
        limiter,
        config,
        DOCUMENT_ENDPOINT,
        config.rate_limit.documents_max_requests,
        config.rate_limit.documents_window_minutes,
        user_id=user.id,
    )
