"""FastAPI dependencies for authentication."""

from typing import Annotated

from dependency_injector.wiring import Provide, inject
from fastapi import Depends, Header, HTTPException, status

from docbot.auth.schemas import User
from docbot.auth.supabase_client import SupabaseAuthClient, SupabaseAuthError
from docbot.core.di_container import DIContainer
from docbot.core.logging import get_logger

logger = get_logger(__name__)


def _parse_bearer(authorization: str | None) -> str:
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail='Authorization header must start with "Bearer "',
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = authorization[7:].strip()
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token is empty",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return token


@inject
async def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
    client: SupabaseAuthClient = Depends(Provide[DIContainer.auth_client]),  # noqa: B008
) -> User:
    """Verify the bearer token with Supabase and return the user.

    Raises:
        HTTPException: 401 for a missing or invalid token
    """
    token = _parse_bearer(authorization)
    try:
        return await client.verify_token(token)
    except SupabaseAuthError as e:
        status_code = (
            status.HTTP_503_SERVICE_UNAVAILABLE
            if e.status_code == 503
            else status.HTTP_401_UNAUTHORIZED
        )
        raise HTTPException(
            status_code=status_code,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


@inject
async def get_optional_user(
    authorization: Annotated[str | None, Header()] = None,
    client: SupabaseAuthClient = Depends(Provide[DIContainer.auth_client]),  # noqa: B008
) -> User | None:
    """Return the user for a valid bearer token, or None for anonymous callers."""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    try:
        return await client.verify_token(authorization[7:].strip())
    except SupabaseAuthError as e:
        logger.debug("optional_auth_ignored", error=e.message)
        return None


@inject
async def get_current_owner(
    user: Annotated[User, Depends(get_current_user)],
    client: SupabaseAuthClient = Depends(Provide[DIContainer.auth_client]),  # noqa: B008
) -> User:
    """Require an authenticated owner.

    Raises:
        HTTPException: 403 when the user is not an owner
    """
    if not client.is_owner(user):
        logger.warning("owner_access_denied", user_id=user.id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Owner access required")
    return user


# Type aliases for convenience
OptionalUser = Annotated[User | None, Depends(get_optional_user)]
OwnerUser = Annotated[User, Depends(get_current_owner)]
