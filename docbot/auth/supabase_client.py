"""Supabase authentication client."""

from __future__ import annotations

import httpx

from docbot.auth.schemas import User
from docbot.core.config import SupabaseConfig


class SupabaseAuthError(Exception):
    """Supabase authentication error."""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class SupabaseAuthClient:
    """Verifies Supabase access tokens and decides owner access."""

    def __init__(self, url: str | None, service_key: str | None, owner_emails: list[str] | None = None):
        """Initialize Supabase client.

        Args:
            url: Supabase project URL
            service_key: Supabase service role key
            owner_emails: E-mails allowed to manage documents and configuration;
                empty means every authenticated user
        """
        self.url = (url or "").rstrip("/")
        self.service_key = service_key
        self.owner_emails = {e.strip().lower() for e in owner_emails or [] if e.strip()}
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(cls, config: SupabaseConfig) -> SupabaseAuthClient:
        return cls(url=config.url, service_key=config.service_key, owner_emails=config.owner_emails)

    @property
    def client(self) -> httpx.AsyncClient:
        """Get async HTTP client (lazy initialization)."""
        if self._client is None:
            if not self.url or not self.service_key:
                raise SupabaseAuthError("Supabase authentication is not configured", status_code=503)
            self._client = httpx.AsyncClient(
                base_url=self.url,
                headers={
                    "apikey": self.service_key,
                    "Content-Type": "application/json",
                },
                timeout=30.0,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def verify_token(self, token: str) -> User:
        """Verify JWT token and return user.

        Raises:
            SupabaseAuthError: If token is invalid or verification fails
        """
        try:
            response = await self.client.get(
                "/auth/v1/user",
                headers={"Authorization": f"Bearer {token}"},
            )
            response.raise_for_status()

            data = response.json()
            return User(
                id=data["id"],
                email=data.get("email"),
                created_at=data.get("created_at"),
            )

        except httpx.HTTPStatusError as e:
            raise SupabaseAuthError(
                "Token verification failed",
                status_code=e.response.status_code,
            ) from e
        except (KeyError, ValueError) as e:
            raise SupabaseAuthError(f"Invalid user data: {e}") from e
        except httpx.RequestError as e:
            raise SupabaseAuthError(f"Request to Supabase failed: {e}", status_code=503) from e

    def is_owner(self, user: User) -> bool:
        if not self.owner_emails:
            return True
        return bool(user.email) and user.email.lower() in self.owner_emails
