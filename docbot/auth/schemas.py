"""Authentication schemas for Supabase integration."""

from pydantic import BaseModel, Field


class User(BaseModel):
    """User model from Supabase auth.users."""

    id: str = Field(..., description="User UUID from Supabase")
    email: str | None = Field(default=None, description="User email address")
    created_at: str | None = Field(default=None, description="ISO timestamp of user creation")

    def __hash__(self) -> int:
        """Hash based on id for use in sets/dicts."""
        return hash(self.id)
