"""Supabase authentication module.

Provides JWT-based authentication and owner checks using Supabase.
"""

from docbot.auth.dependencies import OptionalUser, OwnerUser, get_current_owner, get_current_user
from docbot.auth.schemas import User
from docbot.auth.supabase_client import SupabaseAuthClient, SupabaseAuthError

__all__ = [
    "OptionalUser",
    "OwnerUser",
    "SupabaseAuthClient",
    "SupabaseAuthError",
    "User",
    "get_current_owner",
    "get_current_user",
]
