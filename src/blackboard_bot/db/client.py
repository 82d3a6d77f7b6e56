"""
Supabase client initialization.

Provides a configured Supabase client for the session store.
"""

from functools import lru_cache

from supabase import Client, create_client

from blackboard_bot.config import get_settings


@lru_cache()
def get_supabase_client() -> Client:
    """
    Get a cached Supabase client instance.

    Returns:
        Client: Configured Supabase client

    Raises:
        ValueError: If the Supabase settings are missing
    """
    settings = get_settings()

    if not settings.supabase_url or not settings.supabase_service_role_key:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")

    return create_client(
        supabase_url=settings.supabase_url,
        supabase_key=settings.supabase_service_role_key,
    )
