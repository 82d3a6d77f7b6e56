"""Persistence bridge for Blackboard Session Bot."""

from blackboard_bot.config import Settings
from blackboard_bot.db.base import SessionStore
from blackboard_bot.db.json_store import JsonSessionStore


def create_store(settings: Settings) -> SessionStore:
    """Build the session store selected by ``settings.session_store``."""
    if settings.session_store == "supabase":
        from blackboard_bot.db.session_store import SupabaseSessionStore

        return SupabaseSessionStore()
    return JsonSessionStore(settings.clients_json)


__all__ = ["JsonSessionStore", "SessionStore", "create_store"]
