"""Database utilities for Supabase integration."""

from supabase import Client, create_client

from .config import Settings, get_settings

_supabase_client: Client | None = None


def get_supabase_client(settings: Settings | None = None) -> Client:
    """Get cached Supabase client."""
    global _supabase_client
    if _supabase_client is None:
        if settings is None:
            settings = get_settings()
        # Prefer new secret key, fall back to legacy service_role_key
        api_key = settings.supabase_secret_key or settings.supabase_service_role_key
        if not api_key:
            raise ValueError("Either SUPABASE_SECRET_KEY or SUPABASE_SERVICE_ROLE_KEY must be set")
        _supabase_client = create_client(settings.supabase_url, api_key)
    return _supabase_client


# =============================================================================
# Table Names
# =============================================================================

USERS_TABLE = "users"
CONVERSATIONS_TABLE = "conversations"
MESSAGES_TABLE = "messages"
MEMORY_CONTEXT_TABLE = "memory_context"
AI_SUGGESTIONS_TABLE = "ai_suggestions"
