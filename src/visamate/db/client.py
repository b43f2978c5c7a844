"""
VisaMate - Supabase Client.

Low-level database and auth access. All Supabase calls go through here.
"""

from supabase import Client, create_client

from visamate.config import get_settings

# Singleton client instances
_client: Client | None = None
_service_client: Client | None = None

PROFILES_TABLE = "profiles"


def get_client() -> Client:
    """
    Get the anon-key Supabase client.

    Uses singleton pattern to reuse connection.
    """
    global _client

    if _client is None:
        settings = get_settings()
        _client = create_client(settings.supabase_url, settings.supabase_anon_key)

    return _client


def get_service_client() -> Client:
    """Get the server-side client (service role key when configured)."""
    global _service_client

    if _service_client is None:
        settings = get_settings()
        _service_client = create_client(settings.supabase_url, settings.server_key)

    return _service_client


def create_auth_client() -> Client:
    """
    Fresh anon client for one sign-in/sign-up flow.

    Supabase clients hold the signed-in session, so auth flows for different
    viewers must not share one.
    """
    settings = get_settings()
    return create_client(settings.supabase_url, settings.supabase_anon_key)


# =============================================================================
# Profile Operations
# =============================================================================


def fetch_profile(user_id: str) -> dict | None:
    """Get the profile row for a user, or None when there is none."""
    client = get_service_client()
    response = client.table(PROFILES_TABLE).select("*").eq("user_id", user_id).maybe_single().execute()
    # maybe_single() returns no response at all for zero rows in recent clients
    if response is None:
        return None
    return response.data


def upsert_profile(user_id: str, fields: dict) -> dict:
    """Create or update a user's profile and return the stored row."""
    client = get_service_client()
    data = {**fields, "user_id": user_id}
    response = client.table(PROFILES_TABLE).upsert(data, on_conflict="user_id").execute()
    return response.data[0]
