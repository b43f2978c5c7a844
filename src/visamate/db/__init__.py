"""
VisaMate - Database Client.

Provides Supabase access for auth, profiles and flags.
"""

from visamate.db.client import fetch_profile, get_client, get_service_client, upsert_profile
from visamate.db.flags import get_flag_store

__all__ = [
    "get_client",
    "get_service_client",
    "fetch_profile",
    "upsert_profile",
    "get_flag_store",
]
