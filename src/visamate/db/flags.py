"""
VisaMate - Flag store selection.

Builds the configured onboarding FlagStore once per process.
"""

import logging
from functools import lru_cache

from onboarding.flags import FlagStore, JsonFileFlagStore, MemoryFlagStore, SupabaseFlagStore
from visamate.config import get_settings

logger = logging.getLogger(__name__)


@lru_cache
def get_flag_store() -> FlagStore:
    """Get the process-wide flag store for the configured backend."""
    settings = get_settings()

    if settings.flag_store == "memory":
        store: FlagStore = MemoryFlagStore()
    elif settings.flag_store == "supabase":
        from visamate.db.client import get_service_client
        store = SupabaseFlagStore(get_service_client())
    else:
        store = JsonFileFlagStore(settings.flag_store_path)

    logger.info(f"Flag store: {settings.flag_store}")
    return store
