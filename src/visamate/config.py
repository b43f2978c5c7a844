"""
VisaMate - Configuration and settings.

All values come from the environment or `.env`. Settings are loaded lazily so
importing a module never requires a populated environment.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Supabase
    supabase_url: str
    supabase_anon_key: str
    supabase_service_role_key: str | None = None

    # LLM document generation (optional - endpoint returns 503 without a key)
    openai_api_key: str | None = None
    openai_model: str = "gpt-4.1-mini"

    # Application
    visamate_env: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    cors_origins: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    # Onboarding tour
    tour_auto_start_delay: float = 1.0  # seconds after first render
    flag_store: Literal["memory", "file", "supabase"] = "file"
    flag_store_path: Path = Path(".visamate/flags.json")

    # Sessions
    session_cookie_name: str = "visamate_session"
    session_days: int = 7

    @property
    def is_development(self) -> bool:
        return self.visamate_env == "development"

    @property
    def is_production(self) -> bool:
        return self.visamate_env == "production"

    @property
    def server_key(self) -> str:
        """Key for server-side Supabase calls; service role when configured."""
        return self.supabase_service_role_key or self.supabase_anon_key


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


class _SettingsProxy:
    """Lazy proxy for settings to avoid loading .env at import time."""

    _instance: Settings | None = None

    def __getattr__(self, name: str):
        if self._instance is None:
            self._instance = get_settings()
        return getattr(self._instance, name)


settings = _SettingsProxy()
