"""
Configuration and settings for the Runway AI backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    api_prefix: str = Field(default="/api")
    log_level: str = Field(default="INFO")

    # Database (Postgres expected)
    database_url: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "RUNWAY_USE_IN_MEMORY_BACKENDS", "use_in_memory_backends"
        ),
    )

    # Sessions
    session_secret: str = Field(default="runway-dev-session-secret-change-me")
    session_cookie_name: str = Field(default="runway.sid")
    session_max_age_seconds: int = Field(default=7 * 24 * 60 * 60, ge=60)
    session_cookie_secure: bool = Field(default=False)

    # LLM / Gemini
    gemini_api_key: Optional[str] = Field(default=None)
    gemini_model: str = Field(default="gemini-2.5-flash")

    # Transactional email (Resend)
    resend_api_key: Optional[str] = Field(default=None)
    email_sender: str = Field(default="Runway AI <onboarding@runwayai.app>")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
