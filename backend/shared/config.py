"""
Centralized configuration for the CareLink backend.

All settings are loaded from environment variables with sensible defaults.
Module-specific settings should be namespaced (e.g., SUPABASE_*, RETRY_*).
"""

from functools import lru_cache
from typing import Literal
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "CareLink API"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False

    # CORS settings
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:5174"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    # Supabase
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""
    supabase_jwt_secret: str = ""
    documents_table: str = "documents"
    commit_function: str = "commit_documents"

    # Backends ("memory" is for tests and local development)
    document_store: Literal["memory", "supabase"] = "memory"
    credential_backend: Literal["memory", "supabase"] = "memory"

    # Retry policy for store and credential calls
    retry_max_attempts: int = Field(default=5, ge=1, le=10)
    retry_base_delay: float = Field(default=0.1, ge=0)
    retry_max_delay: float = Field(default=2.0, ge=0)
    retry_jitter: bool = True

    # Linking codes
    linking_code_ttl_hours: int = Field(default=24, ge=1)
    linking_code_max_generation_attempts: int = Field(default=5, ge=1)

    # Assignments
    progress_increment: int = Field(default=20, ge=1, le=100)

    # Accounts
    profile_load_attempts: int = Field(default=6, ge=1)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
