"""Application configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    auth_provider: Literal["mock", "firebase"] = "firebase"
    firebase_project_id: str | None = None
    firebase_api_key: str | None = None
    profile_backend: Literal["memory", "firestore"] = "memory"

    session_ttl_seconds: int = Field(default=86400, ge=1)
    provider_timeout_seconds: float = Field(default=10.0, gt=0)
    min_secret_length: int = Field(default=6, ge=1)
    generate_keypair: bool = True

    # Directory for per-context device storage files; memory-only when unset.
    device_storage_dir: str | None = None
    context_cookie_name: str = "filetrail_ctx"
    # Contexts without a usable session are evicted after this much inactivity.
    context_idle_seconds: int = Field(default=3600, ge=1)
    context_cleanup_interval_seconds: float = Field(default=300.0, gt=0)
    cookie_secure: bool = False
    login_path: str = "/login"
    landing_path: str = "/dashboard"

    log_level: str = "INFO"

    # Seeds an admin account on start-up when the mock provider is active.
    bootstrap_admin_identifier: str | None = None
    bootstrap_admin_secret: str | None = None

    model_config = SettingsConfigDict(env_prefix="FILETRAIL_", extra="ignore")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
